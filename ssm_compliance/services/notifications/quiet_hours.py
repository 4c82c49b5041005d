"""Quiet-hours windows in the member's local timezone."""

from __future__ import annotations

from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def resolve_zone(*names: str | None) -> ZoneInfo:
    """First valid IANA zone among names; UTC when none is valid."""
    for name in names:
        if not name:
            continue
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            continue
    return ZoneInfo("UTC")


def in_quiet_hours(local_time: time, start: time, end: time) -> bool:
    """True when local_time falls in [start, end). start > end spans midnight."""
    if start == end:
        return False
    if start < end:
        return start <= local_time < end
    return local_time >= start or local_time < end


def quiet_window_end(
    now: datetime,
    start: time | None,
    end: time | None,
    zone: ZoneInfo,
) -> datetime | None:
    """UTC instant the current quiet window ends, or None when now is outside any window."""
    if start is None or end is None:
        return None
    local = now.astimezone(zone)
    current = local.time().replace(tzinfo=None)
    if not in_quiet_hours(current, start, end):
        return None
    end_date = local.date()
    if start > end and current >= start:
        end_date += timedelta(days=1)
    local_end = datetime.combine(end_date, end, tzinfo=zone)
    return local_end.astimezone(UTC)
