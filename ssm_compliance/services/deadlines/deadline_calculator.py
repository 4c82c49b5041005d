"""Deadline calculator: due dates from reference date + periodicity, severity tiers.

Pure functions. Deterministic for a given `today`; no clock reads here.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import TYPE_CHECKING

from ssm_compliance.errors import CalculationError
from ssm_compliance.obligation_types import SeverityTier
from ssm_compliance.services.deadlines.severity_policy import SEVERITY_THRESHOLDS

if TYPE_CHECKING:
    from ssm_compliance.services.obligations.tracked_entity import TrackedEntity


def add_months(d: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's last day.

    Jan 31 + 1 month -> Feb 28 (Feb 29 in leap years).
    """
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def _validate_periodicity(periodicity_months: object) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(periodicity_months, bool) or not isinstance(periodicity_months, int):
        raise CalculationError(f"periodicity_months must be an integer, got {periodicity_months!r}")
    if periodicity_months <= 0:
        raise CalculationError(f"periodicity_months must be positive, got {periodicity_months}")
    return periodicity_months


def _validate_date(value: object, field: str) -> date:
    # datetime is a date subclass; a timestamp here means a mapping bug upstream
    if isinstance(value, datetime) or not isinstance(value, date):
        raise CalculationError(f"{field} must be a date, got {value!r}")
    return value


def compute_due_date(reference_date: date | None, periodicity_months: int | None) -> date | None:
    """Return reference_date + periodicity_months, or None for one-time obligations.

    Raises CalculationError when the entity is periodic but the reference date is
    missing or malformed, or when the periodicity is not a positive integer.
    """
    if periodicity_months is None:
        return None
    months = _validate_periodicity(periodicity_months)
    if reference_date is None:
        raise CalculationError("periodic obligation has no reference date")
    return add_months(_validate_date(reference_date, "reference_date"), months)


def resolve_due_date(entity: TrackedEntity) -> date | None:
    """Resolve the due date of one tracked entity.

    Recurring: reference date + periodicity. A recurring entity that was never
    performed falls back to its explicit due date when one is set.
    One-time: the explicit due date. None means unscheduled.
    """
    explicit = entity.explicit_due_date
    if explicit is not None:
        explicit = _validate_date(explicit, "explicit_due_date")

    if entity.periodicity_months is None:
        return explicit

    if entity.reference_date is None:
        if explicit is not None:
            _validate_periodicity(entity.periodicity_months)
            return explicit
        raise CalculationError(
            "periodic obligation has neither a reference date nor an explicit due date",
            entity_ref=entity.ref,
        )

    try:
        return compute_due_date(entity.reference_date, entity.periodicity_months)
    except CalculationError as exc:
        raise CalculationError(str(exc), entity_ref=entity.ref) from exc


def days_until_due(due_date: date, today: date) -> int:
    return (due_date - today).days


def classify_severity(due_date: date, today: date) -> SeverityTier:
    """Map a due date to its tier. Never returns info; that tier is assigned by the aggregator."""
    days = days_until_due(due_date, today)
    if days < 0:
        return SeverityTier.EXPIRED
    for max_days, tier in SEVERITY_THRESHOLDS:
        if days <= max_days:
            return tier
    return SeverityTier.OK
