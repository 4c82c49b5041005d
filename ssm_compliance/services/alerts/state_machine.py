"""Alert status transitions. Every status change goes through `transition`."""

from __future__ import annotations

from datetime import datetime

from ssm_compliance.errors import StateTransitionError
from ssm_compliance.models import Alert
from ssm_compliance.obligation_types import AlertStatus
from ssm_compliance.services.clock import utc_now

ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset(
        {AlertStatus.ACKNOWLEDGED, AlertStatus.DISMISSED, AlertStatus.RESOLVED}
    ),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.DISMISSED, AlertStatus.RESOLVED}),
    AlertStatus.DISMISSED: frozenset(),
    AlertStatus.RESOLVED: frozenset(),
}


def can_transition(current: AlertStatus | str, target: AlertStatus | str) -> bool:
    return AlertStatus(target) in ALLOWED_TRANSITIONS[AlertStatus(current)]


def transition(
    alert: Alert,
    target: AlertStatus | str,
    *,
    actor: str | None = None,
    reason: str | None = None,
    now: datetime | None = None,
) -> Alert:
    """Move alert to target status or raise StateTransitionError.

    Terminal states (dismissed, resolved) accept no further transitions, and a
    transition to the current status is rejected as well.
    """
    current = AlertStatus(alert.status)
    target = AlertStatus(target)
    if not can_transition(current, target):
        raise StateTransitionError(alert.id, current.value, target.value)

    now = now or utc_now()
    alert.status = target.value
    if target is AlertStatus.ACKNOWLEDGED:
        alert.acknowledged_at = now
        alert.acknowledged_by = actor
    else:
        alert.closed_at = now
        alert.closed_by = actor
        alert.close_reason = reason
    return alert
