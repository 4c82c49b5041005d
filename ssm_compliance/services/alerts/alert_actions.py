"""User-driven alert mutations: acknowledge, dismiss, resolve."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ssm_compliance.models import Alert
from ssm_compliance.obligation_types import AlertStatus
from ssm_compliance.services.alerts.state_machine import transition
from ssm_compliance.services.clock import utc_now

logger = logging.getLogger(__name__)


def _apply_user_transition(
    db: Session,
    alert_id: int,
    target: AlertStatus,
    actor: str | None,
    reason: str | None,
    now: datetime | None,
) -> Alert | None:
    """Returns None when the alert does not exist (caller returns 404).

    Raises StateTransitionError when the move is not allowed (caller returns 409).
    """
    alert = db.get(Alert, alert_id)
    if alert is None:
        return None
    transition(alert, target, actor=actor, reason=reason, now=now or utc_now())
    db.commit()
    db.refresh(alert)
    logger.info("Alert %s alert_id=%s actor=%s", target.value, alert_id, actor)
    return alert


def acknowledge_alert(
    db: Session, alert_id: int, actor: str | None = None, *, now: datetime | None = None
) -> Alert | None:
    return _apply_user_transition(db, alert_id, AlertStatus.ACKNOWLEDGED, actor, None, now)


def dismiss_alert(
    db: Session,
    alert_id: int,
    actor: str | None = None,
    reason: str | None = None,
    *,
    now: datetime | None = None,
) -> Alert | None:
    """Dismiss an alert. Terminal; the next sweep opens a new alert if the entity is still failing."""
    return _apply_user_transition(db, alert_id, AlertStatus.DISMISSED, actor, reason, now)


def resolve_alert(
    db: Session,
    alert_id: int,
    actor: str | None = None,
    reason: str | None = None,
    *,
    now: datetime | None = None,
) -> Alert | None:
    return _apply_user_transition(
        db, alert_id, AlertStatus.RESOLVED, actor, reason or "manual", now
    )
