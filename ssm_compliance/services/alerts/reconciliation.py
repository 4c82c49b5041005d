"""Alert reconciliation: diff one snapshot set against current alert state.

`reconcile` is pure. It sees a single consistent snapshot set plus the
organization's alerts and returns the transitions to apply; `apply_transitions`
persists them inside the caller's transaction.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from sqlalchemy.orm import Session

from ssm_compliance.models import Alert
from ssm_compliance.obligation_types import (
    OPEN_ALERT_STATUSES,
    AlertStatus,
    DispatchTrigger,
    EntityKind,
    EntityRef,
    SeverityTier,
)
from ssm_compliance.services.alerts.state_machine import transition
from ssm_compliance.services.obligations.aggregator import ObligationSnapshot

logger = logging.getLogger(__name__)

TransitionAction = Literal["create", "escalate", "downgrade", "resolve"]

SYSTEM_ACTOR = "system"
RESOLVE_REASON_COMPLIANT = "entity_compliant"
RESOLVE_REASON_REMOVED = "entity_removed"


@dataclass(frozen=True)
class AlertTransition:
    action: TransitionAction
    entity_ref: EntityRef
    snapshot: ObligationSnapshot | None = None
    alert: Alert | None = None
    from_severity: SeverityTier | None = None
    to_severity: SeverityTier | None = None


def alert_ref(alert: Alert) -> EntityRef:
    return EntityRef(EntityKind(alert.entity_kind), alert.entity_id)


def reconcile(
    snapshots: list[ObligationSnapshot],
    open_alerts: Iterable[Alert],
    *,
    protected_refs: Iterable[EntityRef] = (),
) -> list[AlertTransition]:
    """Compute alert transitions for one organization.

    - non-ok entity without an open alert: create. Dismissed and resolved
      alerts are terminal, so a still-failing entity gets a fresh alert
    - open alert whose severity changed: escalate (worse) or downgrade (better)
    - open alert whose entity is ok or no longer tracked: resolve
    - protected entities (skipped on calculation errors) and unscheduled
      entities keep their open alerts untouched
    """
    snap_by_ref = {s.entity_ref: s for s in snapshots}
    protected = set(protected_refs)
    open_by_ref: dict[EntityRef, Alert] = {}
    for alert in open_alerts:
        ref = alert_ref(alert)
        if ref in open_by_ref:
            logger.error(
                "Duplicate open alerts entity=%s alert_ids=%s,%s", ref, open_by_ref[ref].id, alert.id
            )
            continue
        open_by_ref[ref] = alert

    transitions: list[AlertTransition] = []

    for ref in sorted(open_by_ref):
        alert = open_by_ref[ref]
        if ref in protected:
            continue
        snap = snap_by_ref.get(ref)
        current = SeverityTier(alert.severity)
        if snap is None or snap.severity is SeverityTier.OK:
            transitions.append(
                AlertTransition("resolve", ref, snapshot=snap, alert=alert, from_severity=current)
            )
            continue
        if snap.severity is None:
            continue
        if snap.severity > current:
            action = "escalate"
        elif snap.severity < current:
            action = "downgrade"
        else:
            continue
        transitions.append(
            AlertTransition(
                action, ref, snapshot=snap, alert=alert, from_severity=current, to_severity=snap.severity
            )
        )

    for snap in snapshots:
        ref = snap.entity_ref
        if snap.severity is None or snap.severity is SeverityTier.OK:
            continue
        if ref in open_by_ref or ref in protected:
            continue
        transitions.append(AlertTransition("create", ref, snapshot=snap, to_severity=snap.severity))

    return transitions


def load_alert_state(db: Session, organization_id: uuid.UUID) -> list[Alert]:
    """Open (active or acknowledged) alerts of the organization."""
    return (
        db.query(Alert)
        .filter(Alert.organization_id == organization_id, Alert.status.in_(OPEN_ALERT_STATUSES))
        .order_by(Alert.id)
        .all()
    )


def apply_transitions(
    db: Session,
    organization_id: uuid.UUID,
    transitions: list[AlertTransition],
    now: datetime,
) -> list[tuple[Alert, DispatchTrigger]]:
    """Persist transitions. Returns the alerts to notify with their trigger.

    Downgrades are silent. Flushes but does not commit.
    """
    to_notify: list[tuple[Alert, DispatchTrigger]] = []
    for t in transitions:
        if t.action == "create":
            snap = t.snapshot
            alert = Alert(
                organization_id=organization_id,
                entity_kind=t.entity_ref.kind.value,
                entity_id=t.entity_ref.id,
                category=snap.category.value,
                severity=snap.severity.value,
                status=AlertStatus.ACTIVE.value,
                title=snap.label or str(t.entity_ref),
                due_date=snap.due_date,
                created_at=now,
            )
            db.add(alert)
            to_notify.append((alert, DispatchTrigger.CREATED))
        elif t.action in ("escalate", "downgrade"):
            t.alert.severity = t.to_severity.value
            t.alert.due_date = t.snapshot.due_date
            t.alert.last_escalated_at = now
            if t.action == "escalate":
                to_notify.append((t.alert, DispatchTrigger.ESCALATED))
        elif t.action == "resolve":
            reason = RESOLVE_REASON_REMOVED if t.snapshot is None else RESOLVE_REASON_COMPLIANT
            transition(t.alert, AlertStatus.RESOLVED, actor=SYSTEM_ACTOR, reason=reason, now=now)
            to_notify.append((t.alert, DispatchTrigger.RESOLVED))
    db.flush()
    logger.info(
        "Applied transitions organization_id=%s total=%d notify=%d",
        organization_id,
        len(transitions),
        len(to_notify),
    )
    return to_notify
