"""Read side for the dashboard: latest compliance score, open alerts, delivery log."""

from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from ssm_compliance.models import Alert, NotificationJob, Organization
from ssm_compliance.obligation_types import OPEN_ALERT_STATUSES, SeverityTier
from ssm_compliance.schemas.alert import AlertResponse
from ssm_compliance.schemas.compliance import (
    CategoryScoreResponse,
    ComplianceScoreResponse,
    NotificationJobResponse,
    OrganizationComplianceResponse,
)
from ssm_compliance.services.scoring import latest_snapshot

DEFAULT_LOG_LIMIT = 100


def list_open_alerts(db: Session, organization_id: uuid.UUID) -> list[Alert]:
    """Active and acknowledged alerts, highest severity first, then nearest due date."""
    alerts = (
        db.query(Alert)
        .filter(Alert.organization_id == organization_id, Alert.status.in_(OPEN_ALERT_STATUSES))
        .all()
    )
    return sorted(
        alerts,
        key=lambda a: (-SeverityTier(a.severity).rank, a.due_date is None, a.due_date, a.id),
    )


def get_organization_compliance(
    db: Session, organization_id: uuid.UUID
) -> OrganizationComplianceResponse | None:
    """Latest cached score plus open alerts. Returns None when the organization does not exist."""
    if db.get(Organization, organization_id) is None:
        return None

    score = None
    snapshot = latest_snapshot(db, organization_id)
    if snapshot is not None:
        explain = snapshot.explain or {}
        score = ComplianceScoreResponse(
            total=snapshot.total,
            categories={
                name: CategoryScoreResponse(**breakdown)
                for name, breakdown in (explain.get("categories") or {}).items()
            },
            unscheduled=snapshot.unscheduled,
            as_of=snapshot.as_of,
            computed_at=snapshot.computed_at,
            delta=explain.get("delta", 0),
        )

    return OrganizationComplianceResponse(
        organization_id=organization_id,
        score=score,
        active_alerts=[AlertResponse.model_validate(a) for a in list_open_alerts(db, organization_id)],
    )


def list_notifications(
    db: Session,
    organization_id: uuid.UUID,
    *,
    status: str | None = None,
    limit: int = DEFAULT_LOG_LIMIT,
) -> list[NotificationJobResponse] | None:
    """Delivery log, newest first. Returns None when the organization does not exist."""
    if db.get(Organization, organization_id) is None:
        return None
    query = db.query(NotificationJob).filter(NotificationJob.organization_id == organization_id)
    if status:
        query = query.filter(NotificationJob.status == status)
    jobs = query.order_by(NotificationJob.created_at.desc(), NotificationJob.id.desc()).limit(limit).all()
    return [NotificationJobResponse.model_validate(j) for j in jobs]
