"""Organization compliance read API: score, open alerts, delivery log."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ssm_compliance.api.deps import get_db, parse_uuid_or_422
from ssm_compliance.schemas.compliance import (
    NotificationLogResponse,
    OrganizationComplianceResponse,
)
from ssm_compliance.services.dashboard import get_organization_compliance, list_notifications

router = APIRouter()


@router.get("/{organization_id}/compliance", response_model=OrganizationComplianceResponse)
def api_get_compliance(
    organization_id: str,
    db: Session = Depends(get_db),
) -> OrganizationComplianceResponse:
    """Latest compliance score (with delta vs the previous day) and active alerts."""
    org_uuid = parse_uuid_or_422(organization_id, "organization_id")
    result = get_organization_compliance(db, org_uuid)
    if result is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return result


@router.get("/{organization_id}/notifications", response_model=NotificationLogResponse)
def api_list_notifications(
    organization_id: str,
    db: Session = Depends(get_db),
    status: str | None = Query(None, description="pending | sending | sent | failed | skipped"),
    limit: int = Query(100, ge=1, le=500),
) -> NotificationLogResponse:
    """Notification delivery log, newest first."""
    org_uuid = parse_uuid_or_422(organization_id, "organization_id")
    items = list_notifications(db, org_uuid, status=status, limit=limit)
    if items is None:
        raise HTTPException(status_code=404, detail="Organization not found")
    return NotificationLogResponse(items=items)
