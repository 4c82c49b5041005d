"""Compliance score and dashboard schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

from ssm_compliance.schemas.alert import AlertResponse


class CategoryScoreResponse(BaseModel):
    score: int
    tracked: int
    penalties: int
    counts_by_tier: dict[str, int]


class ComplianceScoreResponse(BaseModel):
    total: int
    categories: dict[str, CategoryScoreResponse]
    unscheduled: int
    as_of: date
    computed_at: datetime
    delta: int


class OrganizationComplianceResponse(BaseModel):
    """Dashboard payload: latest score (None before the first sweep) and open alerts."""

    organization_id: uuid.UUID
    score: ComplianceScoreResponse | None
    active_alerts: list[AlertResponse]


class NotificationJobResponse(BaseModel):
    id: int
    alert_id: int | None
    channel: str
    recipient_ref: str
    severity: str
    trigger: str
    status: str
    attempt: int
    not_before: datetime | None
    last_error: str | None
    created_at: datetime
    sent_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class NotificationLogResponse(BaseModel):
    items: list[NotificationJobResponse]
