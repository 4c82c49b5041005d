"""Alert schemas for request/response validation."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class AlertActionRequest(BaseModel):
    """Optional body for dismiss/resolve."""

    reason: str | None = Field(None, max_length=500)


class AlertResponse(BaseModel):
    id: int
    organization_id: uuid.UUID
    entity_kind: str
    entity_id: str
    category: str
    severity: str
    status: str
    title: str
    due_date: date | None
    created_at: datetime
    last_escalated_at: datetime | None
    acknowledged_at: datetime | None
    acknowledged_by: str | None
    closed_at: datetime | None
    closed_by: str | None
    close_reason: str | None

    model_config = ConfigDict(from_attributes=True)
