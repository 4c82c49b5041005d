"""EquipmentCheck model."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ssm_compliance.db.session import Base


class EquipmentCheck(Base):
    """Periodic verification (ISCIR inspection, extinguisher check, PPE renewal)."""

    __tablename__ = "equipment_checks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    equipment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True
    )
    check_type: Mapped[str] = mapped_column(String(64), default="verification", nullable=False)
    last_check_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    periodicity_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    next_check_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    computed_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    compliance_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
