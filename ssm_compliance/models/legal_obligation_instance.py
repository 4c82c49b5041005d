"""LegalObligationInstance model."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ssm_compliance.db.session import Base


class LegalObligationInstance(Base):
    """A legal obligation (SSM, PSI or GDPR) as it applies to one organization."""

    __tablename__ = "legal_obligation_instances"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    domain: Mapped[str] = mapped_column(String(16), default="ssm", nullable=False)  # ssm | psi | gdpr
    last_fulfilled_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    periodicity_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    published_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    computed_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    compliance_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
