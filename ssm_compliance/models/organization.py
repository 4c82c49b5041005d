"""Organization model."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ssm_compliance.db.session import Base


class Organization(Base):
    """Client organization whose SSM/PSI/GDPR obligations are tracked."""

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), default="Europe/Bucharest", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Unacknowledged alerts are escalated to this contact
    escalation_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    escalation_contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    escalation_contact_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    escalation_after_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    members: Mapped[list["OrganizationMember"]] = relationship(
        "OrganizationMember", back_populates="organization", cascade="all, delete-orphan"
    )
