"""NotificationPreference model: per-member channel and quiet-hours settings."""

from __future__ import annotations

import uuid
from datetime import time

from sqlalchemy import Boolean, ForeignKey, Integer, String, Time, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ssm_compliance.db.session import Base, JSONType


class NotificationPreference(Base):
    """Channel toggles, quiet hours and per-kind opt-outs for one member."""

    __tablename__ = "notification_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organization_members.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    email_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    push_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sms_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    whatsapp_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Local wall-clock window; start > end means the window spans midnight
    quiet_hours_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    quiet_hours_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # {"sms": ["equipment_check"], ...}
    channel_opt_outs: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    digest_mode: Mapped[str] = mapped_column(String(16), default="realtime", nullable=False)

    member: Mapped["OrganizationMember"] = relationship(
        "OrganizationMember", back_populates="preference"
    )
