"""ComplianceScoreSnapshot model: daily compliance score cache."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ssm_compliance.db.session import Base, JSONType


class ComplianceScoreSnapshot(Base):
    """Daily score per organization. Derived data: recomputed by every sweep."""

    __tablename__ = "compliance_score_snapshots"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "as_of", name="uq_compliance_score_snapshots_org_as_of"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    as_of: Mapped[date] = mapped_column(Date, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    medical: Mapped[int | None] = mapped_column(Integer, nullable=True)
    training: Mapped[int | None] = mapped_column(Integer, nullable=True)
    equipment: Mapped[int | None] = mapped_column(Integer, nullable=True)
    legal: Mapped[int | None] = mapped_column(Integer, nullable=True)
    unscheduled: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    explain: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
