"""Write ComplianceScoreSnapshot to DB."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy.orm import Session

from ssm_compliance.models import ComplianceScoreSnapshot
from ssm_compliance.obligation_types import Category
from ssm_compliance.services.scoring.compliance_scorer import ComplianceScore, build_explain_payload


def previous_snapshot(
    db: Session, organization_id: uuid.UUID, before: date
) -> ComplianceScoreSnapshot | None:
    return (
        db.query(ComplianceScoreSnapshot)
        .filter(
            ComplianceScoreSnapshot.organization_id == organization_id,
            ComplianceScoreSnapshot.as_of < before,
        )
        .order_by(ComplianceScoreSnapshot.as_of.desc())
        .first()
    )


def write_score_snapshot(
    db: Session,
    organization_id: uuid.UUID,
    as_of: date,
    result: ComplianceScore,
) -> ComplianceScoreSnapshot:
    """Upsert the daily score row (unique on organization_id, as_of).

    explain carries the per-category breakdown and delta vs the previous stored day.
    Flushes but does not commit; the sweep commits with the reconciliation.
    """
    explain = build_explain_payload(result)
    prev = previous_snapshot(db, organization_id, as_of)
    explain["delta"] = result.total - prev.total if prev is not None else 0
    explain["previous_as_of"] = prev.as_of.isoformat() if prev is not None else None

    existing = (
        db.query(ComplianceScoreSnapshot)
        .filter(
            ComplianceScoreSnapshot.organization_id == organization_id,
            ComplianceScoreSnapshot.as_of == as_of,
        )
        .first()
    )
    snapshot = existing or ComplianceScoreSnapshot(organization_id=organization_id, as_of=as_of)
    snapshot.total = result.total
    snapshot.medical = result.category_value(Category.MEDICAL)
    snapshot.training = result.category_value(Category.TRAINING)
    snapshot.equipment = result.category_value(Category.EQUIPMENT)
    snapshot.legal = result.category_value(Category.LEGAL)
    snapshot.unscheduled = result.unscheduled
    snapshot.explain = explain
    snapshot.computed_at = result.computed_at
    if existing is None:
        db.add(snapshot)
    db.flush()
    return snapshot


def latest_snapshot(db: Session, organization_id: uuid.UUID) -> ComplianceScoreSnapshot | None:
    return (
        db.query(ComplianceScoreSnapshot)
        .filter(ComplianceScoreSnapshot.organization_id == organization_id)
        .order_by(ComplianceScoreSnapshot.as_of.desc())
        .first()
    )
