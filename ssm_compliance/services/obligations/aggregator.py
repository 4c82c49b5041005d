"""Obligation aggregator: one consistent snapshot set per organization sweep.

Loads every tracked entity through the per-kind loaders, resolves due dates and
tiers with the deadline calculator, and isolates per-entity failures so one bad
record never aborts the sweep.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import update
from sqlalchemy.orm import Session

from ssm_compliance.errors import CalculationError
from ssm_compliance.obligation_types import Category, EntityKind, EntityRef, SeverityTier
from ssm_compliance.services.deadlines import classify_severity, days_until_due, resolve_due_date
from ssm_compliance.services.deadlines.severity_policy import LEGAL_INFO_WINDOW_DAYS
from ssm_compliance.services.obligations.loaders import ENTITY_LOADERS, ENTITY_MODELS
from ssm_compliance.services.obligations.tracked_entity import TrackedEntity

if TYPE_CHECKING:
    from ssm_compliance.services.sweep.budget import SweepBudget

logger = logging.getLogger(__name__)

UNSCHEDULED_STATUS = "unscheduled"


@dataclass(frozen=True)
class ObligationSnapshot:
    """Point-in-time status of one entity. severity is None when unscheduled."""

    entity_ref: EntityRef
    category: Category
    label: str
    owner_id: str | None
    due_date: date | None
    days_until_due: int | None
    severity: SeverityTier | None
    unscheduled: bool = False

    @property
    def compliance_status(self) -> str:
        return UNSCHEDULED_STATUS if self.severity is None else self.severity.value


@dataclass(frozen=True)
class SkippedEntity:
    entity_ref: EntityRef
    reason: str


@dataclass
class AggregationResult:
    snapshots: list[ObligationSnapshot] = field(default_factory=list)
    skipped: list[SkippedEntity] = field(default_factory=list)

    @property
    def unscheduled(self) -> int:
        return sum(1 for s in self.snapshots if s.unscheduled)

    @property
    def skipped_refs(self) -> set[EntityRef]:
        return {s.entity_ref for s in self.skipped}


def _is_newly_published(entity: TrackedEntity, as_of: date, window_days: int) -> bool:
    if entity.ref.kind is not EntityKind.LEGAL_OBLIGATION or entity.published_at is None:
        return False
    age = (as_of - entity.published_at).days
    return 0 <= age <= window_days


def snapshot_entity(
    entity: TrackedEntity,
    as_of: date,
    *,
    legal_info_window_days: int = LEGAL_INFO_WINDOW_DAYS,
) -> ObligationSnapshot:
    """Build the snapshot of one entity. Raises CalculationError on bad date data."""
    due = resolve_due_date(entity)
    if due is None:
        severity = None
        days = None
    else:
        days = days_until_due(due, as_of)
        severity = classify_severity(due, as_of)

    if (severity is None or severity is SeverityTier.OK) and _is_newly_published(
        entity, as_of, legal_info_window_days
    ):
        severity = SeverityTier.INFO

    return ObligationSnapshot(
        entity_ref=entity.ref,
        category=entity.category,
        label=entity.label,
        owner_id=entity.owner_id,
        due_date=due,
        days_until_due=days,
        severity=severity,
        unscheduled=severity is None,
    )


def build_snapshots(
    entities: list[TrackedEntity],
    as_of: date,
    *,
    budget: SweepBudget | None = None,
    legal_info_window_days: int = LEGAL_INFO_WINDOW_DAYS,
) -> AggregationResult:
    """Pure core of the aggregator: entities in, sorted snapshots and skips out."""
    result = AggregationResult()
    for entity in entities:
        if budget is not None:
            budget.check("aggregate")
        try:
            snapshot = snapshot_entity(
                entity, as_of, legal_info_window_days=legal_info_window_days
            )
        except CalculationError as exc:
            logger.warning(
                "Entity skipped organization_id=%s entity=%s stage=aggregate reason=%s",
                entity.organization_id,
                entity.ref,
                exc,
            )
            result.skipped.append(SkippedEntity(entity_ref=entity.ref, reason=str(exc)))
            continue
        except Exception as exc:
            logger.exception(
                "Entity failed organization_id=%s entity=%s stage=aggregate",
                entity.organization_id,
                entity.ref,
            )
            result.skipped.append(SkippedEntity(entity_ref=entity.ref, reason=str(exc)))
            continue
        result.snapshots.append(snapshot)

    result.snapshots.sort(key=lambda s: (s.entity_ref.kind.value, s.entity_ref.id))
    result.skipped.sort(key=lambda s: (s.entity_ref.kind.value, s.entity_ref.id))
    return result


def load_entities(db: Session, organization_id: uuid.UUID) -> list[TrackedEntity]:
    entities: list[TrackedEntity] = []
    for kind in EntityKind:
        entities.extend(ENTITY_LOADERS[kind](db, organization_id))
    return entities


def aggregate(
    db: Session,
    organization_id: uuid.UUID,
    as_of: date,
    *,
    budget: SweepBudget | None = None,
    legal_info_window_days: int = LEGAL_INFO_WINDOW_DAYS,
) -> AggregationResult:
    """Collect every tracked entity of the organization into one snapshot set."""
    entities = load_entities(db, organization_id)
    result = build_snapshots(
        entities, as_of, budget=budget, legal_info_window_days=legal_info_window_days
    )
    logger.info(
        "Aggregated organization_id=%s entities=%d snapshots=%d skipped=%d unscheduled=%d",
        organization_id,
        len(entities),
        len(result.snapshots),
        len(result.skipped),
        result.unscheduled,
    )
    return result


def write_back_caches(db: Session, snapshots: list[ObligationSnapshot]) -> int:
    """Write computed_due_date and compliance_status onto the source rows.

    These two columns are the only source-record fields the engine writes.
    Returns the number of rows updated. Does not commit.
    """
    by_kind: dict[EntityKind, list[dict]] = {}
    for snapshot in snapshots:
        by_kind.setdefault(snapshot.entity_ref.kind, []).append(
            {
                "id": uuid.UUID(snapshot.entity_ref.id),
                "computed_due_date": snapshot.due_date,
                "compliance_status": snapshot.compliance_status,
            }
        )
    updated = 0
    for kind, rows in by_kind.items():
        db.execute(update(ENTITY_MODELS[kind]), rows)
        updated += len(rows)
    return updated
