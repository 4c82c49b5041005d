"""Obligation aggregator: loaders, snapshots, cache write-back."""

from ssm_compliance.services.obligations.aggregator import (
    AggregationResult,
    ObligationSnapshot,
    SkippedEntity,
    aggregate,
    build_snapshots,
    snapshot_entity,
    write_back_caches,
)
from ssm_compliance.services.obligations.loaders import ENTITY_LOADERS
from ssm_compliance.services.obligations.tracked_entity import TrackedEntity

__all__ = [
    "AggregationResult",
    "ENTITY_LOADERS",
    "ObligationSnapshot",
    "SkippedEntity",
    "TrackedEntity",
    "aggregate",
    "build_snapshots",
    "snapshot_entity",
    "write_back_caches",
]
