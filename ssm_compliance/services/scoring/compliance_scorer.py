"""Compliance scorer: per-category and overall 0-100 score from one snapshot set.

Pure functions. Each category starts at the baseline and loses a fixed penalty
per entity by tier (unscheduled entities included), floored at zero. The total
is the weighted average over categories that track at least one entity.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ssm_compliance.obligation_types import Category, SeverityTier
from ssm_compliance.services.deadlines.severity_policy import (
    CATEGORY_BASELINE,
    CATEGORY_FLOOR,
    CATEGORY_WEIGHTS,
    EMPTY_SCORE,
    SEVERITY_PENALTIES,
    UNSCHEDULED_PENALTY,
)
from ssm_compliance.services.obligations.aggregator import UNSCHEDULED_STATUS, ObligationSnapshot


@dataclass
class CategoryScore:
    score: int
    tracked: int
    penalties: int
    counts_by_tier: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "tracked": self.tracked,
            "penalties": self.penalties,
            "counts_by_tier": dict(self.counts_by_tier),
        }


@dataclass
class ComplianceScore:
    total: int
    categories: dict[Category, CategoryScore]
    computed_at: datetime
    unscheduled: int = 0

    def category_value(self, category: Category) -> int | None:
        breakdown = self.categories.get(category)
        return breakdown.score if breakdown is not None else None


def snapshot_penalty(snapshot: ObligationSnapshot) -> int:
    if snapshot.severity is None:
        return UNSCHEDULED_PENALTY
    return SEVERITY_PENALTIES[snapshot.severity]


def score_category(snapshots: list[ObligationSnapshot]) -> CategoryScore:
    counts: Counter[str] = Counter()
    penalties = 0
    for snapshot in snapshots:
        penalties += snapshot_penalty(snapshot)
        counts[snapshot.compliance_status] += 1
    return CategoryScore(
        score=max(CATEGORY_FLOOR, CATEGORY_BASELINE - penalties),
        tracked=len(snapshots),
        penalties=penalties,
        counts_by_tier=dict(counts),
    )


def weighted_total(categories: dict[Category, CategoryScore]) -> int:
    """Weighted average over present categories; weights renormalized to what is tracked."""
    if not categories:
        return EMPTY_SCORE
    weight_sum = sum(CATEGORY_WEIGHTS[c] for c in categories)
    weighted = sum(CATEGORY_WEIGHTS[c] * breakdown.score for c, breakdown in categories.items())
    return int(round(weighted / weight_sum))


def score(
    snapshots: list[ObligationSnapshot],
    *,
    computed_at: datetime | None = None,
) -> ComplianceScore:
    """Compute the compliance score of one organization from its snapshot set."""
    by_category: dict[Category, list[ObligationSnapshot]] = {}
    for snapshot in snapshots:
        by_category.setdefault(snapshot.category, []).append(snapshot)

    categories = {
        category: score_category(by_category[category])
        for category in Category
        if category in by_category
    }
    return ComplianceScore(
        total=weighted_total(categories),
        categories=categories,
        computed_at=computed_at or datetime.now(timezone.utc),
        unscheduled=sum(1 for s in snapshots if s.severity is None),
    )


def build_explain_payload(result: ComplianceScore) -> dict:
    """Explain payload stored with the daily snapshot."""
    return {
        "categories": {c.value: b.to_dict() for c, b in result.categories.items()},
        "weights": {c.value: CATEGORY_WEIGHTS[c] for c in result.categories},
        "penalties": {
            **{tier.value: SEVERITY_PENALTIES[tier] for tier in SeverityTier},
            UNSCHEDULED_STATUS: UNSCHEDULED_PENALTY,
        },
    }
