"""Severity policy: day thresholds, score penalties and category weights.

Single source of truth for every tier boundary and score constant. No magic
numbers inside the calculator or the scorer; all values defined here.
"""

from __future__ import annotations

from ssm_compliance.obligation_types import Category, SeverityTier

# ── Day thresholds ──────────────────────────────────────────────────────
# (upper bound exclusive, tier) evaluated in order; days < 0 is always expired.
# 0-6 urgent, 7-29 warning, 30-59 attention, >= 60 ok.

URGENT_MAX_DAYS: int = 6
WARNING_MAX_DAYS: int = 29
ATTENTION_MAX_DAYS: int = 59

SEVERITY_THRESHOLDS: tuple[tuple[int, SeverityTier], ...] = (
    (URGENT_MAX_DAYS, SeverityTier.URGENT),
    (WARNING_MAX_DAYS, SeverityTier.WARNING),
    (ATTENTION_MAX_DAYS, SeverityTier.ATTENTION),
)

# Newly published legal obligations are surfaced as info for this many days
LEGAL_INFO_WINDOW_DAYS: int = 14

# ── Score penalties ─────────────────────────────────────────────────────

CATEGORY_BASELINE: int = 100
CATEGORY_FLOOR: int = 0

SEVERITY_PENALTIES: dict[SeverityTier, int] = {
    SeverityTier.EXPIRED: 15,
    SeverityTier.URGENT: 10,
    SeverityTier.WARNING: 5,
    SeverityTier.ATTENTION: 2,
    SeverityTier.INFO: 0,
    SeverityTier.OK: 0,
}

# Missing data counts against the score instead of being treated as compliant
UNSCHEDULED_PENALTY: int = 5

# ── Category weights (sum to 1.0) ───────────────────────────────────────

CATEGORY_WEIGHTS: dict[Category, float] = {
    Category.MEDICAL: 0.30,
    Category.TRAINING: 0.30,
    Category.EQUIPMENT: 0.25,
    Category.LEGAL: 0.15,
}

# Score reported when an organization tracks nothing at all
EMPTY_SCORE: int = 100

# ── Escalation reminders ────────────────────────────────────────────────

REMINDER_MIN_SEVERITY: SeverityTier = SeverityTier.WARNING
