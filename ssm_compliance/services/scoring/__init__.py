"""Compliance scorer and daily score snapshots."""

from ssm_compliance.services.scoring.compliance_scorer import (
    CategoryScore,
    ComplianceScore,
    score,
)
from ssm_compliance.services.scoring.snapshot_writer import latest_snapshot, write_score_snapshot

__all__ = [
    "CategoryScore",
    "ComplianceScore",
    "latest_snapshot",
    "score",
    "write_score_snapshot",
]
