"""Tests for the compliance scorer and daily score snapshots."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from ssm_compliance.models import ComplianceScoreSnapshot
from ssm_compliance.obligation_types import Category, EntityKind, EntityRef, KIND_CATEGORY, SeverityTier
from ssm_compliance.services.deadlines.severity_policy import CATEGORY_WEIGHTS, SEVERITY_PENALTIES
from ssm_compliance.services.obligations import ObligationSnapshot
from ssm_compliance.services.scoring import latest_snapshot, score, write_score_snapshot
from ssm_compliance.services.scoring.compliance_scorer import build_explain_payload
from tests.factories import make_organization

COMPUTED_AT = datetime(2026, 3, 2, 10, 0, tzinfo=UTC)


def _snap(kind: EntityKind, severity: SeverityTier | None) -> ObligationSnapshot:
    return ObligationSnapshot(
        entity_ref=EntityRef(kind, str(uuid.uuid4())),
        category=KIND_CATEGORY[kind],
        label="x",
        owner_id=None,
        due_date=None,
        days_until_due=None,
        severity=severity,
        unscheduled=severity is None,
    )


def test_weights_sum_to_one() -> None:
    assert abs(sum(CATEGORY_WEIGHTS.values()) - 1.0) < 1e-9
    assert set(CATEGORY_WEIGHTS) == set(Category)


def test_empty_organization_scores_100() -> None:
    result = score([], computed_at=COMPUTED_AT)
    assert result.total == 100
    assert result.categories == {}


def test_all_ok_scores_100() -> None:
    snaps = [_snap(kind, SeverityTier.OK) for kind in EntityKind]
    result = score(snaps, computed_at=COMPUTED_AT)
    assert result.total == 100
    assert all(b.score == 100 for b in result.categories.values())


def test_penalties_per_tier() -> None:
    snaps = [
        _snap(EntityKind.MEDICAL_EXAMINATION, SeverityTier.EXPIRED),
        _snap(EntityKind.MEDICAL_EXAMINATION, SeverityTier.URGENT),
        _snap(EntityKind.MEDICAL_EXAMINATION, SeverityTier.WARNING),
        _snap(EntityKind.MEDICAL_EXAMINATION, SeverityTier.ATTENTION),
        _snap(EntityKind.MEDICAL_EXAMINATION, SeverityTier.OK),
    ]
    medical = score(snaps, computed_at=COMPUTED_AT).categories[Category.MEDICAL]
    assert medical.penalties == 15 + 10 + 5 + 2
    assert medical.score == 100 - 32
    assert medical.tracked == 5
    assert medical.counts_by_tier["expired"] == 1


def test_unscheduled_counts_against_score() -> None:
    result = score([_snap(EntityKind.TRAINING_ASSIGNMENT, None)], computed_at=COMPUTED_AT)
    assert result.categories[Category.TRAINING].score == 95
    assert result.unscheduled == 1


def test_category_floor_is_zero() -> None:
    snaps = [_snap(EntityKind.EQUIPMENT_CHECK, SeverityTier.EXPIRED) for _ in range(10)]
    assert score(snaps, computed_at=COMPUTED_AT).categories[Category.EQUIPMENT].score == 0


def test_weights_renormalized_over_present_categories() -> None:
    """Medical 70 (w .30) and legal 100 (w .15): (21 + 15) / .45 = 80."""
    snaps = [_snap(EntityKind.MEDICAL_EXAMINATION, SeverityTier.EXPIRED) for _ in range(2)]
    snaps += [_snap(EntityKind.LEGAL_OBLIGATION, SeverityTier.OK)]
    assert score(snaps, computed_at=COMPUTED_AT).total == 80


def test_score_bounds_hold() -> None:
    snaps = [_snap(kind, tier) for kind in EntityKind for tier in SeverityTier] * 3
    result = score(snaps, computed_at=COMPUTED_AT)
    assert 0 <= result.total <= 100
    assert all(0 <= b.score <= 100 for b in result.categories.values())


def test_explain_payload_lists_penalties() -> None:
    payload = build_explain_payload(score([_snap(EntityKind.LEGAL_OBLIGATION, SeverityTier.INFO)]))
    assert payload["weights"] == {"legal": 0.15}
    assert payload["penalties"]["expired"] == SEVERITY_PENALTIES[SeverityTier.EXPIRED]
    assert payload["penalties"]["unscheduled"] == 5


class TestScoreSnapshots:
    def test_upsert_same_day_and_delta(self, db) -> None:
        org = make_organization(db)
        db.commit()
        yesterday = score([_snap(EntityKind.MEDICAL_EXAMINATION, SeverityTier.OK)], computed_at=COMPUTED_AT)
        write_score_snapshot(db, org.id, date(2026, 3, 1), yesterday)
        db.commit()

        today = score([_snap(EntityKind.MEDICAL_EXAMINATION, SeverityTier.WARNING)], computed_at=COMPUTED_AT)
        write_score_snapshot(db, org.id, date(2026, 3, 2), today)
        write_score_snapshot(db, org.id, date(2026, 3, 2), today)
        db.commit()

        rows = db.query(ComplianceScoreSnapshot).filter_by(organization_id=org.id).all()
        assert len(rows) == 2
        latest = latest_snapshot(db, org.id)
        assert latest.as_of == date(2026, 3, 2)
        assert latest.total == 95
        assert latest.medical == 95
        assert latest.training is None
        assert latest.explain["delta"] == -5
        assert latest.explain["previous_as_of"] == "2026-03-01"

    def test_first_snapshot_has_zero_delta(self, db) -> None:
        org = make_organization(db)
        db.commit()
        row = write_score_snapshot(db, org.id, date(2026, 3, 2), score([], computed_at=COMPUTED_AT))
        assert row.explain["delta"] == 0
        assert row.explain["previous_as_of"] is None


def test_worsening_one_entity_never_raises_score() -> None:
    """One exam walks toward expiry while the rest of the organization stays put."""
    background = [
        _snap(EntityKind.MEDICAL_EXAMINATION, SeverityTier.ATTENTION),
        _snap(EntityKind.TRAINING_ASSIGNMENT, SeverityTier.OK),
        _snap(EntityKind.EQUIPMENT_CHECK, SeverityTier.WARNING),
        _snap(EntityKind.LEGAL_OBLIGATION, None),
    ]
    walk = [
        SeverityTier.OK,
        SeverityTier.INFO,
        SeverityTier.ATTENTION,
        None,
        SeverityTier.WARNING,
        SeverityTier.URGENT,
        SeverityTier.EXPIRED,
    ]
    medical, totals = [], []
    for tier in walk:
        result = score(background + [_snap(EntityKind.MEDICAL_EXAMINATION, tier)], computed_at=COMPUTED_AT)
        medical.append(result.categories[Category.MEDICAL].score)
        totals.append(result.total)

    assert medical == sorted(medical, reverse=True)
    assert totals == sorted(totals, reverse=True)
    assert medical[0] > medical[-1]
    assert totals[0] > totals[-1]


def test_unscheduled_scores_below_ok() -> None:
    ok = score([_snap(EntityKind.EQUIPMENT_CHECK, SeverityTier.OK)], computed_at=COMPUTED_AT)
    unscheduled = score([_snap(EntityKind.EQUIPMENT_CHECK, None)], computed_at=COMPUTED_AT)
    assert unscheduled.total < ok.total
