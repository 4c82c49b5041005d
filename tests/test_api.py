"""Tests for the HTTP API: compliance read side, alert actions, internal job endpoints."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from fastapi.testclient import TestClient

from ssm_compliance.models import Alert
from tests.factories import make_alert, make_examination, make_member, make_organization
from tests.test_constants import TEST_INTERNAL_JOB_TOKEN

TOKEN_HEADERS = {"X-Internal-Token": TEST_INTERNAL_JOB_TOKEN}


@pytest.fixture
def org(db):
    organization = make_organization(db)
    make_member(db, organization)
    make_examination(db, organization, examination_date=date(2025, 3, 22))
    db.commit()
    return organization


# ── Internal endpoints ──────────────────────────────────────────────


class TestInternalEndpoints:
    def test_missing_token_returns_422(self, client_with_db: TestClient) -> None:
        assert client_with_db.post("/internal/run_sweep").status_code == 422

    def test_wrong_token_returns_403(self, client_with_db: TestClient) -> None:
        response = client_with_db.post("/internal/run_sweep", headers={"X-Internal-Token": "nope"})
        assert response.status_code == 403

    def test_run_sweep_all_organizations(self, client_with_db: TestClient, org) -> None:
        response = client_with_db.post("/internal/run_sweep", headers=TOKEN_HEADERS)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        [summary] = data["organizations"]
        assert summary["organization_id"] == str(org.id)
        assert summary["alerts_created"] == 1
        assert summary["notifications_sent"] == 1

    def test_run_sweep_single_organization(self, client_with_db: TestClient, org) -> None:
        response = client_with_db.post(
            "/internal/run_sweep",
            headers=TOKEN_HEADERS,
            params={"organization_id": str(org.id), "force": "true"},
        )
        assert response.status_code == 200
        assert response.json()["organizations"][0]["status"] == "completed"

    def test_run_sweep_overlap_returns_409(self, client_with_db: TestClient, db, org) -> None:
        from datetime import timedelta

        from ssm_compliance.models import SweepLock
        from tests.test_constants import TEST_NOW

        db.add(
            SweepLock(
                organization_id=org.id,
                acquired_at=TEST_NOW,
                expires_at=TEST_NOW + timedelta(minutes=5),
            )
        )
        db.commit()
        response = client_with_db.post(
            "/internal/run_sweep", headers=TOKEN_HEADERS, params={"organization_id": str(org.id)}
        )
        assert response.status_code == 409

    def test_run_sweep_invalid_organization_id(self, client_with_db: TestClient) -> None:
        response = client_with_db.post(
            "/internal/run_sweep", headers=TOKEN_HEADERS, params={"organization_id": "not-a-uuid"}
        )
        assert response.status_code == 422

    def test_run_delivery(self, client_with_db: TestClient, org) -> None:
        response = client_with_db.post("/internal/run_delivery", headers=TOKEN_HEADERS)
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["sent"] == 0

    def test_run_escalation(self, client_with_db: TestClient, org) -> None:
        response = client_with_db.post("/internal/run_escalation", headers=TOKEN_HEADERS)
        assert response.status_code == 200
        assert response.json()["reminders_enqueued"] == 0


# ── Compliance read side ────────────────────────────────────────────


class TestComplianceEndpoints:
    def test_compliance_before_first_sweep(self, client_with_db: TestClient, org) -> None:
        response = client_with_db.get(f"/api/organizations/{org.id}/compliance")
        assert response.status_code == 200
        data = response.json()
        assert data["score"] is None
        assert data["active_alerts"] == []

    def test_compliance_after_sweep(self, client_with_db: TestClient, org) -> None:
        client_with_db.post("/internal/run_sweep", headers=TOKEN_HEADERS)

        data = client_with_db.get(f"/api/organizations/{org.id}/compliance").json()
        assert data["score"]["total"] == 95
        assert data["score"]["categories"]["medical"]["score"] == 95
        assert data["score"]["delta"] == 0
        assert [a["severity"] for a in data["active_alerts"]] == ["warning"]

    def test_active_alerts_sorted_by_severity(self, client_with_db: TestClient, db, org) -> None:
        make_alert(db, org, severity="attention")
        make_alert(db, org, severity="expired")
        make_alert(db, org, severity="urgent", status="acknowledged")
        make_alert(db, org, severity="expired", status="dismissed")
        db.commit()

        data = client_with_db.get(f"/api/organizations/{org.id}/compliance").json()
        assert [a["severity"] for a in data["active_alerts"]] == ["expired", "urgent", "attention"]

    def test_unknown_organization_returns_404(self, client_with_db: TestClient) -> None:
        response = client_with_db.get(f"/api/organizations/{uuid.uuid4()}/compliance")
        assert response.status_code == 404

    def test_invalid_uuid_returns_422(self, client_with_db: TestClient) -> None:
        assert client_with_db.get("/api/organizations/abc/compliance").status_code == 422

    def test_notification_log(self, client_with_db: TestClient, org) -> None:
        client_with_db.post("/internal/run_sweep", headers=TOKEN_HEADERS)

        response = client_with_db.get(f"/api/organizations/{org.id}/notifications")
        assert response.status_code == 200
        [item] = response.json()["items"]
        assert item["channel"] == "email"
        assert item["status"] == "sent"

        filtered = client_with_db.get(
            f"/api/organizations/{org.id}/notifications", params={"status": "failed"}
        )
        assert filtered.json()["items"] == []


# ── Alert actions ───────────────────────────────────────────────────


class TestAlertActions:
    def test_acknowledge(self, client_with_db: TestClient, db, org) -> None:
        alert = make_alert(db, org)
        db.commit()

        response = client_with_db.post(
            f"/api/alerts/{alert.id}/acknowledge", headers={"X-Actor-Id": "user-7"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "acknowledged"
        assert data["acknowledged_by"] == "user-7"

    def test_acknowledge_twice_conflicts(self, client_with_db: TestClient, db, org) -> None:
        alert = make_alert(db, org, status="acknowledged")
        db.commit()
        assert client_with_db.post(f"/api/alerts/{alert.id}/acknowledge").status_code == 409

    def test_dismiss_with_reason(self, client_with_db: TestClient, db, org) -> None:
        alert = make_alert(db, org)
        db.commit()

        response = client_with_db.post(
            f"/api/alerts/{alert.id}/dismiss", json={"reason": "equipment decommissioned"}
        )
        assert response.status_code == 200
        assert response.json()["close_reason"] == "equipment decommissioned"

    def test_resolve_defaults_reason(self, client_with_db: TestClient, db, org) -> None:
        alert = make_alert(db, org)
        db.commit()

        response = client_with_db.post(f"/api/alerts/{alert.id}/resolve")
        assert response.status_code == 200
        db.expire_all()
        assert db.get(Alert, alert.id).close_reason == "manual"

    def test_action_on_closed_alert_conflicts(self, client_with_db: TestClient, db, org) -> None:
        alert = make_alert(db, org, status="resolved")
        db.commit()
        assert client_with_db.post(f"/api/alerts/{alert.id}/dismiss").status_code == 409

    def test_missing_alert_returns_404(self, client_with_db: TestClient) -> None:
        assert client_with_db.post("/api/alerts/424242/acknowledge").status_code == 404
