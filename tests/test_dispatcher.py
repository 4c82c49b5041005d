"""Tests for the notification dispatcher: fan-out, dedup, quiet hours, delivery, retry."""

from __future__ import annotations

from datetime import UTC, datetime, time, timedelta

import pytest

from ssm_compliance.models import NotificationJob
from ssm_compliance.obligation_types import AlertStatus, DispatchTrigger, EntityKind
from ssm_compliance.services.alerts import transition
from ssm_compliance.services.clock import as_utc
from ssm_compliance.services.notifications import NotificationDispatcher, build_dedup_key
from ssm_compliance.services.sweep import SweepBudget
from tests.factories import make_alert, make_member, make_organization, permanent, transient
from tests.test_constants import TEST_NOW


@pytest.fixture
def dispatcher(db, channels, settings, clock) -> NotificationDispatcher:
    return NotificationDispatcher(db, channels, settings, clock)


@pytest.fixture
def org(db):
    organization = make_organization(db)
    db.commit()
    return organization


def _jobs(db) -> list[NotificationJob]:
    return db.query(NotificationJob).order_by(NotificationJob.id).all()


class TestDedupKey:
    def test_stable_and_distinct(self) -> None:
        key = build_dedup_key(1, "email", "member:a", "warning")
        assert key == build_dedup_key(1, "email", "member:a", "warning")
        assert len(key) == 64
        assert key != build_dedup_key(1, "email", "member:a", "urgent")
        assert key != build_dedup_key(1, "sms", "member:a", "warning")
        assert key != build_dedup_key(2, "email", "member:a", "warning")


class TestDispatch:
    def test_default_preference_gets_email_and_push(self, db, org, dispatcher) -> None:
        make_member(db, org, push_token="tok-1", phone="+40700000001")
        alert = make_alert(db, org, severity="urgent")
        db.commit()

        jobs = dispatcher.dispatch(alert, DispatchTrigger.CREATED)
        db.commit()
        assert {j.channel for j in jobs} == {"email", "push"}
        assert all(j.status == "pending" and j.attempt == 0 for j in jobs)

    def test_same_notification_is_enqueued_once(self, db, org, dispatcher) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()

        assert len(dispatcher.dispatch(alert, DispatchTrigger.CREATED)) == 1
        assert dispatcher.dispatch(alert, DispatchTrigger.CREATED) == []
        db.commit()
        assert len(_jobs(db)) == 1
        assert dispatcher.duplicates_rejected == 1

    def test_escalated_severity_is_a_new_notification(self, db, org, dispatcher) -> None:
        make_member(db, org)
        alert = make_alert(db, org, severity="warning")
        db.commit()
        dispatcher.dispatch(alert, DispatchTrigger.CREATED)

        alert.severity = "urgent"
        jobs = dispatcher.dispatch(alert, DispatchTrigger.ESCALATED)
        db.commit()
        assert len(jobs) == 1
        assert jobs[0].trigger == "escalated"
        assert len(_jobs(db)) == 2

    def test_phone_channels_only_from_urgent(self, db, org, dispatcher) -> None:
        make_member(
            db,
            org,
            phone="+40700000001",
            preference={"sms_enabled": True, "whatsapp_enabled": True},
        )
        warning = make_alert(db, org, severity="warning")
        urgent = make_alert(db, org, severity="urgent")
        db.commit()

        assert {j.channel for j in dispatcher.dispatch(warning, "created")} == {"email"}
        assert {j.channel for j in dispatcher.dispatch(urgent, "created")} == {
            "email",
            "sms",
            "whatsapp",
        }

    def test_disabled_channel_and_opt_out_respected(self, db, org, dispatcher) -> None:
        make_member(
            db,
            org,
            push_token="tok-1",
            preference={
                "push_enabled": False,
                "channel_opt_outs": {"email": ["training_assignment"]},
            },
        )
        training = make_alert(db, org, entity_kind=EntityKind.TRAINING_ASSIGNMENT)
        medical = make_alert(db, org)
        db.commit()

        assert dispatcher.dispatch(training, "created") == []
        assert {j.channel for j in dispatcher.dispatch(medical, "created")} == {"email"}

    def test_unconfigured_channel_is_skipped(self, db, org, settings, clock) -> None:
        from tests.factories import FakeChannel

        make_member(db, org, push_token="tok-1")
        alert = make_alert(db, org)
        db.commit()
        dispatcher = NotificationDispatcher(db, {"push": FakeChannel("push")}, settings, clock)
        assert {j.channel for j in dispatcher.dispatch(alert, "created")} == {"push"}

    def test_inactive_member_gets_nothing(self, db, org, dispatcher) -> None:
        make_member(db, org, is_active=False)
        alert = make_alert(db, org)
        db.commit()
        assert dispatcher.dispatch(alert, "created") == []

    def test_resolution_notice_is_opt_in(self, db, org, dispatcher, settings) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()

        assert dispatcher.dispatch(alert, DispatchTrigger.RESOLVED) == []
        settings.notify_on_resolution = True
        jobs = dispatcher.dispatch(alert, DispatchTrigger.RESOLVED)
        assert [j.trigger for j in jobs] == ["resolved"]


class TestQuietHours:
    def test_job_deferred_to_window_end(self, db, org, dispatcher, channels, clock) -> None:
        make_member(
            db,
            org,
            preference={
                "quiet_hours_start": time(22, 0),
                "quiet_hours_end": time(7, 0),
                "timezone": "Europe/Bucharest",
            },
        )
        alert = make_alert(db, org, severity="expired")
        db.commit()
        clock.now = datetime(2026, 3, 2, 21, 30, tzinfo=UTC)  # 23:30 in Bucharest

        [job] = dispatcher.dispatch(alert, "created")
        db.commit()
        assert as_utc(job.not_before) == datetime(2026, 3, 3, 5, 0, tzinfo=UTC)

        assert dispatcher.deliver_due().sent == 0
        clock.now = datetime(2026, 3, 3, 4, 59, tzinfo=UTC)  # 06:59 local, still quiet
        assert dispatcher.deliver_due().sent == 0
        assert channels["email"].sent == []
        assert _jobs(db)[0].status == "pending"

        clock.now = datetime(2026, 3, 3, 5, 1, tzinfo=UTC)
        assert dispatcher.deliver_due().sent == 1
        assert dispatcher.deliver_due().sent == 0
        assert len(channels["email"].sent) == 1
        assert _jobs(db)[0].status == "sent"

    def test_retry_backoff_skips_quiet_window(self, db, org, dispatcher, channels, clock) -> None:
        make_member(
            db,
            org,
            preference={
                "quiet_hours_start": time(22, 0),
                "quiet_hours_end": time(7, 0),
                "timezone": "Europe/Bucharest",
            },
        )
        alert = make_alert(db, org, severity="expired")
        db.commit()
        clock.now = datetime(2026, 3, 2, 19, 59, 30, tzinfo=UTC)  # 21:59:30 local
        [job] = dispatcher.dispatch(alert, "created")
        db.commit()
        assert job.not_before is None
        channels["email"].fail_with(transient())

        assert dispatcher.deliver_due().retried == 1
        [job] = _jobs(db)
        # 60s backoff lands at 22:00:30 local, inside the window
        assert as_utc(job.not_before) == datetime(2026, 3, 3, 5, 0, tzinfo=UTC)

        clock.now = datetime(2026, 3, 2, 20, 5, tzinfo=UTC)
        assert dispatcher.deliver_due().sent == 0
        clock.now = datetime(2026, 3, 3, 5, 0, tzinfo=UTC)
        assert dispatcher.deliver_due().sent == 1

    def test_outside_window_sends_immediately(self, db, org, dispatcher) -> None:
        make_member(
            db,
            org,
            preference={"quiet_hours_start": time(22, 0), "quiet_hours_end": time(7, 0)},
        )
        alert = make_alert(db, org)
        db.commit()
        [job] = dispatcher.dispatch(alert, "created")
        assert job.not_before is None


class TestDelivery:
    def test_successful_delivery_marks_sent(self, db, org, dispatcher, channels) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        dispatcher.dispatch(alert, "created")
        db.commit()

        report = dispatcher.deliver_due(org.id)
        assert report.sent == 1
        [job] = _jobs(db)
        assert job.status == "sent"
        assert job.attempt == 1
        assert job.provider_message_id == "email-1"
        assert job.sent_at is not None
        address, message = channels["email"].sent[0]
        assert address == "ioana@acme.ro"
        assert "/dashboard/alerts" in message.text

    def test_transient_failure_is_retried_with_backoff(
        self, db, org, dispatcher, channels, clock
    ) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        dispatcher.dispatch(alert, "created")
        db.commit()
        channels["email"].fail_with(transient())

        report = dispatcher.deliver_due()
        assert report.retried == 1
        [job] = _jobs(db)
        assert job.status == "pending"
        assert job.attempt == 1
        assert as_utc(job.not_before) == TEST_NOW + timedelta(seconds=60)
        assert job.last_error == "provider timeout"

        assert dispatcher.deliver_due().sent == 0  # backoff not elapsed
        clock.advance(seconds=61)
        assert dispatcher.deliver_due().sent == 1
        [job] = _jobs(db)
        assert job.status == "sent"
        assert job.attempt == 2

    def test_retries_exhausted_marks_failed(self, db, org, dispatcher, channels, clock) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        dispatcher.dispatch(alert, "created")
        db.commit()
        channels["email"].fail_with(transient(), transient(), transient())

        dispatcher.deliver_due()
        clock.advance(seconds=61)
        dispatcher.deliver_due()
        clock.advance(seconds=121)
        report = dispatcher.deliver_due()
        assert report.failed == 1
        [job] = _jobs(db)
        assert job.status == "failed"
        assert job.attempt == 3

    def test_permanent_failure_fails_immediately(self, db, org, dispatcher, channels) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        dispatcher.dispatch(alert, "created")
        db.commit()
        channels["email"].fail_with(permanent())

        report = dispatcher.deliver_due()
        assert report.failed == 1
        assert report.errors
        [job] = _jobs(db)
        assert job.status == "failed"
        assert job.attempt == 1

    def test_unexpected_channel_error_is_retried(self, db, org, dispatcher, channels) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        dispatcher.dispatch(alert, "created")
        db.commit()
        channels["email"].fail_with(RuntimeError("socket closed"))

        assert dispatcher.deliver_due().retried == 1
        [job] = _jobs(db)
        assert job.status == "pending"

    def test_whatsapp_failure_falls_back_to_sms(self, db, org, dispatcher, channels) -> None:
        make_member(
            db,
            org,
            email=None,
            phone="+40700000001",
            preference={"whatsapp_enabled": True, "sms_enabled": False, "push_enabled": False},
        )
        alert = make_alert(db, org, severity="expired")
        db.commit()
        dispatcher.dispatch(alert, "created")
        db.commit()
        channels["whatsapp"].fail_with(permanent("whatsapp"))

        dispatcher.deliver_due()
        jobs = _jobs(db)
        assert [(j.channel, j.status) for j in jobs] == [("whatsapp", "failed"), ("sms", "pending")]

        assert dispatcher.deliver_due().sent == 1
        assert channels["sms"].sent[0][0] == "+40700000001"

    def test_job_for_closed_alert_is_skipped(self, db, org, dispatcher, channels) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        dispatcher.dispatch(alert, "created")
        transition(alert, AlertStatus.RESOLVED, actor="u1", now=TEST_NOW)
        db.commit()

        report = dispatcher.deliver_due()
        assert report.skipped == 1
        assert channels["email"].sent == []
        assert _jobs(db)[0].status == "skipped"

    def test_highest_severity_delivered_first(self, db, org, dispatcher, channels) -> None:
        make_member(db, org)
        warning = make_alert(db, org, severity="warning")
        expired = make_alert(db, org, severity="expired")
        db.commit()
        dispatcher.dispatch_many([(warning, DispatchTrigger.CREATED), (expired, DispatchTrigger.CREATED)])
        db.commit()

        dispatcher.deliver_due()
        subjects = [m.subject for _, m in channels["email"].sent]
        assert subjects[0].startswith("[EXPIRAT]")
        assert subjects[1].startswith("[Avertizare]")

    def test_digest_member_gets_one_message(self, db, org, dispatcher, channels) -> None:
        make_member(db, org, preference={"digest_mode": "digest"})
        first = make_alert(db, org, severity="warning")
        second = make_alert(db, org, severity="urgent")
        db.commit()
        dispatcher.dispatch_many([(first, "created"), (second, "created")])
        db.commit()

        report = dispatcher.deliver_due()
        assert report.sent == 2
        assert report.messages == 1
        [(_, message)] = channels["email"].sent
        assert "2 alerte" in message.subject
        assert all(j.status == "sent" for j in _jobs(db))

    def test_budget_exhaustion_leaves_jobs_pending(self, db, org, dispatcher, channels) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        dispatcher.dispatch(alert, "created")
        db.commit()

        budget = SweepBudget(1.0, clock=iter([0.0] + [5.0] * 5).__next__)
        report = dispatcher.deliver_due(budget=budget)
        assert report.timed_out is True
        assert channels["email"].sent == []
        assert _jobs(db)[0].status == "pending"


class TestConcurrentDelivery:
    """Several delivery runs may read the same queue; each job goes out once."""

    def test_job_read_by_two_workers_is_sent_once(
        self, db, org, session_factory, channels, settings, clock, monkeypatch
    ) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        NotificationDispatcher(db, channels, settings, clock).dispatch(alert, "created")
        db.commit()

        first_session, second_session = session_factory(), session_factory()
        try:
            first = NotificationDispatcher(first_session, channels, settings, clock)
            second = NotificationDispatcher(second_session, channels, settings, clock)
            read_earlier = first._due_jobs(None)
            assert len(read_earlier) == 1
            monkeypatch.setattr(first, "_due_jobs", lambda organization_id: read_earlier)

            assert second.deliver_due().sent == 1
            report = first.deliver_due()
        finally:
            first_session.close()
            second_session.close()

        assert report.sent == 0
        assert report.failed == 0
        assert len(channels["email"].sent) == 1
        db.expire_all()
        [job] = _jobs(db)
        assert job.status == "sent"
        assert job.attempt == 1

    def test_live_claim_is_not_picked_up(self, db, org, dispatcher, channels) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        [job] = dispatcher.dispatch(alert, "created")
        job.status = "sending"
        job.attempt = 1
        job.not_before = TEST_NOW + timedelta(minutes=10)
        db.commit()

        assert dispatcher.deliver_due().sent == 0
        assert channels["email"].sent == []

    def test_expired_claim_is_delivered(self, db, org, dispatcher, channels) -> None:
        make_member(db, org)
        alert = make_alert(db, org)
        db.commit()
        [job] = dispatcher.dispatch(alert, "created")
        job.status = "sending"
        job.attempt = 1
        job.not_before = TEST_NOW - timedelta(minutes=1)
        db.commit()

        assert dispatcher.deliver_due().sent == 1
        db.expire_all()
        [job] = _jobs(db)
        assert job.status == "sent"
        assert job.attempt == 2


class TestEscalationReminders:
    @pytest.fixture
    def escalation_org(self, db):
        organization = make_organization(
            db,
            name="Beta SRL",
            escalation_contact_email="director@beta.ro",
            escalation_contact_phone="+40700000009",
            escalation_after_hours=24,
        )
        db.commit()
        return organization

    def test_reminder_for_stale_unacknowledged_alert(
        self, db, escalation_org, dispatcher, channels
    ) -> None:
        old = TEST_NOW - timedelta(hours=30)
        make_alert(db, escalation_org, severity="warning", created_at=old)
        make_alert(db, escalation_org, severity="urgent", created_at=old)
        make_alert(db, escalation_org, severity="attention", created_at=old)
        make_alert(db, escalation_org, severity="urgent", status="acknowledged", created_at=old)
        make_alert(db, escalation_org, severity="expired", created_at=TEST_NOW - timedelta(hours=2))
        db.commit()

        # warning: email only (below phone floor); urgent: email + sms
        assert dispatcher.escalate_unacknowledged() == 3
        db.commit()
        assert dispatcher.escalate_unacknowledged() == 0
        jobs = _jobs(db)
        assert {j.trigger for j in jobs} == {"reminder"}
        assert all(j.recipient_ref == f"escalation:{escalation_org.id}" for j in jobs)

        report = dispatcher.deliver_due()
        assert report.sent == 3
        assert "neconfirmat" in channels["email"].sent[0][1].subject.lower()

    def test_no_contact_no_reminder(self, db, org, dispatcher) -> None:
        make_alert(db, org, severity="expired", created_at=TEST_NOW - timedelta(days=10))
        db.commit()
        assert dispatcher.escalate_unacknowledged() == 0

    def test_reminder_skipped_once_acknowledged(
        self, db, escalation_org, dispatcher, channels
    ) -> None:
        alert = make_alert(
            db, escalation_org, severity="warning", created_at=TEST_NOW - timedelta(hours=30)
        )
        db.commit()
        dispatcher.escalate_unacknowledged()
        transition(alert, AlertStatus.ACKNOWLEDGED, actor="u1", now=TEST_NOW)
        db.commit()

        report = dispatcher.deliver_due()
        assert report.skipped == 1
        assert channels["email"].sent == []
