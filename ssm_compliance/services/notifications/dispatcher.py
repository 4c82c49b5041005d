"""Notification dispatcher: fan-out, dedup, quiet hours, delivery with retry.

Jobs are enqueued with INSERT ... ON CONFLICT DO NOTHING on the unique
dedup_key, so a notification for the same (alert, channel, recipient, severity)
is persisted at most once no matter how many sweeps observe it.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ssm_compliance.config import get_settings
from ssm_compliance.errors import DispatchError, SweepTimeoutError
from ssm_compliance.models import (
    Alert,
    NotificationJob,
    NotificationPreference,
    Organization,
    OrganizationMember,
)
from ssm_compliance.obligation_types import (
    AlertStatus,
    DispatchTrigger,
    JobStatus,
    NotificationChannelName,
    SeverityTier,
)
from ssm_compliance.services.clock import Clock, utc_now
from ssm_compliance.services.deadlines.severity_policy import REMINDER_MIN_SEVERITY
from ssm_compliance.services.notifications.channels import NotificationChannel
from ssm_compliance.services.notifications.messages import (
    RenderedMessage,
    render_alert,
    render_digest,
    render_reminder,
)
from ssm_compliance.services.notifications.quiet_hours import quiet_window_end, resolve_zone

logger = logging.getLogger(__name__)

CHANNEL_ORDER: tuple[str, ...] = (
    NotificationChannelName.EMAIL.value,
    NotificationChannelName.PUSH.value,
    NotificationChannelName.WHATSAPP.value,
    NotificationChannelName.SMS.value,
)
PHONE_CHANNELS: frozenset[str] = frozenset(
    {NotificationChannelName.SMS.value, NotificationChannelName.WHATSAPP.value}
)
# Channel tried next when delivery over the key channel fails for good
FALLBACK_CHANNELS: dict[str, str] = {
    NotificationChannelName.WHATSAPP.value: NotificationChannelName.SMS.value,
    NotificationChannelName.SMS.value: NotificationChannelName.EMAIL.value,
}
DIGEST_MODE = "digest"
DIGEST_TRIGGERS: frozenset[str] = frozenset(
    {DispatchTrigger.CREATED.value, DispatchTrigger.ESCALATED.value}
)
MEMBER_REF_PREFIX = "member:"
ESCALATION_REF_PREFIX = "escalation:"
RESOLVED_SEVERITY_MARKER = "resolved"
# A claimed job not finished within this window is picked up again
DELIVERY_CLAIM_LEASE = timedelta(minutes=15)


def build_dedup_key(alert_id: int, channel: str, recipient_ref: str, severity_marker: str) -> str:
    raw = f"{alert_id}|{channel}|{recipient_ref}|{severity_marker}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def member_ref(member: OrganizationMember) -> str:
    return f"{MEMBER_REF_PREFIX}{member.id}"


def escalation_ref(organization_id: uuid.UUID) -> str:
    return f"{ESCALATION_REF_PREFIX}{organization_id}"


def _member_id_from_ref(recipient_ref: str) -> uuid.UUID | None:
    if not recipient_ref.startswith(MEMBER_REF_PREFIX):
        return None
    try:
        return uuid.UUID(recipient_ref[len(MEMBER_REF_PREFIX):])
    except ValueError:
        return None


def member_address(member: OrganizationMember, channel: str) -> str | None:
    if channel == NotificationChannelName.EMAIL.value:
        return member.email
    if channel == NotificationChannelName.PUSH.value:
        return member.push_token
    return member.phone


def channel_enabled(preference: NotificationPreference | None, channel: str) -> bool:
    """Channel toggle; members without a preference row get email and push."""
    if preference is None:
        return channel in (NotificationChannelName.EMAIL.value, NotificationChannelName.PUSH.value)
    return bool(getattr(preference, f"{channel}_enabled"))


def opted_out(preference: NotificationPreference | None, channel: str, entity_kind: str) -> bool:
    if preference is None or not preference.channel_opt_outs:
        return False
    return entity_kind in (preference.channel_opt_outs.get(channel) or [])


@dataclass
class DeliveryReport:
    sent: int = 0
    failed: int = 0
    retried: int = 0
    skipped: int = 0
    messages: int = 0
    timed_out: bool = False
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "retried": self.retried,
            "skipped": self.skipped,
            "messages": self.messages,
            "timed_out": self.timed_out,
            "errors": list(self.errors),
        }


class NotificationDispatcher:
    """Turns alert transitions into delivered notifications."""

    def __init__(
        self,
        db: Session,
        channels: dict[str, NotificationChannel],
        settings=None,
        clock: Clock = utc_now,
    ) -> None:
        self.db = db
        self.channels = channels
        self.settings = settings or get_settings()
        self.clock = clock
        self.duplicates_rejected = 0

    # ── Enqueue ─────────────────────────────────────────────────────

    def _phone_floor(self) -> SeverityTier:
        try:
            return SeverityTier(self.settings.phone_channel_min_severity)
        except ValueError:
            return SeverityTier.URGENT

    def _channel_allowed(
        self,
        channel: str,
        alert: Alert,
        preference: NotificationPreference | None,
        *,
        honor_toggle: bool = True,
    ) -> bool:
        if channel not in self.channels:
            return False
        if honor_toggle and not channel_enabled(preference, channel):
            return False
        if opted_out(preference, channel, alert.entity_kind):
            return False
        if channel in PHONE_CHANNELS and SeverityTier(alert.severity) < self._phone_floor():
            return False
        return True

    def _insert_job(self, values: dict) -> NotificationJob | None:
        """Insert one job; None when the dedup_key already exists."""
        dialect = self.db.get_bind().dialect.name
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = (
            insert(NotificationJob)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["dedup_key"])
        )
        result = self.db.execute(stmt)
        if result.rowcount == 0:
            self.duplicates_rejected += 1
            logger.debug("Duplicate notification rejected dedup_key=%s", values["dedup_key"])
            return None
        return (
            self.db.query(NotificationJob)
            .filter(NotificationJob.dedup_key == values["dedup_key"])
            .one()
        )

    def _enqueue(
        self,
        alert: Alert,
        trigger: DispatchTrigger,
        channel: str,
        recipient_ref: str,
        address: str,
        not_before: datetime | None,
    ) -> NotificationJob | None:
        marker = RESOLVED_SEVERITY_MARKER if trigger is DispatchTrigger.RESOLVED else alert.severity
        now = self.clock()
        return self._insert_job(
            {
                "organization_id": alert.organization_id,
                "alert_id": alert.id,
                "alert_ids": [alert.id],
                "channel": channel,
                "recipient_ref": recipient_ref,
                "recipient_address": address,
                "dedup_key": build_dedup_key(alert.id, channel, recipient_ref, marker),
                "severity": alert.severity,
                "trigger": trigger.value,
                "attempt": 0,
                "status": JobStatus.PENDING.value,
                "not_before": not_before,
                "created_at": now,
                "updated_at": now,
            }
        )

    def _active_members(self, organization_id: uuid.UUID) -> list[OrganizationMember]:
        return (
            self.db.query(OrganizationMember)
            .filter(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.is_active.is_(True),
            )
            .order_by(OrganizationMember.id)
            .all()
        )

    def _deferral(
        self,
        organization: Organization | None,
        preference: NotificationPreference | None,
        at: datetime | None = None,
    ) -> datetime | None:
        """End of the quiet window containing `at` (default now), else None."""
        if preference is None:
            return None
        zone = resolve_zone(
            preference.timezone,
            organization.timezone if organization is not None else None,
            self.settings.default_timezone,
        )
        return quiet_window_end(
            at or self.clock(), preference.quiet_hours_start, preference.quiet_hours_end, zone
        )

    def dispatch(self, alert: Alert, trigger: DispatchTrigger | str) -> list[NotificationJob]:
        """Enqueue jobs for one alert transition. Returns the newly created jobs.

        Jobs for members inside their quiet hours are deferred to the end of the
        window, never dropped. Resolution notices are sent only when enabled.
        """
        trigger = DispatchTrigger(trigger)
        if trigger is DispatchTrigger.RESOLVED and not self.settings.notify_on_resolution:
            return []

        organization = self.db.get(Organization, alert.organization_id)
        jobs: list[NotificationJob] = []
        for member in self._active_members(alert.organization_id):
            preference = member.preference
            not_before = self._deferral(organization, preference)
            for channel in CHANNEL_ORDER:
                if not self._channel_allowed(channel, alert, preference):
                    continue
                address = member_address(member, channel)
                if not address:
                    continue
                job = self._enqueue(alert, trigger, channel, member_ref(member), address, not_before)
                if job is not None:
                    jobs.append(job)
        logger.info(
            "Dispatched organization_id=%s alert_id=%s trigger=%s jobs=%d",
            alert.organization_id,
            alert.id,
            trigger.value,
            len(jobs),
        )
        return jobs

    def dispatch_many(
        self, items: Iterable[tuple[Alert, DispatchTrigger]]
    ) -> list[NotificationJob]:
        jobs: list[NotificationJob] = []
        for alert, trigger in items:
            jobs.extend(self.dispatch(alert, trigger))
        return jobs

    # ── Escalation reminders ────────────────────────────────────────

    def escalate_unacknowledged(self, organization_id: uuid.UUID | None = None) -> int:
        """Enqueue reminders to escalation contacts for alerts left unacknowledged.

        Applies to alerts still active (never acknowledged) at warning or worse
        that are older than the organization's escalation_after_hours. At most
        one reminder per alert, channel and severity.
        """
        now = self.clock()
        query = self.db.query(Organization).filter(Organization.is_active.is_(True))
        if organization_id is not None:
            query = query.filter(Organization.id == organization_id)

        enqueued = 0
        for organization in query.all():
            contacts = {
                NotificationChannelName.EMAIL.value: organization.escalation_contact_email,
                NotificationChannelName.SMS.value: organization.escalation_contact_phone,
            }
            if not any(contacts.values()):
                continue
            hours = organization.escalation_after_hours or self.settings.escalation_after_hours
            cutoff = now - timedelta(hours=hours)
            alerts = (
                self.db.query(Alert)
                .filter(
                    Alert.organization_id == organization.id,
                    Alert.status == AlertStatus.ACTIVE.value,
                    Alert.created_at <= cutoff,
                )
                .order_by(Alert.id)
                .all()
            )
            for alert in alerts:
                if SeverityTier(alert.severity) < REMINDER_MIN_SEVERITY:
                    continue
                for channel, address in contacts.items():
                    if not address or not self._channel_allowed(channel, alert, None, honor_toggle=False):
                        continue
                    job = self._enqueue(
                        alert,
                        DispatchTrigger.REMINDER,
                        channel,
                        escalation_ref(organization.id),
                        address,
                        None,
                    )
                    if job is not None:
                        enqueued += 1
        logger.info("Escalation reminders enqueued=%d", enqueued)
        return enqueued

    # ── Delivery ────────────────────────────────────────────────────

    def _due_condition(self, now: datetime):
        """Pending jobs past not_before, plus claims whose lease ran out."""
        return or_(
            and_(
                NotificationJob.status == JobStatus.PENDING.value,
                or_(NotificationJob.not_before.is_(None), NotificationJob.not_before <= now),
            ),
            and_(
                NotificationJob.status == JobStatus.SENDING.value,
                NotificationJob.not_before <= now,
            ),
        )

    def _due_jobs(self, organization_id: uuid.UUID | None) -> list[NotificationJob]:
        query = self.db.query(NotificationJob).filter(self._due_condition(self.clock()))
        if organization_id is not None:
            query = query.filter(NotificationJob.organization_id == organization_id)
        return query.order_by(NotificationJob.id).all()

    def _is_digest_recipient(self, recipient_ref: str) -> bool:
        member_id = _member_id_from_ref(recipient_ref)
        if member_id is None:
            return False
        preference = (
            self.db.query(NotificationPreference)
            .filter(NotificationPreference.member_id == member_id)
            .first()
        )
        return preference is not None and preference.digest_mode == DIGEST_MODE

    def _job_alerts(self, job: NotificationJob) -> list[Alert]:
        ids = job.alert_ids or ([job.alert_id] if job.alert_id is not None else [])
        return [a for a in (self.db.get(Alert, i) for i in ids) if a is not None]

    def _still_relevant(self, job: NotificationJob, alerts: list[Alert]) -> bool:
        """A non-resolution job whose alert closed before delivery is skipped."""
        if job.trigger == DispatchTrigger.RESOLVED.value:
            return bool(alerts)
        if job.trigger == DispatchTrigger.REMINDER.value:
            return any(a.status == AlertStatus.ACTIVE.value for a in alerts)
        return any(not AlertStatus(a.status).is_terminal for a in alerts)

    def _render(self, jobs: list[NotificationJob], alerts: list[Alert]) -> RenderedMessage:
        organization = self.db.get(Organization, jobs[0].organization_id)
        name = organization.name if organization is not None else ""
        app_url = self.settings.app_url
        if len(alerts) > 1:
            return render_digest(alerts, name, app_url)
        job = jobs[0]
        if job.trigger == DispatchTrigger.REMINDER.value:
            hours = (
                organization.escalation_after_hours if organization is not None else None
            ) or self.settings.escalation_after_hours
            return render_reminder(alerts[0], name, app_url, hours)
        return render_alert(alerts[0], job.trigger, name, app_url)

    def _backoff(self, attempt: int) -> timedelta:
        seconds = self.settings.notification_backoff_base_seconds * 2 ** (attempt - 1)
        return timedelta(seconds=min(seconds, self.settings.notification_backoff_max_seconds))

    def _retry_at(self, job: NotificationJob) -> datetime:
        """Backoff from now, pushed past the member's quiet hours."""
        retry_at = self.clock() + self._backoff(job.attempt)
        member_id = _member_id_from_ref(job.recipient_ref)
        member = self.db.get(OrganizationMember, member_id) if member_id is not None else None
        if member is None:
            return retry_at
        organization = self.db.get(Organization, job.organization_id)
        return self._deferral(organization, member.preference, at=retry_at) or retry_at

    def _claim(self, job: NotificationJob) -> bool:
        """Take the job for this worker with a conditional update.

        Only one worker's update matches a due row at a given attempt, so a job
        read by several deliveries is sent once. The claim is committed before
        the provider call.
        """
        now = self.clock()
        seen_attempt = job.attempt
        result = self.db.execute(
            update(NotificationJob)
            .where(
                NotificationJob.id == job.id,
                NotificationJob.attempt == seen_attempt,
                self._due_condition(now),
            )
            .values(
                status=JobStatus.SENDING.value,
                attempt=NotificationJob.attempt + 1,
                not_before=now + DELIVERY_CLAIM_LEASE,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount != 1:
            logger.info(
                "Job already claimed organization_id=%s job_id=%s channel=%s",
                job.organization_id,
                job.id,
                job.channel,
            )
            return False
        return True

    def _mark_sent(
        self, jobs: list[NotificationJob], provider_id: str | None, report: DeliveryReport
    ) -> None:
        now = self.clock()
        for job in jobs:
            job.status = JobStatus.SENT.value
            job.sent_at = now
            job.provider_message_id = provider_id
            job.last_error = None
        report.sent += len(jobs)
        report.messages += 1

    def _mark_failure(
        self, jobs: list[NotificationJob], exc: DispatchError, report: DeliveryReport
    ) -> None:
        for job in jobs:
            job.last_error = str(exc)[:2000]
            if exc.transient and job.attempt < self.settings.notification_max_attempts:
                job.status = JobStatus.PENDING.value
                job.not_before = self._retry_at(job)
                report.retried += 1
                logger.warning(
                    "Delivery retry scheduled organization_id=%s job_id=%s channel=%s "
                    "attempt=%d error=%s",
                    job.organization_id,
                    job.id,
                    job.channel,
                    job.attempt,
                    exc,
                )
                continue
            job.status = JobStatus.FAILED.value
            report.failed += 1
            report.errors.append(f"job {job.id} ({job.channel}): {exc}")
            logger.error(
                "Delivery failed organization_id=%s job_id=%s channel=%s attempt=%d "
                "transient=%s error=%s",
                job.organization_id,
                job.id,
                job.channel,
                job.attempt,
                exc.transient,
                exc,
            )
            self._enqueue_fallback(job)

    def _enqueue_fallback(self, job: NotificationJob) -> None:
        fallback = FALLBACK_CHANNELS.get(job.channel)
        member_id = _member_id_from_ref(job.recipient_ref)
        if fallback is None or member_id is None:
            return
        member = self.db.get(OrganizationMember, member_id)
        if member is None or not member.is_active:
            return
        address = member_address(member, fallback)
        if not address:
            return
        for alert in self._job_alerts(job):
            if not self._channel_allowed(fallback, alert, member.preference, honor_toggle=False):
                continue
            created = self._enqueue(
                alert, DispatchTrigger(job.trigger), fallback, job.recipient_ref, address, None
            )
            if created is not None:
                logger.info(
                    "Fallback enqueued job_id=%s from=%s to=%s", created.id, job.channel, fallback
                )

    def _batches(self, recipient_ref: str, jobs: list[NotificationJob]) -> list[list[NotificationJob]]:
        """Digest members get created/escalated jobs combined; everything else goes one by one."""
        if not self._is_digest_recipient(recipient_ref):
            return [[j] for j in jobs]
        combined = [j for j in jobs if j.trigger in DIGEST_TRIGGERS]
        single = [[j] for j in jobs if j.trigger not in DIGEST_TRIGGERS]
        return ([combined] if combined else []) + single

    def _send_group(self, jobs: list[NotificationJob], report: DeliveryReport) -> None:
        relevant: list[NotificationJob] = []
        alerts: list[Alert] = []
        for job in [j for j in jobs if self._claim(j)]:
            job_alerts = self._job_alerts(job)
            if not self._still_relevant(job, job_alerts):
                job.status = JobStatus.SKIPPED.value
                job.last_error = "alert closed before delivery"
                report.skipped += 1
                continue
            relevant.append(job)
            alerts.extend(a for a in job_alerts if a not in alerts)
        if not relevant:
            return

        job = relevant[0]
        channel = self.channels.get(job.channel)
        if channel is None:
            self._mark_failure(
                relevant,
                DispatchError("channel not configured", channel=job.channel, transient=False),
                report,
            )
            return
        message = self._render(relevant, alerts)
        try:
            provider_id = channel.send(job.recipient_address, message)
        except DispatchError as exc:
            self._mark_failure(relevant, exc, report)
        except Exception as exc:
            logger.exception(
                "Unexpected channel error organization_id=%s job_id=%s channel=%s",
                job.organization_id,
                job.id,
                job.channel,
            )
            self._mark_failure(
                relevant, DispatchError(str(exc), channel=job.channel, transient=True), report
            )
        else:
            self._mark_sent(relevant, provider_id, report)

    def deliver_due(self, organization_id: uuid.UUID | None = None, budget=None) -> DeliveryReport:
        """Deliver pending jobs whose not_before has passed.

        Jobs are grouped per (organization, recipient, channel) and sent highest
        severity first; digest-mode members get one combined message per group.
        Each group is committed as soon as it is handled. On budget exhaustion the
        remaining jobs stay pending for the next run.
        """
        report = DeliveryReport()
        groups: dict[tuple, list[NotificationJob]] = {}
        for job in self._due_jobs(organization_id):
            key = (str(job.organization_id), job.recipient_ref, job.channel)
            groups.setdefault(key, []).append(job)

        for key in sorted(groups):
            jobs = sorted(
                groups[key], key=lambda j: (-SeverityTier(j.severity).rank, j.id)
            )
            batches = self._batches(key[1], jobs)
            for batch in batches:
                if budget is not None:
                    try:
                        budget.check("deliver")
                    except SweepTimeoutError as exc:
                        report.timed_out = True
                        report.errors.append(str(exc))
                        logger.warning("Delivery stopped on budget: %s", exc)
                        self.db.commit()
                        return report
                self._send_group(batch, report)
                self.db.commit()

        logger.info(
            "Delivery organization_id=%s sent=%d failed=%d retried=%d skipped=%d",
            organization_id,
            report.sent,
            report.failed,
            report.retried,
            report.skipped,
        )
        return report

