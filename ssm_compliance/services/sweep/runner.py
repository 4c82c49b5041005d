"""Sweep runner: the scheduled pass that keeps scores, alerts and notifications current.

One organization sweep is:
lock -> aggregate -> write back caches -> score -> reconcile -> apply transitions
and enqueue notifications (one transaction) -> deliver due jobs -> release lock.

A failure in one organization never affects another. Creates a SweepRun
record for audit.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from ssm_compliance.config import get_settings
from ssm_compliance.errors import SweepOverlapError, SweepTimeoutError
from ssm_compliance.models import Organization, SweepRun
from ssm_compliance.services.alerts import apply_transitions, load_alert_state, reconcile
from ssm_compliance.services.clock import Clock, utc_now
from ssm_compliance.services.notifications import (
    DeliveryReport,
    NotificationChannel,
    NotificationDispatcher,
    build_channels,
)
from ssm_compliance.services.notifications.quiet_hours import resolve_zone
from ssm_compliance.services.obligations import aggregate, write_back_caches
from ssm_compliance.services.scoring import score, write_score_snapshot
from ssm_compliance.services.sweep.budget import SweepBudget
from ssm_compliance.services.sweep.locks import acquire_sweep_lock, attach_run, release_sweep_lock

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


@dataclass
class SweepSummary:
    organization_id: uuid.UUID
    status: str
    checked: int = 0
    alerts_created: int = 0
    alerts_escalated: int = 0
    alerts_resolved: int = 0
    notifications_sent: int = 0
    score: int | None = None
    sweep_run_id: int | None = None
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "organization_id": str(self.organization_id),
            "status": self.status,
            "sweep_run_id": self.sweep_run_id,
            "checked": self.checked,
            "alerts_created": self.alerts_created,
            "alerts_escalated": self.alerts_escalated,
            "alerts_resolved": self.alerts_resolved,
            "notifications_sent": self.notifications_sent,
            "score": self.score,
            "errors": list(self.errors),
        }


class SweepRunner:
    """Owns nothing but references: sessions, channels and clock are injected."""

    def __init__(
        self,
        session_factory: SessionFactory,
        channels: dict[str, NotificationChannel],
        settings=None,
        clock: Clock = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.channels = channels
        self.settings = settings or get_settings()
        self.clock = clock

    def _as_of(self, organization: Organization) -> date:
        """Calendar day in the organization's timezone."""
        zone = resolve_zone(organization.timezone, self.settings.default_timezone)
        return self.clock().astimezone(zone).date()

    def _finish_run(self, db: Session, run: SweepRun, summary: SweepSummary) -> None:
        run.status = summary.status
        run.finished_at = self.clock()
        run.checked = summary.checked
        run.alerts_created = summary.alerts_created
        run.alerts_escalated = summary.alerts_escalated
        run.alerts_resolved = summary.alerts_resolved
        run.notifications_sent = summary.notifications_sent
        run.error_message = "; ".join(summary.errors)[:4000] or None
        db.commit()

    def _record_rejected(self, db: Session, organization_id: uuid.UUID, trigger: str) -> None:
        now = self.clock()
        db.add(
            SweepRun(
                organization_id=organization_id,
                trigger=trigger,
                forced=False,
                status="rejected",
                started_at=now,
                finished_at=now,
                error_message="sweep already running",
            )
        )
        db.commit()

    def run_organization(
        self,
        organization_id: uuid.UUID,
        *,
        force: bool = False,
        trigger: str = "scheduled",
    ) -> SweepSummary:
        """Sweep one organization.

        Raises SweepOverlapError when another sweep holds the organization's
        lock (force=True bypasses the guard). Timeouts and unexpected errors
        are reported in the summary; nothing half-reconciled is committed.
        """
        db = self.session_factory()
        locked = False
        try:
            organization = db.get(Organization, organization_id)
            if organization is None:
                return SweepSummary(organization_id, "failed", errors=["organization not found"])

            now = self.clock()
            if not force:
                locked = acquire_sweep_lock(
                    db, organization_id, now, self.settings.sweep_lock_ttl_seconds
                )
                if not locked:
                    logger.warning("Sweep rejected organization_id=%s reason=overlap", organization_id)
                    self._record_rejected(db, organization_id, trigger)
                    raise SweepOverlapError(organization_id)

            run = SweepRun(
                organization_id=organization_id,
                trigger=trigger,
                forced=force,
                status="running",
                started_at=now,
            )
            db.add(run)
            db.commit()
            if locked:
                attach_run(db, organization_id, now, run.id)

            summary = self._sweep(db, organization, run)
            self._finish_run(db, run, summary)
            logger.info(
                "Sweep %s organization_id=%s checked=%d created=%d escalated=%d resolved=%d sent=%d",
                summary.status,
                organization_id,
                summary.checked,
                summary.alerts_created,
                summary.alerts_escalated,
                summary.alerts_resolved,
                summary.notifications_sent,
            )
            return summary
        finally:
            if locked:
                db.rollback()
                release_sweep_lock(db, organization_id, now)
            db.close()

    def _sweep(self, db: Session, organization: Organization, run: SweepRun) -> SweepSummary:
        summary = SweepSummary(organization.id, "completed", sweep_run_id=run.id)
        budget = SweepBudget(self.settings.sweep_timeout_seconds)
        now = self.clock()
        as_of = self._as_of(organization)
        dispatcher = NotificationDispatcher(db, self.channels, self.settings, self.clock)

        stage = "aggregate"
        try:
            result = aggregate(
                db,
                organization.id,
                as_of,
                budget=budget,
                legal_info_window_days=self.settings.legal_info_window_days,
            )
            summary.checked = len(result.snapshots) + len(result.skipped)
            summary.errors.extend(f"{s.entity_ref}: {s.reason}" for s in result.skipped)

            stage = "write_back"
            write_back_caches(db, result.snapshots)

            stage = "score"
            compliance = score(result.snapshots, computed_at=now)
            write_score_snapshot(db, organization.id, as_of, compliance)
            summary.score = compliance.total

            stage = "reconcile"
            transitions = reconcile(
                result.snapshots,
                load_alert_state(db, organization.id),
                protected_refs=result.skipped_refs,
            )
            budget.check(stage)
            to_notify = apply_transitions(db, organization.id, transitions, now)
            summary.alerts_created = sum(1 for t in transitions if t.action == "create")
            summary.alerts_escalated = sum(1 for t in transitions if t.action == "escalate")
            summary.alerts_resolved = sum(1 for t in transitions if t.action == "resolve")

            stage = "enqueue"
            dispatcher.dispatch_many(to_notify)
            budget.check(stage)
            db.commit()
        except SweepTimeoutError as exc:
            db.rollback()
            logger.error(
                "Sweep timed out organization_id=%s stage=%s elapsed=%.1fs",
                organization.id,
                exc.stage,
                exc.elapsed,
            )
            summary.status = "timed_out"
            summary.alerts_created = summary.alerts_escalated = summary.alerts_resolved = 0
            summary.errors.append(str(exc))
            return summary
        except Exception as exc:
            db.rollback()
            logger.exception("Sweep failed organization_id=%s stage=%s", organization.id, stage)
            summary.status = "failed"
            summary.alerts_created = summary.alerts_escalated = summary.alerts_resolved = 0
            summary.errors.append(f"{stage}: {exc}")
            return summary

        report = dispatcher.deliver_due(organization.id, budget=budget)
        summary.notifications_sent = report.sent
        summary.errors.extend(report.errors)
        return summary

    def _run_one_safe(self, organization_id: uuid.UUID, force: bool, trigger: str) -> SweepSummary:
        try:
            return self.run_organization(organization_id, force=force, trigger=trigger)
        except SweepOverlapError as exc:
            return SweepSummary(organization_id, "rejected", errors=[str(exc)])
        except Exception as exc:
            logger.exception("Sweep crashed organization_id=%s", organization_id)
            return SweepSummary(organization_id, "failed", errors=[str(exc)])

    def active_organization_ids(self) -> list[uuid.UUID]:
        db = self.session_factory()
        try:
            rows = (
                db.query(Organization.id)
                .filter(Organization.is_active.is_(True))
                .order_by(Organization.id)
                .all()
            )
            return [row[0] for row in rows]
        finally:
            db.close()

    def run_all(self, *, force: bool = False, trigger: str = "scheduled") -> list[SweepSummary]:
        """Sweep every active organization, concurrently across organizations."""
        organization_ids = self.active_organization_ids()
        logger.info("Starting sweep organizations=%d force=%s", len(organization_ids), force)
        workers = self.settings.sweep_max_workers
        if workers <= 1 or len(organization_ids) <= 1:
            return [self._run_one_safe(org_id, force, trigger) for org_id in organization_ids]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sweep") as pool:
            return list(
                pool.map(lambda org_id: self._run_one_safe(org_id, force, trigger), organization_ids)
            )

    def run_delivery(self, organization_id: uuid.UUID | None = None) -> DeliveryReport:
        """Deliver deferred and retried jobs outside a full sweep."""
        db = self.session_factory()
        try:
            dispatcher = NotificationDispatcher(db, self.channels, self.settings, self.clock)
            return dispatcher.deliver_due(
                organization_id, budget=SweepBudget(self.settings.sweep_timeout_seconds)
            )
        finally:
            db.close()

    def run_escalation(self) -> dict:
        """Enqueue reminders for unacknowledged alerts, then deliver them."""
        db = self.session_factory()
        try:
            dispatcher = NotificationDispatcher(db, self.channels, self.settings, self.clock)
            enqueued = dispatcher.escalate_unacknowledged()
            db.commit()
            report = dispatcher.deliver_due(
                budget=SweepBudget(self.settings.sweep_timeout_seconds)
            )
            return {
                "status": "completed",
                "reminders_enqueued": enqueued,
                "delivery": report.as_dict(),
            }
        finally:
            db.close()


def build_sweep_runner(settings=None) -> SweepRunner:
    """Entry-point factory: real sessions and configured channels."""
    from ssm_compliance.db.session import SessionLocal

    settings = settings or get_settings()
    return SweepRunner(SessionLocal, build_channels(settings), settings)
