"""Per-organization sweep lock.

A row in sweep_locks means a sweep is in flight. Acquisition is an insert that
relies on the primary key, so two workers can never both own the lock; a lock
past its expiry is taken over with a compare-and-set update.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import delete, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ssm_compliance.models import SweepLock
from ssm_compliance.services.clock import as_utc

logger = logging.getLogger(__name__)


def acquire_sweep_lock(
    db: Session,
    organization_id: uuid.UUID,
    now: datetime,
    ttl_seconds: int,
) -> bool:
    """Try to take the organization's sweep lock. Commits. Returns False when held."""
    expires_at = now + timedelta(seconds=ttl_seconds)
    insert = sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert
    stmt = (
        insert(SweepLock)
        .values(organization_id=organization_id, acquired_at=now, expires_at=expires_at)
        .on_conflict_do_nothing(index_elements=["organization_id"])
    )
    if db.execute(stmt).rowcount == 1:
        db.commit()
        return True

    held = db.get(SweepLock, organization_id, populate_existing=True)
    if held is None:
        # Released between the insert and the read; next run will take it
        db.commit()
        return False
    held_expiry = held.expires_at
    if as_utc(held_expiry) > now:
        db.commit()
        return False

    taken = db.execute(
        update(SweepLock)
        .where(
            SweepLock.organization_id == organization_id,
            SweepLock.expires_at == held_expiry,
        )
        .values(acquired_at=now, expires_at=expires_at, run_id=None)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    if taken == 1:
        logger.warning(
            "Stale sweep lock taken over organization_id=%s expired_at=%s",
            organization_id,
            held_expiry,
        )
    return taken == 1


def attach_run(db: Session, organization_id: uuid.UUID, acquired_at: datetime, run_id: int) -> None:
    db.execute(
        update(SweepLock)
        .where(SweepLock.organization_id == organization_id, SweepLock.acquired_at == acquired_at)
        .values(run_id=run_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def release_sweep_lock(db: Session, organization_id: uuid.UUID, acquired_at: datetime) -> bool:
    """Delete the lock this holder acquired at `acquired_at`. Commits.

    Returns False when the lock went stale and another sweep took it over;
    that holder's lock is left in place.
    """
    released = db.execute(
        delete(SweepLock)
        .where(SweepLock.organization_id == organization_id, SweepLock.acquired_at == acquired_at)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    if released != 1:
        logger.warning(
            "Sweep lock no longer held organization_id=%s acquired_at=%s", organization_id, acquired_at
        )
    return released == 1
