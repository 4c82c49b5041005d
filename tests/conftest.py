"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.test_constants import TEST_INTERNAL_JOB_TOKEN, TEST_NOW

# In-memory SQLite shared through a StaticPool; never inherit a real database from .env
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("INTERNAL_JOB_TOKEN", TEST_INTERNAL_JOB_TOKEN)
os.environ["SWEEP_MAX_WORKERS"] = "1"  # one connection; sweep organizations sequentially
for _provider_var in ("SMTP_HOST", "TWILIO_ACCOUNT_SID", "PUSH_GATEWAY_URL"):
    os.environ.pop(_provider_var, None)


class MutableClock:
    """Injected clock; tests move time forward explicitly."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        from datetime import timedelta

        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(TEST_NOW)


@pytest.fixture
def settings():
    """Fresh Settings with fast, deterministic notification behaviour."""
    from ssm_compliance.config import Settings

    s = Settings()
    s.sweep_timeout_seconds = 0  # disabled unless a test sets it
    s.sweep_max_workers = 1
    s.notification_max_attempts = 3
    s.notification_backoff_base_seconds = 60
    s.notification_backoff_max_seconds = 3600
    s.notify_on_resolution = False
    s.phone_channel_min_severity = "urgent"
    s.escalation_after_hours = 48
    return s


@pytest.fixture
def db() -> Session:
    """Database session on a freshly created schema; tables are dropped after each test."""
    import ssm_compliance.models  # noqa: F401  (register tables)
    from ssm_compliance.db import Base, SessionLocal, engine

    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def session_factory(db: Session):
    """Session factory for code that opens its own sessions (sweep runner)."""
    from ssm_compliance.db import SessionLocal

    return SessionLocal


@pytest.fixture
def channels():
    """Recording fakes for every channel."""
    from tests.factories import FakeChannel

    return {name: FakeChannel(name) for name in ("email", "push", "sms", "whatsapp")}


@pytest.fixture
def sweep_runner(session_factory, channels, settings, clock):
    from ssm_compliance.services.sweep import SweepRunner

    return SweepRunner(session_factory, channels, settings, clock)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    from ssm_compliance.main import app

    return TestClient(app)


@pytest.fixture
def client_with_db(db: Session, sweep_runner) -> TestClient:
    """TestClient with get_db and the sweep runner bound to the test database."""
    from ssm_compliance.api.deps import get_sweep_runner
    from ssm_compliance.db.session import get_db
    from ssm_compliance.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sweep_runner] = lambda: sweep_runner
    c = TestClient(app)
    yield c
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_sweep_runner, None)
