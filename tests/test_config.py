"""
Configuration tests.
"""

import pytest

from ssm_compliance.config import Settings, get_settings


def test_get_settings_returns_settings() -> None:
    """get_settings returns a Settings instance."""
    settings = get_settings()
    assert isinstance(settings, Settings)


def test_settings_has_required_attributes() -> None:
    """Settings has all required attributes."""
    settings = get_settings()
    assert hasattr(settings, "app_name")
    assert hasattr(settings, "database_url")
    assert hasattr(settings, "internal_job_token")
    assert hasattr(settings, "sweep_timeout_seconds")
    assert settings.app_name == "SSM Compliance"


def test_sweep_and_notification_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Sweep and delivery knobs have conservative defaults."""
    for name in (
        "SWEEP_TIMEOUT_SECONDS",
        "NOTIFICATION_MAX_ATTEMPTS",
        "NOTIFY_ON_RESOLUTION",
        "PHONE_CHANNEL_MIN_SEVERITY",
        "LEGAL_INFO_WINDOW_DAYS",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = Settings()
    assert settings.sweep_timeout_seconds == 300.0
    assert settings.notification_max_attempts == 5
    assert settings.notify_on_resolution is False
    assert settings.phone_channel_min_severity == "urgent"
    assert settings.legal_info_window_days == 14


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Sweep, notification and provider settings load from env."""
    monkeypatch.setenv("SWEEP_TIMEOUT_SECONDS", "120")
    monkeypatch.setenv("SWEEP_MAX_WORKERS", "8")
    monkeypatch.setenv("NOTIFY_ON_RESOLUTION", "true")
    monkeypatch.setenv("PHONE_CHANNEL_MIN_SEVERITY", "WARNING")
    monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setenv("APP_URL", "https://example.test/")
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.sweep_timeout_seconds == 120.0
        assert settings.sweep_max_workers == 8
        assert settings.notify_on_resolution is True
        assert settings.phone_channel_min_severity == "warning"
        assert settings.twilio_account_sid == "AC123"
        assert settings.app_url == "https://example.test"
    finally:
        get_settings.cache_clear()


def test_database_url_gets_psycopg_driver(monkeypatch: pytest.MonkeyPatch) -> None:
    """A generic postgresql:// URL is rewritten to use psycopg3."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://u@db:5432/ssm")
    settings = Settings()
    assert settings.database_url == "postgresql+psycopg://u@db:5432/ssm"
