"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache
from typing import Optional


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "SSM Compliance"
    debug: bool = False
    app_url: str = "https://app.s-s-m.ro"
    default_timezone: str = "Europe/Bucharest"

    # Database (postgresql+psycopg for psycopg3; sqlite accepted for local runs and tests)
    database_url: str = "postgresql+psycopg://localhost:5432/ssm_compliance_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    internal_job_token: str = ""  # Required for /internal/* endpoints

    # Sweep
    sweep_timeout_seconds: float = 300.0
    sweep_max_workers: int = 4
    sweep_lock_ttl_seconds: int = 900
    legal_info_window_days: int = 14

    # Notifications
    notification_max_attempts: int = 5
    notification_backoff_base_seconds: int = 60
    notification_backoff_max_seconds: int = 3600
    notify_on_resolution: bool = False
    phone_channel_min_severity: str = "urgent"  # sms/whatsapp only at or above this tier
    escalation_after_hours: int = 48

    # SMTP / Email
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""

    # Twilio (SMS + WhatsApp)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""
    twilio_whatsapp_from: str = ""

    # Push gateway
    push_gateway_url: str = ""
    push_gateway_key: Optional[str] = None
    push_timeout_seconds: float = 10.0

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = _env_bool("DEBUG", False)
        self.app_url = os.getenv("APP_URL", self.app_url).rstrip("/")
        self.default_timezone = os.getenv("DEFAULT_TIMEZONE", self.default_timezone)

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'ssm_compliance_dev')}"
        )
        raw_url = os.getenv("DATABASE_URL", default_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", str(self.db_connect_timeout)))

        self.internal_job_token = os.getenv("INTERNAL_JOB_TOKEN", "")

        self.sweep_timeout_seconds = float(
            os.getenv("SWEEP_TIMEOUT_SECONDS", str(self.sweep_timeout_seconds))
        )
        self.sweep_max_workers = int(os.getenv("SWEEP_MAX_WORKERS", str(self.sweep_max_workers)))
        self.sweep_lock_ttl_seconds = int(
            os.getenv("SWEEP_LOCK_TTL_SECONDS", str(self.sweep_lock_ttl_seconds))
        )
        self.legal_info_window_days = int(
            os.getenv("LEGAL_INFO_WINDOW_DAYS", str(self.legal_info_window_days))
        )

        self.notification_max_attempts = int(
            os.getenv("NOTIFICATION_MAX_ATTEMPTS", str(self.notification_max_attempts))
        )
        self.notification_backoff_base_seconds = int(
            os.getenv(
                "NOTIFICATION_BACKOFF_BASE_SECONDS",
                str(self.notification_backoff_base_seconds),
            )
        )
        self.notification_backoff_max_seconds = int(
            os.getenv(
                "NOTIFICATION_BACKOFF_MAX_SECONDS",
                str(self.notification_backoff_max_seconds),
            )
        )
        self.notify_on_resolution = _env_bool("NOTIFY_ON_RESOLUTION", False)
        self.phone_channel_min_severity = os.getenv(
            "PHONE_CHANNEL_MIN_SEVERITY", self.phone_channel_min_severity
        ).lower()
        self.escalation_after_hours = int(
            os.getenv("ESCALATION_AFTER_HOURS", str(self.escalation_after_hours))
        )

        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = os.getenv("SMTP_USER", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.smtp_from = os.getenv("SMTP_FROM", "")

        self.twilio_account_sid = os.getenv("TWILIO_ACCOUNT_SID", "")
        self.twilio_auth_token = os.getenv("TWILIO_AUTH_TOKEN", "")
        self.twilio_from_number = os.getenv("TWILIO_FROM_NUMBER", "")
        self.twilio_whatsapp_from = os.getenv("TWILIO_WHATSAPP_FROM", "")

        self.push_gateway_url = os.getenv("PUSH_GATEWAY_URL", "")
        self.push_gateway_key = os.getenv("PUSH_GATEWAY_KEY")
        self.push_timeout_seconds = float(
            os.getenv("PUSH_TIMEOUT_SECONDS", str(self.push_timeout_seconds))
        )
