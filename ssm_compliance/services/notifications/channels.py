"""Notification delivery channels.

Every channel exposes `name` and `send(address, message) -> provider message id`.
Failures are raised as DispatchError with `transient` set, so the dispatcher can
decide between retry with backoff and immediate failure.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Protocol

import httpx
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client as TwilioClient

from ssm_compliance.errors import DispatchError
from ssm_compliance.obligation_types import NotificationChannelName
from ssm_compliance.services.notifications.messages import RenderedMessage

logger = logging.getLogger(__name__)

# Provider statuses worth retrying besides 5xx
RETRYABLE_HTTP_STATUSES: frozenset[int] = frozenset({408, 429})


class NotificationChannel(Protocol):
    name: str

    def send(self, address: str, message: RenderedMessage) -> str | None: ...


def _mask(address: str) -> str:
    return address[-4:].rjust(len(address), "*")


def _http_status_is_transient(status: int | None) -> bool:
    if status is None:
        return True
    return status >= 500 or status in RETRYABLE_HTTP_STATUSES


class EmailChannel:
    """Send email over SMTP with STARTTLS."""

    name = NotificationChannelName.EMAIL.value

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        from_address: str = "",
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.timeout = timeout

    def _build(self, address: str, message: RenderedMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self.from_address
        msg["To"] = address
        msg["Message-ID"] = make_msgid(domain=self.from_address.partition("@")[2] or "localhost")
        msg.attach(MIMEText(message.text, "plain", "utf-8"))
        if message.html:
            msg.attach(MIMEText(message.html, "html", "utf-8"))
        return msg

    def send(self, address: str, message: RenderedMessage) -> str | None:
        msg = self._build(address, message)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.user:
                    server.login(self.user, self.password)
                server.sendmail(self.from_address, [address], msg.as_string())
        except smtplib.SMTPRecipientsRefused as exc:
            raise DispatchError(f"recipient refused: {exc}", channel=self.name, transient=False) from exc
        except smtplib.SMTPAuthenticationError as exc:
            raise DispatchError(
                "could not authenticate with SMTP server", channel=self.name, transient=False
            ) from exc
        except smtplib.SMTPResponseException as exc:
            # SMTP 4xx replies are temporary, 5xx permanent
            raise DispatchError(
                f"SMTP {exc.smtp_code}: {exc.smtp_error!r}",
                channel=self.name,
                transient=exc.smtp_code < 500,
            ) from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise DispatchError(f"SMTP delivery failed: {exc}", channel=self.name, transient=True) from exc
        logger.info("email_sent: recipient=%s", _mask(address))
        return msg["Message-ID"]


class SmsChannel:
    """Send SMS via Twilio."""

    name = NotificationChannelName.SMS.value

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: TwilioClient | None = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = client

    @property
    def client(self) -> TwilioClient:
        """Lazy-load Twilio client."""
        if self._client is None:
            self._client = TwilioClient(self.account_sid, self.auth_token)
        return self._client

    def _addresses(self, address: str) -> tuple[str, str]:
        return self.from_number, address

    def send(self, address: str, message: RenderedMessage) -> str | None:
        from_, to = self._addresses(address)
        try:
            sent = self.client.messages.create(body=message.short, from_=from_, to=to)
        except TwilioRestException as exc:
            raise DispatchError(
                f"Twilio {exc.status} ({exc.code}): {exc.msg}",
                channel=self.name,
                transient=_http_status_is_transient(exc.status),
            ) from exc
        except TwilioException as exc:
            raise DispatchError(f"Twilio error: {exc}", channel=self.name, transient=False) from exc
        except OSError as exc:
            # requests connection errors and timeouts are OSError subclasses
            raise DispatchError(f"Twilio unreachable: {exc}", channel=self.name, transient=True) from exc
        logger.info("%s_sent: recipient=%s sid=%s", self.name, _mask(address), sent.sid)
        return sent.sid


class WhatsAppChannel(SmsChannel):
    """Send WhatsApp messages through the Twilio WhatsApp sender."""

    name = NotificationChannelName.WHATSAPP.value

    def _addresses(self, address: str) -> tuple[str, str]:
        return f"whatsapp:{self.from_number}", f"whatsapp:{address}"


class PushChannel:
    """POST push notifications to the mobile push gateway."""

    name = NotificationChannelName.PUSH.value

    def __init__(
        self,
        gateway_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.gateway_url = gateway_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def send(self, address: str, message: RenderedMessage) -> str | None:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "token": address,
            "title": message.subject,
            "body": message.short,
            "data": {"url": message.link} if message.link else {},
        }
        try:
            response = self.client.post(self.gateway_url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise DispatchError(
                f"push gateway returned {status}",
                channel=self.name,
                transient=_http_status_is_transient(status),
            ) from exc
        except httpx.HTTPError as exc:
            raise DispatchError(
                f"push gateway unreachable: {exc}", channel=self.name, transient=True
            ) from exc
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("id") if isinstance(body, dict) else None


def build_channels(settings) -> dict[str, NotificationChannel]:
    """Construct the channels whose providers are configured."""
    channels: dict[str, NotificationChannel] = {}
    if settings.smtp_host:
        channels[EmailChannel.name] = EmailChannel(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            from_address=settings.smtp_from,
        )
    if settings.twilio_account_sid and settings.twilio_auth_token:
        if settings.twilio_from_number:
            channels[SmsChannel.name] = SmsChannel(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
                settings.twilio_from_number,
            )
        if settings.twilio_whatsapp_from:
            channels[WhatsAppChannel.name] = WhatsAppChannel(
                settings.twilio_account_sid,
                settings.twilio_auth_token,
                settings.twilio_whatsapp_from,
            )
    if settings.push_gateway_url:
        channels[PushChannel.name] = PushChannel(
            settings.push_gateway_url,
            settings.push_gateway_key,
            settings.push_timeout_seconds,
        )
    logger.info("Notification channels configured: %s", ", ".join(sorted(channels)) or "none")
    return channels
