"""Notification dispatcher, channels and message rendering."""

from ssm_compliance.services.notifications.channels import (
    EmailChannel,
    NotificationChannel,
    PushChannel,
    SmsChannel,
    WhatsAppChannel,
    build_channels,
)
from ssm_compliance.services.notifications.dispatcher import (
    DeliveryReport,
    NotificationDispatcher,
    build_dedup_key,
)

__all__ = [
    "DeliveryReport",
    "EmailChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "PushChannel",
    "SmsChannel",
    "WhatsAppChannel",
    "build_channels",
    "build_dedup_key",
]
