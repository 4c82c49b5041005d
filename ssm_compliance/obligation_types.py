"""Canonical obligation taxonomy: entity kinds, categories, severity tiers, statuses."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EntityKind(str, Enum):
    """Tracked entity variants. Each kind belongs to exactly one category."""

    MEDICAL_EXAMINATION = "medical_examination"
    TRAINING_ASSIGNMENT = "training_assignment"
    EQUIPMENT_CHECK = "equipment_check"
    LEGAL_OBLIGATION = "legal_obligation"


class Category(str, Enum):
    """Compliance score categories."""

    MEDICAL = "medical"
    TRAINING = "training"
    EQUIPMENT = "equipment"
    LEGAL = "legal"


KIND_CATEGORY: dict[EntityKind, Category] = {
    EntityKind.MEDICAL_EXAMINATION: Category.MEDICAL,
    EntityKind.TRAINING_ASSIGNMENT: Category.TRAINING,
    EntityKind.EQUIPMENT_CHECK: Category.EQUIPMENT,
    EntityKind.LEGAL_OBLIGATION: Category.LEGAL,
}


_SEVERITY_RANK: dict[str, int] = {
    "ok": 0,
    "info": 1,
    "attention": 2,
    "warning": 3,
    "urgent": 4,
    "expired": 5,
}


class SeverityTier(str, Enum):
    """Urgency tier derived from days-until-due.

    Total order: expired > urgent > warning > attention > info > ok.
    """

    OK = "ok"
    INFO = "info"
    ATTENTION = "attention"
    WARNING = "warning"
    URGENT = "urgent"
    EXPIRED = "expired"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    @property
    def is_alert_worthy(self) -> bool:
        return self is not SeverityTier.OK

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SeverityTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, SeverityTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, SeverityTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, SeverityTier):
            return NotImplemented
        return self.rank >= other.rank


class AlertStatus(str, Enum):
    """Alert lifecycle status."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"
    RESOLVED = "resolved"

    @property
    def is_terminal(self) -> bool:
        return self in (AlertStatus.DISMISSED, AlertStatus.RESOLVED)


OPEN_ALERT_STATUSES: tuple[str, ...] = (AlertStatus.ACTIVE.value, AlertStatus.ACKNOWLEDGED.value)


class NotificationChannelName(str, Enum):
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"
    WHATSAPP = "whatsapp"


class JobStatus(str, Enum):
    PENDING = "pending"
    # Claimed by a delivery worker; not_before holds the claim lease
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class DispatchTrigger(str, Enum):
    CREATED = "created"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    REMINDER = "reminder"


@dataclass(frozen=True, order=True)
class EntityRef:
    """Reference to one tracked entity: kind + id."""

    kind: EntityKind
    id: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @property
    def category(self) -> Category:
        return KIND_CATEGORY[self.kind]
