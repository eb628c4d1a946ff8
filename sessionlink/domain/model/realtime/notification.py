"""Notification domain model - user-facing event records and transient alerts."""

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any

from sessionlink.domain.shared_kernel import ValueObject


class NotificationType(str, Enum):
    """Severity of a notification."""

    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    ERROR = "error"


class AlertVariant(str, Enum):
    """Presentation variant of a transient alert."""

    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True, kw_only=True)
class Notification(ValueObject):
    """A notification held by the aggregator.

    Instances are immutable; marking one as read produces a copy.
    """

    id: str
    type: NotificationType = NotificationType.INFO
    title: str
    message: str = ""
    timestamp: str  # ISO-8601
    read: bool = False
    link: str | None = None
    data: Any = None

    def mark_read(self) -> "Notification":
        if self.read:
            return self
        return replace(self, read=True)

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["type"] = self.type.value
        return result


@dataclass(frozen=True)
class Alert(ValueObject):
    """Transient, dismissible user alert raised for a received notification."""

    title: str
    message: str
    variant: AlertVariant = AlertVariant.DEFAULT

    @classmethod
    def for_notification(cls, notification: Notification) -> "Alert":
        variant = (
            AlertVariant.DESTRUCTIVE
            if notification.type == NotificationType.ERROR
            else AlertVariant.DEFAULT
        )
        return cls(title=notification.title, message=notification.message, variant=variant)
