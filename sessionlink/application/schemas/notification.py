"""
Inbound notification payload schema.
"""

import logging
import secrets
import time
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from sessionlink.domain.exceptions.realtime import InvalidNotificationError
from sessionlink.domain.model.realtime.notification import Notification, NotificationType

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Notification"


def generate_notification_id() -> str:
    return f"notif-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class NotificationPayload(BaseModel):
    """Payload of an inbound "notification" frame."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | int | None = None
    type: str | None = Field(
        default=None, validation_alias=AliasChoices("type", "notificationType")
    )
    title: str | None = None
    message: str | None = None
    timestamp: str | int | float | datetime | None = None
    link: str | None = None
    data: Any = None

    def _resolve_type(self) -> NotificationType:
        if not self.type:
            return NotificationType.INFO
        try:
            return NotificationType(self.type.lower())
        except ValueError:
            logger.debug(f"Unknown notification type '{self.type}', using info")
            return NotificationType.INFO

    def _resolve_timestamp(self) -> str:
        value = self.timestamp
        if value is None or value == "":
            return utc_now_iso()
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=UTC)
            return value.isoformat()
        if isinstance(value, (int, float)):
            # epoch milliseconds
            return datetime.fromtimestamp(value / 1000, tz=UTC).isoformat()
        return value

    def to_notification(self) -> Notification:
        """Build an unread Notification, filling defaults for missing fields."""
        notification_id = str(self.id) if self.id not in (None, "") else generate_notification_id()
        return Notification(
            id=notification_id,
            type=self._resolve_type(),
            title=self.title or DEFAULT_TITLE,
            message=self.message or "",
            timestamp=self._resolve_timestamp(),
            read=False,
            link=self.link,
            data=self.data,
        )


def parse_notification(payload: Any) -> Notification:
    """Validate ``payload`` and build a Notification.

    Raises:
        InvalidNotificationError: If the payload is not a valid notification.
    """
    if not isinstance(payload, dict):
        raise InvalidNotificationError(
            "Notification payload must be an object",
            details={"payload_type": type(payload).__name__},
        )
    try:
        model = NotificationPayload.model_validate(payload)
        return model.to_notification()
    except (ValidationError, ValueError, OverflowError, OSError) as e:
        raise InvalidNotificationError("Invalid notification payload", original_error=e) from e
