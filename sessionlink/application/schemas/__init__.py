"""Application schemas."""

from sessionlink.application.schemas.notification import (
    NotificationPayload,
    generate_notification_id,
    parse_notification,
)

__all__ = ["NotificationPayload", "generate_notification_id", "parse_notification"]
