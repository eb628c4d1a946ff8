"""Notification aggregator.

Consumes "notification" messages from the dispatcher and keeps the session's
notification collection, newest first. The unread count is always derived
from the collection.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from sessionlink.application.schemas.notification import parse_notification
from sessionlink.domain.exceptions.realtime import InvalidNotificationError
from sessionlink.domain.model.realtime.message import NOTIFICATION, InboundMessage
from sessionlink.domain.model.realtime.notification import Alert, Notification
from sessionlink.domain.ports.realtime.alert_port import AlertSink
from sessionlink.infrastructure.adapters.secondary.alerts.logging_alert_sink import (
    LoggingAlertSink,
)
from sessionlink.infrastructure.realtime.dispatcher import MessageDispatcher
from sessionlink.infrastructure.realtime.listeners import ListenerSet, Subscription

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Sequence[Notification]], Any]
ReadReceiptSender = Callable[[list[str]], Any]


class NotificationAggregator:
    """In-memory notification collection fed by the dispatcher.

    Usage:
        aggregator = NotificationAggregator(dispatcher, alert_sink=toaster)
        aggregator.on_change(lambda items: bell.render(items))
        aggregator.mark_as_read("notif-1")
    """

    def __init__(
        self,
        dispatcher: MessageDispatcher,
        alert_sink: AlertSink | None = None,
        read_receipt_sender: ReadReceiptSender | None = None,
    ) -> None:
        """
        Args:
            dispatcher: Dispatcher delivering inbound messages.
            alert_sink: Where transient alerts go; logs them when omitted.
            read_receipt_sender: Optional callable receiving ids newly marked
                read. Read state stays local when omitted.
        """
        self._notifications: list[Notification] = []
        self._alert_sink = alert_sink or LoggingAlertSink()
        self._read_receipt_sender = read_receipt_sender
        self._change_listeners: ListenerSet[ChangeCallback] = ListenerSet()
        self._subscription: Subscription | None = dispatcher.on(NOTIFICATION, self._on_message)

    @property
    def notifications(self) -> tuple[Notification, ...]:
        """All notifications, newest first."""
        return tuple(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.read)

    def __len__(self) -> int:
        return len(self._notifications)

    def get(self, notification_id: str) -> Notification | None:
        for notification in self._notifications:
            if notification.id == notification_id:
                return notification
        return None

    def on_change(self, callback: ChangeCallback) -> Subscription:
        """Observe the collection; called with the new contents after every change."""
        return self._change_listeners.add(callback)

    def receive(self, payload: Any) -> Notification | None:
        """Add a notification from a raw payload.

        Returns:
            The stored notification, or None if the payload was dropped.
        """
        try:
            notification = parse_notification(payload)
        except InvalidNotificationError as e:
            logger.warning(f"[NotificationAggregator] Dropping notification: {e}")
            return None

        if self.get(notification.id) is not None:
            logger.debug(f"[NotificationAggregator] Duplicate notification {notification.id}")
            return None

        self._notifications.insert(0, notification)
        self._changed()
        self._raise_alert(notification)
        return notification

    def mark_as_read(self, notification_id: str) -> bool:
        """Mark one notification as read. Unknown ids are ignored."""
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                if notification.read:
                    return False
                self._notifications[index] = notification.mark_read()
                self._changed()
                self._send_read_receipt([notification_id])
                return True
        return False

    def mark_all_as_read(self) -> int:
        """Mark every notification as read. Returns how many changed."""
        changed: list[str] = []
        for index, notification in enumerate(self._notifications):
            if not notification.read:
                self._notifications[index] = notification.mark_read()
                changed.append(notification.id)
        if changed:
            self._changed()
            self._send_read_receipt(changed)
        return len(changed)

    def remove(self, notification_id: str) -> bool:
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                del self._notifications[index]
                self._changed()
                return True
        return False

    def clear(self) -> None:
        if not self._notifications:
            return
        self._notifications.clear()
        self._changed()

    def close(self) -> None:
        """Stop receiving notifications from the dispatcher."""
        if self._subscription is not None:
            self._subscription.release()
            self._subscription = None
        self._change_listeners.clear()

    def _on_message(self, message: InboundMessage) -> None:
        self.receive(message.payload)

    def _raise_alert(self, notification: Notification) -> None:
        try:
            self._alert_sink.show(Alert.for_notification(notification))
        except Exception:
            logger.exception("[NotificationAggregator] Alert sink error")

    def _send_read_receipt(self, notification_ids: list[str]) -> None:
        if self._read_receipt_sender is None:
            return
        try:
            self._read_receipt_sender(notification_ids)
        except Exception:
            logger.exception("[NotificationAggregator] Read receipt sender error")

    def _changed(self) -> None:
        snapshot = tuple(self._notifications)
        for callback in self._change_listeners:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("[NotificationAggregator] Change listener error")
