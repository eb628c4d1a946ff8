"""Realtime session - composition root for one authenticated client session.

Wires the connection manager, channel registry, dispatcher and notification
aggregator together and keeps the per-identity channels in sync with the
session identity.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from sessionlink.application.services.notification_aggregator import (
    ChangeCallback,
    NotificationAggregator,
)
from sessionlink.domain.model.realtime.connection import ConnectionConfig, ConnectionState
from sessionlink.domain.model.realtime.identity import SessionIdentity, channels_for_identity
from sessionlink.domain.model.realtime.message import NOTIFICATION_READ, OutboundMessage
from sessionlink.domain.model.realtime.notification import Notification
from sessionlink.domain.ports.realtime.alert_port import AlertSink
from sessionlink.domain.ports.realtime.transport_port import TransportConnector
from sessionlink.infrastructure.realtime.channel_registry import ChannelSubscriptionRegistry
from sessionlink.infrastructure.realtime.connection_manager import (
    ConnectionManager,
    StatusCallback,
)
from sessionlink.infrastructure.realtime.dispatcher import MessageDispatcher, MessageHandler
from sessionlink.infrastructure.realtime.listeners import Subscription

logger = logging.getLogger(__name__)


class RealtimeSession:
    """One realtime session: a connection plus everything layered on it.

    Usage:
        async with RealtimeSession(ConnectionConfig(url="ws://localhost:8000/ws")) as session:
            session.set_identity(SessionIdentity(user_id=42, role="admin", token=jwt))
            session.on_notifications_change(render_bell)
            ...
    """

    def __init__(
        self,
        config: ConnectionConfig,
        connector: TransportConnector | None = None,
        alert_sink: AlertSink | None = None,
    ) -> None:
        self._config = config
        self._identity: SessionIdentity | None = None
        self._identity_channels: tuple[str, ...] = ()
        self._closed = False

        self._dispatcher = MessageDispatcher(debug=config.debug)
        # Registry and aggregator must observe the manager before it connects
        self._manager = ConnectionManager(
            replace(config, auto_connect=False),
            connector=connector,
            dispatcher=self._dispatcher,
        )
        self._registry = ChannelSubscriptionRegistry(self._manager)
        self._aggregator = NotificationAggregator(
            self._dispatcher,
            alert_sink=alert_sink,
            read_receipt_sender=self._send_read_receipt if config.read_receipts else None,
        )

        if config.auto_connect:
            self._manager.connect()

    # -- Components -----------------------------------------------------------

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @property
    def registry(self) -> ChannelSubscriptionRegistry:
        return self._registry

    @property
    def aggregator(self) -> NotificationAggregator:
        return self._aggregator

    @property
    def dispatcher(self) -> MessageDispatcher:
        return self._dispatcher

    # -- Lifecycle ------------------------------------------------------------

    def start(self) -> None:
        """Open the connection (no-op if it is already running)."""
        if self._closed:
            logger.warning("[RealtimeSession] start() called on a closed session")
            return
        self._manager.connect()

    def close(self) -> None:
        """Tear the session down. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._aggregator.close()
        self._registry.close()
        self._manager.destroy()
        self._dispatcher.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        self.close()
        await self._manager.wait_closed()

    async def __aenter__(self) -> RealtimeSession:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    # -- Identity -------------------------------------------------------------

    @property
    def identity(self) -> SessionIdentity | None:
        return self._identity

    def set_identity(self, identity: SessionIdentity | None) -> None:
        """Attach (or clear) the session identity.

        The auth token is updated in place and the identity-derived channels
        are diffed against the previous identity's; channels subscribed
        directly through ``subscribe()`` are left alone. Switching to another
        user also drops the previous user's notifications.
        """
        previous = self._identity
        self._identity = identity

        if previous is not None and (identity is None or identity.user_id != previous.user_id):
            logger.info("[RealtimeSession] Identity changed, clearing notifications")
            self._aggregator.clear()

        self._manager.set_auth_token(identity.token if identity else None)

        desired = channels_for_identity(identity)
        self._registry.sync(desired, within=self._identity_channels)
        self._identity_channels = desired

    # -- Connection -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._manager.state

    @property
    def is_connected(self) -> bool:
        return self._manager.is_connected

    def on_status_change(self, callback: StatusCallback, replay: bool = False) -> Subscription:
        return self._manager.on_status_change(callback, replay=replay)

    def on(self, message_type: str, handler: MessageHandler) -> Subscription:
        return self._dispatcher.on(message_type, handler)

    def send(self, message_type: str, payload: Any = None, channel: str | None = None) -> bool:
        """Send an application frame. Returns False when not connected."""
        return self._manager.send(
            OutboundMessage(type=message_type, payload=payload, channel=channel)
        )

    def reconnect(self) -> None:
        self._manager.reconnect()

    # -- Channels -------------------------------------------------------------

    @property
    def channels(self) -> tuple[str, ...]:
        return self._registry.channels

    def subscribe(self, channel: str) -> bool:
        return self._registry.subscribe(channel)

    def unsubscribe(self, channel: str) -> bool:
        return self._registry.unsubscribe(channel)

    # -- Notifications --------------------------------------------------------

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return self._aggregator.notifications

    @property
    def unread_count(self) -> int:
        return self._aggregator.unread_count

    def on_notifications_change(self, callback: ChangeCallback) -> Subscription:
        return self._aggregator.on_change(callback)

    def mark_as_read(self, notification_id: str) -> bool:
        return self._aggregator.mark_as_read(notification_id)

    def mark_all_as_read(self) -> int:
        return self._aggregator.mark_all_as_read()

    def remove_notification(self, notification_id: str) -> bool:
        return self._aggregator.remove(notification_id)

    def clear_notifications(self) -> None:
        self._aggregator.clear()

    def _send_read_receipt(self, notification_ids: list[str]) -> None:
        sent = self._manager.send(
            OutboundMessage(type=NOTIFICATION_READ, payload={"ids": notification_ids})
        )
        if not sent:
            logger.debug(
                f"[RealtimeSession] Read receipt for {len(notification_ids)} "
                "notification(s) not sent, connection is not open"
            )
