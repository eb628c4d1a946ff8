"""Channel subscription registry.

Tracks the desired set of logical channels for the session and re-applies it
on every transition into OPEN; a fresh connection has no memory of the
subscriptions made on the previous one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sessionlink.domain.model.realtime.connection import ConnectionState
from sessionlink.domain.model.realtime.message import (
    SUBSCRIBE,
    UNSUBSCRIBE,
    InboundMessage,
    OutboundMessage,
)
from sessionlink.infrastructure.realtime.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


class ChannelSubscriptionRegistry:
    """Desired channel set of a session.

    Usage:
        registry = ChannelSubscriptionRegistry(manager)
        registry.subscribe("general")            # queued until OPEN
        registry.sync(["general", "user:42"])    # diff against the current set
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager
        # dict keeps insertion order for deterministic re-subscription
        self._channels: dict[str, None] = {}
        self._acknowledged: set[str] = set()
        # Channels already subscribed on the current connection
        self._sent: set[str] = set()
        self._subscriptions = [
            manager.on_status_change(self._on_status_change),
            manager.dispatcher.on(SUBSCRIBE, self._on_ack),
            manager.dispatcher.on(UNSUBSCRIBE, self._on_ack),
        ]

    @property
    def channels(self) -> tuple[str, ...]:
        """Desired channels, in subscription order."""
        return tuple(self._channels)

    @property
    def acknowledged(self) -> frozenset[str]:
        """Channels the server confirmed on the current connection."""
        return frozenset(self._acknowledged)

    def __contains__(self, channel: object) -> bool:
        return channel in self._channels

    def subscribe(self, channel: str) -> bool:
        """Add ``channel`` to the desired set.

        Returns:
            True if the channel was added, False if it was already present.
        """
        channel = self._validate(channel)
        if channel in self._channels:
            return False
        self._channels[channel] = None
        self._send_subscribe(channel)
        logger.debug(f"[ChannelRegistry] Subscribed to channel: {channel}")
        return True

    def unsubscribe(self, channel: str) -> bool:
        """Remove ``channel`` from the desired set.

        Returns:
            True if the channel was removed, False if it was not present.
        """
        channel = self._validate(channel)
        if channel not in self._channels:
            return False
        del self._channels[channel]
        self._acknowledged.discard(channel)
        self._sent.discard(channel)
        if self._manager.is_connected:
            self._manager.send(OutboundMessage.unsubscribe(channel))
        logger.debug(f"[ChannelRegistry] Unsubscribed from channel: {channel}")
        return True

    def sync(self, channels: Iterable[str], within: Iterable[str] | None = None) -> None:
        """Make the desired set equal to ``channels``, emitting only the difference.

        Args:
            channels: Channels that must be subscribed.
            within: When given, only these channels may be removed; anything
                else in the desired set is left alone.
        """
        desired = dict.fromkeys(self._validate(c) for c in channels)
        removable = self._channels if within is None else set(within)
        stale = [c for c in self._channels if c not in desired and c in removable]
        for channel in stale:
            self.unsubscribe(channel)
        for channel in desired:
            self.subscribe(channel)

    def close(self) -> None:
        """Stop following the connection. The desired set is kept."""
        for subscription in self._subscriptions:
            subscription.release()
        self._subscriptions.clear()
        self._acknowledged.clear()
        self._sent.clear()

    def _on_status_change(self, state: ConnectionState) -> None:
        if state != ConnectionState.OPEN:
            self._sent.clear()
            self._acknowledged.clear()
            return
        # Observers notified earlier may already have subscribed on this connection
        pending = [c for c in self._channels if c not in self._sent]
        if pending:
            logger.info(f"[ChannelRegistry] Restoring {len(pending)} subscriptions")
        for channel in pending:
            self._send_subscribe(channel)

    def _send_subscribe(self, channel: str) -> None:
        if not self._manager.is_connected or channel in self._sent:
            return
        if self._manager.send(OutboundMessage.subscribe(channel)):
            self._sent.add(channel)

    def _on_ack(self, message: InboundMessage) -> None:
        payload = message.payload if isinstance(message.payload, dict) else {}
        channel = message.channel or payload.get("channel")
        status = payload.get("status")
        if not isinstance(channel, str):
            return
        if status not in (None, "success"):
            logger.warning(
                f"[ChannelRegistry] Server rejected {message.type} for {channel}: {status}"
            )
            return
        if message.type == SUBSCRIBE and channel in self._channels:
            self._acknowledged.add(channel)
        elif message.type == UNSUBSCRIBE:
            self._acknowledged.discard(channel)

    @staticmethod
    def _validate(channel: str) -> str:
        if not isinstance(channel, str) or not channel.strip():
            raise ValueError("Channel must be a non-empty string")
        return channel
