"""Message dispatcher - fans decoded inbound frames out to registered handlers.

Handlers are isolated from each other: an exception raised by one handler is
logged and the remaining handlers still receive the message. Coroutine
handlers are scheduled on the running event loop and their failures are
logged when the task completes.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sessionlink.domain.exceptions.realtime import FrameDecodeError
from sessionlink.domain.model.realtime.message import InboundMessage
from sessionlink.infrastructure.realtime.codec import decode_frame
from sessionlink.infrastructure.realtime.listeners import ListenerSet, Subscription

logger = logging.getLogger(__name__)

MessageHandler = Callable[[InboundMessage], Any | Awaitable[Any]]


class MessageDispatcher:
    """Routes inbound messages by type to zero or more handlers.

    Usage:
        dispatcher = MessageDispatcher()
        sub = dispatcher.on("notification", handle_notification)
        dispatcher.dispatch_raw('{"type": "notification", "payload": {...}}')
        sub.release()
    """

    def __init__(self, debug: bool = False) -> None:
        self.debug = debug
        self._handlers: dict[str, ListenerSet[MessageHandler]] = {}
        self._channel_handlers: dict[str, ListenerSet[MessageHandler]] = {}
        self._wildcard_handlers: ListenerSet[MessageHandler] = ListenerSet()
        self._pending_tasks: set[asyncio.Task[Any]] = set()

    def on(self, message_type: str, handler: MessageHandler) -> Subscription:
        """Register ``handler`` for every message of ``message_type``."""
        if not message_type:
            raise ValueError("message_type is required")
        return self._register(self._handlers, message_type, handler)

    def on_channel(self, channel: str, handler: MessageHandler) -> Subscription:
        """Register ``handler`` for every message carried on ``channel``."""
        if not channel:
            raise ValueError("channel is required")
        return self._register(self._channel_handlers, channel, handler)

    def on_any(self, handler: MessageHandler) -> Subscription:
        """Register ``handler`` for every message regardless of type."""
        return self._wildcard_handlers.add(handler)

    @staticmethod
    def _register(
        table: dict[str, ListenerSet[MessageHandler]],
        key: str,
        handler: MessageHandler,
    ) -> Subscription:
        listeners = table.get(key)
        if listeners is None:
            listeners = table[key] = ListenerSet()
        subscription = listeners.add(handler)

        def release() -> None:
            subscription.release()
            if table.get(key) is listeners and not listeners:
                del table[key]

        return Subscription(release)

    def has_handlers(self, message_type: str) -> bool:
        return bool(self._handlers.get(message_type))

    def dispatch_raw(self, frame: str | bytes) -> int:
        """Decode ``frame`` and dispatch it. Malformed frames are dropped."""
        try:
            message = decode_frame(frame)
        except FrameDecodeError as e:
            logger.warning(f"[Dispatcher] Dropping malformed frame: {e}")
            return 0
        return self.dispatch(message)

    def dispatch(self, message: InboundMessage) -> int:
        """Deliver ``message`` to its handlers. Returns how many were invoked."""
        typed = self._handlers.get(message.type)
        by_channel = self._channel_handlers.get(message.channel) if message.channel else None

        if not typed and not by_channel and not self._wildcard_handlers:
            if self.debug:
                logger.info(f"[Dispatcher] No handler for message type '{message.type}'")
            return 0

        invoked = 0
        for listeners in (typed, by_channel, self._wildcard_handlers):
            if not listeners:
                continue
            for handler in listeners:
                invoked += 1
                self._invoke(handler, message)
        return invoked

    def _invoke(self, handler: MessageHandler, message: InboundMessage) -> None:
        try:
            result = handler(message)
        except Exception:
            logger.exception(f"[Dispatcher] Handler error for message type '{message.type}'")
            return
        if inspect.isawaitable(result):
            self._schedule(result, message)

    def _schedule(self, awaitable: Awaitable[Any], message: InboundMessage) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.error(
                f"[Dispatcher] No event loop available for async handler of '{message.type}'"
            )
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending_tasks.add(task)
        task.add_done_callback(lambda t: self._on_task_done(t, message.type))

    def _on_task_done(self, task: asyncio.Task[Any], message_type: str) -> None:
        self._pending_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"[Dispatcher] Async handler error for message type '{message_type}': {error}",
                exc_info=error,
            )

    def clear(self) -> None:
        """Drop every registration and cancel in-flight async handlers."""
        for listeners in (*self._handlers.values(), *self._channel_handlers.values()):
            listeners.clear()
        self._handlers.clear()
        self._channel_handlers.clear()
        self._wildcard_handlers.clear()
        for task in list(self._pending_tasks):
            task.cancel()
