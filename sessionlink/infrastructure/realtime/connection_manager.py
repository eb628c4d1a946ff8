"""Session connection manager.

This module owns the single persistent WebSocket connection of a session. It
drives the connection state machine, reconnects with exponential backoff,
keeps the link alive with application-level pings and hands every inbound
frame to the message dispatcher.

State machine:
    CLOSED --connect()--> CONNECTING --success--> OPEN --failure/close--> CLOSED
    CONNECTING --failure--> CLOSED
    CLOSED --(reconnect enabled, backoff elapsed)--> CONNECTING
    any --destroy()--> CLOSING --> CLOSED (terminal)

Transport failures never raise to callers; they only show up as a transition
to CLOSED followed by the reconnect policy.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from typing import Any

from sessionlink.domain.exceptions.realtime import FrameDecodeError
from sessionlink.domain.model.realtime.connection import ConnectionConfig, ConnectionState
from sessionlink.domain.model.realtime.message import PONG, OutboundMessage
from sessionlink.domain.ports.realtime.transport_port import (
    RealtimeTransport,
    TransportConnector,
)
from sessionlink.infrastructure.adapters.secondary.transport.aiohttp_transport import (
    AiohttpTransportConnector,
)
from sessionlink.infrastructure.realtime.codec import decode_frame, encode_frame
from sessionlink.infrastructure.realtime.dispatcher import MessageDispatcher, MessageHandler
from sessionlink.infrastructure.realtime.listeners import ListenerSet, Subscription

logger = logging.getLogger(__name__)

StatusCallback = Callable[[ConnectionState], Any]


class ConnectionManager:
    """Manages the one long-lived connection of a session.

    This manager handles:
    - Establishing the WebSocket connection (optionally on construction)
    - Automatic reconnection with exponential backoff and jitter
    - Keepalive pings and dead-link detection
    - Non-blocking, fail-soft sends
    - Routing inbound frames to the dispatcher
    - Idempotent teardown

    Usage:
        manager = ConnectionManager(ConnectionConfig(url="ws://localhost:8000/ws"))
        unsubscribe = manager.on_status_change(lambda state: print(state))
        manager.on("notification", handle_notification)
        manager.send(OutboundMessage(type="chat", payload={"text": "hi"}))

        # On shutdown:
        manager.destroy()
        await manager.wait_closed()
    """

    def __init__(
        self,
        config: ConnectionConfig,
        connector: TransportConnector | None = None,
        dispatcher: MessageDispatcher | None = None,
    ) -> None:
        """Initialize the connection manager.

        Args:
            config: Connection configuration.
            connector: Transport factory; defaults to aiohttp.
            dispatcher: Dispatcher receiving inbound messages. A private one is
                created when omitted.
        """
        self._config = config
        self._connector = connector or AiohttpTransportConnector(timeout=config.connect_timeout)
        self._owns_dispatcher = dispatcher is None
        self._dispatcher = dispatcher or MessageDispatcher(debug=config.debug)

        self._state = ConnectionState.CLOSED
        self._status_listeners: ListenerSet[StatusCallback] = ListenerSet()
        self._auth_token: str | None = None
        self._destroyed = False

        self._transport: RealtimeTransport | None = None
        self._outbox: asyncio.Queue[str] | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._close_tasks: set[asyncio.Task[None]] = set()

        self._reconnect_attempts = 0
        self._skip_backoff = False
        self._wake = asyncio.Event()
        self._last_frame_at = 0.0

        if config.auto_connect:
            self.connect()

    # -- Properties -----------------------------------------------------------

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def dispatcher(self) -> MessageDispatcher:
        return self._dispatcher

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def reconnect_attempts(self) -> int:
        """Consecutive failed attempts since the last successful open."""
        return self._reconnect_attempts

    # -- Observers ------------------------------------------------------------

    def on_status_change(self, callback: StatusCallback, replay: bool = False) -> Subscription:
        """Observe every state transition.

        Args:
            callback: Called synchronously with the new state.
            replay: Also call it right away with the current state.

        Returns:
            Subscription handle; release it to stop notifications.
        """
        subscription = self._status_listeners.add(callback)
        if replay:
            self._notify(callback, self._state)
        return subscription

    def on(self, message_type: str, handler: MessageHandler) -> Subscription:
        """Register an inbound message handler on the dispatcher."""
        return self._dispatcher.on(message_type, handler)

    # -- Lifecycle ------------------------------------------------------------

    def connect(self) -> None:
        """Start the connection loop if it is not already running."""
        if self._destroyed:
            logger.warning("[ConnectionManager] connect() called after destroy(), ignoring")
            return
        if self._run_task is not None and not self._run_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "[ConnectionManager] No running event loop, connection deferred until connect()"
            )
            return

        self._reconnect_attempts = 0
        self._skip_backoff = False
        self._set_state(ConnectionState.CONNECTING)
        self._run_task = loop.create_task(self._run(), name="sessionlink-connection")

    def reconnect(self) -> None:
        """Drop the current connection and reconnect without waiting for backoff."""
        if self._destroyed:
            return
        logger.info("[ConnectionManager] Manual reconnect triggered")
        self._reconnect_attempts = 0
        if self._run_task is None or self._run_task.done():
            self.connect()
            return
        self._skip_backoff = True
        self._wake.set()
        if self._transport is not None:
            self._schedule_close(self._transport)

    def destroy(self) -> None:
        """Close the connection for good. Safe to call more than once."""
        if self._destroyed:
            return
        self._destroyed = True
        logger.info(f"[ConnectionManager] Destroying connection to {self._config.url}")

        if self._state != ConnectionState.CLOSED:
            self._set_state(ConnectionState.CLOSING)

        self._wake.set()
        for task in (self._heartbeat_task, self._writer_task, self._run_task):
            if task is not None and not task.done():
                task.cancel()
        self._heartbeat_task = None
        self._writer_task = None
        self._outbox = None

        transport, self._transport = self._transport, None
        if transport is not None:
            self._schedule_close(transport)

        self._set_state(ConnectionState.CLOSED)
        self._status_listeners.clear()
        if self._owns_dispatcher:
            self._dispatcher.clear()

    async def wait_closed(self) -> None:
        """Wait until background tasks started by this manager have finished."""
        tasks = [t for t in (self._run_task, *self._close_tasks) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> ConnectionManager:
        self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.destroy()
        await self.wait_closed()

    # -- Identity -------------------------------------------------------------

    def set_auth_token(self, token: str | None) -> None:
        """Attach the session identity without reopening the connection.

        The token is sent as a bearer header on every later handshake and, if
        the connection is open, re-sent in place as an auth frame.
        """
        if token == self._auth_token:
            return
        self._auth_token = token
        if token and self._state == ConnectionState.OPEN:
            self._enqueue(OutboundMessage.auth(token))

    def _handshake_headers(self) -> dict[str, str]:
        if self._auth_token:
            return {"Authorization": f"Bearer {self._auth_token}"}
        return {}

    # -- Sending --------------------------------------------------------------

    def send(self, message: OutboundMessage | Mapping[str, Any]) -> bool:
        """Hand a frame to the transport.

        Returns:
            True if the frame was queued on the open connection, False if the
            connection is not open or the frame was rejected. Never raises.
        """
        if self._state != ConnectionState.OPEN or self._outbox is None:
            self._trace(f"[ConnectionManager] Cannot send, connection is {self._state.value}")
            return False
        if not isinstance(message, OutboundMessage):
            msg_type = message.get("type") if isinstance(message, Mapping) else None
            if not isinstance(msg_type, str) or not msg_type:
                logger.warning("[ConnectionManager] Refusing to send a message without a type")
                return False
            message = OutboundMessage(
                type=msg_type, payload=message.get("payload"), channel=message.get("channel")
            )
        return self._enqueue(message)

    def _enqueue(self, message: OutboundMessage) -> bool:
        if self._outbox is None:
            return False
        try:
            text = encode_frame(message)
        except (TypeError, ValueError) as e:
            logger.error(f"[ConnectionManager] Cannot encode '{message.type}' frame: {e}")
            return False
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning(
                f"[ConnectionManager] Outbound queue full, dropping '{message.type}' frame"
            )
            return False
        self._trace(f"[ConnectionManager] -> {text}")
        return True

    # -- Connection loop ------------------------------------------------------

    async def _run(self) -> None:
        """Run the connection loop with automatic reconnection."""
        try:
            while not self._destroyed:
                await self._connect_once()
                if self._destroyed:
                    break
                # A manual reconnect() retries even when automatic reconnection is off
                if not self._config.reconnect and not self._skip_backoff:
                    break
                if not await self._wait_before_reconnect():
                    break
        except asyncio.CancelledError:
            logger.debug("[ConnectionManager] Connection loop cancelled")
        except Exception as e:
            logger.exception(f"[ConnectionManager] Connection loop crashed: {e}")
            if not self._destroyed:
                self._set_state(ConnectionState.CLOSED)

    async def _connect_once(self) -> None:
        """Open one connection and pump it until it closes."""
        url = self._config.url
        self._set_state(ConnectionState.CONNECTING)
        try:
            async with asyncio.timeout(self._config.connect_timeout):
                transport = await self._connector.connect(url, self._handshake_headers())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[ConnectionManager] Connection to {url} failed: {e}")
            self._set_state(ConnectionState.CLOSED)
            return

        if self._destroyed:
            await self._close_transport(transport)
            return

        loop = asyncio.get_running_loop()
        self._transport = transport
        self._outbox = asyncio.Queue(maxsize=self._config.outbound_queue_size)
        self._last_frame_at = loop.time()
        self._reconnect_attempts = 0
        self._skip_backoff = False
        if self._auth_token:
            self._enqueue(OutboundMessage.auth(self._auth_token))
        self._writer_task = loop.create_task(self._write_loop(transport, self._outbox))
        if self._config.ping_interval:
            self._heartbeat_task = loop.create_task(self._heartbeat_loop(transport))

        logger.info(f"[ConnectionManager] Connected: {url}")
        self._set_state(ConnectionState.OPEN)
        try:
            await self._read_loop(transport)
        finally:
            await self._teardown(transport)

        if not self._destroyed:
            logger.warning(f"[ConnectionManager] Connection lost: {url}")
            self._set_state(ConnectionState.CLOSED)

    async def _wait_before_reconnect(self) -> bool:
        """Sleep for the backoff delay.

        Returns:
            True to try again, False if the loop should stop.
        """
        if self._skip_backoff:
            self._skip_backoff = False
            return not self._destroyed

        self._reconnect_attempts += 1
        policy = self._config.backoff
        if policy.exhausted(self._reconnect_attempts):
            logger.error(
                f"[ConnectionManager] Maximum reconnection attempts ({policy.max_attempts}) "
                f"reached for {self._config.url}"
            )
            return False

        delay = policy.delay_for(self._reconnect_attempts)
        logger.info(
            f"[ConnectionManager] Reconnecting in {delay:.1f}s "
            f"(attempt {self._reconnect_attempts})"
        )
        self._wake.clear()
        with contextlib.suppress(TimeoutError):
            async with asyncio.timeout(delay):
                await self._wake.wait()
        self._skip_backoff = False
        return not self._destroyed

    async def _read_loop(self, transport: RealtimeTransport) -> None:
        while True:
            try:
                frame = await transport.receive()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"[ConnectionManager] Receive failed: {e}")
                return
            if frame is None:
                logger.info("[ConnectionManager] Connection closed by server")
                return
            self._last_frame_at = asyncio.get_running_loop().time()
            self._handle_frame(frame)

    def _handle_frame(self, frame: str | bytes) -> None:
        self._trace(f"[ConnectionManager] <- {frame!r}")
        try:
            message = decode_frame(frame)
        except FrameDecodeError as e:
            logger.warning(f"[ConnectionManager] Dropping malformed frame: {e}")
            return
        if message.type == PONG:
            return
        try:
            self._dispatcher.dispatch(message)
        except Exception:
            logger.exception(f"[ConnectionManager] Dispatch failed for '{message.type}'")

    async def _write_loop(self, transport: RealtimeTransport, outbox: asyncio.Queue[str]) -> None:
        while True:
            text = await outbox.get()
            try:
                await transport.send_text(text)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"[ConnectionManager] Send failed, dropping connection: {e}")
                await self._close_transport(transport)
                return

    async def _heartbeat_loop(self, transport: RealtimeTransport) -> None:
        interval = self._config.ping_interval or 0
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(interval)
            idle = loop.time() - self._last_frame_at
            if idle > self._config.pong_timeout:
                logger.warning(
                    f"[ConnectionManager] No frames for {idle:.0f}s, dropping connection"
                )
                await self._close_transport(transport)
                return
            self._enqueue(OutboundMessage.ping())

    async def _teardown(self, transport: RealtimeTransport) -> None:
        """Stop per-connection tasks and close the transport."""
        for task in (self._heartbeat_task, self._writer_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task
        self._heartbeat_task = None
        self._writer_task = None
        if self._transport is transport:
            self._transport = None
            self._outbox = None
        await self._close_transport(transport)

    async def _close_transport(self, transport: RealtimeTransport) -> None:
        try:
            await transport.close()
        except Exception as e:
            logger.warning(f"[ConnectionManager] Error closing transport: {e}")

    def _schedule_close(self, transport: RealtimeTransport) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("[ConnectionManager] No event loop available to close transport")
            return
        task = loop.create_task(self._close_transport(transport))
        self._close_tasks.add(task)
        task.add_done_callback(self._close_tasks.discard)

    # -- State ----------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        if self._destroyed and state not in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return
        previous, self._state = self._state, state
        self._trace(f"[ConnectionManager] State {previous.value} -> {state.value}")
        for callback in self._status_listeners:
            # A listener may have moved the state on, e.g. by calling destroy()
            if self._state is not state:
                break
            self._notify(callback, state)

    @staticmethod
    def _notify(callback: StatusCallback, state: ConnectionState) -> None:
        try:
            callback(state)
        except Exception:
            logger.exception("[ConnectionManager] Status listener error")

    def _trace(self, message: str) -> None:
        if self._config.debug:
            logger.info(message)
        else:
            logger.debug(message)
