"""aiohttp WebSocket transport for the session connection.

Features:
- One aiohttp ClientSession per connection attempt, closed with the socket
- Protocol-level PING/PONG handled by aiohttp (autoping)
- close() from another task wakes a pending receive()
"""

import asyncio
import logging

import aiohttp

from sessionlink.domain.exceptions.realtime import TransportError
from sessionlink.domain.model.realtime.connection import CONNECT_TIMEOUT

logger = logging.getLogger(__name__)

# Max inbound frame size (bytes)
MAX_MSG_SIZE = 4 * 1024 * 1024


class AiohttpWebSocketTransport:
    """RealtimeTransport backed by an aiohttp client WebSocket."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        ws: aiohttp.ClientWebSocketResponse,
    ) -> None:
        self._session = session
        self._ws = ws

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send_text(self, data: str) -> None:
        if self._ws.closed:
            raise TransportError("WebSocket is closed")
        try:
            await self._ws.send_str(data)
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            raise TransportError("Failed to send frame", original_error=e) from e

    async def receive(self) -> str | bytes | None:
        while True:
            msg = await self._ws.receive()

            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type == aiohttp.WSMsgType.BINARY:
                return msg.data
            if msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                logger.debug(f"WebSocket close frame received: {msg.data}")
                return None
            if msg.type == aiohttp.WSMsgType.ERROR:
                error = self._ws.exception()
                raise TransportError("WebSocket error", original_error=error)
            # PING/PONG are answered by aiohttp itself

    async def close(self) -> None:
        if not self._ws.closed:
            try:
                await asyncio.wait_for(self._ws.close(), timeout=5.0)
            except TimeoutError:
                logger.warning("WebSocket close timed out")
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {e}")
        if not self._session.closed:
            try:
                await asyncio.wait_for(self._session.close(), timeout=5.0)
            except TimeoutError:
                logger.warning("Session close timed out")
            except Exception as e:
                logger.warning(f"Error closing session: {e}")


class AiohttpTransportConnector:
    """TransportConnector that performs the upgrade with aiohttp.

    Usage:
        connector = AiohttpTransportConnector(timeout=10.0)
        transport = await connector.connect("ws://localhost:8000/ws", {})
    """

    def __init__(
        self,
        timeout: float = CONNECT_TIMEOUT,
        heartbeat: float | None = None,
        max_msg_size: int = MAX_MSG_SIZE,
    ) -> None:
        """
        Args:
            timeout: Handshake timeout in seconds.
            heartbeat: aiohttp protocol-level ping interval; None disables it.
                The connection manager runs its own application-level ping.
            max_msg_size: Max inbound frame size in bytes.
        """
        self.timeout = timeout
        self.heartbeat = heartbeat
        self.max_msg_size = max_msg_size

    async def connect(self, url: str, headers: dict[str, str]) -> AiohttpWebSocketTransport:
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=self.timeout)
        )
        try:
            ws = await session.ws_connect(
                url,
                headers=headers,
                heartbeat=self.heartbeat,
                max_msg_size=self.max_msg_size,
            )
        except aiohttp.WSServerHandshakeError as e:
            await session.close()
            raise TransportError(f"WebSocket handshake failed: {e.status}", url, e) from e
        except (aiohttp.ClientError, OSError, TimeoutError) as e:
            await session.close()
            raise TransportError("WebSocket connection failed", url, e) from e
        except BaseException:
            await session.close()
            raise
        return AiohttpWebSocketTransport(session, ws)
