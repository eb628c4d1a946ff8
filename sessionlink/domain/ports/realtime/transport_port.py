"""
Realtime transport ports - abstract interface for the session connection.

These ports decouple the connection manager from the WebSocket library so
the state machine can be driven by any transport (aiohttp, in-memory fakes).
"""

from abc import abstractmethod
from typing import Protocol, runtime_checkable


@runtime_checkable
class RealtimeTransport(Protocol):
    """One open, bidirectional frame connection."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once the connection can no longer carry frames."""
        ...

    @abstractmethod
    async def send_text(self, data: str) -> None:
        """
        Send one text frame.

        Raises:
            TransportError: If the frame could not be written.
        """
        ...

    @abstractmethod
    async def receive(self) -> str | bytes | None:
        """
        Wait for the next data frame.

        Returns:
            The frame, or None when the peer closed the connection.

        Raises:
            TransportError: If the connection failed.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        ...


@runtime_checkable
class TransportConnector(Protocol):
    """Opens transports; one call per connection attempt."""

    @abstractmethod
    async def connect(self, url: str, headers: dict[str, str]) -> RealtimeTransport:
        """
        Perform the connection upgrade.

        Args:
            url: Server URL (ws:// or wss://).
            headers: Extra handshake headers (e.g. Authorization).

        Raises:
            TransportError: If the handshake fails.
        """
        ...
