"""Transport adapters."""

from sessionlink.infrastructure.adapters.secondary.transport.aiohttp_transport import (
    AiohttpTransportConnector,
    AiohttpWebSocketTransport,
)

__all__ = ["AiohttpTransportConnector", "AiohttpWebSocketTransport"]
