"""Transport layer: TCP socket, connection actor and transport errors."""

from devicelink.transport.connection_manager import (
    ConnectionEvent,
    ConnectionManager,
    ConnectionState,
    EventKind,
)
from devicelink.transport.exceptions import CorrelationTimeout, TransportError
from devicelink.transport.socket_abstraction import TCPConnection

__all__ = [
    "ConnectionEvent",
    "ConnectionManager",
    "ConnectionState",
    "CorrelationTimeout",
    "EventKind",
    "TCPConnection",
    "TransportError",
]
