"""Packet type definitions and dataclass structures for the device protocol.

Packets are JSON objects carried inside length-prefixed frames.

Packet Type Overview:
- INFO: Client → Device on every connect; reply carries device identity
- GET/SET: Client → Device commands; reply echoes ``id`` and carries full state in ``data``
- PING: Client → Device keepalive; any inbound packet counts as the acknowledgment
- ERROR: Device → Client only; carries ``message``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class PacketType(StrEnum):
    """Values of the packet ``type`` field."""

    ERROR = "ERROR"
    PING = "PING"
    INFO = "INFO"
    SET = "SET"
    GET = "GET"


# Packet types a caller may send through the dispatcher
COMMAND_TYPES = frozenset({PacketType.GET, PacketType.SET})


@dataclass
class OutboundPacket:
    """Packet written to the device.

    Attributes:
        type: Packet type (never ERROR)
        id: Correlation id, echoed by the device on the reply
        body: Operation payload

    """

    type: PacketType
    id: str | None = None
    body: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation, omitting unset optional fields."""
        wire: dict[str, Any] = {"type": str(self.type)}
        if self.id is not None:
            wire["id"] = self.id
        if self.body is not None:
            wire["body"] = self.body
        return wire


@dataclass
class InboundPacket:
    """Packet read from the device.

    Attributes:
        type: Raw packet type string (may be a type this client does not know)
        client_id: Connection identifier assigned by the device
        id: Correlation id echoed from the request, if any
        message: Error text (ERROR packets only)
        data: Operation payload
        raw: The decoded JSON object as received

    """

    type: str
    client_id: str | None = None
    id: str | None = None
    message: str | None = None
    data: Any = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> InboundPacket:
        """Build a packet from a decoded JSON object."""
        packet_id = raw.get("id")
        return cls(
            type=str(raw.get("type", "")),
            client_id=raw.get("client_id"),
            id=str(packet_id) if packet_id else None,
            message=raw.get("message"),
            data=raw.get("data"),
            raw=raw,
        )
