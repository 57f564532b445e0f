"""Device protocol package - frame encoding, decoding, and reassembly.

Public API:
- Packet types and dataclasses (PacketType, OutboundPacket, InboundPacket)
- Frame encoder/decoder (DeviceCodec)
- Stream reassembly (FrameReassembler)
"""

from devicelink.protocol.codec import DeviceCodec
from devicelink.protocol.exceptions import (
    DecodeError,
    DeviceLinkError,
    FramingError,
    InvalidKeyError,
    ProtocolError,
)
from devicelink.protocol.packet_framer import FrameReassembler
from devicelink.protocol.packet_types import (
    COMMAND_TYPES,
    InboundPacket,
    OutboundPacket,
    PacketType,
)

__all__ = [
    "COMMAND_TYPES",
    "DecodeError",
    "DeviceCodec",
    "DeviceLinkError",
    "FrameReassembler",
    "FramingError",
    "InboundPacket",
    "InvalidKeyError",
    "OutboundPacket",
    "PacketType",
    "ProtocolError",
]
