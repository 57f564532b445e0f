"""Exception types for device protocol errors.

Every exception raised by the codec and the frame reassembler derives from
``DeviceLinkError`` so callers can absorb protocol failures with one handler
while still logging the specific failure reason.
"""

from __future__ import annotations


class DeviceLinkError(Exception):
    """Base exception for all devicelink errors."""


class DecodeError(DeviceLinkError):
    """Frame payload cannot be decoded.

    Raised when base64 decoding fails, the ciphertext is shorter than the IV,
    the plaintext is not UTF-8, or the JSON is invalid or not an object.

    Attributes:
        reason: Specific failure reason (e.g., "invalid_base64", "invalid_json")
        data_preview: First 16 bytes of the payload (keeps key material and bulk data out of logs)
    """

    def __init__(self, reason: str, data: bytes = b""):
        self.reason = reason
        self.data_preview = data[:16] if data else b""
        super().__init__(f"Payload decode failed: {reason}")


class FramingError(DeviceLinkError):
    """Stream framing error.

    Raised by FrameReassembler when the first chunk of a frame does not start
    with a ``<decimal>;`` length prefix.

    Attributes:
        reason: Specific failure reason (e.g., "missing_separator", "invalid_length")
        chunk_preview: First 16 bytes of the offending chunk
    """

    def __init__(self, reason: str, chunk: bytes = b""):
        self.reason = reason
        self.chunk_preview = chunk[:16] if chunk else b""
        super().__init__(f"Frame reassembly failed: {reason}")


class ProtocolError(DeviceLinkError):
    """Device answered with an ERROR packet.

    Attributes:
        message: Error message sent by the device
        packet_id: Correlation id echoed by the device, if any
    """

    def __init__(self, message: str, packet_id: str | None = None):
        self.message = message
        self.packet_id = packet_id
        super().__init__(f"Device error: {message}")


class InvalidKeyError(DeviceLinkError):
    """Pre-shared key is not base64 text decoding to 32 bytes.

    Attributes:
        reason: Specific failure reason (e.g., "invalid_base64", "wrong_length")
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid encryption key: {reason}")
