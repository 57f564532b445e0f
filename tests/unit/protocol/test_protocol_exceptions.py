"""Unit tests for protocol and transport exception types."""

from __future__ import annotations

from devicelink.platform import ConfigError
from devicelink.protocol.exceptions import (
    DecodeError,
    DeviceLinkError,
    FramingError,
    InvalidKeyError,
    ProtocolError,
)
from devicelink.transport.exceptions import CorrelationTimeout, TransportError

# Test constants
DATA_PREVIEW_TRUNCATE_LENGTH = 16  # Maximum bytes stored in error preview
SHORT_DATA_LENGTH = 3
REQUEST_TIMEOUT = 2.0


def test_every_error_derives_from_base() -> None:
    """Test the whole taxonomy shares one base class."""
    for error_type in (
        DecodeError,
        FramingError,
        ProtocolError,
        TransportError,
        CorrelationTimeout,
        InvalidKeyError,
        ConfigError,
    ):
        assert issubclass(error_type, DeviceLinkError)


def test_decode_error_has_reason() -> None:
    """Test DecodeError has reason attribute."""
    error = DecodeError("invalid_json", b'{"type":')

    assert error.reason == "invalid_json"
    assert "invalid_json" in str(error)


def test_decode_error_truncates_data() -> None:
    """Test DecodeError truncates data preview to 16 bytes."""
    large_data = bytes(range(32))

    error = DecodeError("invalid_base64", large_data)

    assert len(error.data_preview) == DATA_PREVIEW_TRUNCATE_LENGTH
    assert error.data_preview == large_data[:DATA_PREVIEW_TRUNCATE_LENGTH]


def test_decode_error_short_and_empty_data() -> None:
    """Test DecodeError keeps short data as-is and handles no data."""
    assert len(DecodeError("invalid_utf8", b"\xff\xfe\xfd").data_preview) == SHORT_DATA_LENGTH
    assert DecodeError("not_an_object").data_preview == b""


def test_framing_error_preview() -> None:
    """Test FramingError keeps a bounded chunk preview."""
    error = FramingError("invalid_length", b"x" * 100)

    assert error.reason == "invalid_length"
    assert len(error.chunk_preview) == DATA_PREVIEW_TRUNCATE_LENGTH
    assert "invalid_length" in str(error)


def test_protocol_error_message() -> None:
    """Test ProtocolError carries the device message and id."""
    error = ProtocolError("Invalid body", packet_id="abc")

    assert error.message == "Invalid body"
    assert error.packet_id == "abc"
    assert "Invalid body" in str(error)


def test_invalid_key_error_reason() -> None:
    """Test InvalidKeyError carries its reason."""
    error = InvalidKeyError("invalid_base64")

    assert error.reason == "invalid_base64"
    assert "invalid_base64" in str(error)


def test_transport_error_state() -> None:
    """Test TransportError carries reason and state."""
    error = TransportError("timeout", state="open")

    assert error.reason == "timeout"
    assert error.state == "open"
    assert str(error) == "Transport error: timeout (state: open)"


def test_correlation_timeout() -> None:
    """Test CorrelationTimeout carries id and timeout."""
    error = CorrelationTimeout("abc", REQUEST_TIMEOUT)

    assert error.packet_id == "abc"
    assert error.timeout_seconds == REQUEST_TIMEOUT
    assert "abc" in str(error)


def test_config_error() -> None:
    """Test ConfigError carries path and reason."""
    error = ConfigError("/config/devicelink.yaml", "top level must be a mapping")

    assert error.path == "/config/devicelink.yaml"
    assert error.reason == "top level must be a mapping"
    assert "/config/devicelink.yaml" in str(error)
