"""Unit tests for FrameReassembler TCP stream reassembly."""

import pytest

from devicelink.protocol.codec import DeviceCodec
from devicelink.protocol.exceptions import FramingError
from devicelink.protocol.packet_framer import FrameReassembler
from tests.helpers.expectations import expect_exception

PING_PAYLOAD = b'{"type":"PING"}'
PING_FRAME = b'15;{"type":"PING"}'
STATE_PAYLOAD = b'{"client_id":"c1","type":"GET","id":"abc","data":{"temperature":21.5,"heating":true}}'
STATE_FRAME = str(len(STATE_PAYLOAD)).encode() + b";" + STATE_PAYLOAD


def feed_all(reassembler: FrameReassembler, chunks: list[bytes]) -> list[bytes]:
    """Feed chunks in order and collect every completed payload."""
    out: list[bytes] = []
    for chunk in chunks:
        payload = reassembler.feed(chunk)
        if payload is not None:
            out.append(payload)
    return out


class TestFrameReassemblerBasic:
    """Basic FrameReassembler functionality tests."""

    def test_initial_state(self) -> None:
        """Test a new reassembler awaits a header."""
        reassembler = FrameReassembler()

        assert reassembler.awaiting_header is True
        assert reassembler.expected_length is None
        assert reassembler.received == 0
        assert len(reassembler.buffer) == 0

    def test_complete_frame_single_read(self) -> None:
        """Test complete frame in single read."""
        reassembler = FrameReassembler()

        assert reassembler.feed(PING_FRAME) == PING_PAYLOAD
        assert reassembler.awaiting_header is True

    def test_frame_split_after_separator(self) -> None:
        """Test payload split over two reads."""
        reassembler = FrameReassembler()

        assert reassembler.feed(b'15;{"type":') is None
        assert reassembler.expected_length == len(PING_PAYLOAD)
        assert reassembler.received == len(b'{"type":')
        assert reassembler.feed(b'"PING"}') == PING_PAYLOAD

    def test_header_only_first_chunk(self) -> None:
        """Test first chunk carrying only the length prefix."""
        reassembler = FrameReassembler()

        assert reassembler.feed(b"15;") is None
        assert reassembler.expected_length == len(PING_PAYLOAD)
        assert reassembler.feed(PING_PAYLOAD) == PING_PAYLOAD

    def test_length_prefix_split_across_reads(self) -> None:
        """Test a prefix split before the separator is held back."""
        reassembler = FrameReassembler()

        assert reassembler.feed(b"1") is None
        assert reassembler.awaiting_header is True
        assert reassembler.feed(b"5") is None
        assert reassembler.feed(b';{"type":"PING"}') == PING_PAYLOAD

    def test_zero_length_frame(self) -> None:
        """Test an empty payload is produced immediately."""
        reassembler = FrameReassembler()

        assert reassembler.feed(b"0;") == b""

    def test_consecutive_frames_in_separate_reads(self) -> None:
        """Test state resets between frames."""
        reassembler = FrameReassembler()

        assert feed_all(reassembler, [PING_FRAME, STATE_FRAME, PING_FRAME]) == [
            PING_PAYLOAD,
            STATE_PAYLOAD,
            PING_PAYLOAD,
        ]

    def test_reset_drops_partial_frame(self) -> None:
        """Test reset() discards a partial frame."""
        reassembler = FrameReassembler()
        _ = reassembler.feed(b'15;{"ty')

        reassembler.reset()

        assert reassembler.awaiting_header is True
        assert reassembler.feed(PING_FRAME) == PING_PAYLOAD


class TestFrameReassemblerChunking:
    """Reassembly over arbitrary chunk boundaries."""

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 16, 64])
    def test_fixed_size_chunks(self, size: int) -> None:
        """Test reassembly with every chunk size, including 1-byte reads."""
        reassembler = FrameReassembler()
        chunks = [STATE_FRAME[i : i + size] for i in range(0, len(STATE_FRAME), size)]

        assert feed_all(reassembler, chunks) == [STATE_PAYLOAD]

    def test_one_byte_chunks_across_several_frames(self) -> None:
        """Test 1-byte reads spanning three consecutive frames."""
        reassembler = FrameReassembler()
        stream = PING_FRAME + STATE_FRAME + PING_FRAME

        assert feed_all(reassembler, [bytes([b]) for b in stream]) == [
            PING_PAYLOAD,
            STATE_PAYLOAD,
            PING_PAYLOAD,
        ]

    def test_encrypted_frame_one_byte_chunks(self, aes_key: bytes) -> None:
        """Test an encrypted frame survives 1-byte reads and decodes."""
        reassembler = FrameReassembler()
        frame = DeviceCodec.encode({"type": "GET", "id": "abc", "body": {}}, aes_key)

        payloads = feed_all(reassembler, [bytes([b]) for b in frame])

        assert len(payloads) == 1
        assert DeviceCodec.decode(payloads[0], aes_key) == {"type": "GET", "id": "abc", "body": {}}


class TestFrameReassemblerOvershoot:
    """One read carrying more than one frame."""

    def test_overshoot_yields_first_frame_only(self) -> None:
        """Test the tail after a complete frame is discarded."""
        reassembler = FrameReassembler()

        assert reassembler.feed(PING_FRAME + STATE_FRAME) == PING_PAYLOAD
        assert reassembler.awaiting_header is True
        assert len(reassembler.buffer) == 0

    def test_overshoot_on_continuation_chunk(self) -> None:
        """Test overshoot in a later chunk is also discarded."""
        reassembler = FrameReassembler()

        assert reassembler.feed(b'15;{"type"') is None
        assert reassembler.feed(b':"PING"}' + b"12;garbage") == PING_PAYLOAD
        assert reassembler.feed(PING_FRAME) == PING_PAYLOAD


class TestFrameReassemblerErrors:
    """Malformed length prefix handling."""

    def test_non_digit_prefix(self) -> None:
        """Test a non-numeric prefix raises and resets."""
        reassembler = FrameReassembler()

        error = expect_exception(reassembler.feed, FramingError, b'{"type":"PING"}')

        assert error.reason == "invalid_length"
        assert error.chunk_preview == b'{"type":"PING"}'
        assert reassembler.awaiting_header is True
        assert len(reassembler.buffer) == 0

    def test_negative_length(self) -> None:
        """Test a negative length is not a valid decimal prefix."""
        reassembler = FrameReassembler()

        error = expect_exception(reassembler.feed, FramingError, b"-5;hello")

        assert error.reason == "invalid_length"

    def test_empty_length(self) -> None:
        """Test a bare separator raises."""
        reassembler = FrameReassembler()

        error = expect_exception(reassembler.feed, FramingError, b";payload")

        assert error.reason == "empty_length"

    def test_missing_separator(self) -> None:
        """Test an over-long digit run without separator raises."""
        reassembler = FrameReassembler()

        error = expect_exception(reassembler.feed, FramingError, b"12345678901")

        assert error.reason == "missing_separator"

    def test_too_many_digits_with_separator(self) -> None:
        """Test an absurd declared length is refused."""
        reassembler = FrameReassembler()

        error = expect_exception(reassembler.feed, FramingError, b"12345678901;x")

        assert error.reason == "invalid_length"

    def test_recovers_after_error(self) -> None:
        """Test the next well-formed frame decodes after an error."""
        reassembler = FrameReassembler()
        _ = expect_exception(reassembler.feed, FramingError, b"xx;yy")

        assert reassembler.feed(PING_FRAME) == PING_PAYLOAD

    def test_declared_length_above_limit(self) -> None:
        """Test a length beyond MAX_FRAME_LENGTH is refused before buffering."""
        reassembler = FrameReassembler()
        oversized = str(FrameReassembler.MAX_FRAME_LENGTH + 1).encode()

        error = expect_exception(reassembler.feed, FramingError, oversized + b";{")

        assert error.reason == "frame_too_large"
        assert reassembler.awaiting_header is True
        assert len(reassembler.buffer) == 0

    def test_declared_length_at_limit(self) -> None:
        """Test a length equal to MAX_FRAME_LENGTH is accepted."""
        reassembler = FrameReassembler()
        limit = FrameReassembler.MAX_FRAME_LENGTH

        assert reassembler.feed(str(limit).encode() + b";{") is None
        assert reassembler.expected_length == limit
