"""TCP stream frame reassembly for ``<length>;<payload>`` frames.

This module provides FrameReassembler for turning arbitrarily split TCP reads
into complete frame payloads.
"""

import logging

from devicelink.const import FRAME_LENGTH_SEPARATOR
from devicelink.protocol.exceptions import FramingError

logger = logging.getLogger(__name__)


class FrameReassembler:
    r"""Accumulate TCP chunks into one complete frame payload at a time.

    The first chunk after a completed frame must start with the decimal length
    prefix and ``;``. A prefix split over several reads is held back until the
    separator arrives. Everything after the separator, and every following
    chunk, is payload until the declared length is reached.

    Algorithm:

    1. Buffer bytes until ``;`` is seen (digits only before it)
    2. Parse the decimal before ``;`` as the declared payload length
       (at most ``MAX_FRAME_LENGTH``)
    3. Append payload bytes until ``received >= expected_length``
    4. Return the first ``expected_length`` bytes and reset

    Known limitation: a read that carries the tail of one frame and the head of
    the next yields only the first frame. The remainder is dropped, not
    re-scanned, because the device sends one frame per write and waits for the
    next request before sending again.

    Example:
        reassembler = FrameReassembler()
        assert reassembler.feed(b'15;{"type":') is None
        assert reassembler.feed(b'"PING"}') == b'{"type":"PING"}'

    """

    MAX_LENGTH_DIGITS: int = 10
    MAX_FRAME_LENGTH: int = 65536  # 64 KiB; device replies are a few hundred bytes

    def __init__(self) -> None:
        """Initialize reassembler awaiting the first chunk of a frame."""
        self.buffer: bytearray = bytearray()
        self.expected_length: int | None = None
        self.received: int = 0

    @property
    def awaiting_header(self) -> bool:
        """True until the length prefix of the current frame has been parsed."""
        return self.expected_length is None

    def reset(self) -> None:
        """Drop partial state and await the first chunk of a new frame."""
        self.buffer = bytearray()
        self.expected_length = None
        self.received = 0

    def feed(self, chunk: bytes) -> bytes | None:
        """Add one TCP read and return a complete payload if one is ready.

        Args:
            chunk: Bytes from a single TCP read

        Returns:
            The frame payload once ``expected_length`` bytes are buffered, else None

        Raises:
            FramingError: If the length prefix is not a decimal followed by ``;``.
                State is reset before raising.

        """
        if self.awaiting_header:
            self.buffer.extend(chunk)
            if not self._parse_header():
                return None
        else:
            self.buffer.extend(chunk)
            self.received += len(chunk)

        assert self.expected_length is not None
        if self.received < self.expected_length:
            logger.debug(
                "Frame chunk received (%d / %d)",
                self.received,
                self.expected_length,
            )
            return None

        payload = bytes(self.buffer[: self.expected_length])
        overshoot = self.received - self.expected_length
        if overshoot:
            logger.debug(
                "Discarding %d bytes past the end of the frame",
                overshoot,
                extra={"expected_length": self.expected_length, "received": self.received},
            )
        self.reset()
        return payload

    def _parse_header(self) -> bool:
        """Consume the length prefix from the buffer.

        Returns:
            True once the prefix is parsed (buffer then holds payload only),
            False while more prefix bytes are needed

        """
        prefix, separator, rest = bytes(self.buffer).partition(FRAME_LENGTH_SEPARATOR)

        if prefix and not prefix.isdigit():
            chunk = bytes(self.buffer)
            self.reset()
            raise FramingError("invalid_length", chunk)

        if len(prefix) > self.MAX_LENGTH_DIGITS:
            chunk = bytes(self.buffer)
            self.reset()
            raise FramingError("missing_separator" if not separator else "invalid_length", chunk)

        if not separator:
            return False

        if not prefix:
            chunk = bytes(self.buffer)
            self.reset()
            raise FramingError("empty_length", chunk)

        declared = int(prefix)
        if declared > self.MAX_FRAME_LENGTH:
            chunk = bytes(self.buffer)
            self.reset()
            raise FramingError("frame_too_large", chunk)

        self.expected_length = declared
        self.buffer = bytearray(rest)
        self.received = len(rest)
        return True
