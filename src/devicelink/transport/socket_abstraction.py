"""TCP stream to one device: deadline-bound connect and write, idle-bound read."""

import asyncio
import logging
import time

from devicelink.transport.exceptions import TransportError

logger = logging.getLogger(__name__)

READ_SIZE = 65536


class TCPConnection:
    """One TCP stream to a device.

    ``connect`` and ``send`` report failure by returning False; the connection
    actor decides what happens next. ``recv`` raises ``TransportError`` since a
    failed read always ends the socket. ``recv`` returning ``b""`` means the
    device ended the stream.

    Args:
        host: Device IP or hostname
        port: Device TCP port
        connect_timeout: Seconds allowed for the TCP handshake
        io_timeout: Seconds allowed for a write to drain or the socket to close
        max_read_size: Upper bound of one read

    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 10.0,
        io_timeout: float = 5.0,
        max_read_size: int = READ_SIZE,
    ):
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self.max_read_size = max_read_size
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self._connected = False

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _context(self, **fields: object) -> dict[str, object]:
        return {"host": self.host, "port": self.port, **fields}

    async def connect(self) -> bool:
        """Open the stream within ``connect_timeout``.

        Returns:
            True once connected, False on timeout or socket error
        """
        started = time.perf_counter()
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except (TimeoutError, OSError) as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            error = "timeout" if isinstance(e, TimeoutError) else str(e)
            logger.warning(
                "Connect to %s failed after %.1fms: %s",
                self.endpoint,
                elapsed_ms,
                error,
                extra=self._context(elapsed_ms=elapsed_ms, error=error),
            )
            return False

        self._connected = True
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug("Connected to %s in %.1fms", self.endpoint, elapsed_ms, extra=self._context(elapsed_ms=elapsed_ms))
        return True

    async def send(self, data: bytes) -> bool:
        """Write one frame and wait for it to drain within ``io_timeout``."""
        if not self._connected or self.writer is None:
            logger.error("Cannot send to %s: not connected", self.endpoint, extra=self._context())
            return False

        try:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.io_timeout)
        except TimeoutError:
            logger.warning(
                "Send to %s did not drain within %.1fs",
                self.endpoint,
                self.io_timeout,
                extra=self._context(error="timeout"),
            )
            return False
        except OSError as e:
            logger.warning("Send to %s failed: %s", self.endpoint, e, extra=self._context(error=str(e)))
            return False

        logger.debug("Sent %d bytes to %s", len(data), self.endpoint, extra=self._context(bytes=len(data)))
        return True

    async def recv(self, idle_timeout: float | None = None) -> bytes:
        """Return the next chunk read from the device.

        Args:
            idle_timeout: Seconds of silence tolerated (None waits forever)

        Raises:
            TransportError: "timeout" after ``idle_timeout`` of silence,
                "error: ..." on a socket error, "not_connected" without a stream

        """
        if not self._connected or self.reader is None:
            raise TransportError("not_connected", state="disconnected")

        try:
            chunk = await asyncio.wait_for(self.reader.read(self.max_read_size), timeout=idle_timeout)
        except TimeoutError as e:
            raise TransportError("timeout", state="open") from e
        except OSError as e:
            raise TransportError(f"error: {e}", state="open") from e

        if not chunk:
            self._connected = False
        return chunk

    async def close(self, abort: bool = False) -> None:
        """Close the stream. Errors while closing are logged and swallowed.

        Args:
            abort: Drop the socket at once instead of flushing pending writes
        """
        writer = self.writer
        self.reader = None
        self.writer = None
        self._connected = False
        if writer is None:
            return

        logger.debug("Closing connection to %s", self.endpoint, extra=self._context(abort=abort))
        try:
            if abort:
                writer.transport.abort()
                return
            writer.close()
            await asyncio.wait_for(writer.wait_closed(), timeout=self.io_timeout)
        except (TimeoutError, OSError) as e:
            logger.warning(
                "Error closing connection to %s: %s",
                self.endpoint,
                e,
                extra=self._context(error=str(e), error_type=type(e).__name__),
            )

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"TCPConnection({self.endpoint}, {status})"
