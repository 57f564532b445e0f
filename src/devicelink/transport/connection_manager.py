"""Connection management with state machine, keepalive, and packet routing.

This module implements the ConnectionManager class which owns the socket to one
device and drives connect/reconnect, idle timeout detection, the keepalive
timer, frame reassembly and decoding.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from devicelink.const import DEVICELINK_DEBUG
from devicelink.logging_abstraction import DebugMode, get_logger
from devicelink.metrics import registry
from devicelink.protocol.codec import DeviceCodec
from devicelink.protocol.exceptions import DecodeError, FramingError
from devicelink.protocol.packet_framer import FrameReassembler
from devicelink.protocol.packet_types import InboundPacket, OutboundPacket, PacketType
from devicelink.structs import ConnectionSettings
from devicelink.transport.exceptions import TransportError
from devicelink.transport.socket_abstraction import TCPConnection

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection state enumeration."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


class EventKind(Enum):
    """Kinds of event drained by the connection actor."""

    CONNECTED = "connected"
    DATA = "data"
    ERROR = "error"
    END = "end"
    CLOSE = "close"
    TIMEOUT = "timeout"
    PING = "ping"
    SEND = "send"


# Events that belong to one socket and are dropped once that socket is superseded
_SOCKET_EVENTS = frozenset(
    {
        EventKind.CONNECTED,
        EventKind.DATA,
        EventKind.ERROR,
        EventKind.END,
        EventKind.CLOSE,
        EventKind.TIMEOUT,
    },
)


@dataclass
class ConnectionEvent:
    """One unit of work for the connection actor.

    Attributes:
        kind: Event kind
        payload: Chunk bytes (DATA), TCPConnection (CONNECTED), exception (ERROR)
            or OutboundPacket (SEND)
        generation: Socket generation that produced the event (socket events only)
        result: Future resolved with the send outcome (SEND only)

    """

    kind: EventKind
    payload: Any = None
    generation: int | None = None
    result: asyncio.Future[bool] | None = None


PacketHandler = Callable[[InboundPacket], None]
ConnectionFactory = Callable[[str, int, float], TCPConnection]


def _default_connection_factory(host: str, port: int, connect_timeout: float) -> TCPConnection:
    return TCPConnection(host, port, connect_timeout=connect_timeout)


class ConnectionManager:
    """Owns the socket to one device and serializes everything that touches it.

    **Actor model**: socket callbacks (connected, data, error, end, close,
    timeout), keepalive ticks and outbound sends are all posted to one FIFO
    ``asyncio.Queue`` and handled one at a time by a single actor task. A
    handler runs to completion before the next event is taken, so the
    reassembly buffer, the state and the ping flag are never observed half
    updated. No ordering beyond arrival order is guaranteed.

    **Lifecycle**::

        DISCONNECTED → CONNECTING → OPEN → (CLOSING) → DISCONNECTED → CONNECTING ...

    - On OPEN an INFO packet is sent, and the keepalive timer is started the
      first time only.
    - Socket errors are logged; the close that follows reconnects.
    - Idle timeout aborts the socket and takes the close path.
    - Keepalive sends PING only if the previous one was acknowledged; any
      decoded inbound frame counts as the acknowledgment.
    """

    def __init__(
        self,
        host: str,
        key: bytes | None = None,
        packet_handler: PacketHandler | None = None,
        settings: ConnectionSettings | None = None,
        debug: DebugMode | None = None,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        """Initialize connection manager.

        Args:
            host: Device IP or hostname
            key: 32-byte AES key, or None for plaintext frames
            packet_handler: Called inside the actor for every decoded packet
            settings: Port and timing configuration
            debug: Host debug sink (defaults to one driven by DEVICELINK_DEBUG)
            connection_factory: Builds the TCPConnection for each attempt

        """
        self.host: str = host
        self.key: bytes | None = key
        self.packet_handler: PacketHandler | None = packet_handler
        self.settings: ConnectionSettings = settings or ConnectionSettings()
        base_debug = debug or DebugMode(DEVICELINK_DEBUG, get_logger(__name__))
        self.debug: DebugMode = base_debug.bind(f"[Device][{host}]")
        self.connection_factory: ConnectionFactory = connection_factory or _default_connection_factory

        self.state: ConnectionState = ConnectionState.DISCONNECTED
        self.conn: TCPConnection | None = None
        self.reassembler: FrameReassembler = FrameReassembler()
        self.ping_acknowledged: bool = False

        self._queue: asyncio.Queue[ConnectionEvent] = asyncio.Queue()
        self._generation: int = 0
        self._stopping: bool = False
        self._actor_task: asyncio.Task[None] | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._ping_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start the actor and the first connection attempt (idempotent)."""
        if self._actor_task is not None and not self._actor_task.done():
            return
        self._stopping = False
        self._actor_task = asyncio.create_task(self._run(), name=f"devicelink-actor-{self.host}")
        self._begin_connect(delay=0.0)

    async def stop(self) -> None:
        """Stop all tasks and close the socket. Pending sends resolve False."""
        self._stopping = True
        for task in (self._ping_task, self._connect_task, self._reader_task, self._actor_task):
            if task is not None and not task.done():
                _ = task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._ping_task = self._connect_task = self._reader_task = self._actor_task = None

        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event.result is not None and not event.result.done():
                event.result.set_result(False)

        if self.conn is not None:
            await self.conn.close()
            self.conn = None
        self._set_state(ConnectionState.DISCONNECTED)
        self.debug.debug("Connection stopped")

    async def send_packet(self, packet: OutboundPacket) -> bool:
        """Queue a packet for the actor and wait until it is written.

        Returns:
            True if the frame was written, False if the connection is not open
            or the write failed

        """
        if self._actor_task is None or self._actor_task.done():
            self.debug.error_debug("Connection is not started.")
            return False
        result: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._post(ConnectionEvent(EventKind.SEND, payload=packet, result=result))
        return await result

    @property
    def is_open(self) -> bool:
        """Whether the socket is currently open (best effort, may be stale)."""
        return self.state == ConnectionState.OPEN

    # ------------------------------------------------------------------
    # Actor
    # ------------------------------------------------------------------
    def _post(self, event: ConnectionEvent) -> None:
        self._queue.put_nowait(event)

    async def _run(self) -> None:
        """Drain the event queue, one handler at a time."""
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            except asyncio.CancelledError:
                if event.result is not None and not event.result.done():
                    event.result.set_result(False)
                raise
            except Exception as e:
                # Handler failures are logged; the actor keeps draining
                logger.exception(
                    "Unexpected error handling %s event",
                    event.kind.value,
                    extra={"host": self.host, "error": str(e), "error_type": type(e).__name__},
                )
                if event.result is not None and not event.result.done():
                    event.result.set_result(False)

    async def _dispatch(self, event: ConnectionEvent) -> None:
        if event.kind in _SOCKET_EVENTS and event.generation != self._generation:
            logger.debug(
                "Dropping %s event from superseded socket",
                event.kind.value,
                extra={"host": self.host, "generation": event.generation},
            )
            if event.kind == EventKind.CONNECTED and event.payload is not None:
                await event.payload.close(abort=True)
            return

        match event.kind:
            case EventKind.CONNECTED:
                await self._on_connected(event.payload)
            case EventKind.DATA:
                self._on_data(event.payload)
            case EventKind.ERROR:
                self._on_error(event.payload)
            case EventKind.END:
                self._on_end()
            case EventKind.CLOSE:
                await self._on_close()
            case EventKind.TIMEOUT:
                await self._on_timeout()
            case EventKind.PING:
                await self._on_ping()
            case EventKind.SEND:
                assert event.result is not None
                sent = await self._write(event.payload)
                if not event.result.done():
                    event.result.set_result(sent)

    # ------------------------------------------------------------------
    # Event handlers (run inside the actor only)
    # ------------------------------------------------------------------
    async def _on_connected(self, conn: TCPConnection) -> None:
        self.conn = conn
        self.reassembler.reset()
        self._set_state(ConnectionState.OPEN)
        self.debug.debug("TCP connection established with the server.")

        self._reader_task = asyncio.create_task(
            self._read_loop(conn, self._generation),
            name=f"devicelink-reader-{self.host}",
        )
        _ = await self._write(OutboundPacket(PacketType.INFO))

        if self._ping_task is None:
            self.debug.debug("Starting ping interval.")
            self._ping_task = asyncio.create_task(self._ping_loop(), name=f"devicelink-ping-{self.host}")

    def _on_data(self, chunk: bytes) -> None:
        try:
            payload = self.reassembler.feed(chunk)
        except FramingError as e:
            registry.record_framing_error(self.host, e.reason)
            self.debug.error_debug(str(e), extra={"reason": e.reason, "chunk_preview": e.chunk_preview})
            return

        if payload is None:
            self.debug.debug(
                "Data chunk received from the server: (%d / %d).",
                self.reassembler.received,
                self.reassembler.expected_length or 0,
            )
            return

        try:
            raw = DeviceCodec.decode(payload, self.key)
        except DecodeError as e:
            registry.record_decode_error(self.host, e.reason)
            self.debug.error_debug(str(e), extra={"reason": e.reason, "data_preview": e.data_preview})
            return

        self.ping_acknowledged = True
        packet = InboundPacket.from_dict(raw)
        registry.record_frame_recv(self.host, packet.type or "unknown")
        if self.debug.enabled:
            self.debug.debug("Data received from the server: (%s).", json.dumps(raw))

        if self.packet_handler is None:
            return
        try:
            self.packet_handler(packet)
        except Exception as e:
            # Log unexpected handler errors but keep the connection running
            logger.exception(
                "Unexpected error handling %s packet",
                packet.type,
                extra={"host": self.host, "error": str(e), "error_type": type(e).__name__},
            )

    def _on_error(self, error: BaseException | None) -> None:
        self.debug.error_debug(str(error) if error else "Unknown socket error.")

    def _on_end(self) -> None:
        if self.state == ConnectionState.OPEN:
            self._set_state(ConnectionState.CLOSING)
        self.debug.debug("Requested an end to the TCP connection")

    async def _on_close(self, reason: str = "close") -> None:
        if self.conn is not None:
            await self.conn.close()
            self.conn = None
        self.reassembler.reset()
        self._set_state(ConnectionState.DISCONNECTED)
        self.debug.debug("Requested a CLOSE to the TCP connection")

        if self._stopping:
            return
        registry.record_reconnection(self.host, reason)
        self._begin_connect(delay=self.settings.reconnect_delay)

    async def _on_timeout(self) -> None:
        self.debug.debug("TCP connection timed out")
        if self.conn is not None:
            await self.conn.close(abort=True)
            self.conn = None
        await self._on_close(reason="timeout")

    async def _on_ping(self) -> None:
        if self.state != ConnectionState.OPEN or not self.ping_acknowledged:
            registry.record_ping(self.host, "skipped")
            return
        self.ping_acknowledged = False
        registry.record_ping(self.host, "sent")
        _ = await self._write(OutboundPacket(PacketType.PING))

    async def _write(self, packet: OutboundPacket) -> bool:
        packet_type = str(packet.type)
        if self.state != ConnectionState.OPEN or self.conn is None:
            self.debug.error_debug("TCP connection is not opened.")
            registry.record_frame_sent(self.host, packet_type, "not_open")
            return False

        frame = DeviceCodec.encode(packet, self.key)
        if self.debug.enabled:
            self.debug.debug("Sending data to the server: (%s).", json.dumps(packet.to_dict()))
        sent = await self.conn.send(frame)
        registry.record_frame_sent(self.host, packet_type, "sent" if sent else "failed")
        return sent

    # ------------------------------------------------------------------
    # Background tasks (only post events, never touch state)
    # ------------------------------------------------------------------
    def _begin_connect(self, delay: float) -> None:
        self._generation += 1
        self._set_state(ConnectionState.CONNECTING)
        self.debug.debug("Connecting to the device.")
        self._connect_task = asyncio.create_task(
            self._connect(self._generation, delay),
            name=f"devicelink-connect-{self.host}",
        )

    async def _connect(self, generation: int, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        conn = self.connection_factory(self.host, self.settings.port, self.settings.connect_timeout)
        if await conn.connect():
            self._post(ConnectionEvent(EventKind.CONNECTED, payload=conn, generation=generation))
            return
        error = TransportError("connect_failed", state=ConnectionState.CONNECTING.value)
        self._post(ConnectionEvent(EventKind.ERROR, payload=error, generation=generation))
        self._post(ConnectionEvent(EventKind.CLOSE, generation=generation))

    async def _read_loop(self, conn: TCPConnection, generation: int) -> None:
        while True:
            try:
                chunk = await conn.recv(idle_timeout=self.settings.idle_timeout)
            except TransportError as e:
                if e.reason == "timeout":
                    self._post(ConnectionEvent(EventKind.TIMEOUT, generation=generation))
                else:
                    self._post(ConnectionEvent(EventKind.ERROR, payload=e, generation=generation))
                    self._post(ConnectionEvent(EventKind.CLOSE, generation=generation))
                return

            if not chunk:
                self._post(ConnectionEvent(EventKind.END, generation=generation))
                self._post(ConnectionEvent(EventKind.CLOSE, generation=generation))
                return

            self._post(ConnectionEvent(EventKind.DATA, payload=chunk, generation=generation))

    async def _ping_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.ping_interval)
            self._post(ConnectionEvent(EventKind.PING))

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        logger.debug(
            "Connection state %s → %s",
            self.state.value,
            state.value,
            extra={"host": self.host},
        )
        self.state = state
        registry.record_connection_state(self.host, state.value)
