"""Command dispatch and reply correlation for one device.

The dispatcher validates outbound commands, correlates replies to requests by
``id`` and routes every inbound packet. State snapshots carried by GET/SET
replies are always broadcast on a ``StateChannel``; a pending ``request``
additionally receives the snapshot whose ``id`` matches its own.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from devicelink.const import DEVICELINK_DEBUG
from devicelink.correlation import correlation_context, generate_correlation_id
from devicelink.logging_abstraction import DebugMode, get_logger
from devicelink.metrics import registry
from devicelink.protocol.exceptions import ProtocolError
from devicelink.protocol.packet_types import COMMAND_TYPES, InboundPacket, OutboundPacket, PacketType
from devicelink.structs import DEVICE_TYPES, ConnectionSettings, DeviceContext, DeviceInfo
from devicelink.transport.exceptions import CorrelationTimeout

logger = logging.getLogger(__name__)

__all__ = [
    "CommandDispatcher",
    "PacketSender",
    "StateChannel",
    "StateUpdate",
]


class PacketSender(Protocol):
    """Anything that can write a packet to the device (the connection actor)."""

    def send_packet(self, packet: OutboundPacket) -> Awaitable[bool]: ...


@dataclass(frozen=True)
class StateUpdate:
    """Full state snapshot published by the device.

    Attributes:
        data: The ``data`` object of a GET/SET reply
        packet_id: Correlation id echoed by the device, if the reply carried one

    """

    data: Any
    packet_id: str | None = None


StateListener = Callable[[StateUpdate], None]


class StateChannel:
    """Broadcast of state snapshots to any number of listeners."""

    def __init__(self) -> None:
        self._listeners: list[StateListener] = []
        self.latest: StateUpdate | None = None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, data: Any, packet_id: str | None = None) -> None:
        update = StateUpdate(data=data, packet_id=packet_id)
        self.latest = update
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception as e:
                logger.exception(
                    "State listener failed",
                    extra={"packet_id": packet_id, "error": str(e), "error_type": type(e).__name__},
                )

    def __len__(self) -> int:
        return len(self._listeners)


class CommandDispatcher:
    """Sends commands to one device and routes its replies.

    Replies are matched to waiters by ``id`` through a mapping of correlation
    id to a single-fulfilment ``asyncio.Future``. A waiter is resolved at most
    once; later replies carrying the same id are only broadcast.
    """

    def __init__(
        self,
        sender: PacketSender,
        ip: str,
        uuid: str,
        on_first_info: Callable[[DeviceContext], None] | None = None,
        debug: DebugMode | None = None,
        settings: ConnectionSettings | None = None,
    ) -> None:
        self.sender: PacketSender = sender
        self.ip: str = ip
        self.uuid: str = uuid
        self.on_first_info: Callable[[DeviceContext], None] | None = on_first_info
        base_debug = debug or DebugMode(DEVICELINK_DEBUG, get_logger(__name__))
        self.debug: DebugMode = base_debug.bind(f"[Device][{ip}]")
        self.settings: ConnectionSettings = settings or ConnectionSettings()

        self.state: StateChannel = StateChannel()
        self.context: DeviceContext | None = None
        self._waiters: dict[str, asyncio.Future[Any]] = {}
        self._refresh_pending: bool = False
        self._refresh_task: asyncio.Task[None] | None = None

    @property
    def pending_requests(self) -> int:
        """Number of requests still waiting for a reply."""
        return len(self._waiters)

    async def send(
        self,
        packet_type: PacketType | str,
        body: dict[str, Any] | None = None,
        packet_id: str | None = None,
    ) -> bool:
        """Send a GET or SET command.

        Args:
            packet_type: GET or SET; anything else is refused
            body: Command payload
            packet_id: Optional correlation id echoed by the device

        Returns:
            True if the frame was written, False if refused or not written

        """
        if packet_type not in COMMAND_TYPES:
            self.debug.error_debug("Invalid packet type.", extra={"packet_type": str(packet_type)})
            return False
        packet = OutboundPacket(PacketType(packet_type), id=packet_id, body=body if body is not None else {})
        return await self.sender.send_packet(packet)

    async def request(self, packet_type: PacketType | str, body: dict[str, Any] | None = None) -> Any:
        """Send a command and wait for the reply that echoes its id.

        Returns:
            The reply's ``data``, or None if nothing was sent or no reply
            arrived within the request timeout

        """
        packet_id = generate_correlation_id()
        while packet_id in self._waiters:
            packet_id = generate_correlation_id()

        waiter: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters[packet_id] = waiter
        start_time = time.perf_counter()

        with correlation_context(packet_id):
            try:
                if not await self.send(packet_type, body, packet_id):
                    registry.record_request(self.ip, "not_sent")
                    return None
                try:
                    data = await asyncio.wait_for(waiter, timeout=self.settings.request_timeout)
                except TimeoutError:
                    timeout = CorrelationTimeout(packet_id, self.settings.request_timeout)
                    registry.record_request(self.ip, "timeout")
                    self.debug.debug(str(timeout))
                    return None

                latency = time.perf_counter() - start_time
                registry.record_request(self.ip, "replied")
                registry.record_request_latency(self.ip, latency)
                return data
            finally:
                _ = self._waiters.pop(packet_id, None)

    def refresh(self) -> None:
        """Schedule a GET after the debounce delay; no-op while one is pending."""
        if self._refresh_pending:
            return
        self._refresh_pending = True
        self._refresh_task = asyncio.create_task(self._debounced_refresh(), name=f"devicelink-refresh-{self.ip}")

    async def _debounced_refresh(self) -> None:
        try:
            await asyncio.sleep(self.settings.refresh_debounce)
        finally:
            self._refresh_pending = False
        _ = await self.send(PacketType.GET, {})

    def handle_packet(self, packet: InboundPacket) -> None:
        """Route one decoded inbound packet."""
        match packet.type:
            case PacketType.INFO:
                self._handle_info(packet)
            case PacketType.ERROR:
                error = ProtocolError(packet.message or "Unknown error.", packet.id)
                self.debug.error_debug(error.message, extra={"packet_id": packet.id})
            case PacketType.GET | PacketType.SET:
                waiter = self._waiters.get(packet.id) if packet.id else None
                if waiter is not None and not waiter.done():
                    waiter.set_result(packet.data)
                self.state.publish(packet.data, packet.id)
            case _:
                logger.debug("Ignoring %s packet", packet.type or "untyped", extra={"host": self.ip})

    def _handle_info(self, packet: InboundPacket) -> None:
        if self.context is not None:
            logger.debug("Ignoring INFO after first load", extra={"host": self.ip})
            return

        info = DeviceInfo.from_data(packet.data)
        self.context = DeviceContext(
            info=info,
            ip=self.ip,
            uuid=self.uuid,
            type=DEVICE_TYPES.get(info.type) if isinstance(info.type, int) else None,
        )
        logger.info(
            "Device identified",
            extra={
                "host": self.ip,
                "uuid": self.uuid,
                "type": str(self.context.type),
                "serial_number": info.serial_number,
                "firmware_version": info.firmware_version,
            },
        )
        if self.on_first_info is not None:
            self.on_first_info(self.context)

    async def close(self) -> None:
        """Cancel a pending refresh and release every waiter with None."""
        if self._refresh_task is not None and not self._refresh_task.done():
            _ = self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
        self._refresh_task = None
        self._refresh_pending = False

        for waiter in self._waiters.values():
            if not waiter.done():
                waiter.set_result(None)
