"""Device facade: one connection actor plus its command dispatcher."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from devicelink.const import DEVICELINK_DEBUG
from devicelink.dispatcher import CommandDispatcher, StateChannel, StateListener, StateUpdate
from devicelink.logging_abstraction import DebugMode, get_logger
from devicelink.protocol.codec import DeviceCodec
from devicelink.protocol.packet_types import PacketType
from devicelink.structs import ConnectionSettings, DeviceContext
from devicelink.transport.connection_manager import ConnectionManager, ConnectionState

FirstInfoCallback = Callable[[DeviceContext, "Device"], None]


class Device:
    """A configured device reachable over the local network.

    Args:
        ip: Device IP address
        uuid: Stable unique id assigned by the host
        key: Base64 pre-shared key (32 bytes once decoded), or None for plaintext
        on_first_info: Called once with the DeviceContext from the first INFO reply
            and this device
        debug: Host debug sink
        settings: Port and timing configuration

    Raises:
        InvalidKeyError: If ``key`` is not base64 text decoding to 32 bytes

    """

    def __init__(
        self,
        ip: str,
        uuid: str,
        key: str | None = None,
        on_first_info: FirstInfoCallback | None = None,
        debug: DebugMode | None = None,
        settings: ConnectionSettings | None = None,
    ) -> None:
        self.ip: str = ip
        self.uuid: str = uuid
        self.on_first_info: FirstInfoCallback | None = on_first_info
        self.settings: ConnectionSettings = settings or ConnectionSettings()
        self.debug: DebugMode = debug or DebugMode(DEVICELINK_DEBUG, get_logger(__name__))

        self.connection: ConnectionManager = ConnectionManager(
            ip,
            key=DeviceCodec.parse_key(key),
            settings=self.settings,
            debug=self.debug,
        )
        self.dispatcher: CommandDispatcher = CommandDispatcher(
            self.connection,
            ip,
            uuid,
            on_first_info=self._on_first_info,
            debug=self.debug,
            settings=self.settings,
        )
        self.connection.packet_handler = self.dispatcher.handle_packet

    def _on_first_info(self, context: DeviceContext) -> None:
        if self.on_first_info is not None:
            self.on_first_info(context, self)

    def start(self) -> None:
        """Begin connecting; the connection then heals itself until ``stop``."""
        self.connection.start()

    async def stop(self) -> None:
        await self.dispatcher.close()
        await self.connection.stop()

    async def send(
        self,
        packet_type: PacketType | str,
        body: dict[str, Any] | None = None,
        packet_id: str | None = None,
    ) -> bool:
        return await self.dispatcher.send(packet_type, body, packet_id)

    async def request(self, packet_type: PacketType | str, body: dict[str, Any] | None = None) -> Any:
        return await self.dispatcher.request(packet_type, body)

    def refresh(self) -> None:
        self.dispatcher.refresh()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self.dispatcher.state.subscribe(listener)

    @property
    def state_channel(self) -> StateChannel:
        return self.dispatcher.state

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def context(self) -> DeviceContext | None:
        return self.dispatcher.context

    @property
    def latest_state(self) -> StateUpdate | None:
        return self.dispatcher.state.latest

    def __repr__(self) -> str:
        return f"Device({self.ip}, {self.uuid}, {self.state.value})"
