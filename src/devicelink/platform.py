from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from pathlib import Path

import yaml
from pydantic import ValidationError

from devicelink.const import PLATFORM_NAME
from devicelink.device import Device
from devicelink.dispatcher import StateUpdate
from devicelink.logging_abstraction import DebugMode, get_logger
from devicelink.protocol.exceptions import DeviceLinkError, InvalidKeyError
from devicelink.structs import ConnectionSettings, DeviceContext, PlatformConfig

logger = get_logger(__name__)

__all__ = [
    "ConfigError",
    "DevicePlatform",
    "device_uuid",
    "load_config",
]


class ConfigError(DeviceLinkError):
    """Platform configuration file is missing, unreadable or invalid.

    Attributes:
        path: Configuration file path
        reason: What was wrong with it
    """

    def __init__(self, path: str | Path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Invalid configuration {self.path}: {reason}")


def load_config(config_file: str | Path) -> PlatformConfig:
    """Read and validate a YAML platform configuration file.

    An empty file is a valid configuration with no devices.

    Raises:
        ConfigError: If the file cannot be read, is not YAML, or does not
            match the expected shape

    """
    path = Path(config_file).expanduser()
    logger.debug("Parsing config file: %s", path)
    try:
        with path.open() as f:
            config_data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(path, f"unreadable ({e})") from e
    except yaml.YAMLError as e:
        raise ConfigError(path, f"invalid YAML ({e})") from e

    if config_data is None:
        config_data = {}
    if not isinstance(config_data, dict):
        raise ConfigError(path, "top level must be a mapping")

    try:
        config = PlatformConfig.model_validate(config_data)
    except ValidationError as e:
        raise ConfigError(path, f"{e.error_count()} validation error(s): {e}") from e

    logger.info("Parsed config: %d devices", len(config.devices), extra={"config_path": str(path)})
    return config


def device_uuid(ip: str) -> str:
    """Stable unique id for a device, derived from its IP."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, ip))


class DevicePlatform:
    """Builds the configured devices and registers them once identified.

    A device is registered when its first INFO reply arrives. Registration
    is serialized by one lock shared by every device of the platform.
    """

    lp: str = f"{PLATFORM_NAME}:"

    def __init__(
        self,
        config: PlatformConfig,
        settings: ConnectionSettings | None = None,
        debug: bool = False,
    ) -> None:
        self.config: PlatformConfig = config
        self.settings: ConnectionSettings | None = settings
        self.debugger: DebugMode = DebugMode(config.enable_debug_mode or debug, logger)
        self.devices: list[Device] = []
        self.registered: dict[str, Device] = {}
        self._lock: asyncio.Lock = asyncio.Lock()
        self._load_tasks: set[asyncio.Task[None]] = set()
        self._unsubscribers: list[Callable[[], None]] = []

    def setup(self) -> list[Device]:
        """Build one Device per configured entry. Devices with an invalid key are skipped."""
        if not self.config.devices:
            logger.info("Setup the configuration first!")
            return []

        self.debugger.debug("[PLATFORM] Debug mode enabled")
        for entry in self.config.devices:
            try:
                device = Device(
                    entry.ip,
                    device_uuid(entry.ip),
                    key=entry.secret,
                    on_first_info=self._on_first_info,
                    debug=self.debugger,
                    settings=self.settings,
                )
            except InvalidKeyError as e:
                logger.error(
                    "%s Skipping device with invalid secret",
                    self.lp,
                    extra={"ip": entry.ip, "reason": e.reason},
                )
                continue
            self.devices.append(device)
        return self.devices

    def start(self) -> None:
        if not self.devices:
            _ = self.setup()
        for device in self.devices:
            device.start()

    async def stop(self) -> None:
        logger.info("%s Stopping %d device(s)", self.lp, len(self.devices))
        for task in list(self._load_tasks):
            _ = task.cancel()
        if self._load_tasks:
            _ = await asyncio.gather(*self._load_tasks, return_exceptions=True)
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        for device in self.devices:
            await device.stop()

    def _on_first_info(self, context: DeviceContext, device: Device) -> None:
        task = asyncio.create_task(self.load_device(context, device), name=f"devicelink-load-{context.ip}")
        self._load_tasks.add(task)
        task.add_done_callback(self._load_tasks.discard)

    async def load_device(self, context: DeviceContext, device: Device) -> bool:
        """Register an identified device.

        Returns:
            True if the device was registered by this call

        """
        async with self._lock:
            if context.uuid in self.registered:
                logger.info(
                    "Device %s is already registered. (UUID: %s)",
                    context.ip,
                    context.uuid,
                )
                return False

            if context.type is None:
                logger.error(
                    "Unknown accessory type '%s' for '%s'",
                    context.info.type,
                    context.ip,
                )
                return False

            logger.info(
                "Adding new accessory of type '%s' for '%s'",
                context.type,
                context.ip,
                extra={"uuid": context.uuid, "serial_number": context.info.serial_number},
            )
            self.registered[context.uuid] = device
            self._unsubscribers.append(device.subscribe(self._state_logger(context)))
            device.refresh()
            return True

    def _state_logger(self, context: DeviceContext) -> Callable[[StateUpdate], None]:
        def log_state(update: StateUpdate) -> None:
            self.debugger.debug(
                f"[{context.type}][{context.ip}] State update: {update.data}",
                extra={"packet_id": update.packet_id},
            )

        return log_state
