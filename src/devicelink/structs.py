from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from devicelink.const import (
    DEVICELINK_RECONNECT_DELAY,
    DEVICE_PORT,
    IDLE_TIMEOUT_SECONDS,
    PING_INTERVAL_SECONDS,
    REFRESH_DEBOUNCE_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
)

__all__ = [
    "DEVICE_TYPES",
    "AccessoryType",
    "ConnectionSettings",
    "DeviceConfig",
    "DeviceContext",
    "DeviceInfo",
    "PlatformConfig",
]


class AccessoryType(StrEnum):
    """Accessory classification derived from the INFO ``type`` field."""

    THERMOSTAT = "Thermostat"


# INFO ``data.type`` → accessory classification
DEVICE_TYPES: dict[int, AccessoryType] = {
    1: AccessoryType.THERMOSTAT,
}


@dataclass(frozen=True)
class ConnectionSettings:
    """Timing knobs for one device connection.

    Defaults match the device firmware; tests shrink them.
    """

    port: int = DEVICE_PORT
    idle_timeout: float = IDLE_TIMEOUT_SECONDS
    ping_interval: float = PING_INTERVAL_SECONDS
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    refresh_debounce: float = REFRESH_DEBOUNCE_SECONDS
    reconnect_delay: float = DEVICELINK_RECONNECT_DELAY
    connect_timeout: float = IDLE_TIMEOUT_SECONDS


@dataclass(frozen=True)
class DeviceInfo:
    """Payload of an INFO reply."""

    firmware_version: str | None = None
    serial_number: str | None = None
    country_code: str | None = None
    uptime: int | None = None
    type: int | None = None
    ssid: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_data(cls, data: Any) -> DeviceInfo:
        """Build from the ``data`` object of an INFO packet (missing keys become None)."""
        if not isinstance(data, dict):
            return cls()
        known = {"firmware_version", "serial_number", "country_code", "uptime", "type", "ssid"}
        return cls(
            firmware_version=data.get("firmware_version"),
            serial_number=data.get("serial_number"),
            country_code=data.get("country_code"),
            uptime=data.get("uptime"),
            type=data.get("type"),
            ssid=data.get("ssid"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass(frozen=True)
class DeviceContext:
    """Identity snapshot captured from the first INFO reply of a device connection."""

    info: DeviceInfo
    ip: str
    uuid: str
    type: AccessoryType | None


class DeviceConfig(BaseModel):
    """One configured device."""

    model_config = ConfigDict(extra="ignore")

    ip: str = Field(min_length=1)
    secret: str | None = None


class PlatformConfig(BaseModel):
    """Platform configuration file contents."""

    model_config = ConfigDict(extra="ignore")

    devices: list[DeviceConfig] = Field(default_factory=list)
    enable_debug_mode: bool = False
