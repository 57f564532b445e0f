"""Unit tests for data structures and configuration models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from devicelink.const import (
    DEVICE_PORT,
    IDLE_TIMEOUT_SECONDS,
    PING_INTERVAL_SECONDS,
    REFRESH_DEBOUNCE_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
)
from devicelink.structs import (
    DEVICE_TYPES,
    AccessoryType,
    ConnectionSettings,
    DeviceConfig,
    DeviceInfo,
    PlatformConfig,
)


class TestConnectionSettings:
    """Tests for ConnectionSettings defaults."""

    def test_defaults_match_device_firmware(self) -> None:
        """Test default port and timing."""
        settings = ConnectionSettings()

        assert settings.port == DEVICE_PORT == 8098
        assert settings.idle_timeout == IDLE_TIMEOUT_SECONDS
        assert settings.ping_interval == PING_INTERVAL_SECONDS
        assert settings.request_timeout == REQUEST_TIMEOUT_SECONDS
        assert settings.refresh_debounce == REFRESH_DEBOUNCE_SECONDS

    def test_frozen(self) -> None:
        """Test settings cannot be mutated in place."""
        settings = ConnectionSettings()

        with pytest.raises(AttributeError):
            settings.port = 1  # type: ignore[misc]


class TestDeviceInfo:
    """Tests for DeviceInfo.from_data()."""

    def test_full_info(self) -> None:
        """Test every known field is mapped and extras are kept."""
        info = DeviceInfo.from_data(
            {
                "firmware_version": "1.4.2",
                "serial_number": "SN-0001",
                "country_code": "PL",
                "uptime": 120,
                "type": 1,
                "ssid": "home",
                "rssi": -60,
            },
        )

        assert info.firmware_version == "1.4.2"
        assert info.serial_number == "SN-0001"
        assert info.country_code == "PL"
        assert info.uptime == 120  # seconds
        assert info.type == 1
        assert info.ssid == "home"
        assert info.extra == {"rssi": -60}

    def test_missing_fields(self) -> None:
        """Test absent keys become None."""
        info = DeviceInfo.from_data({"type": 1})

        assert info.serial_number is None
        assert info.extra == {}

    @pytest.mark.parametrize("data", [None, [], "INFO"])
    def test_non_object_data(self, data: object) -> None:
        """Test a malformed data field yields an empty info."""
        assert DeviceInfo.from_data(data) == DeviceInfo()


class TestAccessoryType:
    """Tests for accessory classification."""

    def test_type_one_is_thermostat(self) -> None:
        """Test the INFO type map."""
        assert DEVICE_TYPES[1] is AccessoryType.THERMOSTAT
        assert str(AccessoryType.THERMOSTAT) == "Thermostat"

    def test_unknown_type_absent(self) -> None:
        """Test unmapped INFO types have no classification."""
        assert DEVICE_TYPES.get(2) is None

    def test_every_accessory_type_is_reachable(self) -> None:
        """Test each classification is produced by some INFO type."""
        assert set(DEVICE_TYPES.values()) == set(AccessoryType)


class TestPlatformConfig:
    """Tests for the pydantic configuration models."""

    def test_minimal(self) -> None:
        """Test defaults for an empty mapping."""
        config = PlatformConfig.model_validate({})

        assert config.devices == []
        assert config.enable_debug_mode is False

    def test_devices(self) -> None:
        """Test device entries with and without secret."""
        config = PlatformConfig.model_validate(
            {
                "devices": [{"ip": "192.168.1.20", "secret": "abc"}, {"ip": "192.168.1.21"}],
                "enable_debug_mode": True,
                "platform": "ignored",
            },
        )

        assert config.devices == [DeviceConfig(ip="192.168.1.20", secret="abc"), DeviceConfig(ip="192.168.1.21")]
        assert config.enable_debug_mode is True

    def test_missing_ip(self) -> None:
        """Test an entry without ip is rejected."""
        with pytest.raises(ValidationError):
            _ = PlatformConfig.model_validate({"devices": [{"secret": "abc"}]})

    def test_empty_ip(self) -> None:
        """Test an empty ip is rejected."""
        with pytest.raises(ValidationError):
            _ = DeviceConfig(ip="")
