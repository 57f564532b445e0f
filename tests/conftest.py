"""
Shared fixtures for devicelink tests.

This module provides keys, shrunken timing settings, debug sinks and a
loopback fake device for connection scenarios.
"""

from __future__ import annotations

import base64
from collections.abc import AsyncIterator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from devicelink.correlation import set_correlation_id
from devicelink.logging_abstraction import DebugMode, DeviceLinkLogger
from devicelink.structs import ConnectionSettings
from tests.helpers.fake_device import FakeDevice

TEST_KEY = bytes(range(32))


@pytest.fixture(autouse=True)
def clear_correlation_id():
    """Ensure no correlation id leaks between tests."""
    set_correlation_id(None)
    yield
    set_correlation_id(None)


@pytest.fixture
def aes_key() -> bytes:
    """Raw 32-byte AES key."""
    return TEST_KEY


@pytest.fixture
def aes_secret() -> str:
    """The same key as it appears in configuration (base64 text)."""
    return base64.b64encode(TEST_KEY).decode("ascii")


@pytest.fixture
def fast_settings() -> ConnectionSettings:
    """
    Timing settings shrunk for tests.

    Keepalive is effectively disabled so replies never interleave with PING
    replies; keepalive tests build their own settings.
    """
    return ConnectionSettings(
        port=0,
        idle_timeout=5.0,
        ping_interval=60.0,
        request_timeout=0.5,
        refresh_debounce=0.05,
        reconnect_delay=0.0,
        connect_timeout=1.0,
    )


@pytest.fixture
def mock_logger() -> MagicMock:
    """DeviceLinkLogger stand-in that records calls."""
    return MagicMock(spec=DeviceLinkLogger)


@pytest.fixture
def debug_sink(mock_logger: MagicMock) -> DebugMode:
    """Enabled debug sink writing to ``mock_logger``."""
    return DebugMode(True, mock_logger)


@pytest_asyncio.fixture
async def fake_device() -> AsyncIterator[FakeDevice]:
    """Plaintext loopback device."""
    device = await FakeDevice().start()
    yield device
    await device.stop()


@pytest_asyncio.fixture
async def encrypted_fake_device(aes_key: bytes) -> AsyncIterator[FakeDevice]:
    """Loopback device using the test AES key."""
    device = await FakeDevice(key=aes_key).start()
    yield device
    await device.stop()
