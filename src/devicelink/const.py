import os

from devicelink import __version__

__all__ = [
    "DEVICELINK_CONFIG_FILE_PATH",
    "DEVICELINK_DEBUG",
    "DEVICELINK_LOG_FORMAT",
    "DEVICELINK_LOG_HUMAN_OUTPUT",
    "DEVICELINK_LOG_JSON_FILE",
    "DEVICELINK_LOG_NAME",
    "DEVICELINK_METRICS_ENABLED",
    "DEVICELINK_METRICS_PORT",
    "DEVICELINK_RECONNECT_DELAY",
    "DEVICELINK_VERSION",
    "DEVICE_PORT",
    "FRAME_LENGTH_SEPARATOR",
    "IDLE_TIMEOUT_SECONDS",
    "IV_LENGTH",
    "KEY_LENGTH",
    "PING_INTERVAL_SECONDS",
    "PLATFORM_NAME",
    "REFRESH_DEBOUNCE_SECONDS",
    "REQUEST_TIMEOUT_SECONDS",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")

DEVICELINK_VERSION: str = __version__
DEVICELINK_LOG_NAME: str = "devicelink"
PLATFORM_NAME: str = "DeviceLinkPlatform"

# Wire protocol
DEVICE_PORT = 8098
FRAME_LENGTH_SEPARATOR = b";"
IV_LENGTH = 16
KEY_LENGTH = 32  # AES-256

# Connection timing
IDLE_TIMEOUT_SECONDS: float = 10.0
PING_INTERVAL_SECONDS: float = 5.0
REQUEST_TIMEOUT_SECONDS: float = 2.0
REFRESH_DEBOUNCE_SECONDS: float = 0.75

_reconnect_delay = os.environ.get("DEVICELINK_RECONNECT_DELAY", "1.0")
try:
    _reconnect_delay_value: float = float(_reconnect_delay) if _reconnect_delay else 1.0
except (ValueError, TypeError):
    _reconnect_delay_value: float = 1.0
DEVICELINK_RECONNECT_DELAY: float = _reconnect_delay_value

DEVICELINK_DEBUG: bool = os.environ.get("DEVICELINK_DEBUG", "0").casefold() in YES_ANSWER

DEVICELINK_CONFIG_FILE_PATH: str = os.environ.get("DEVICELINK_CONFIG_FILE_PATH", "/config/devicelink.yaml")

# Metrics
DEVICELINK_METRICS_ENABLED: bool = os.environ.get("DEVICELINK_METRICS_ENABLED", "false").casefold() in YES_ANSWER
_metrics_port = os.environ.get("DEVICELINK_METRICS_PORT", "9400")
DEVICELINK_METRICS_PORT: int = int(_metrics_port) if _metrics_port and _metrics_port.isdigit() else 9400

# Logging Configuration
DEVICELINK_LOG_FORMAT: str = os.environ.get("DEVICELINK_LOG_FORMAT", "human")  # "json", "human", or "both"
DEVICELINK_LOG_JSON_FILE: str = os.environ.get("DEVICELINK_LOG_JSON_FILE", "")  # empty disables JSON file output
DEVICELINK_LOG_HUMAN_OUTPUT: str = os.environ.get("DEVICELINK_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path
