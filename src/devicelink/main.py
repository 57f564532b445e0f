from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from functools import partial
from pathlib import Path

import uvloop

from devicelink.const import (
    DEVICELINK_CONFIG_FILE_PATH,
    DEVICELINK_METRICS_ENABLED,
    DEVICELINK_METRICS_PORT,
    DEVICELINK_VERSION,
)
from devicelink.correlation import correlation_context
from devicelink.logging_abstraction import get_logger
from devicelink.metrics import start_metrics_server
from devicelink.platform import ConfigError, DevicePlatform, load_config

logger = get_logger(__name__)


class DeviceLinkController:
    lp: str = "DeviceLinkController:"

    def __init__(self, config_file: Path, metrics_port: int | None = None, debug: bool = False) -> None:
        self.config_file: Path = config_file
        self.metrics_port: int | None = metrics_port
        self.debug: bool = debug
        self.platform: DevicePlatform | None = None
        self._shutdown: asyncio.Event | None = None

    def signal_handler(self, signum: int) -> None:
        logger.info("%s Intercepted signal: %s (%s)", self.lp, signal.Signals(signum).name, signum)
        if self._shutdown is not None:
            self._shutdown.set()

    async def start(self) -> None:
        """Load the configuration and run every device until a shutdown signal."""
        self._shutdown = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, partial(self.signal_handler, signal.SIGINT))
        loop.add_signal_handler(signal.SIGTERM, partial(self.signal_handler, signal.SIGTERM))
        logger.debug("Signal handlers configured for SIGINT & SIGTERM")

        with correlation_context():
            logger.info("%s Loading configuration", self.lp, extra={"config_path": str(self.config_file)})
            config = load_config(self.config_file)

            if self.metrics_port is not None:
                start_metrics_server(self.metrics_port)
                logger.info("%s Metrics server started", self.lp, extra={"port": self.metrics_port})

            self.platform = DevicePlatform(config, debug=self.debug)
            self.platform.start()
            logger.info("%s Devices started", self.lp, extra={"device_count": len(self.platform.devices)})

        try:
            _ = await self._shutdown.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        logger.info("%s Shutting down DeviceLink...", self.lp)
        if self.platform is not None:
            await self.platform.stop()
            self.platform = None


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="DeviceLink local device bridge")
    _ = parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path(DEVICELINK_CONFIG_FILE_PATH),
        help="Path to the YAML device configuration",
    )
    _ = parser.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    _ = parser.add_argument(
        "--metrics-port",
        type=int,
        default=DEVICELINK_METRICS_PORT if DEVICELINK_METRICS_ENABLED else None,
        help="Expose Prometheus metrics on this port",
    )
    args = parser.parse_args(argv)

    if args.debug:
        logger.set_level(logging.DEBUG)
        logging.getLogger("devicelink").setLevel(logging.DEBUG)
        logger.info("Debug mode enabled via CLI argument")

    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_cli(argv)
    logger.info("Starting DeviceLink", extra={"version": DEVICELINK_VERSION})
    controller = DeviceLinkController(
        args.config.expanduser().resolve(),
        metrics_port=args.metrics_port,
        debug=args.debug,
    )
    try:
        uvloop.run(controller.start())
    except ConfigError as e:
        logger.error("Configuration error", extra={"config_path": e.path, "reason": e.reason})
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
