"""Structured logging for devicelink.

``get_logger`` hands out ``DeviceLinkLogger`` wrappers that write JSON lines,
human-readable lines, or both (``DEVICELINK_LOG_FORMAT``). Keyword context
passed as ``extra={...}`` travels on the record as ``extra_data`` and is
rendered as a ``context`` object (JSON) or trailing ``key=value`` pairs
(human). Every line carries the current correlation id.

``DebugMode`` is the sink a host hands to its devices: it only speaks when the
host runs in debug mode.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import override

from devicelink.const import (
    DEVICELINK_DEBUG,
    DEVICELINK_LOG_FORMAT,
    DEVICELINK_LOG_HUMAN_OUTPUT,
    DEVICELINK_LOG_JSON_FILE,
)
from devicelink.correlation import get_correlation_id

__all__ = [
    "DebugMode",
    "DeviceLinkLogger",
    "HumanReadableFormatter",
    "JSONFormatter",
    "get_logger",
]


def _record_context(record: logging.LogRecord) -> dict[str, object]:
    extra_data = getattr(record, "extra_data", None)
    return dict(extra_data) if isinstance(extra_data, Mapping) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }
        context = _record_context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``10/19/26 14:03:07.123 INFO [dispatcher:231] [1f0c9a2e] > message | key=value``"""

    LINE_FORMAT: str = "%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(correlation_id)s > %(message)s"
    DATE_FORMAT: str = "%m/%d/%y %H:%M:%S"
    NO_CORRELATION: str = "[--------]"

    def __init__(self) -> None:
        super().__init__(fmt=self.LINE_FORMAT, datefmt=self.DATE_FORMAT)

    @override
    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id()
        record.correlation_id = f"[{correlation_id[:8]}]" if correlation_id else self.NO_CORRELATION
        line = super().format(record)

        context = _record_context(record)
        if not context:
            return line
        pairs = " | ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} | {pairs}"


def _file_handler(path: str | Path) -> logging.Handler | None:
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(target, mode="a")
    except OSError as e:
        print(f"Warning: cannot open log file {target}: {e}", file=sys.stderr)
        return None


def _human_handler(output: str | None) -> logging.Handler:
    match output or "stdout":
        case "stdout":
            return logging.StreamHandler(sys.stdout)
        case "stderr":
            return logging.StreamHandler(sys.stderr)
        case path:
            return _file_handler(path) or logging.StreamHandler(sys.stdout)


class DeviceLinkLogger:
    """Wrapper around ``logging.Logger`` that accepts structured ``extra`` context.

    Handlers are attached the first time a name is seen; later wrappers for the
    same name reuse them. The level starts at DEBUG when ``DEVICELINK_DEBUG`` is
    set, INFO otherwise.

    Args:
        name: Logger name, usually ``__name__``
        log_format: "json", "human" or "both"
        json_file: JSON lines destination; JSON output is off without one
        human_output: "stdout", "stderr" or a file path

    """

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str | None = "stdout",
    ) -> None:
        self.name: str = name
        self.log_format: str = log_format
        self.logger: logging.Logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if DEVICELINK_DEBUG else logging.INFO)

        if not self.logger.handlers:
            for handler in self._build_handlers(json_file, human_output):
                handler.setLevel(self.logger.level)
                self.logger.addHandler(handler)

    def _build_handlers(self, json_file: str | Path | None, human_output: str | None) -> list[logging.Handler]:
        handlers: list[logging.Handler] = []
        if self.log_format in ("json", "both") and json_file:
            json_handler = _file_handler(json_file)
            if json_handler is not None:
                json_handler.setFormatter(JSONFormatter())
                handlers.append(json_handler)
        if self.log_format in ("human", "both"):
            human_handler = _human_handler(human_output)
            human_handler.setFormatter(HumanReadableFormatter())
            handlers.append(human_handler)
        return handlers

    def _log(
        self,
        level: int,
        msg: str,
        *args: object,
        extra: Mapping[str, object] | None = None,
        exc_info: bool = False,
    ) -> None:
        # stacklevel 3: report the caller of debug()/info()/..., not this wrapper
        self.logger.log(
            level,
            msg,
            *args,
            extra={"extra_data": dict(extra)} if extra else None,
            exc_info=exc_info,
            stacklevel=3,
        )

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def critical(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.CRITICAL, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, *args, extra=extra, exc_info=True)

    def set_level(self, level: int) -> None:
        """Set the level of the logger and of every handler it owns."""
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)


class DebugMode:
    """Debug sink handed to device connections by their host.

    ``debug`` and ``error_debug`` only emit when debug mode is enabled;
    ``error`` always emits. ``bind`` returns a sink that prefixes every line,
    e.g. ``[Device][192.168.1.20]``.
    """

    def __init__(self, enabled: bool, logger: DeviceLinkLogger, prefix: str = "") -> None:
        self.enabled: bool = enabled
        self.logger: DeviceLinkLogger = logger
        self.prefix: str = prefix

    def bind(self, prefix: str) -> DebugMode:
        """Return a sink sharing this one's logger with an extra line prefix."""
        joined = f"{self.prefix} {prefix}" if self.prefix else prefix
        return DebugMode(self.enabled, self.logger, joined)

    def _render(self, msg: str) -> str:
        return f"{self.prefix} {msg}" if self.prefix else msg

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        if not self.enabled:
            return
        self.logger.info(f"[DEBUG]: {self._render(msg)}", *args, extra=extra)

    def error_debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        if not self.enabled:
            return
        self.logger.error(f"[DEBUG]: {self._render(msg)}", *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self.logger.error(self._render(msg), *args, extra=extra)


def get_logger(
    name: str,
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
) -> DeviceLinkLogger:
    """Return a DeviceLinkLogger configured from the ``DEVICELINK_LOG_*`` settings.

    Any argument given overrides the matching setting.
    """
    return DeviceLinkLogger(
        name,
        log_format=log_format or DEVICELINK_LOG_FORMAT,
        json_file=json_file or DEVICELINK_LOG_JSON_FILE or None,
        human_output=human_output or DEVICELINK_LOG_HUMAN_OUTPUT,
    )
