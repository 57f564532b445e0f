"""Prometheus metrics registry for device connections."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

CONNECTION_STATES: Final = ("disconnected", "connecting", "open", "closing")

# Metric definitions
devicelink_frame_sent_total: Final = Counter(  # type: ignore[assignment]
    "devicelink_frame_sent_total",
    "Total frames written to the device",
    ["device_id", "packet_type", "outcome"],
)

devicelink_frame_recv_total: Final = Counter(  # type: ignore[assignment]
    "devicelink_frame_recv_total",
    "Total frames received from the device",
    ["device_id", "packet_type"],
)

devicelink_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "devicelink_decode_errors_total",
    "Total payload decode errors",
    ["device_id", "reason"],
)

devicelink_framing_errors_total: Final = Counter(  # type: ignore[assignment]
    "devicelink_framing_errors_total",
    "Total stream framing errors",
    ["device_id", "reason"],
)

devicelink_connection_state: Final = Gauge(  # type: ignore[assignment]
    "devicelink_connection_state",
    "Current connection state",
    ["device_id", "state"],
)

devicelink_reconnection_total: Final = Counter(  # type: ignore[assignment]
    "devicelink_reconnection_total",
    "Total reconnection attempts",
    ["device_id", "reason"],
)

devicelink_ping_total: Final = Counter(  # type: ignore[assignment]
    "devicelink_ping_total",
    "Total keepalive ticks",
    ["device_id", "outcome"],
)

devicelink_request_total: Final = Counter(  # type: ignore[assignment]
    "devicelink_request_total",
    "Total correlated requests",
    ["device_id", "outcome"],
)

devicelink_request_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "devicelink_request_latency_seconds",
    "Correlated request round-trip latency in seconds",
    ["device_id"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0),
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_frame_sent(device_id: str, packet_type: str, outcome: str) -> None:
    """Record a frame write attempt."""
    devicelink_frame_sent_total.labels(
        device_id=device_id, packet_type=packet_type, outcome=outcome,
    ).inc()  # type: ignore[no-untyped-call]


def record_frame_recv(device_id: str, packet_type: str) -> None:
    """Record a decoded inbound frame."""
    devicelink_frame_recv_total.labels(device_id=device_id, packet_type=packet_type).inc()  # type: ignore[no-untyped-call]


def record_decode_error(device_id: str, reason: str) -> None:
    """Record a decode error."""
    devicelink_decode_errors_total.labels(device_id=device_id, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_framing_error(device_id: str, reason: str) -> None:
    """Record a framing error."""
    devicelink_framing_errors_total.labels(device_id=device_id, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_connection_state(device_id: str, state: str) -> None:
    """Record connection state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in CONNECTION_STATES:
        value = 1 if s == state else 0
        devicelink_connection_state.labels(device_id=device_id, state=s).set(value)  # type: ignore[no-untyped-call]


def record_reconnection(device_id: str, reason: str) -> None:
    """Record a reconnection attempt."""
    devicelink_reconnection_total.labels(device_id=device_id, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_ping(device_id: str, outcome: str) -> None:
    """Record a keepalive tick ("sent" or "skipped")."""
    devicelink_ping_total.labels(device_id=device_id, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_request(device_id: str, outcome: str) -> None:
    """Record a correlated request outcome ("replied", "timeout", "not_sent")."""
    devicelink_request_total.labels(device_id=device_id, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_request_latency(device_id: str, latency_seconds: float) -> None:
    """Record correlated request latency."""
    devicelink_request_latency_seconds.labels(device_id=device_id).observe(latency_seconds)  # type: ignore[no-untyped-call]
