"""Metrics module."""

from .registry import (
    record_connection_state,
    record_decode_error,
    record_frame_recv,
    record_frame_sent,
    record_framing_error,
    record_ping,
    record_reconnection,
    record_request,
    record_request_latency,
    start_metrics_server,
)

__all__ = [
    "record_connection_state",
    "record_decode_error",
    "record_frame_recv",
    "record_frame_sent",
    "record_framing_error",
    "record_ping",
    "record_reconnection",
    "record_request",
    "record_request_latency",
    "start_metrics_server",
]
