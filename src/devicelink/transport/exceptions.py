"""Exception types for transport layer errors.

These extend the protocol exception hierarchy. None of them reaches the
presentation layer: the connection manager logs transport errors and
reconnects, and the dispatcher turns correlation timeouts into a ``None``
result.
"""

from __future__ import annotations

from devicelink.protocol.exceptions import DeviceLinkError


class TransportError(DeviceLinkError):
    """Socket-level failure (error, idle timeout, end of stream, close).

    Attributes:
        reason: Specific failure reason (e.g., "timeout", "end", "connect_failed")
        state: Connection state when the error occurred
    """

    def __init__(self, reason: str, state: str = "unknown"):
        self.reason = reason
        self.state = state
        super().__init__(f"Transport error: {reason} (state: {state})")


class CorrelationTimeout(DeviceLinkError):
    """No reply carrying the request id arrived in time.

    Attributes:
        packet_id: Correlation id of the request
        timeout_seconds: Timeout value that was exceeded
    """

    def __init__(self, packet_id: str, timeout_seconds: float):
        self.packet_id = packet_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"No reply for request {packet_id} after {timeout_seconds}s")
