"""Correlation ids shared by log lines and correlated requests.

A correlated GET/SET carries its correlation id on the wire as ``id``; the
device echoes it on the reply, so the request, the reply and every log line in
between can be matched on one token.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

__all__ = [
    "correlation_context",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_current: ContextVar[str | None] = ContextVar("devicelink_correlation_id", default=None)


def generate_correlation_id() -> str:
    """Return a fresh 32-character hex token (uuid4)."""
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    return _current.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _ = _current.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: str | None = None, auto_generate: bool = True) -> Iterator[str | None]:
    """Bind a correlation id for the duration of the block.

    Args:
        correlation_id: Id to bind; when None a new one is generated unless
            ``auto_generate`` is False
        auto_generate: Generate an id when none is given

    Yields:
        The bound id (None only when nothing was given and generation is off)

    The id that was bound before entering is restored on exit, including
    when each asyncio task runs its own copy of the context.
    """
    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()
    token = _current.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _current.reset(token)
