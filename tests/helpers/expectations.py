"""Assertion helpers shared by the test suite."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

import pytest

P = ParamSpec("P")
E = TypeVar("E", bound=BaseException)


def expect_exception(func: Callable[P, Any], exception_type: type[E], *args: P.args, **kwargs: P.kwargs) -> E:
    """Call ``func`` and return the ``exception_type`` it raises, for attribute checks."""
    with pytest.raises(exception_type) as excinfo:
        func(*args, **kwargs)
    return excinfo.value


async def expect_async_exception(
    func: Callable[P, Awaitable[Any]],
    exception_type: type[E],
    *args: P.args,
    **kwargs: P.kwargs,
) -> E:
    """Async counterpart of ``expect_exception``."""
    with pytest.raises(exception_type) as excinfo:
        await func(*args, **kwargs)
    return excinfo.value


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll ``predicate`` until it holds; fail the test after ``timeout`` seconds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail(f"Condition not met within {timeout}s")
        await asyncio.sleep(interval)
