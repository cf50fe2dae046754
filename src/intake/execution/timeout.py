"""Per-call deadlines for provider requests.

A provider call that hangs must never look like a success, and must never
pin a request task forever.  Every stage call is bounded::

    await with_timeout(lambda: tracker.create_issue(enriched), 10.0, "create_issue")

On expiry the inner task is cancelled and :class:`TimeoutExpired` is raised;
it is a retryable error, so the retry executor treats it like any other
transient failure.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from intake.core.errors import TimeoutExpired

T = TypeVar("T")


async def with_timeout(
    fn: Callable[[], Awaitable[T]],
    seconds: float,
    operation: str = "operation",
) -> T:
    """Await ``fn()`` with a deadline.

    Raises:
        TimeoutExpired: If execution exceeds ``seconds``
        ValueError: If ``seconds`` is not positive
    """
    if seconds <= 0:
        raise ValueError(f"Timeout must be positive, got {seconds}")

    start = time.monotonic()
    try:
        return await asyncio.wait_for(fn(), timeout=seconds)
    except TimeoutError:
        raise TimeoutExpired(
            timeout=seconds,
            operation=operation,
            elapsed=time.monotonic() - start,
        ) from None


__all__ = ["TimeoutExpired", "with_timeout"]
