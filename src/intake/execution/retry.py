"""Retry strategies with bounded exponential backoff.

Wraps one provider call so transient failures (timeouts, network errors,
HTTP 5xx) are absorbed before they reach the circuit breaker.  Retry is
always the *inner* wrapper: the breaker sees one outcome per logical
operation, not one penalty per internal attempt::

    await breaker.run("issue_tracker", lambda: with_retry(create_issue))

Example:
    >>> from intake.execution.retry import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(max_retries=3, base_delay=1.0, max_delay=30.0)
    >>> [strategy.next_delay(i) for i in range(3)]
    [1.0, 2.0, 4.0]
"""

import asyncio
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from intake.core.errors import is_retryable as default_is_retryable
from intake.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    max_retries: int

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before next retry attempt.

        Args:
            attempt: Zero-based attempt number (0 = first retry)

        Returns:
            Delay in seconds before next attempt
        """
        ...

    def should_retry(self, attempt: int) -> bool:
        """True while fewer than ``max_retries`` retries have been made."""
        return attempt < self.max_retries


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff, deterministic unless jitter is enabled.

    Delay = min(base_delay * (multiplier ** attempt), max_delay)

    Attributes:
        max_retries: Maximum number of retry attempts after the first call
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier
        jitter: Add +/- ``jitter_range`` randomness to each delay
        jitter_range: Range of jitter as fraction of delay (0.0-1.0)
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: bool = False
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.multiplier ** attempt), self.max_delay)

        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay = max(0.0, delay + random.uniform(-jitter_amount, jitter_amount))

        return delay


@dataclass
class NoRetry(RetryStrategy):
    """No retry - fail on the first error."""

    max_retries: int = 0

    def next_delay(self, attempt: int) -> float:
        return 0.0


@dataclass
class RetryOutcome(Generic[T]):
    """Result of :func:`retry_with_result`; never raised, only returned."""

    success: bool
    attempts: int
    result: T | None = None
    error: BaseException | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "attempts": self.attempts,
            "error": str(self.error) if self.error is not None else None,
        }


async def retry_with_result(
    fn: Callable[[], Awaitable[T]],
    strategy: RetryStrategy | None = None,
    is_retryable: Callable[[BaseException], bool] = default_is_retryable,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> RetryOutcome[T]:
    """Await ``fn`` with retry logic and report the outcome instead of raising.

    Args:
        fn: Zero-argument coroutine factory, called once per attempt
        strategy: Retry strategy (default: ``ExponentialBackoff()``)
        is_retryable: Error classifier
        sleep: Awaitable sleep, injectable for tests
        on_retry: Callback called before each retry (attempt, error, delay)
    """
    strategy = strategy or ExponentialBackoff()
    attempt = 0
    while True:
        try:
            result = await fn()
        except Exception as e:
            if not is_retryable(e) or not strategy.should_retry(attempt):
                return RetryOutcome(success=False, attempts=attempt + 1, error=e)

            delay = strategy.next_delay(attempt)
            logger.debug(
                "retry_scheduled",
                attempt=attempt + 1,
                delay=delay,
                error=str(e) or e.__class__.__name__,
            )
            if on_retry:
                on_retry(attempt + 1, e, delay)
        else:
            return RetryOutcome(success=True, attempts=attempt + 1, result=result)

        await sleep(delay)
        attempt += 1


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    strategy: RetryStrategy | None = None,
    is_retryable: Callable[[BaseException], bool] = default_is_retryable,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """Await ``fn`` with retry logic.

    A non-retryable error propagates immediately.  A retryable error is
    retried after a non-blocking backoff sleep while attempts remain; once
    exhausted, the last error propagates unchanged.

    Returns:
        Result from the first successful call
    """
    outcome = await retry_with_result(fn, strategy, is_retryable, sleep, on_retry)
    if not outcome.success:
        raise outcome.error
    return outcome.result
