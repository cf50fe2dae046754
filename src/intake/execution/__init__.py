"""Resilience primitives shared by every provider call.

::

    SlidingWindowRateLimiter  ─ admission gate on ingress
    CircuitBreakerRegistry    ─ per-service fail-fast state machines
    with_retry                ─ bounded exponential backoff (inner wrapper)
    with_timeout              ─ per-call deadline
"""

from intake.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitRecord,
    CircuitState,
    CircuitStatus,
    recompute,
)
from intake.execution.rate_limit import RateDecision, SlidingWindowRateLimiter, expire
from intake.execution.retry import (
    ExponentialBackoff,
    NoRetry,
    RetryOutcome,
    RetryStrategy,
    retry_with_result,
    with_retry,
)
from intake.execution.timeout import with_timeout

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitRecord",
    "CircuitState",
    "CircuitStatus",
    "ExponentialBackoff",
    "NoRetry",
    "RateDecision",
    "RetryOutcome",
    "RetryStrategy",
    "SlidingWindowRateLimiter",
    "expire",
    "recompute",
    "retry_with_result",
    "with_retry",
    "with_timeout",
]
