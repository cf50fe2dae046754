"""Circuit breaker pattern for fault tolerance.

Each provider gets its own independent state machine.  When a provider keeps
failing, calls to it fail fast for a cooldown period instead of adding
latency to every submission and load to a degraded dependency.

States:
    CLOSED: Normal operation, requests pass through
    OPEN: Failing fast, requests rejected immediately
    HALF_OPEN: Cooldown elapsed, probing whether the provider recovered

Transitions::

    CLOSED ──(failure_threshold consecutive failures)──▶ OPEN
    OPEN ──(read at now >= opened_until)──▶ HALF_OPEN        (lazy, no timer)
    HALF_OPEN ──(success_threshold consecutive successes)──▶ CLOSED
    HALF_OPEN ──(any failure)──▶ OPEN                         (re-arms cooldown)

A success while CLOSED resets the consecutive failure count to zero, so a
slow trickle of unrelated failures never opens the circuit.

Example:
    >>> registry = CircuitBreakerRegistry(failure_threshold=5, cooldown_seconds=60)
    >>> issue = await registry.run("issue_tracker", lambda: tracker.create_issue(report))
"""

import math
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, TypeVar

from intake.core.errors import CircuitOpenError
from intake.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Rejecting requests
    HALF_OPEN = "half_open"  # Testing recovery


@dataclass(frozen=True)
class CircuitRecord:
    """Immutable state of one circuit."""

    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    opened_until: float = 0.0


def recompute(record: CircuitRecord, now: float) -> CircuitRecord:
    """Apply time-driven transitions (OPEN → HALF_OPEN once cooled down)."""
    if record.state == CircuitState.OPEN and now >= record.opened_until:
        return replace(
            record,
            state=CircuitState.HALF_OPEN,
            consecutive_failures=0,
            consecutive_successes=0,
        )
    return record


@dataclass
class CircuitStats:
    """Lifetime counters for one circuit; ``reset()`` does not clear them."""

    successful_requests: int = 0
    failed_requests: int = 0
    rejected_requests: int = 0
    state_changes: int = 0


@dataclass(frozen=True)
class CircuitStatus:
    """Point-in-time snapshot of a circuit, safe to hand to callers."""

    service: str
    state: CircuitState
    consecutive_failures: int
    consecutive_successes: int
    opened_until: float | None
    retry_in: int
    stats: CircuitStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "service": self.service,
            "state": self.state.value,
            "consecutive_failures": self.consecutive_failures,
            "consecutive_successes": self.consecutive_successes,
            "opened_until": self.opened_until,
            "retry_in": self.retry_in,
            "stats": asdict(self.stats),
        }


@dataclass
class CircuitBreaker:
    """Circuit breaker for a single service.

    Attributes:
        name: Service key for this circuit
        failure_threshold: Consecutive failures before opening
        cooldown_seconds: Seconds to stay open before probing
        success_threshold: Consecutive half-open successes needed to close
        clock: Time source returning epoch seconds
    """

    name: str = "default"
    failure_threshold: int = 5
    cooldown_seconds: float = 60.0
    success_threshold: int = 2
    clock: Callable[[], float] = time.time

    _record: CircuitRecord = field(default_factory=CircuitRecord, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)
    _stats: CircuitStats = field(default_factory=CircuitStats, init=False)

    @property
    def stats(self) -> CircuitStats:
        return self._stats

    def _refresh(self, now: float) -> CircuitRecord:
        """Recompute the record for ``now`` and store it."""
        updated = recompute(self._record, now)
        if updated.state != self._record.state:
            self._log_transition(self._record.state, updated.state)
        self._record = updated
        return updated

    def _transition(self, record: CircuitRecord) -> None:
        if record.state != self._record.state:
            self._log_transition(self._record.state, record.state)
        self._record = record

    def _log_transition(self, old: CircuitState, new: CircuitState) -> None:
        self._stats.state_changes += 1
        log = logger.warning if new == CircuitState.OPEN else logger.info
        log("circuit_state_changed", service=self.name, old=old.value, new=new.value)

    def state(self, now: float | None = None) -> CircuitState:
        """Current state, after lazy recompute."""
        now = self.clock() if now is None else now
        with self._lock:
            return self._refresh(now).state

    def can_proceed(self, now: float | None = None) -> bool:
        """True unless the circuit is OPEN and still cooling down."""
        now = self.clock() if now is None else now
        with self._lock:
            return self._refresh(now).state != CircuitState.OPEN

    def record_success(self, now: float | None = None) -> None:
        """Record a successful call."""
        now = self.clock() if now is None else now
        with self._lock:
            record = self._refresh(now)
            self._stats.successful_requests += 1

            if record.state == CircuitState.HALF_OPEN:
                successes = record.consecutive_successes + 1
                if successes >= self.success_threshold:
                    self._transition(CircuitRecord(state=CircuitState.CLOSED))
                else:
                    self._transition(replace(record, consecutive_successes=successes))
            elif record.state == CircuitState.CLOSED:
                self._transition(replace(record, consecutive_failures=0))

    def record_failure(self, now: float | None = None) -> None:
        """Record a failed call."""
        now = self.clock() if now is None else now
        with self._lock:
            record = self._refresh(now)
            self._stats.failed_requests += 1

            if record.state == CircuitState.HALF_OPEN:
                # Any failure in half-open reopens the circuit
                self._transition(
                    CircuitRecord(
                        state=CircuitState.OPEN,
                        consecutive_failures=self.failure_threshold,
                        opened_until=now + self.cooldown_seconds,
                    )
                )
            elif record.state == CircuitState.CLOSED:
                failures = record.consecutive_failures + 1
                if failures >= self.failure_threshold:
                    self._transition(
                        CircuitRecord(
                            state=CircuitState.OPEN,
                            consecutive_failures=failures,
                            opened_until=now + self.cooldown_seconds,
                        )
                    )
                else:
                    self._transition(replace(record, consecutive_failures=failures))

    def status(self, now: float | None = None) -> CircuitStatus:
        """Snapshot of the circuit for reporting."""
        now = self.clock() if now is None else now
        with self._lock:
            record = self._refresh(now)
            is_open = record.state == CircuitState.OPEN
            return CircuitStatus(
                service=self.name,
                state=record.state,
                consecutive_failures=record.consecutive_failures,
                consecutive_successes=record.consecutive_successes,
                opened_until=record.opened_until if is_open else None,
                retry_in=max(1, math.ceil(record.opened_until - now)) if is_open else 0,
                stats=replace(self._stats),
            )

    def reset(self) -> None:
        """Reset circuit to closed state."""
        with self._lock:
            self._transition(CircuitRecord())

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Await ``fn`` through the circuit breaker.

        Raises:
            CircuitOpenError: If the circuit is open; ``fn`` is not called
        """
        if not self.can_proceed():
            with self._lock:
                self._stats.rejected_requests += 1
            raise CircuitOpenError(self.name, retry_after=self.status().retry_in)

        try:
            result = await fn()
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


class CircuitBreakerRegistry:
    """Keyed store of independent per-service circuit breakers.

    Circuits are created lazily with the registry's defaults on first use.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 60.0,
        success_threshold: int = 2,
        clock: Callable[[], float] = time.time,
    ):
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.success_threshold = success_threshold
        self.clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.RLock()

    def get_or_create(self, service: str) -> CircuitBreaker:
        """Get or create the circuit breaker for ``service``."""
        with self._lock:
            if service not in self._breakers:
                self._breakers[service] = CircuitBreaker(
                    name=service,
                    failure_threshold=self.failure_threshold,
                    cooldown_seconds=self.cooldown_seconds,
                    success_threshold=self.success_threshold,
                    clock=self.clock,
                )
            return self._breakers[service]

    def can_proceed(self, service: str, now: float | None = None) -> bool:
        return self.get_or_create(service).can_proceed(now)

    def record_success(self, service: str, now: float | None = None) -> None:
        self.get_or_create(service).record_success(now)

    def record_failure(self, service: str, now: float | None = None) -> None:
        self.get_or_create(service).record_failure(now)

    def status(self, service: str, now: float | None = None) -> CircuitStatus:
        return self.get_or_create(service).status(now)

    def statuses(self) -> list[CircuitStatus]:
        """Snapshots of every known circuit."""
        with self._lock:
            breakers = list(self._breakers.values())
        return [breaker.status() for breaker in breakers]

    def reset(self, service: str) -> None:
        """Reset one circuit to closed."""
        with self._lock:
            breaker = self._breakers.get(service)
        if breaker is not None:
            breaker.reset()

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        with self._lock:
            for breaker in self._breakers.values():
                breaker.reset()

    async def run(self, service: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Await ``fn`` through the circuit for ``service``."""
        return await self.get_or_create(service).run(fn)
