"""Rate Limiting: sliding-window admission gate for pipeline ingress.

Manifesto:
Every accepted submission fans out into three paid, rate-limited provider
calls.  The admission gate caps how many submissions one caller may push
into the pipeline per window *before* any of that work starts.

ARCHITECTURE
────────────
::

    SlidingWindowRateLimiter(max_requests, window_seconds)
      ├── .admit(identity)   ─ consume quota, return RateDecision
      ├── .peek(identity)    ─ same computation, no side effect
      ├── .reset(identity)   ─ forget one caller
      └── _maybe_sweep()     ─ drop fully expired identities

    expire(timestamps, now, window) ─ pure window recompute

    Thread-safe (internal Lock).  Never raises: callers only ever get an
    allow/deny decision.

Sliding vs fixed window: the window always ends at ``now``.  When a caller
is denied, ``reset_at`` is anchored on the *oldest* counted request, so the
caller regains exactly one slot at that instant rather than a full quota at
a clock boundary.

Example::

    limiter = SlidingWindowRateLimiter(max_requests=5, window_seconds=900)
    decision = limiter.admit(client_ip)
    if not decision.allowed:
        raise AdmissionDeniedError(retry_after=decision.retry_after)
"""

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RateDecision:
    """Outcome of one admission check.

    Attributes:
        allowed: Whether the request may proceed
        limit: Configured max requests per window
        remaining: Requests left in the current window after this one
        reset_at: Epoch seconds when the window frees up a slot
        now: Evaluation time the decision was computed at
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    now: float

    @property
    def retry_after(self) -> int:
        """Whole seconds until ``reset_at`` (at least 1 when denied)."""
        if self.allowed:
            return 0
        return max(1, math.ceil(self.reset_at - self.now))


def expire(timestamps: list[float], now: float, window_seconds: float) -> list[float]:
    """Return the timestamps still inside the window ending at ``now``."""
    cutoff = now - window_seconds
    return [ts for ts in timestamps if ts > cutoff]


@dataclass
class SlidingWindowRateLimiter:
    """Per-identity sliding window rate limiter.

    Attributes:
        max_requests: Maximum requests per window per identity
        window_seconds: Window size in seconds
        cleanup_interval: Minimum seconds between global sweeps
        clock: Time source returning epoch seconds
    """

    max_requests: int = 5
    window_seconds: float = 15 * 60
    cleanup_interval: float = 60.0
    clock: Callable[[], float] = time.time

    _windows: dict[str, list[float]] = field(default_factory=dict, init=False)
    _last_sweep: float | None = field(default=None, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def _maybe_sweep(self, now: float) -> None:
        """Delete identities whose timestamps are entirely expired."""
        if self._last_sweep is None:
            self._last_sweep = now
            return
        if now - self._last_sweep < self.cleanup_interval:
            return

        cutoff = now - self.window_seconds
        stale = [
            identity
            for identity, timestamps in self._windows.items()
            if not timestamps or max(timestamps) <= cutoff
        ]
        for identity in stale:
            del self._windows[identity]
        self._last_sweep = now

    def _decide(self, live: list[float], now: float) -> RateDecision:
        if len(live) >= self.max_requests:
            return RateDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_at=min(live) + self.window_seconds,
                now=now,
            )
        return RateDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - len(live),
            reset_at=now + self.window_seconds,
            now=now,
        )

    def admit(self, identity: str, now: float | None = None) -> RateDecision:
        """Check and consume quota for ``identity``."""
        now = self.clock() if now is None else now
        with self._lock:
            self._maybe_sweep(now)
            live = expire(self._windows.get(identity, []), now, self.window_seconds)

            decision = self._decide(live, now)
            if decision.allowed:
                live.append(now)
                decision = RateDecision(
                    allowed=True,
                    limit=self.max_requests,
                    remaining=self.max_requests - len(live),
                    reset_at=now + self.window_seconds,
                    now=now,
                )
            self._windows[identity] = live
            return decision

    def peek(self, identity: str, now: float | None = None) -> RateDecision:
        """Report the decision ``admit`` would make, without consuming quota."""
        now = self.clock() if now is None else now
        with self._lock:
            live = expire(self._windows.get(identity, []), now, self.window_seconds)
            return self._decide(live, now)

    def reset(self, identity: str) -> None:
        """Forget all recorded requests for ``identity``."""
        with self._lock:
            self._windows.pop(identity, None)

    @property
    def tracked_identities(self) -> int:
        """Number of identities currently held in memory."""
        with self._lock:
            return len(self._windows)
