"""
Guarded provider stages.

Each stage call is composed the same way, innermost first::

    with_timeout(call)                 per-call deadline, TimeoutExpired on expiry
      → with_retry(...)                bounded exponential backoff
        → breakers.run(service, ...)   one breaker outcome per logical call

and every failure is converted into a :class:`StageOutcome` at the stage
boundary, so one provider failing never aborts a sibling stage.  The saga
and the recovery sweep share this executor.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from intake.core.errors import CircuitOpenError, error_message, is_retryable
from intake.core.logging import get_logger
from intake.execution.circuit_breaker import CircuitBreakerRegistry
from intake.execution.retry import ExponentialBackoff, RetryStrategy, with_retry
from intake.execution.timeout import with_timeout
from intake.providers.models import BugReport, EnrichedReport, ExternalRef
from intake.providers.protocol import EnrichmentProvider, IssueTracker, TaskManager
from intake.queue.models import Stage

T = TypeVar("T")

logger = get_logger(__name__)

# One circuit per provider
ENRICHMENT_SERVICE = "enrichment"
ISSUE_TRACKER_SERVICE = "issue_tracker"
TASK_MANAGER_SERVICE = "task_manager"


class StageFailure(str, Enum):
    """Why a stage did not succeed."""

    CIRCUIT_OPEN = "circuit_open"
    RETRY_EXHAUSTED = "retry_exhausted"
    NON_RETRYABLE = "non_retryable"
    DEGRADED = "degraded"


@dataclass
class StageOutcome:
    """Result of one guarded stage call."""

    stage: Stage
    success: bool
    attempts: int = 0
    ref: ExternalRef | None = None
    error: str | None = None
    failure: StageFailure | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "attempts": self.attempts}
        if self.ref is not None:
            result["ref"] = self.ref.model_dump()
        if self.error is not None:
            result["error"] = self.error
        if self.failure is not None:
            result["failure"] = self.failure.value
        return result


class StageExecutor:
    """Runs provider calls behind breaker, retry and timeout."""

    def __init__(
        self,
        enrichment: EnrichmentProvider,
        issue_tracker: IssueTracker,
        task_manager: TaskManager,
        breakers: CircuitBreakerRegistry,
        *,
        retry_strategy: RetryStrategy | None = None,
        enrichment_timeout: float = 45.0,
        delivery_timeout: float = 10.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.enrichment = enrichment
        self.issue_tracker = issue_tracker
        self.task_manager = task_manager
        self.breakers = breakers
        self.retry_strategy = retry_strategy or ExponentialBackoff()
        self.enrichment_timeout = enrichment_timeout
        self.delivery_timeout = delivery_timeout
        self.sleep = sleep

    async def _guarded(
        self,
        stage: Stage,
        service: str,
        call: Callable[[], Awaitable[T]],
        timeout: float,
    ) -> tuple[T | None, StageOutcome]:
        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            return await with_timeout(call, timeout, operation=stage.value)

        try:
            value = await self.breakers.run(
                service,
                lambda: with_retry(attempt, self.retry_strategy, sleep=self.sleep),
            )
        except CircuitOpenError as e:
            logger.warning(
                "stage_short_circuited",
                stage=stage.value,
                service=service,
                retry_after=e.retry_after,
            )
            return None, StageOutcome(
                stage=stage, success=False, attempts=0, error=e.message, failure=StageFailure.CIRCUIT_OPEN
            )
        except Exception as e:
            failure = StageFailure.RETRY_EXHAUSTED if is_retryable(e) else StageFailure.NON_RETRYABLE
            logger.warning(
                "stage_failed",
                stage=stage.value,
                service=service,
                attempts=attempts,
                failure=failure.value,
                error=error_message(e),
            )
            return None, StageOutcome(
                stage=stage, success=False, attempts=attempts, error=error_message(e), failure=failure
            )

        return value, StageOutcome(stage=stage, success=True, attempts=attempts)

    async def enrich(self, report: BugReport) -> tuple[EnrichedReport | None, StageOutcome]:
        return await self._guarded(
            Stage.ENRICHMENT,
            ENRICHMENT_SERVICE,
            lambda: self.enrichment.enrich(report),
            self.enrichment_timeout,
        )

    async def create_issue(self, enriched: EnrichedReport) -> StageOutcome:
        ref, outcome = await self._guarded(
            Stage.ISSUE,
            ISSUE_TRACKER_SERVICE,
            lambda: self.issue_tracker.create_issue(enriched),
            self.delivery_timeout,
        )
        outcome.ref = ref
        return outcome

    async def create_task(self, enriched: EnrichedReport, issue_url: str | None) -> StageOutcome:
        ref, outcome = await self._guarded(
            Stage.TASK,
            TASK_MANAGER_SERVICE,
            lambda: self.task_manager.create_task(enriched, issue_url),
            self.delivery_timeout,
        )
        outcome.ref = ref
        return outcome
