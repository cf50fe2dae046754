"""Recovery sweep: resume queued submissions without repeating stages.

One pass walks :meth:`SubmissionQueue.list_retryable` and, for each record:

1. skips it when its last attempt is more recent than ``min_retry_interval``;
2. claims an attempt with ``mark_retry_attempted`` (False at the ceiling);
3. re-runs enrichment only if it was degraded and nothing was delivered yet;
4. re-runs only the delivery stages whose success flag is not true, feeding
   the stored issue URL into the task stage;
5. removes the record when every delivery stage has succeeded, otherwise
   merges the new outcomes back into the queue.

Passes never overlap: a second caller waits for the running pass to finish
and then runs its own.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from intake.core.logging import LogContext, get_logger
from intake.orchestration.stages import StageExecutor, StageOutcome
from intake.queue.manager import SubmissionQueue
from intake.queue.models import Stage, SubmissionRecord

logger = get_logger(__name__)


@dataclass
class SweepResult:
    """Outcome of one record in a sweep pass."""

    id: str
    success: bool
    retried_stages: list[str] = field(default_factory=list)
    remaining_errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "success": self.success,
            "retried_stages": list(self.retried_stages),
            "remaining_errors": dict(self.remaining_errors),
        }


def summarize(results: list[SweepResult]) -> dict[str, int]:
    succeeded = sum(1 for result in results if result.success)
    return {"total": len(results), "succeeded": succeeded, "failed": len(results) - succeeded}


class RecoverySweep:
    """Re-attempts the still-failing stages of queued submissions."""

    def __init__(
        self,
        executor: StageExecutor,
        queue: SubmissionQueue,
        *,
        min_retry_interval: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.executor = executor
        self.queue = queue
        self.min_retry_interval = min_retry_interval
        self.clock = clock
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def _due(self, record: SubmissionRecord, now: float) -> bool:
        if record.last_attempt_at is None or self.min_retry_interval <= 0:
            return True
        return now - record.last_attempt_at >= self.min_retry_interval

    async def run(self, now: float | None = None) -> list[SweepResult]:
        """Run one pass and return a result per processed record."""
        async with self._lock:
            now = self.clock() if now is None else now
            candidates = self.queue.list_retryable(now=now)
            due = [record for record in candidates if self._due(record, now)]
            logger.info("sweep_started", retryable=len(candidates), due=len(due))

            results = []
            for record in due:
                async with LogContext(submission_id=record.id):
                    results.append(await self._recover(record, now))

            logger.info("sweep_completed", **summarize(results))
            return results

    async def _recover(self, record: SubmissionRecord, now: float) -> SweepResult:
        if not self.queue.mark_retry_attempted(record.id, now=now):
            return SweepResult(
                id=record.id,
                success=False,
                remaining_errors={**record.errors, "queue": "retry ceiling reached"},
            )

        retried: list[str] = []
        outcomes: list[StageOutcome] = []
        enriched = record.enriched
        new_enriched = None

        # A cancelled sweep must not leave the record claimed.
        try:
            delivered_any = any(record.succeeded(stage) for stage in (Stage.ISSUE, Stage.TASK))
            if record.enrichment_degraded and not delivered_any:
                retried.append(Stage.ENRICHMENT.value)
                new_enriched, outcome = await self.executor.enrich(record.report)
                outcomes.append(outcome)
                if new_enriched is not None:
                    enriched = new_enriched

            issue_url = record.ref_url(Stage.ISSUE)
            if not record.succeeded(Stage.ISSUE):
                retried.append(Stage.ISSUE.value)
                outcome = await self.executor.create_issue(enriched)
                outcomes.append(outcome)
                if outcome.ref is not None:
                    issue_url = outcome.ref.url

            if not record.succeeded(Stage.TASK):
                retried.append(Stage.TASK.value)
                outcomes.append(await self.executor.create_task(enriched, issue_url))

            errors = {o.stage.value: o.error or "failed" for o in outcomes if not o.success}
            successes = {o.stage.value: o.success for o in outcomes}
            refs = {o.stage.value: o.ref for o in outcomes if o.ref is not None}

            self.queue.update(
                record.id,
                errors=errors,
                successes=successes,
                refs=refs,
                enriched=new_enriched,
                enrichment_degraded=False if new_enriched is not None else None,
            )
        finally:
            if self.queue.release(record.id):
                logger.warning("sweep_attempt_abandoned", retried_stages=retried)

        updated = self.queue.get(record.id)

        if updated is not None and updated.is_complete:
            self.queue.remove(record.id)
            logger.info("submission_recovered", retried_stages=retried)
            return SweepResult(id=record.id, success=True, retried_stages=retried)

        remaining = updated.errors if updated is not None else errors
        logger.info("submission_still_failing", retried_stages=retried, remaining=sorted(remaining))
        return SweepResult(
            id=record.id,
            success=False,
            retried_stages=retried,
            remaining_errors=dict(remaining),
        )
