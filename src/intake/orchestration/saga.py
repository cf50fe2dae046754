"""Intake saga: enrich, file an issue, mirror a task.

WHY
───
Three independent, unreliable providers sit behind one user request.  No
single transaction spans them, so the saga runs each stage on its own,
records what happened, and hands anything incomplete to the submission
queue for later resumption.

ARCHITECTURE
────────────
::

    RECEIVED ─▶ ENRICHING ─▶ CREATING_ISSUE ─▶ CREATING_TASK ─▶ AGGREGATING ─▶ RESPONDING
                  │                │                 │
                  │ failure:       │ failure:        │ failure:
                  │ fallback,      │ recorded,       │ recorded
                  │ continue       │ task still runs │
                  ▼                ▼                 ▼
             StageOutcome     StageOutcome      StageOutcome
                                                     │
                         full ◀── issue and task ────┤
                         partial ◀── one of them ────┤
                         failed ◀── neither ─────────┘  (partial/failed are enqueued)

Enrichment never fails a submission: when the provider is unavailable the
deterministic :func:`~intake.providers.models.fallback_enrichment` is used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from intake.core.errors import QueueFullError
from intake.core.logging import get_logger
from intake.orchestration.stages import StageExecutor, StageFailure, StageOutcome
from intake.providers.models import BugReport, EnrichedReport, ExternalRef, fallback_enrichment
from intake.queue.manager import SubmissionQueue
from intake.queue.models import DELIVERY_STAGES, Stage

logger = get_logger(__name__)


class SagaState(str, Enum):
    RECEIVED = "received"
    ENRICHING = "enriching"
    CREATING_ISSUE = "creating_issue"
    CREATING_TASK = "creating_task"
    AGGREGATING = "aggregating"
    RESPONDING = "responding"


class IntakeStatus(str, Enum):
    """Aggregate outcome over the delivery stages."""

    FULL = "full"
    PARTIAL = "partial"
    FAILED = "failed"


def aggregate(outcomes: dict[Stage, StageOutcome]) -> IntakeStatus:
    succeeded = sum(1 for stage in DELIVERY_STAGES if outcomes[stage].success)
    if succeeded == len(DELIVERY_STAGES):
        return IntakeStatus.FULL
    if succeeded:
        return IntakeStatus.PARTIAL
    return IntakeStatus.FAILED


@dataclass
class IntakeResult:
    """Structured per-stage outcome returned for every accepted submission."""

    status: IntakeStatus
    enriched: EnrichedReport
    stages: dict[Stage, StageOutcome] = field(default_factory=dict)
    queued: bool = False
    queue_id: str | None = None

    @property
    def issue_ref(self) -> ExternalRef | None:
        return self.stages[Stage.ISSUE].ref

    @property
    def task_ref(self) -> ExternalRef | None:
        return self.stages[Stage.TASK].ref

    @property
    def enrichment_degraded(self) -> bool:
        return self.stages[Stage.ENRICHMENT].failure == StageFailure.DEGRADED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "issue_ref": self.issue_ref.model_dump() if self.issue_ref else None,
            "task_ref": self.task_ref.model_dump() if self.task_ref else None,
            "stages": {stage.value: outcome.to_dict() for stage, outcome in self.stages.items()},
            "queued": self.queued,
            "queue_id": self.queue_id,
            "enriched": self.enriched.model_dump(exclude={"report"}),
        }


class SubmissionSaga:
    """Runs one submission through every stage and aggregates the result."""

    def __init__(self, executor: StageExecutor, queue: SubmissionQueue):
        self.executor = executor
        self.queue = queue

    def _enter(self, state: SagaState, **fields: Any) -> None:
        logger.debug("saga_state", state=state.value, **fields)

    async def submit(self, report: BugReport) -> IntakeResult:
        self._enter(SagaState.RECEIVED, title_length=len(report.title))
        stages: dict[Stage, StageOutcome] = {}

        self._enter(SagaState.ENRICHING)
        enriched, outcome = await self.executor.enrich(report)
        if enriched is None:
            enriched = fallback_enrichment(report)
            outcome.failure = StageFailure.DEGRADED
            logger.warning("enrichment_degraded", error=outcome.error)
        stages[Stage.ENRICHMENT] = outcome

        self._enter(SagaState.CREATING_ISSUE)
        stages[Stage.ISSUE] = await self.executor.create_issue(enriched)
        issue_url = stages[Stage.ISSUE].ref.url if stages[Stage.ISSUE].ref else None

        self._enter(SagaState.CREATING_TASK, issue_url=issue_url)
        stages[Stage.TASK] = await self.executor.create_task(enriched, issue_url)

        self._enter(SagaState.AGGREGATING)
        result = IntakeResult(status=aggregate(stages), enriched=enriched, stages=stages)

        if result.status != IntakeStatus.FULL:
            result.queue_id = self._enqueue(report, result)
            result.queued = result.queue_id is not None

        self._enter(SagaState.RESPONDING)
        logger.info(
            "saga_completed",
            status=result.status.value,
            queued=result.queued,
            queue_id=result.queue_id,
            enrichment_degraded=result.enrichment_degraded,
        )
        return result

    def _enqueue(self, report: BugReport, result: IntakeResult) -> str | None:
        errors = {
            stage.value: outcome.error or "failed"
            for stage, outcome in result.stages.items()
            if not outcome.success
        }
        successes = {stage.value: result.stages[stage].success for stage in DELIVERY_STAGES}
        refs = {
            stage.value: outcome.ref
            for stage, outcome in result.stages.items()
            if outcome.ref is not None
        }
        try:
            return self.queue.enqueue(
                report,
                result.enriched,
                errors=errors,
                successes=successes,
                refs=refs,
                enrichment_degraded=result.enrichment_degraded,
            )
        except QueueFullError as e:
            logger.error("submission_not_queued", error=e.message, status=result.status.value)
            return None
