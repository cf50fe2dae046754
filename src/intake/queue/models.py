"""Submission record and its derived status."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from intake.providers.models import BugReport, EnrichedReport, ExternalRef


class Stage(str, Enum):
    """Provider stages of the intake saga."""

    ENRICHMENT = "enrichment"
    ISSUE = "issue"
    TASK = "task"


DELIVERY_STAGES: tuple[Stage, ...] = (Stage.ISSUE, Stage.TASK)


class SubmissionStatus(str, Enum):
    """Queue status of a submission. Always derived, never assigned."""

    PENDING = "pending"
    RETRYING = "retrying"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class SubmissionRecord:
    """A submission that did not complete every delivery stage.

    ``successes`` and ``errors`` are keyed by :class:`Stage` value.  Only the
    delivery stages (issue, task) feed the status; enrichment is tracked
    separately through ``enrichment_degraded``.
    """

    id: str
    report: BugReport
    enriched: EnrichedReport
    created_at: float
    max_retries: int
    enrichment_degraded: bool = False
    retry_count: int = 0
    last_attempt_at: float | None = None
    in_flight: bool = False
    errors: dict[str, str] = field(default_factory=dict)
    successes: dict[str, bool] = field(default_factory=dict)
    refs: dict[str, ExternalRef] = field(default_factory=dict)

    def succeeded(self, stage: Stage) -> bool:
        return self.successes.get(stage.value) is True

    @property
    def pending_stages(self) -> list[Stage]:
        """Delivery stages that still need to run, in saga order."""
        return [stage for stage in DELIVERY_STAGES if not self.succeeded(stage)]

    @property
    def is_complete(self) -> bool:
        return not self.pending_stages

    @property
    def status(self) -> SubmissionStatus:
        done = len(DELIVERY_STAGES) - len(self.pending_stages)
        if done and self.pending_stages:
            return SubmissionStatus.PARTIAL
        if self.retry_count >= self.max_retries:
            return SubmissionStatus.FAILED
        if self.in_flight:
            return SubmissionStatus.RETRYING
        return SubmissionStatus.PENDING

    def can_retry(self) -> bool:
        return (
            self.status in (SubmissionStatus.PENDING, SubmissionStatus.PARTIAL)
            and self.retry_count < self.max_retries
        )

    def ref_url(self, stage: Stage) -> str | None:
        ref = self.refs.get(stage.value)
        return ref.url if ref else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "status": self.status.value,
            "title": self.report.title,
            "severity": self.report.severity.value,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "created_at": self.created_at,
            "last_attempt_at": self.last_attempt_at,
            "enrichment_degraded": self.enrichment_degraded,
            "errors": dict(self.errors),
            "successes": dict(self.successes),
            "refs": {stage: ref.model_dump() for stage, ref in self.refs.items()},
        }
