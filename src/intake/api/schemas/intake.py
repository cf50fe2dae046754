"""
Request/response schemas for submissions, recovery and circuits.

``BugReportIn`` is the validated intake body; everything else mirrors the
``to_dict()`` shapes of the orchestration and execution types.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from intake.providers.models import BugReport


class BugReportIn(BugReport):
    """Intake body. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")

    def to_report(self) -> BugReport:
        return BugReport.model_validate(self.model_dump())


class ExternalRefOut(BaseModel):
    external_id: str
    url: str


class StageStatusOut(BaseModel):
    success: bool
    attempts: int = 0
    ref: ExternalRefOut | None = None
    error: str | None = None
    failure: Literal["circuit_open", "retry_exhausted", "non_retryable", "degraded"] | None = None


class EnrichedOut(BaseModel):
    enhanced_description: str
    labels: list[str]
    priority: int
    technical_context: str
    derived_prompt: str


class IntakeResponse(BaseModel):
    """Per-stage outcome of one submission."""

    status: Literal["full", "partial", "failed"]
    issue_ref: ExternalRefOut | None = None
    task_ref: ExternalRefOut | None = None
    stages: dict[str, StageStatusOut]
    queued: bool
    queue_id: str | None = None
    enriched: EnrichedOut


class SweepSummary(BaseModel):
    total: int
    succeeded: int
    failed: int


class SweepResultOut(BaseModel):
    id: str
    success: bool
    retried_stages: list[str] = Field(default_factory=list)
    remaining_errors: dict[str, str] = Field(default_factory=dict)


class SweepResponse(BaseModel):
    summary: SweepSummary
    results: list[SweepResultOut]


class QueuedSubmissionOut(BaseModel):
    id: str
    status: Literal["pending", "retrying", "partial", "failed"]
    title: str
    severity: str
    retry_count: int
    max_retries: int
    created_at: float
    last_attempt_at: float | None = None
    enrichment_degraded: bool
    errors: dict[str, str]
    successes: dict[str, bool]
    refs: dict[str, ExternalRefOut]


class QueueStats(BaseModel):
    total: int
    pending: int
    retrying: int
    partial: int
    failed: int
    retryable: int
    max_size: int


class QueueResponse(BaseModel):
    stats: QueueStats
    submissions: list[QueuedSubmissionOut]


class CircuitStatsOut(BaseModel):
    successful_requests: int
    failed_requests: int
    rejected_requests: int
    state_changes: int


class CircuitOut(BaseModel):
    service: str
    state: Literal["closed", "open", "half_open"]
    consecutive_failures: int
    consecutive_successes: int
    opened_until: float | None = None
    retry_in: int
    stats: CircuitStatsOut


class CircuitsResponse(BaseModel):
    circuits: list[CircuitOut]
