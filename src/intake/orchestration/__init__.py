"""Saga controller and recovery sweep."""

from intake.orchestration.recovery import RecoverySweep, SweepResult, summarize
from intake.orchestration.saga import (
    IntakeResult,
    IntakeStatus,
    SagaState,
    SubmissionSaga,
    aggregate,
)
from intake.orchestration.stages import StageExecutor, StageFailure, StageOutcome

__all__ = [
    "IntakeResult",
    "IntakeStatus",
    "RecoverySweep",
    "SagaState",
    "StageExecutor",
    "StageFailure",
    "StageOutcome",
    "SubmissionSaga",
    "SweepResult",
    "aggregate",
    "summarize",
]
