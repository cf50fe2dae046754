"""Recoverable submission queue."""

from intake.queue.manager import SubmissionQueue, generate_submission_id
from intake.queue.models import DELIVERY_STAGES, Stage, SubmissionRecord, SubmissionStatus
from intake.queue.store import InMemorySubmissionStore, SubmissionStore

__all__ = [
    "DELIVERY_STAGES",
    "InMemorySubmissionStore",
    "Stage",
    "SubmissionQueue",
    "SubmissionRecord",
    "SubmissionStatus",
    "SubmissionStore",
    "generate_submission_id",
]
