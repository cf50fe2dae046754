"""API schemas."""

from intake.api.schemas.common import ErrorDetail, ProblemDetail
from intake.api.schemas.intake import (
    BugReportIn,
    CircuitsResponse,
    IntakeResponse,
    QueueResponse,
    SweepResponse,
)

__all__ = [
    "BugReportIn",
    "CircuitsResponse",
    "ErrorDetail",
    "IntakeResponse",
    "ProblemDetail",
    "QueueResponse",
    "SweepResponse",
]
