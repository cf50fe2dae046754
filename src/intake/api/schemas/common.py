"""
Common API schemas: RFC 7807 errors.

Every non-2xx response body is a :class:`ProblemDetail`.

Error codes used by intake-core:
    - ``RATE_LIMITED`` (429): Admission gate denied the submission
    - ``VALIDATION_FAILED`` (400): Malformed body or parameter
    - ``UNAUTHORIZED`` (401): Missing or wrong admin key
    - ``NOT_CONFIGURED`` (503): Admin key not configured on this server
    - ``CIRCUIT_OPEN`` (503): Provider short-circuited
    - ``QUEUE_FULL`` (503): Submission queue at capacity
    - ``INTERNAL`` (500): Unexpected server error
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Structured error detail for field-level or nested errors."""

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    field: str | None = Field(default=None, description="Field path if error is field-specific")


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Example:
        {
            "type": "about:blank",
            "title": "Too Many Requests",
            "status": 429,
            "detail": "Rate limit exceeded (5 per 900s). Retry after 840s.",
            "instance": "/api/v1/submissions",
            "code": "RATE_LIMITED",
            "errors": []
        }
    """

    type: str = Field(default="about:blank", description="Error type URI")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Human-readable explanation of the error")
    instance: str = Field(default="", description="URI of the failing request")
    code: str = Field(default="INTERNAL", description="Machine-readable error code")
    errors: list[ErrorDetail] = Field(default_factory=list)
