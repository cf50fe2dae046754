"""
Error handling: maps intake errors to RFC 7807 responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from intake.api.schemas.common import ErrorDetail, ProblemDetail
from intake.core.errors import ErrorCategory, IntakeError, ValidationError, get_retry_after
from intake.core.logging import get_logger

logger = get_logger(__name__)

# ── Error category → (HTTP status, code, title) ──────────────────────────

CATEGORY_TO_PROBLEM: dict[ErrorCategory, tuple[int, str, str]] = {
    ErrorCategory.RATE_LIMIT: (429, "RATE_LIMITED", "Too Many Requests"),
    ErrorCategory.AUTH: (401, "UNAUTHORIZED", "Unauthorized"),
    ErrorCategory.VALIDATION: (400, "VALIDATION_FAILED", "Bad Request"),
    ErrorCategory.CIRCUIT: (503, "CIRCUIT_OPEN", "Service Unavailable"),
    ErrorCategory.QUEUE: (503, "QUEUE_FULL", "Service Unavailable"),
    ErrorCategory.NETWORK: (502, "TRANSIENT", "Bad Gateway"),
    ErrorCategory.PROVIDER: (502, "PROVIDER_ERROR", "Bad Gateway"),
    ErrorCategory.CONFIG: (503, "NOT_CONFIGURED", "Service Unavailable"),
    ErrorCategory.INTERNAL: (500, "INTERNAL", "Internal Server Error"),
}


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    code: str = "INTERNAL",
    errors: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(title=title, status=status, detail=detail, instance=instance, code=code)
    if errors:
        body.errors = [ErrorDetail(**e) for e in errors]
    return JSONResponse(status_code=status, content=body.model_dump(), headers=headers)


async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    """Translate a typed :class:`IntakeError` into its problem response."""
    status, code, title = CATEGORY_TO_PROBLEM.get(exc.category, (500, "INTERNAL", "Internal Server Error"))
    retry_after = get_retry_after(exc)
    headers = {"Retry-After": str(retry_after)} if retry_after else None
    logger.warning("request_failed", status=status, **exc.to_dict())
    return problem_response(
        status=status,
        title=title,
        detail=exc.message,
        instance=str(request.url.path),
        code=code,
        headers=headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions. Returns 500 with ProblemDetail."""
    logger.exception("unhandled_exception", path=request.url.path)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail=str(exc) if request.app.state.settings.debug else "An unexpected error occurred.",
        instance=str(request.url.path),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject a malformed body or parameter before any stage runs."""
    errors = [
        {
            "code": err.get("type", "invalid"),
            "message": err.get("msg", "invalid value"),
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body") or None,
        }
        for err in exc.errors()
    ]
    error = ValidationError(f"Request validation failed ({len(errors)} error(s))")
    status, code, title = CATEGORY_TO_PROBLEM[error.category]
    logger.info("request_rejected", status=status, fields=[e["field"] for e in errors])
    return problem_response(
        status=status,
        title=title,
        detail=error.message,
        instance=str(request.url.path),
        code=code,
        errors=errors,
    )
