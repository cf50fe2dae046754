"""
Admission gate: sliding-window rate limit on the intake endpoint.

Each caller (client IP, honouring ``X-Forwarded-For``) may push at most
``rate_limit_max_requests`` submissions per ``rate_limit_window_seconds``
into the pipeline.  Denied requests receive 429 with ``Retry-After``; every
response on a guarded path carries ``X-RateLimit-Limit``,
``X-RateLimit-Remaining`` and ``X-RateLimit-Reset`` (epoch seconds).

The limiter is looked up on ``app.state.container`` per request, so the
gate always uses the registry of the app instance it is mounted on.  Caller
identities are never logged.
"""

from __future__ import annotations

import math

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from intake.api.middleware.errors import intake_error_handler
from intake.core.errors import AdmissionDeniedError
from intake.core.logging import get_logger
from intake.execution.rate_limit import RateDecision

logger = get_logger(__name__)


def client_identity(request: Request) -> str:
    """Client IP, respecting X-Forwarded-For behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit_headers(decision: RateDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(math.ceil(decision.reset_at)),
    }


class AdmissionMiddleware(BaseHTTPMiddleware):
    """Apply the sliding-window limiter to ``POST`` on the guarded paths."""

    def __init__(self, app: object, paths: tuple[str, ...] = ()) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._paths = paths

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method != "POST" or request.url.path.rstrip("/") not in self._paths:
            return await call_next(request)

        limiter = request.app.state.container.rate_limiter
        decision = limiter.admit(client_identity(request))
        headers = rate_limit_headers(decision)

        if not decision.allowed:
            logger.info("admission_denied", retry_after=decision.retry_after, path=request.url.path)
            error = AdmissionDeniedError(
                f"Rate limit exceeded ({decision.limit} per {limiter.window_seconds:g}s). "
                f"Retry after {decision.retry_after}s.",
                retry_after=decision.retry_after,
            )
            response = await intake_error_handler(request, error)
        else:
            response = await call_next(request)

        response.headers.update(headers)
        return response
