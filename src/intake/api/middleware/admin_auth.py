"""
Admin-key authentication for operator endpoints.

Requests to a protected path must carry ``X-Admin-API-Key`` matching
``INTAKE_ADMIN_API_KEY`` (constant-time comparison).  When no key is
configured the protected endpoints are closed with 503 rather than open.

Protected paths (under the API prefix):
  - ``/recovery/*``
  - ``/circuits``
"""

from __future__ import annotations

import secrets

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from intake.api.middleware.errors import intake_error_handler
from intake.core.errors import AuthenticationError, ConfigError

ADMIN_HEADER = "X-Admin-API-Key"


class AdminAuthMiddleware(BaseHTTPMiddleware):
    """Reject requests to protected paths that lack a valid admin key.

    Parameters
    ----------
    app:
        The ASGI application to wrap.
    admin_key:
        The expected key.  ``None`` closes every protected path.
    protected_prefixes:
        Path prefixes that require the key.
    """

    def __init__(
        self,
        app: object,
        admin_key: str | None = None,
        protected_prefixes: tuple[str, ...] = (),
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._admin_key = admin_key
        self._prefixes = protected_prefixes

    def _is_protected(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self._prefixes)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self._is_protected(request.url.path):
            return await call_next(request)

        if not self._admin_key:
            return await intake_error_handler(
                request, ConfigError("Admin API is not configured on this server.")
            )

        provided = request.headers.get(ADMIN_HEADER, "")
        if not secrets.compare_digest(provided.encode(), self._admin_key.encode()):
            return await intake_error_handler(
                request,
                AuthenticationError(f"Missing or invalid admin key. Provide {ADMIN_HEADER} header."),
            )

        return await call_next(request)
