"""ASGI middleware for the intake API."""

from intake.api.middleware.admin_auth import AdminAuthMiddleware
from intake.api.middleware.admission import AdmissionMiddleware
from intake.api.middleware.request_id import RequestIDMiddleware

__all__ = ["AdminAuthMiddleware", "AdmissionMiddleware", "RequestIDMiddleware"]
