"""
FastAPI application factory.

``create_app()`` is the single composition root: it builds the
:class:`~intake.container.ServiceContainer`, wires middleware, routers,
error handlers and lifespan events into one ``FastAPI`` instance.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from intake.api.health import create_health_router
from intake.api.middleware.admin_auth import AdminAuthMiddleware
from intake.api.middleware.admission import AdmissionMiddleware
from intake.api.middleware.errors import (
    intake_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from intake.api.middleware.request_id import RequestIDMiddleware
from intake.api.routers import circuits, recovery, submissions
from intake.container import ServiceContainer
from intake.core.errors import IntakeError
from intake.core.logging import get_logger
from intake.core.settings import IntakeSettings, get_settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup / shutdown hooks."""
    log = get_logger("intake.api")
    settings: IntakeSettings = app.state.settings
    log.info(
        "intake_api_starting",
        version=app.version,
        provider_mode=settings.provider_mode.value,
        admin_enabled=settings.admin_api_key is not None,
    )
    yield
    await app.state.container.aclose()
    log.info("intake_api_shutting_down")


def create_app(
    *,
    settings: IntakeSettings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : IntakeSettings | None
        Override settings (useful for testing).  When ``None`` the cached
        instance from :func:`get_settings` is used.
    container : ServiceContainer | None
        Pre-built container (tests inject fakes and clocks this way).
        When ``None`` one is built from ``settings``.
    """
    settings = settings or (container.settings if container else get_settings())
    container = container or ServiceContainer.build(settings)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    app.state.settings = settings
    app.state.container = container
    app.dependency_overrides[get_settings] = lambda: settings

    prefix = settings.api_prefix
    admin_key = settings.admin_api_key.get_secret_value() if settings.admin_api_key else None

    # ── Middleware (last added runs first) ───────────────────────────
    app.add_middleware(AdmissionMiddleware, paths=(f"{prefix}/submissions",))
    app.add_middleware(
        AdminAuthMiddleware,
        admin_key=admin_key,
        protected_prefixes=(f"{prefix}/recovery", f"{prefix}/circuits"),
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(IntakeError, intake_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    # Health endpoints at root level (no prefix) for container healthchecks
    app.include_router(
        create_health_router(container, "intake-core", version=settings.api_version),
    )
    app.include_router(submissions.router, prefix=prefix, tags=["submissions"])
    app.include_router(recovery.router, prefix=prefix, tags=["recovery"])
    app.include_router(circuits.router, prefix=prefix, tags=["circuits"])

    return app
