"""
FastAPI dependency injection.

Usage in routers::

    from intake.api.deps import Container

    @router.post("/submissions")
    async def submit(body: BugReportIn, container: Container):
        ...

The :class:`~intake.container.ServiceContainer` lives on ``app.state`` and is
built once by :func:`intake.api.app.create_app`.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from intake.container import ServiceContainer
from intake.core.settings import IntakeSettings, get_settings


def get_container(request: Request) -> ServiceContainer:
    """The service container of the app handling this request."""
    return request.app.state.container


# ── Convenience type aliases ─────────────────────────────────────────────

Settings = Annotated[IntakeSettings, Depends(get_settings)]
Container = Annotated[ServiceContainer, Depends(get_container)]
