"""Health endpoints: ``/health``, ``/health/ready``, ``/health/live``.

Everything the service depends on at runtime is in memory, so the probes
inspect state instead of calling out:

* each provider circuit: ``open`` means that stage is being skipped and its
  submissions land in the queue, so the service is ``degraded``;
* the submission queue: at capacity, new partial submissions would be lost,
  so the service is ``unhealthy`` and readiness answers 503.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from intake.execution.circuit_breaker import CircuitState
from intake.orchestration.stages import ENRICHMENT_SERVICE, ISSUE_TRACKER_SERVICE, TASK_MANAGER_SERVICE

if TYPE_CHECKING:
    from intake.container import ServiceContainer

PROVIDER_SERVICES = (ENRICHMENT_SERVICE, ISSUE_TRACKER_SERVICE, TASK_MANAGER_SERVICE)
QUEUE_COMPONENT = "submission_queue"

_STARTED_AT = time.monotonic()

HealthStatus = Literal["healthy", "degraded", "unhealthy"]
_SEVERITY: dict[str, int] = {"healthy": 0, "degraded": 1, "unhealthy": 2}


class ComponentHealth(BaseModel):
    status: HealthStatus
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    uptime_s: float = Field(default_factory=lambda: round(time.monotonic() - _STARTED_AT, 1))
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    checks: dict[str, ComponentHealth]


class LivenessResponse(BaseModel):
    status: str = "alive"


def circuit_health(container: ServiceContainer, service: str) -> ComponentHealth:
    snapshot = container.breakers.status(service)
    details = {"state": snapshot.state.value, "consecutive_failures": snapshot.consecutive_failures}
    if snapshot.state == CircuitState.OPEN:
        return ComponentHealth(
            status="degraded",
            error=f"circuit open, retry in {snapshot.retry_in} s",
            details=details,
        )
    return ComponentHealth(status="healthy", details=details)


def queue_health(container: ServiceContainer) -> ComponentHealth:
    depth = len(container.queue)
    capacity = container.queue.max_size
    details = {"depth": depth, "max_size": capacity}
    if depth >= capacity:
        return ComponentHealth(status="unhealthy", error="submission queue is full", details=details)
    return ComponentHealth(status="healthy", details=details)


def assess(container: ServiceContainer) -> tuple[HealthStatus, dict[str, ComponentHealth]]:
    """Inspect every component; the overall status is the worst component status."""
    components = {service: circuit_health(container, service) for service in PROVIDER_SERVICES}
    components[QUEUE_COMPONENT] = queue_health(container)
    overall = max((c.status for c in components.values()), key=_SEVERITY.__getitem__)
    return overall, components


def create_health_router(container: ServiceContainer, service_name: str, version: str) -> APIRouter:
    """Health routes bound to one container, mounted without the API prefix."""
    router = APIRouter(prefix="/health", tags=["health"])

    def report() -> JSONResponse:
        status, components = assess(container)
        body = HealthResponse(status=status, service=service_name, version=version, checks=components)
        return JSONResponse(body.model_dump(), status_code=503 if status == "unhealthy" else 200)

    @router.get("", response_model=HealthResponse)
    async def health() -> JSONResponse:
        return report()

    @router.get("/ready", response_model=HealthResponse)
    async def readiness() -> JSONResponse:
        """503 while the submission queue cannot accept partial submissions."""
        return report()

    @router.get("/live", response_model=LivenessResponse)
    async def liveness() -> LivenessResponse:
        return LivenessResponse()

    return router
