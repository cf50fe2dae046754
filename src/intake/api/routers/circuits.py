"""
Circuits router: provider circuit breaker status.

Endpoints:
    GET  /circuits                    Snapshot of every provider circuit
    POST /circuits/{service}/reset    Force one circuit back to closed
"""

from __future__ import annotations

from fastapi import APIRouter, Path

from intake.api.deps import Container
from intake.api.schemas.intake import CircuitsResponse, CircuitOut
from intake.core.logging import get_logger
from intake.orchestration.stages import ENRICHMENT_SERVICE, ISSUE_TRACKER_SERVICE, TASK_MANAGER_SERVICE

router = APIRouter(prefix="/circuits")

logger = get_logger(__name__)

SERVICES = (ENRICHMENT_SERVICE, ISSUE_TRACKER_SERVICE, TASK_MANAGER_SERVICE)


@router.get("", response_model=CircuitsResponse)
async def list_circuits(container: Container) -> CircuitsResponse:
    """Snapshots of all provider circuits (copies, never live state)."""
    statuses = [container.breakers.status(service) for service in SERVICES]
    return CircuitsResponse(circuits=[CircuitOut.model_validate(s.to_dict()) for s in statuses])


@router.post("/{service}/reset", response_model=CircuitOut)
async def reset_circuit(
    container: Container,
    service: str = Path(..., pattern="^(enrichment|issue_tracker|task_manager)$"),
) -> CircuitOut:
    container.breakers.reset(service)
    logger.warning("circuit_reset_by_operator", service=service)
    return CircuitOut.model_validate(container.breakers.status(service).to_dict())
