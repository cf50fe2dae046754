"""
Recovery router: operator trigger for the recovery sweep.

Endpoints:
    POST /recovery/sweep   Run one sweep pass synchronously
    GET  /recovery/queue   Queue statistics and queued submissions

Both require ``X-Admin-API-Key`` (see ``AdminAuthMiddleware``).
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from intake.api.deps import Container
from intake.api.schemas.intake import QueueResponse, SweepResponse
from intake.orchestration.recovery import summarize
from intake.queue.models import SubmissionStatus

router = APIRouter(prefix="/recovery")


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(container: Container) -> SweepResponse:
    """Re-attempt the still-failing stages of every due queued submission.

    Overlapping calls are serialized: a second call waits for the running
    pass, then runs its own.
    """
    results = await container.sweep.run()
    return SweepResponse.model_validate(
        {"summary": summarize(results), "results": [r.to_dict() for r in results]}
    )


@router.get("/queue", response_model=QueueResponse)
async def list_queue(
    container: Container,
    status: SubmissionStatus | None = Query(None, description="Filter by derived status"),
) -> QueueResponse:
    """Queue statistics plus the queued submissions, oldest first."""
    records = container.queue.list_all(status=status)
    return QueueResponse.model_validate(
        {"stats": container.queue.stats(), "submissions": [r.to_dict() for r in records]}
    )
