"""
Submissions router: the intake operation.

Endpoints:
    POST /submissions   Run one bug report through the intake saga

The admission gate runs in :class:`~intake.api.middleware.AdmissionMiddleware`
before this handler; a request that reaches it is always answered with a
structured per-stage outcome, never a provider error.
"""

from __future__ import annotations

from fastapi import APIRouter

from intake.api.deps import Container
from intake.api.schemas.intake import BugReportIn, IntakeResponse

router = APIRouter()


@router.post("/submissions", response_model=IntakeResponse)
async def submit_bug_report(body: BugReportIn, container: Container) -> IntakeResponse:
    """Enrich, file an issue and mirror a task.

    ``status`` is ``full`` when both the issue and the task were created,
    ``partial`` when one was, ``failed`` when neither was.  Anything short of
    ``full`` is queued for the recovery sweep (``queued`` / ``queue_id``).
    """
    result = await container.saga.submit(body.to_report())
    return IntakeResponse.model_validate(result.to_dict())
