"""
Contracts for the three external providers.

All three are fallible, latent and independently rate-limited; the saga
never assumes a call succeeds.  Implementations raise
:class:`~intake.core.errors.IntakeError` subclasses (or let ``httpx``
errors escape) so the retry executor can classify them.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from intake.providers.models import BugReport, EnrichedReport, ExternalRef


@runtime_checkable
class EnrichmentProvider(Protocol):
    """Rewrites a report and proposes labels and priority."""

    async def enrich(self, report: BugReport) -> EnrichedReport: ...


@runtime_checkable
class IssueTracker(Protocol):
    """Creates issues (GitHub-style)."""

    async def create_issue(self, enriched: EnrichedReport) -> ExternalRef: ...


@runtime_checkable
class TaskManager(Protocol):
    """Creates tasks (ClickUp-style), linking the issue when one exists."""

    async def create_task(
        self, enriched: EnrichedReport, issue_url: str | None = None
    ) -> ExternalRef: ...
