"""
In-memory provider fakes with scripted failures and call counters.

Used by the test-suite and by ``provider_mode=fake`` for local development.

Example:
    >>> tracker = FakeIssueTracker()
    >>> tracker.fail_always()          # every call raises HTTP 503
    >>> tracker.recover()              # back to succeeding
    >>> tracker.fail_next(ProviderError("bad request", http_status=400))
    >>> tracker.calls
    0
"""

from __future__ import annotations

import asyncio
import itertools

from intake.core.errors import ProviderError
from intake.providers.models import BugReport, EnrichedReport, ExternalRef, fallback_enrichment


def unavailable(service: str) -> ProviderError:
    return ProviderError(f"{service} returned HTTP 503", http_status=503).with_context(service=service)


class _ScriptedProvider:
    """Counts calls and raises scripted errors before delegating."""

    service = "fake"

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls = 0
        self._queued: list[Exception] = []
        self._always: Exception | None = None

    def fail_next(self, *errors: Exception) -> None:
        """Raise ``errors`` in order on the next calls, then behave normally."""
        self._queued.extend(errors or [unavailable(self.service)])

    def fail_always(self, error: Exception | None = None) -> None:
        self._always = error or unavailable(self.service)

    def recover(self) -> None:
        self._queued.clear()
        self._always = None

    async def _step(self) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._queued:
            raise self._queued.pop(0)
        if self._always is not None:
            raise self._always


class FakeEnrichmentProvider(_ScriptedProvider):
    service = "enrichment"

    def __init__(self, delay: float = 0.0):
        super().__init__(delay)
        self.received: list[BugReport] = []

    async def enrich(self, report: BugReport) -> EnrichedReport:
        self.received.append(report)
        await self._step()
        base = fallback_enrichment(report)
        return base.model_copy(
            update={
                "enhanced_description": f"[enriched] {report.description}",
                "labels": [*base.labels, "triaged"],
                "derived_prompt": f"Investigate and fix: {report.title}",
            }
        )


class FakeIssueTracker(_ScriptedProvider):
    service = "issue_tracker"

    def __init__(self, delay: float = 0.0, base_url: str = "https://issues.example.test"):
        super().__init__(delay)
        self.base_url = base_url
        self.created: list[EnrichedReport] = []
        self._ids = itertools.count(1)

    async def create_issue(self, enriched: EnrichedReport) -> ExternalRef:
        await self._step()
        self.created.append(enriched)
        number = next(self._ids)
        return ExternalRef(external_id=str(number), url=f"{self.base_url}/issues/{number}")


class FakeTaskManager(_ScriptedProvider):
    service = "task_manager"

    def __init__(self, delay: float = 0.0, base_url: str = "https://tasks.example.test"):
        super().__init__(delay)
        self.base_url = base_url
        self.created: list[tuple[EnrichedReport, str | None]] = []
        self._ids = itertools.count(1)

    async def create_task(
        self, enriched: EnrichedReport, issue_url: str | None = None
    ) -> ExternalRef:
        await self._step()
        self.created.append((enriched, issue_url))
        task_id = f"task-{next(self._ids)}"
        return ExternalRef(external_id=task_id, url=f"{self.base_url}/t/{task_id}")
