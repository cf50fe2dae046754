"""Task manager backed by the ClickUp v2 API."""

from __future__ import annotations

import httpx

from intake.core.errors import ProviderError
from intake.providers.http import HttpProvider
from intake.providers.models import EnrichedReport, ExternalRef

# ClickUp priorities run 1 (urgent) to 4 (low)
_CLICKUP_PRIORITY = {5: 1, 4: 2, 3: 3}


def clickup_priority(priority: int) -> int:
    return _CLICKUP_PRIORITY.get(priority, 4)


def render_task_description(enriched: EnrichedReport, issue_url: str | None) -> str:
    report = enriched.report
    missing = "Not provided"
    lines = [
        "## Bug Report from Customer",
        "",
        f"**Issue**: {issue_url or 'not created yet'}",
        "",
        "### Description",
        enriched.enhanced_description,
        "",
        "### Technical Context",
        enriched.technical_context,
        "",
        "### Environment",
        f"- Severity: {report.severity.value}",
        f"- Category: {report.category.value}",
        f"- Environment: {report.environment or missing}",
        f"- Browser: {report.browser_info or missing}",
    ]
    if enriched.derived_prompt:
        lines += ["", "### Fix Prompt", "```", enriched.derived_prompt, "```"]
    return "\n".join(lines)


class ClickUpTaskManager(HttpProvider):
    """Creates tasks via ``POST /list/{list_id}/task``."""

    service = "task_manager"

    def __init__(
        self,
        api_key: str,
        list_id: str,
        *,
        base_url: str = "https://api.clickup.com/api/v2",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(
            base_url,
            headers={"Authorization": api_key},
            timeout=timeout,
            client=client,
        )
        self.list_id = list_id

    async def create_task(
        self, enriched: EnrichedReport, issue_url: str | None = None
    ) -> ExternalRef:
        data = await self._post_json(
            f"/list/{self.list_id}/task",
            {
                "name": f"[BUG] {enriched.title}",
                "description": render_task_description(enriched, issue_url),
                "priority": clickup_priority(enriched.priority),
                "tags": enriched.labels,
                "status": "to do",
            },
        )
        try:
            return ExternalRef(external_id=str(data["id"]), url=data["url"])
        except KeyError as exc:
            raise ProviderError(f"Task response missing {exc}", cause=exc) from exc
