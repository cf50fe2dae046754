"""Issue tracker backed by the GitHub REST API."""

from __future__ import annotations

import httpx

from intake.core.errors import ProviderError
from intake.providers.http import HttpProvider
from intake.providers.models import EnrichedReport, ExternalRef


def render_issue_body(enriched: EnrichedReport) -> str:
    report = enriched.report
    missing = "Not provided"
    lines = [
        "## Description",
        enriched.enhanced_description,
        "",
        "## Reproduction Steps",
        report.steps_to_reproduce or missing,
        "",
        "## Expected Behavior",
        report.expected_behavior or missing,
        "",
        "## Actual Behavior",
        report.actual_behavior or missing,
        "",
        "## Technical Context",
        enriched.technical_context,
        "",
        "### Environment",
        f"- **Severity**: {report.severity.value}",
        f"- **Category**: {report.category.value}",
        f"- **Priority**: {enriched.priority}/5",
        f"- **Environment**: {report.environment or missing}",
        f"- **Browser**: {report.browser_info or missing}",
    ]
    if report.user_email:
        lines.append(f"- **Reporter**: {report.user_email}")
    if enriched.derived_prompt:
        lines += ["", "## Fix Instructions", "```", enriched.derived_prompt, "```"]
    return "\n".join(lines)


class GitHubIssueTracker(HttpProvider):
    """Creates issues via ``POST /repos/{owner}/{repo}/issues``."""

    service = "issue_tracker"

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(
            base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=timeout,
            client=client,
        )
        self.owner = owner
        self.repo = repo

    async def create_issue(self, enriched: EnrichedReport) -> ExternalRef:
        data = await self._post_json(
            f"/repos/{self.owner}/{self.repo}/issues",
            {
                "title": enriched.title,
                "body": render_issue_body(enriched),
                "labels": enriched.labels,
            },
        )
        try:
            return ExternalRef(external_id=str(data["number"]), url=data["html_url"])
        except KeyError as exc:
            raise ProviderError(f"Issue response missing {exc}", cause=exc) from exc
