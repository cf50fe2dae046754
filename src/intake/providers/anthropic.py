"""Enrichment provider backed by the Anthropic Messages API."""

from __future__ import annotations

import json
import re
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from intake.core.errors import ProviderError
from intake.providers.http import HttpProvider
from intake.providers.models import BugReport, EnrichedReport

ANTHROPIC_VERSION = "2023-06-01"

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

_PROMPT = """You are a technical bug report analyzer. Enhance the following bug report with:
1. A clear, detailed technical description
2. Suggested labels (max 5)
3. Technical context for developers
4. A specific prompt a coding assistant can use to fix this issue
5. Priority score (1-5, where 5 is critical)

Bug Report:
Title: {title}
Description: {description}
Steps to Reproduce: {steps}
Expected Behavior: {expected}
Actual Behavior: {actual}
Severity: {severity}
Category: {category}
Environment: {environment}
Browser: {browser}

Respond in JSON format:
{{
  "enhancedDescription": "detailed technical description",
  "suggestedLabels": ["label1", "label2"],
  "technicalContext": "context for developers",
  "fixPrompt": "specific prompt for a coding assistant",
  "priority": 3
}}"""


def build_prompt(report: BugReport) -> str:
    missing = "Not provided"
    return _PROMPT.format(
        title=report.title,
        description=report.description,
        steps=report.steps_to_reproduce or missing,
        expected=report.expected_behavior or missing,
        actual=report.actual_behavior or missing,
        severity=report.severity.value,
        category=report.category.value,
        environment=report.environment or missing,
        browser=report.browser_info or missing,
    )


def parse_enrichment(report: BugReport, text: str) -> EnrichedReport:
    """Extract the JSON object from a model reply and build the enriched report."""
    match = _JSON_OBJECT.search(text)
    if match is None:
        raise ProviderError("No JSON found in enrichment response")
    try:
        data: dict[str, Any] = json.loads(match.group(0))
        priority = int(data.get("priority", 3))
        return EnrichedReport(
            report=report,
            enhanced_description=data.get("enhancedDescription") or report.description,
            labels=list(data.get("suggestedLabels") or [])[:5],
            priority=min(5, max(1, priority)),
            technical_context=data.get("technicalContext", ""),
            derived_prompt=data.get("fixPrompt", ""),
        )
    except (ValueError, TypeError, PydanticValidationError) as exc:
        raise ProviderError(f"Malformed enrichment response: {exc}", cause=exc) from exc


class AnthropicEnrichmentProvider(HttpProvider):
    """Calls ``POST /v1/messages`` and parses the JSON reply."""

    service = "enrichment"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "claude-3-5-sonnet-20241022",
        base_url: str = "https://api.anthropic.com",
        max_tokens: int = 2000,
        timeout: float = 45.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(
            base_url,
            headers={"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
            timeout=timeout,
            client=client,
        )
        self.model = model
        self.max_tokens = max_tokens

    async def enrich(self, report: BugReport) -> EnrichedReport:
        data = await self._post_json(
            "/v1/messages",
            {
                "model": self.model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": build_prompt(report)}],
            },
        )
        try:
            block = data["content"][0]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("Enrichment response missing content", cause=exc) from exc
        if block.get("type") != "text":
            raise ProviderError("Unexpected enrichment response type")
        return parse_enrichment(report, block.get("text", ""))
