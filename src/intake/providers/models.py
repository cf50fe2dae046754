"""
Domain models passed between the saga, the providers and the queue.

``BugReport`` is the validated user input.  ``EnrichedReport`` is the
best-available enriched payload: either the enrichment provider's answer or
the deterministic fallback built by :func:`fallback_enrichment`.
``ExternalRef`` identifies an object created in an external system.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Category(str, Enum):
    UI = "ui"
    FUNCTIONALITY = "functionality"
    PERFORMANCE = "performance"
    SECURITY = "security"
    OTHER = "other"


class BugReport(BaseModel):
    """A bug report as submitted by a user."""

    title: str = Field(min_length=1, max_length=200, description="Short summary")
    description: str = Field(default="", max_length=10_000)
    steps_to_reproduce: str | None = Field(default=None, max_length=5_000)
    expected_behavior: str | None = Field(default=None, max_length=2_000)
    actual_behavior: str | None = Field(default=None, max_length=2_000)
    severity: Severity = Field(default=Severity.MEDIUM)
    category: Category = Field(default=Category.OTHER)
    environment: str | None = Field(default=None, max_length=500)
    browser_info: str | None = Field(default=None, max_length=500)
    user_email: str | None = Field(default=None, max_length=320)


class EnrichedReport(BaseModel):
    """A bug report plus the fields the enrichment stage adds."""

    report: BugReport
    enhanced_description: str
    labels: list[str] = Field(default_factory=list)
    priority: int = Field(default=3, ge=1, le=5, description="1 (lowest) to 5 (critical)")
    technical_context: str = ""
    derived_prompt: str = ""

    @property
    def title(self) -> str:
        return self.report.title


class ExternalRef(BaseModel):
    """Identifier and URL of an issue or task created by a provider."""

    external_id: str
    url: str


_SEVERITY_PRIORITY = {
    Severity.CRITICAL: 5,
    Severity.HIGH: 4,
}


def severity_priority(severity: Severity) -> int:
    """critical → 5, high → 4, anything else → 3."""
    return _SEVERITY_PRIORITY.get(severity, 3)


def fallback_enrichment(report: BugReport) -> EnrichedReport:
    """Deterministic local enrichment used when the provider is unavailable."""
    return EnrichedReport(
        report=report,
        enhanced_description=report.description,
        labels=[report.category.value, report.severity.value],
        priority=severity_priority(report.severity),
        technical_context=f"Category: {report.category.value}, Severity: {report.severity.value}",
        derived_prompt=f"Fix the following issue: {report.title}. {report.description}",
    )
