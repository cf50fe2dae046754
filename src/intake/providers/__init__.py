"""
External providers: contracts, httpx clients and in-memory fakes.

::

    EnrichmentProvider  ── AnthropicEnrichmentProvider | FakeEnrichmentProvider
    IssueTracker        ── GitHubIssueTracker          | FakeIssueTracker
    TaskManager         ── ClickUpTaskManager          | FakeTaskManager
"""

from intake.providers.anthropic import AnthropicEnrichmentProvider
from intake.providers.clickup import ClickUpTaskManager
from intake.providers.fakes import FakeEnrichmentProvider, FakeIssueTracker, FakeTaskManager
from intake.providers.github import GitHubIssueTracker
from intake.providers.models import (
    BugReport,
    Category,
    EnrichedReport,
    ExternalRef,
    Severity,
    fallback_enrichment,
)
from intake.providers.protocol import EnrichmentProvider, IssueTracker, TaskManager

__all__ = [
    "AnthropicEnrichmentProvider",
    "BugReport",
    "Category",
    "ClickUpTaskManager",
    "EnrichedReport",
    "EnrichmentProvider",
    "ExternalRef",
    "FakeEnrichmentProvider",
    "FakeIssueTracker",
    "FakeTaskManager",
    "GitHubIssueTracker",
    "IssueTracker",
    "Severity",
    "TaskManager",
    "fallback_enrichment",
]
