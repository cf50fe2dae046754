"""
Service container: builds every registry once per application.

Nothing in intake-core is a module-level singleton: the API factory, the
CLI and the tests each build their own container, so state never leaks
between app instances or test cases.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import partial
from typing import Any

from intake.core.errors import ConfigError
from intake.core.logging import get_logger
from intake.core.settings import IntakeSettings, ProviderMode
from intake.execution.circuit_breaker import CircuitBreakerRegistry
from intake.execution.rate_limit import SlidingWindowRateLimiter
from intake.execution.retry import ExponentialBackoff
from intake.orchestration.recovery import RecoverySweep
from intake.orchestration.saga import SubmissionSaga
from intake.orchestration.stages import (
    ENRICHMENT_SERVICE,
    ISSUE_TRACKER_SERVICE,
    TASK_MANAGER_SERVICE,
    StageExecutor,
)
from intake.providers import (
    AnthropicEnrichmentProvider,
    ClickUpTaskManager,
    FakeEnrichmentProvider,
    FakeIssueTracker,
    FakeTaskManager,
    GitHubIssueTracker,
)
from intake.providers.protocol import EnrichmentProvider, IssueTracker, TaskManager
from intake.queue.manager import SubmissionQueue
from intake.queue.store import InMemorySubmissionStore, SubmissionStore

logger = get_logger(__name__)


def _secret(value, name: str) -> str:
    if value is None or not value.get_secret_value():
        raise ConfigError(f"INTAKE_{name.upper()} is required when provider_mode=http")
    return value.get_secret_value()


def _enrichment_factory(settings: IntakeSettings) -> Callable[[], EnrichmentProvider]:
    return partial(
        AnthropicEnrichmentProvider,
        _secret(settings.anthropic_api_key, "anthropic_api_key"),
        model=settings.anthropic_model,
        base_url=settings.anthropic_base_url,
        timeout=settings.enrichment_timeout,
    )


def _issue_tracker_factory(settings: IntakeSettings) -> Callable[[], IssueTracker]:
    if not settings.github_owner or not settings.github_repo:
        raise ConfigError("INTAKE_GITHUB_OWNER and INTAKE_GITHUB_REPO are required")
    return partial(
        GitHubIssueTracker,
        _secret(settings.github_token, "github_token"),
        settings.github_owner,
        settings.github_repo,
        base_url=settings.github_base_url,
        timeout=settings.delivery_timeout,
    )


def _task_manager_factory(settings: IntakeSettings) -> Callable[[], TaskManager]:
    if not settings.clickup_list_id:
        raise ConfigError("INTAKE_CLICKUP_LIST_ID is required")
    return partial(
        ClickUpTaskManager,
        _secret(settings.clickup_api_key, "clickup_api_key"),
        settings.clickup_list_id,
        base_url=settings.clickup_base_url,
        timeout=settings.delivery_timeout,
    )


_HTTP_FACTORIES = {
    ENRICHMENT_SERVICE: _enrichment_factory,
    ISSUE_TRACKER_SERVICE: _issue_tracker_factory,
    TASK_MANAGER_SERVICE: _task_manager_factory,
}

_FAKES = {
    ENRICHMENT_SERVICE: FakeEnrichmentProvider,
    ISSUE_TRACKER_SERVICE: FakeIssueTracker,
    TASK_MANAGER_SERVICE: FakeTaskManager,
}


def build_http_providers(
    settings: IntakeSettings,
    services: Iterable[str] | None = None,
) -> dict[str, Any]:
    """httpx-backed providers keyed by service, for ``services`` (default: all).

    Settings for every requested provider are validated before any client
    is opened, so a ConfigError never leaves a client behind.

    Raises:
        ConfigError: If a credential or target is missing
    """
    wanted = list(_HTTP_FACTORIES) if services is None else list(services)
    factories = {service: _HTTP_FACTORIES[service](settings) for service in wanted}
    return {service: make() for service, make in factories.items()}


@dataclass
class ServiceContainer:
    """Everything a running intake service needs."""

    settings: IntakeSettings
    rate_limiter: SlidingWindowRateLimiter
    breakers: CircuitBreakerRegistry
    queue: SubmissionQueue
    executor: StageExecutor
    saga: SubmissionSaga
    sweep: RecoverySweep

    @classmethod
    def build(
        cls,
        settings: IntakeSettings,
        *,
        enrichment: EnrichmentProvider | None = None,
        issue_tracker: IssueTracker | None = None,
        task_manager: TaskManager | None = None,
        store: SubmissionStore | None = None,
        clock: Callable[[], float] = time.time,
        **executor_options,
    ) -> ServiceContainer:
        """Wire registries and providers from ``settings``.

        Explicit providers win over ``settings.provider_mode``; any not
        given are built from settings.
        """
        providers = {
            ENRICHMENT_SERVICE: enrichment,
            ISSUE_TRACKER_SERVICE: issue_tracker,
            TASK_MANAGER_SERVICE: task_manager,
        }
        missing = [service for service, provider in providers.items() if provider is None]
        if missing and settings.provider_mode == ProviderMode.FAKE:
            providers.update({service: _FAKES[service]() for service in missing})
        elif missing:
            providers.update(build_http_providers(settings, missing))
        enrichment = providers[ENRICHMENT_SERVICE]
        issue_tracker = providers[ISSUE_TRACKER_SERVICE]
        task_manager = providers[TASK_MANAGER_SERVICE]

        rate_limiter = SlidingWindowRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            cleanup_interval=settings.rate_limit_cleanup_interval,
            clock=clock,
        )
        breakers = CircuitBreakerRegistry(
            failure_threshold=settings.circuit_failure_threshold,
            cooldown_seconds=settings.circuit_cooldown_seconds,
            success_threshold=settings.circuit_half_open_successes,
            clock=clock,
        )
        queue = SubmissionQueue(
            store or InMemorySubmissionStore(),
            max_size=settings.queue_max_size,
            max_retries=settings.queue_max_retries,
            max_age_seconds=settings.queue_max_age_seconds,
            cleanup_interval=settings.queue_cleanup_interval,
            clock=clock,
        )
        executor = StageExecutor(
            enrichment,
            issue_tracker,
            task_manager,
            breakers,
            retry_strategy=ExponentialBackoff(
                max_retries=settings.retry_max_retries,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
            ),
            enrichment_timeout=settings.enrichment_timeout,
            delivery_timeout=settings.delivery_timeout,
            **executor_options,
        )
        logger.debug("container_built", provider_mode=settings.provider_mode.value)
        return cls(
            settings=settings,
            rate_limiter=rate_limiter,
            breakers=breakers,
            queue=queue,
            executor=executor,
            saga=SubmissionSaga(executor, queue),
            sweep=RecoverySweep(
                executor,
                queue,
                min_retry_interval=settings.recovery_min_retry_interval,
                clock=clock,
            ),
        )

    async def aclose(self) -> None:
        """Close provider clients that own network resources."""
        for provider in (self.executor.enrichment, self.executor.issue_tracker, self.executor.task_manager):
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()
