"""
Shared pytest fixtures for intake-core tests.

Everything time-dependent takes an injected clock, and the retry executor
takes an injected sleep, so no test waits on the wall clock.
"""

import pytest

from intake.core.settings import IntakeSettings, ProviderMode
from intake.execution.circuit_breaker import CircuitBreakerRegistry
from intake.execution.retry import ExponentialBackoff
from intake.orchestration.recovery import RecoverySweep
from intake.orchestration.saga import SubmissionSaga
from intake.orchestration.stages import StageExecutor
from intake.providers.fakes import FakeEnrichmentProvider, FakeIssueTracker, FakeTaskManager
from intake.providers.models import BugReport, Category, Severity
from intake.queue.manager import SubmissionQueue

ADMIN_KEY = "test-admin-key"


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays and returns at once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def report() -> BugReport:
    return BugReport(
        title="Login button does nothing",
        description="Clicking login on the sign-in page has no effect.",
        severity=Severity.CRITICAL,
        category=Category.SECURITY,
    )


@pytest.fixture
def settings() -> IntakeSettings:
    return IntakeSettings(
        provider_mode=ProviderMode.FAKE,
        admin_api_key=ADMIN_KEY,
        rate_limit_max_requests=5,
        rate_limit_window_seconds=900,
        circuit_failure_threshold=5,
        circuit_cooldown_seconds=60,
        retry_max_retries=3,
        retry_base_delay=1.0,
        queue_max_size=100,
        queue_max_retries=3,
        recovery_min_retry_interval=60,
        log_json=True,
        _env_file=None,
    )


@pytest.fixture
def enrichment() -> FakeEnrichmentProvider:
    return FakeEnrichmentProvider()


@pytest.fixture
def issue_tracker() -> FakeIssueTracker:
    return FakeIssueTracker()


@pytest.fixture
def task_manager() -> FakeTaskManager:
    return FakeTaskManager()


@pytest.fixture
def breakers(clock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(failure_threshold=5, cooldown_seconds=60, clock=clock)


@pytest.fixture
def queue(clock) -> SubmissionQueue:
    return SubmissionQueue(max_size=100, max_retries=3, clock=clock)


@pytest.fixture
def executor(enrichment, issue_tracker, task_manager, breakers, no_sleep) -> StageExecutor:
    return StageExecutor(
        enrichment,
        issue_tracker,
        task_manager,
        breakers,
        retry_strategy=ExponentialBackoff(max_retries=3, base_delay=1.0),
        sleep=no_sleep,
    )


@pytest.fixture
def saga(executor, queue) -> SubmissionSaga:
    return SubmissionSaga(executor, queue)


@pytest.fixture
def sweep(executor, queue, clock) -> RecoverySweep:
    return RecoverySweep(executor, queue, min_retry_interval=60, clock=clock)
