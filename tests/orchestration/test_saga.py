"""Tests for the intake saga."""

import pytest

from intake.core.errors import ProviderError
from intake.execution.circuit_breaker import CircuitState
from intake.execution.retry import NoRetry
from intake.orchestration.saga import IntakeStatus, SubmissionSaga, aggregate
from intake.orchestration.stages import StageExecutor, StageFailure, StageOutcome
from intake.providers.fakes import FakeIssueTracker
from intake.providers.models import fallback_enrichment
from intake.queue.manager import SubmissionQueue
from intake.queue.models import Stage, SubmissionStatus


class TestAggregate:
    def _outcomes(self, issue: bool, task: bool) -> dict[Stage, StageOutcome]:
        return {
            Stage.ENRICHMENT: StageOutcome(Stage.ENRICHMENT, success=False),
            Stage.ISSUE: StageOutcome(Stage.ISSUE, success=issue),
            Stage.TASK: StageOutcome(Stage.TASK, success=task),
        }

    def test_enrichment_does_not_count(self):
        assert aggregate(self._outcomes(True, True)) == IntakeStatus.FULL

    def test_one_delivery_is_partial(self):
        assert aggregate(self._outcomes(False, True)) == IntakeStatus.PARTIAL
        assert aggregate(self._outcomes(True, False)) == IntakeStatus.PARTIAL

    def test_no_delivery_is_failed(self):
        assert aggregate(self._outcomes(False, False)) == IntakeStatus.FAILED


class TestHappyPath:
    """All three providers succeed."""

    @pytest.mark.asyncio
    async def test_full_result(self, saga, report, queue, issue_tracker, task_manager):
        result = await saga.submit(report)

        assert result.status == IntakeStatus.FULL
        assert result.issue_ref.url == "https://issues.example.test/issues/1"
        assert result.task_ref.external_id == "task-1"
        assert result.queued is False
        assert result.queue_id is None
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_task_receives_issue_url(self, saga, report, task_manager):
        result = await saga.submit(report)
        _, issue_url = task_manager.created[0]
        assert issue_url == result.issue_ref.url

    @pytest.mark.asyncio
    async def test_delivery_uses_enriched_payload(self, saga, report, issue_tracker):
        result = await saga.submit(report)
        assert result.enrichment_degraded is False
        assert issue_tracker.created[0].enhanced_description.startswith("[enriched] ")
        assert "triaged" in result.enriched.labels


class TestEnrichmentDegraded:
    """Enrichment failure never fails a submission."""

    @pytest.mark.asyncio
    async def test_fallback_used(self, saga, report, enrichment, issue_tracker):
        enrichment.fail_always()

        result = await saga.submit(report)

        assert result.status == IntakeStatus.FULL
        assert result.enrichment_degraded is True
        assert result.enriched == fallback_enrichment(report)
        assert result.enriched.labels == ["security", "critical"]
        assert result.enriched.priority == 5
        assert issue_tracker.created[0] == fallback_enrichment(report)

    @pytest.mark.asyncio
    async def test_enrichment_retried_before_fallback(self, saga, report, enrichment):
        enrichment.fail_always()
        result = await saga.submit(report)
        outcome = result.stages[Stage.ENRICHMENT]
        assert enrichment.calls == 4
        assert outcome.attempts == 4
        assert outcome.failure == StageFailure.DEGRADED


class TestPartialDelivery:
    """One delivery stage fails."""

    @pytest.mark.asyncio
    async def test_issue_failure_is_queued(self, saga, report, queue, issue_tracker, task_manager):
        issue_tracker.fail_always()

        result = await saga.submit(report)

        assert result.status == IntakeStatus.PARTIAL
        assert result.queued is True
        assert issue_tracker.calls == 4
        assert result.stages[Stage.ISSUE].failure == StageFailure.RETRY_EXHAUSTED

        record = queue.get(result.queue_id)
        assert record.successes == {"issue": False, "task": True}
        assert set(record.errors) == {"issue"}
        assert record.refs["task"] == result.task_ref
        assert record.status == SubmissionStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_task_still_runs_without_issue_url(self, saga, report, issue_tracker, task_manager):
        issue_tracker.fail_always()
        await saga.submit(report)
        assert task_manager.created[0][1] is None

    @pytest.mark.asyncio
    async def test_non_retryable_called_once(self, saga, report, issue_tracker):
        issue_tracker.fail_next(ProviderError("validation failed", http_status=422))

        result = await saga.submit(report)

        outcome = result.stages[Stage.ISSUE]
        assert issue_tracker.calls == 1
        assert outcome.attempts == 1
        assert outcome.failure == StageFailure.NON_RETRYABLE
        assert outcome.error == "validation failed"

    @pytest.mark.asyncio
    async def test_transient_failure_absorbed_by_retry(self, saga, report, issue_tracker, no_sleep):
        issue_tracker.fail_next()
        issue_tracker.fail_next()

        result = await saga.submit(report)

        assert result.status == IntakeStatus.FULL
        assert result.stages[Stage.ISSUE].attempts == 3
        assert no_sleep.delays == [1.0, 2.0]


class TestTotalFailure:
    @pytest.mark.asyncio
    async def test_everything_down(self, saga, report, queue, enrichment, issue_tracker, task_manager):
        enrichment.fail_always()
        issue_tracker.fail_always()
        task_manager.fail_always()

        result = await saga.submit(report)

        assert result.status == IntakeStatus.FAILED
        record = queue.get(result.queue_id)
        assert set(record.errors) == {"enrichment", "issue", "task"}
        assert record.enrichment_degraded is True
        assert record.status == SubmissionStatus.PENDING

    @pytest.mark.asyncio
    async def test_queue_full_reported_not_raised(self, executor, report, issue_tracker, clock):
        saga = SubmissionSaga(executor, SubmissionQueue(max_size=0, clock=clock))
        issue_tracker.fail_always()

        result = await saga.submit(report)

        assert result.status == IntakeStatus.PARTIAL
        assert result.queued is False
        assert result.queue_id is None


class TestCircuitIntegration:
    """The breaker sees one outcome per logical call."""

    @pytest.mark.asyncio
    async def test_open_circuit_short_circuits(self, saga, report, issue_tracker, breakers):
        issue_tracker.fail_always()
        for _ in range(5):
            await saga.submit(report)
        assert breakers.status("issue_tracker").state == CircuitState.OPEN
        calls_before = issue_tracker.calls

        result = await saga.submit(report)

        outcome = result.stages[Stage.ISSUE]
        assert issue_tracker.calls == calls_before
        assert outcome.failure == StageFailure.CIRCUIT_OPEN
        assert outcome.attempts == 0
        assert "retry in 60 s" in outcome.error

    @pytest.mark.asyncio
    async def test_retries_count_as_one_breaker_failure(self, saga, report, issue_tracker, breakers):
        issue_tracker.fail_always()
        await saga.submit(report)
        assert issue_tracker.calls == 4
        assert breakers.status("issue_tracker").consecutive_failures == 1


class TestTimeouts:
    @pytest.mark.asyncio
    async def test_hung_provider_times_out(self, enrichment, task_manager, breakers, queue, report):
        slow = FakeIssueTracker(delay=1.0)
        executor = StageExecutor(
            enrichment,
            slow,
            task_manager,
            breakers,
            retry_strategy=NoRetry(),
            delivery_timeout=0.01,
        )

        result = await SubmissionSaga(executor, queue).submit(report)

        outcome = result.stages[Stage.ISSUE]
        assert outcome.success is False
        assert outcome.failure == StageFailure.RETRY_EXHAUSTED
        assert "timed out" in outcome.error
        assert slow.created == []


class TestResultSerialization:
    @pytest.mark.asyncio
    async def test_to_dict(self, saga, report):
        data = (await saga.submit(report)).to_dict()
        assert data["status"] == "full"
        assert set(data["stages"]) == {"enrichment", "issue", "task"}
        assert data["stages"]["issue"]["ref"]["external_id"] == "1"
        assert "report" not in data["enriched"]
        assert data["enriched"]["priority"] == 5
