"""Tests for the recovery sweep."""

import asyncio

import pytest

from intake.orchestration.recovery import SweepResult, summarize
from intake.queue.models import Stage, SubmissionStatus


async def _queued(saga, report) -> str:
    result = await saga.submit(report)
    assert result.queued
    return result.queue_id


class TestResume:
    """The sweep re-runs only the stages that have not succeeded."""

    @pytest.mark.asyncio
    async def test_recovered_issue_removes_record(self, saga, sweep, report, queue, issue_tracker, task_manager):
        issue_tracker.fail_always()
        sub_id = await _queued(saga, report)
        issue_tracker.recover()

        results = await sweep.run()

        assert results == [SweepResult(id=sub_id, success=True, retried_stages=["issue"])]
        assert queue.get(sub_id) is None
        assert task_manager.calls == 1

    @pytest.mark.asyncio
    async def test_task_retry_uses_stored_issue_url(self, saga, sweep, report, issue_tracker, task_manager):
        task_manager.fail_always()
        result = await saga.submit(report)
        task_manager.recover()

        [swept] = await sweep.run()

        assert swept.success is True
        assert swept.retried_stages == ["task"]
        assert issue_tracker.calls == 1
        assert task_manager.created[-1][1] == result.issue_ref.url

    @pytest.mark.asyncio
    async def test_degraded_enrichment_is_retried_before_delivery(
        self, saga, sweep, report, queue, enrichment, issue_tracker, task_manager
    ):
        enrichment.fail_always()
        issue_tracker.fail_always()
        task_manager.fail_always()
        await _queued(saga, report)
        enrichment.recover()
        issue_tracker.recover()
        task_manager.recover()

        [swept] = await sweep.run()

        assert swept.success is True
        assert swept.retried_stages == ["enrichment", "issue", "task"]
        assert issue_tracker.created[0].enhanced_description.startswith("[enriched] ")
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_enrichment_not_retried_after_delivery(self, saga, sweep, report, enrichment, issue_tracker):
        enrichment.fail_always()
        issue_tracker.fail_always()
        result = await saga.submit(report)
        assert result.stages[Stage.TASK].success
        enrichment.recover()
        issue_tracker.recover()
        calls_before = enrichment.calls

        [swept] = await sweep.run()

        assert swept.retried_stages == ["issue"]
        assert enrichment.calls == calls_before

    @pytest.mark.asyncio
    async def test_still_failing_keeps_record(self, saga, sweep, report, queue, issue_tracker):
        issue_tracker.fail_always()
        sub_id = await _queued(saga, report)

        [swept] = await sweep.run()

        assert swept.success is False
        assert set(swept.remaining_errors) == {"issue"}
        record = queue.get(sub_id)
        assert record.retry_count == 1
        assert record.in_flight is False


class TestEligibility:
    """Interval gate and retry ceiling."""

    @pytest.mark.asyncio
    async def test_recently_attempted_is_skipped(self, saga, sweep, report, issue_tracker, clock):
        issue_tracker.fail_always()
        await _queued(saga, report)

        assert len(await sweep.run()) == 1
        assert await sweep.run() == []
        clock.advance(59)
        assert await sweep.run() == []
        clock.advance(1)
        assert len(await sweep.run()) == 1

    @pytest.mark.asyncio
    async def test_ceiling_stops_retries(self, saga, sweep, report, queue, issue_tracker, clock):
        issue_tracker.fail_always()
        sub_id = await _queued(saga, report)

        for _ in range(3):
            assert len(await sweep.run()) == 1
            clock.advance(60)
        calls_before = issue_tracker.calls

        assert await sweep.run() == []
        assert issue_tracker.calls == calls_before
        assert queue.get(sub_id).retry_count == 3

    @pytest.mark.asyncio
    async def test_empty_queue(self, sweep):
        assert await sweep.run() == []


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_passes_do_not_overlap(self, saga, sweep, report, issue_tracker):
        issue_tracker.fail_always()
        await _queued(saga, report)
        issue_tracker.recover()
        calls_before = issue_tracker.calls

        first, second = await asyncio.gather(sweep.run(), sweep.run())

        assert sorted([len(first), len(second)]) == [0, 1]
        assert issue_tracker.calls == calls_before + 1
        assert sweep.running is False


class TestSummary:
    def test_summarize(self):
        results = [
            SweepResult(id="a", success=True),
            SweepResult(id="b", success=False, remaining_errors={"issue": "down"}),
        ]
        assert summarize(results) == {"total": 2, "succeeded": 1, "failed": 1}
        assert results[1].to_dict()["remaining_errors"] == {"issue": "down"}


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_sweep_releases_the_attempt(
        self, saga, sweep, report, queue, clock, issue_tracker, task_manager
    ):
        issue_tracker.fail_always()
        task_manager.fail_always()
        sub_id = await _queued(saga, report)
        issue_tracker.recover()
        task_manager.recover()
        issue_tracker.delay = 5.0

        running = asyncio.create_task(sweep.run())
        await asyncio.sleep(0.05)
        running.cancel()
        with pytest.raises(asyncio.CancelledError):
            await running

        record = queue.get(sub_id)
        assert record.in_flight is False
        assert record.retry_count == 1
        assert record.status == SubmissionStatus.PENDING

        clock.advance(3600)
        issue_tracker.delay = 0.0
        assert [r.id for r in queue.list_retryable()] == [sub_id]
        [swept] = await sweep.run()
        assert swept.success is True
        assert queue.get(sub_id) is None
