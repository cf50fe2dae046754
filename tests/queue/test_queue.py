"""Tests for the submission queue and its derived status."""

import pytest

from intake.core.errors import QueueFullError
from intake.providers.models import ExternalRef, fallback_enrichment
from intake.queue.manager import SubmissionQueue
from intake.queue.models import Stage, SubmissionStatus

ISSUE_DOWN = {"issue": "issue_tracker returned HTTP 503"}
TASK_REF = ExternalRef(external_id="task-1", url="https://tasks.example.test/t/task-1")


@pytest.fixture
def enriched(report):
    return fallback_enrichment(report)


def _partial(queue, report, enriched):
    return queue.enqueue(
        report,
        enriched,
        errors=ISSUE_DOWN,
        successes={"issue": False, "task": True},
        refs={"task": TASK_REF},
    )


def _failed(queue, report, enriched):
    return queue.enqueue(
        report,
        enriched,
        errors={"issue": "down", "task": "down"},
        successes={"issue": False, "task": False},
    )


class TestEnqueue:
    """Tests for enqueue()."""

    def test_returns_prefixed_id(self, queue, report, enriched):
        sub_id = _partial(queue, report, enriched)
        assert sub_id.startswith("sub_")
        assert len(queue) == 1

    def test_record_holds_stage_maps(self, queue, report, enriched, clock):
        sub_id = _partial(queue, report, enriched)
        record = queue.get(sub_id)
        assert record.successes == {"issue": False, "task": True}
        assert record.errors == ISSUE_DOWN
        assert record.refs["task"] == TASK_REF
        assert record.created_at == clock.now
        assert record.retry_count == 0

    def test_full_queue_raises(self, clock, report, enriched):
        queue = SubmissionQueue(max_size=1, clock=clock)
        _partial(queue, report, enriched)
        with pytest.raises(QueueFullError) as exc_info:
            _partial(queue, report, enriched)
        assert exc_info.value.context.metadata["max_size"] == 1

    def test_get_returns_copy(self, queue, report, enriched):
        sub_id = _partial(queue, report, enriched)
        queue.get(sub_id).errors.clear()
        assert queue.get(sub_id).errors == ISSUE_DOWN

    def test_get_missing(self, queue):
        assert queue.get("sub_missing") is None


class TestDerivedStatus:
    """Status is computed from the success map, retry count and in-flight flag."""

    def test_one_delivery_is_partial(self, queue, report, enriched):
        sub_id = _partial(queue, report, enriched)
        assert queue.get(sub_id).status == SubmissionStatus.PARTIAL

    def test_no_delivery_is_pending(self, queue, report, enriched):
        sub_id = _failed(queue, report, enriched)
        assert queue.get(sub_id).status == SubmissionStatus.PENDING

    def test_in_flight_is_retrying(self, queue, report, enriched):
        sub_id = _failed(queue, report, enriched)
        queue.mark_retry_attempted(sub_id)
        assert queue.get(sub_id).status == SubmissionStatus.RETRYING

    def test_ceiling_without_delivery_is_failed(self, queue, report, enriched):
        sub_id = _failed(queue, report, enriched)
        for _ in range(3):
            queue.mark_retry_attempted(sub_id)
            queue.update(sub_id)
        assert queue.get(sub_id).status == SubmissionStatus.FAILED

    def test_pending_stages_in_order(self, queue, report, enriched):
        record = queue.get(_failed(queue, report, enriched))
        assert record.pending_stages == [Stage.ISSUE, Stage.TASK]
        assert record.is_complete is False


class TestRetryBookkeeping:
    """Tests for mark_retry_attempted(), update() and release()."""

    def test_mark_increments_and_stamps(self, queue, report, enriched, clock):
        sub_id = _partial(queue, report, enriched)
        assert queue.mark_retry_attempted(sub_id) is True
        record = queue.get(sub_id)
        assert record.retry_count == 1
        assert record.last_attempt_at == clock.now
        assert record.in_flight is True

    def test_mark_refuses_at_ceiling(self, queue, report, enriched):
        sub_id = _failed(queue, report, enriched)
        assert [queue.mark_retry_attempted(sub_id) for _ in range(4)] == [True, True, True, False]
        assert queue.get(sub_id).retry_count == 3

    def test_mark_missing(self, queue):
        assert queue.mark_retry_attempted("sub_missing") is False

    def test_update_merges_and_clears_errors(self, queue, report, enriched):
        sub_id = _failed(queue, report, enriched)
        queue.mark_retry_attempted(sub_id)
        issue_ref = ExternalRef(external_id="7", url="https://issues.example.test/issues/7")
        assert queue.update(
            sub_id,
            errors={"task": "still down"},
            successes={"issue": True, "task": False},
            refs={"issue": issue_ref},
        )

        record = queue.get(sub_id)
        assert record.successes == {"issue": True, "task": False}
        assert record.errors == {"task": "still down"}
        assert record.ref_url(Stage.ISSUE) == issue_ref.url
        assert record.in_flight is False
        assert record.status == SubmissionStatus.PARTIAL

    def test_update_missing(self, queue):
        assert queue.update("sub_missing", errors={"issue": "x"}) is False

    def test_release_ends_attempt_and_keeps_count(self, queue, report, enriched):
        sub_id = _failed(queue, report, enriched)
        queue.mark_retry_attempted(sub_id)
        assert queue.get(sub_id).status == SubmissionStatus.RETRYING

        assert queue.release(sub_id) is True
        record = queue.get(sub_id)
        assert record.in_flight is False
        assert record.retry_count == 1
        assert record.status == SubmissionStatus.PENDING
        assert queue.release(sub_id) is False


class TestListing:
    """Tests for list_all(), list_retryable() and stats()."""

    def test_list_retryable_excludes_exhausted(self, queue, report, enriched):
        partial_id = _partial(queue, report, enriched)
        failed_id = _failed(queue, report, enriched)
        for _ in range(3):
            queue.mark_retry_attempted(failed_id)
            queue.update(failed_id)

        assert [r.id for r in queue.list_retryable()] == [partial_id]

    def test_list_all_filters_by_status(self, queue, report, enriched):
        _partial(queue, report, enriched)
        pending_id = _failed(queue, report, enriched)
        assert [r.id for r in queue.list_all(SubmissionStatus.PENDING)] == [pending_id]

    def test_list_all_oldest_first(self, queue, report, enriched, clock):
        first = _partial(queue, report, enriched)
        clock.advance(5)
        second = _failed(queue, report, enriched)
        assert [r.id for r in queue.list_all()] == [first, second]

    def test_stats(self, queue, report, enriched):
        _partial(queue, report, enriched)
        _failed(queue, report, enriched)
        stats = queue.stats()
        assert stats["total"] == 2
        assert stats["partial"] == 1
        assert stats["pending"] == 1
        assert stats["failed"] == 0
        assert stats["retryable"] == 2
        assert stats["max_size"] == 100


class TestPurge:
    """Tests for expiry and dead-record removal."""

    def test_expired_records_are_purged(self, clock, report, enriched):
        queue = SubmissionQueue(max_age_seconds=100, cleanup_interval=10, clock=clock)
        _partial(queue, report, enriched)
        clock.advance(101)
        assert queue.purge() == 1
        assert len(queue) == 0

    def test_failed_at_ceiling_is_purged(self, queue, report, enriched):
        sub_id = _failed(queue, report, enriched)
        for _ in range(3):
            queue.mark_retry_attempted(sub_id)
            queue.update(sub_id)
        assert queue.purge() == 1
        assert queue.get(sub_id) is None

    def test_partial_at_ceiling_is_kept(self, queue, report, enriched):
        sub_id = _partial(queue, report, enriched)
        for _ in range(3):
            queue.mark_retry_attempted(sub_id)
            queue.update(sub_id)
        assert queue.purge() == 0
        assert queue.get(sub_id).can_retry() is False

    def test_purge_respects_interval(self, clock, report, enriched):
        queue = SubmissionQueue(max_age_seconds=100, cleanup_interval=1000, clock=clock)
        _partial(queue, report, enriched)
        clock.advance(101)
        assert len(queue.list_all()) == 1
        assert queue.purge() == 1
        assert len(queue.list_all()) == 0
