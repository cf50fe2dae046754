"""Submission Queue: keep incomplete submissions recoverable.

WHY
───
A submission that failed any delivery stage must not disappear.  The queue
records, per submission, which stages succeeded, which failed and the
external references already obtained, so the recovery sweep can resume
exactly the missing stages and never repeat one that succeeded.

ARCHITECTURE
────────────
::

    SubmissionQueue(store, max_size, max_retries, max_age_seconds)
      ├── .enqueue(report, enriched, errors, successes, refs)  ─ new record
      ├── .get(id) / .list_all(status)                         ─ copies only
      ├── .list_retryable()          ─ pending/partial, under the ceiling
      ├── .mark_retry_attempted(id)  ─ claim one attempt (False at ceiling)
      ├── .update(id, ...)           ─ merge stage outcomes, end the attempt
      ├── .release(id)               ─ end an abandoned attempt
      ├── .remove(id)                ─ fully delivered
      ├── .stats()                   ─ counts by status
      └── _maybe_purge()             ─ expired and failed-at-ceiling records

    SubmissionStore (store.py)  ─ pluggable storage
    SubmissionRecord (models.py) ─ status derived from stage maps

Status is never assigned: it is computed from the success map, the retry
count and the in-flight flag every time it is read.

Example::

    queue = SubmissionQueue(InMemorySubmissionStore(), max_retries=3)
    sub_id = queue.enqueue(report, enriched,
                           errors={"issue": "HTTP 503"},
                           successes={"issue": False, "task": True},
                           refs={"task": task_ref})
    if queue.mark_retry_attempted(sub_id):
        ...
"""

from __future__ import annotations

import copy
import threading
import time
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from intake.core.errors import QueueFullError
from intake.core.logging import get_logger
from intake.providers.models import BugReport, EnrichedReport, ExternalRef
from intake.queue.models import SubmissionRecord, SubmissionStatus
from intake.queue.store import InMemorySubmissionStore, SubmissionStore

logger = get_logger(__name__)


def generate_submission_id() -> str:
    return f"sub_{uuid.uuid4().hex[:16]}"


class SubmissionQueue:
    """Keyed registry of incomplete submissions.

    All reads return deep copies; callers never hold a live record.
    """

    def __init__(
        self,
        store: SubmissionStore | None = None,
        *,
        max_size: int = 1000,
        max_retries: int = 3,
        max_age_seconds: float = 24 * 60 * 60,
        cleanup_interval: float = 5 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store if store is not None else InMemorySubmissionStore()
        self.max_size = max_size
        self.max_retries = max_retries
        self.max_age_seconds = max_age_seconds
        self.cleanup_interval = cleanup_interval
        self.clock = clock
        self._last_purge: float | None = None
        self._lock = threading.RLock()

    # ── housekeeping ─────────────────────────────────────────────

    def _maybe_purge(self, now: float) -> int:
        """Drop expired and failed-at-ceiling records, at most once per interval."""
        if self._last_purge is not None and now - self._last_purge < self.cleanup_interval:
            return 0
        self._last_purge = now

        cutoff = now - self.max_age_seconds
        purged = 0
        for record in self._store.values():
            expired = record.created_at < cutoff
            dead = record.status == SubmissionStatus.FAILED and record.retry_count >= record.max_retries
            if expired or dead:
                self._store.delete(record.id)
                purged += 1
        if purged:
            logger.info("queue_purged", purged=purged, remaining=self._store.count())
        return purged

    def purge(self, now: float | None = None) -> int:
        """Run the purge immediately, ignoring the interval."""
        now = self.clock() if now is None else now
        with self._lock:
            self._last_purge = None
            return self._maybe_purge(now)

    # ── writes ───────────────────────────────────────────────────

    def enqueue(
        self,
        report: BugReport,
        enriched: EnrichedReport,
        errors: Mapping[str, str],
        successes: Mapping[str, bool],
        refs: Mapping[str, ExternalRef] | None = None,
        *,
        enrichment_degraded: bool = False,
        now: float | None = None,
    ) -> str:
        """Record an incomplete submission and return its id.

        Raises:
            QueueFullError: If the queue is at capacity
        """
        now = self.clock() if now is None else now
        with self._lock:
            self._maybe_purge(now)
            if self._store.count() >= self.max_size:
                raise QueueFullError(
                    "Submission queue is full. Cannot add more submissions."
                ).with_context(max_size=self.max_size)

            record = SubmissionRecord(
                id=generate_submission_id(),
                report=report.model_copy(deep=True),
                enriched=enriched.model_copy(deep=True),
                created_at=now,
                max_retries=self.max_retries,
                enrichment_degraded=enrichment_degraded,
                errors=dict(errors),
                successes=dict(successes),
                refs={stage: ref.model_copy() for stage, ref in (refs or {}).items()},
            )
            self._store.add(record)

        logger.info(
            "submission_queued",
            submission_id=record.id,
            status=record.status.value,
            failed_stages=sorted(record.errors),
        )
        return record.id

    def update(
        self,
        submission_id: str,
        *,
        errors: Mapping[str, str] | None = None,
        successes: Mapping[str, bool] | None = None,
        refs: Mapping[str, ExternalRef] | None = None,
        enriched: EnrichedReport | None = None,
        enrichment_degraded: bool | None = None,
    ) -> bool:
        """Merge new stage outcomes into a record and end its in-flight attempt.

        Returns:
            True if updated, False if not found
        """
        with self._lock:
            record = self._store.get(submission_id)
            if record is None:
                return False

            if errors:
                record.errors.update(errors)
            if successes:
                record.successes.update(successes)
                for stage, ok in successes.items():
                    if ok:
                        record.errors.pop(stage, None)
            if refs:
                record.refs.update({stage: ref.model_copy() for stage, ref in refs.items()})
            if enriched is not None:
                record.enriched = enriched.model_copy(deep=True)
            if enrichment_degraded is not None:
                record.enrichment_degraded = enrichment_degraded
            record.in_flight = False

            self._store.update(record)
            return True

    def mark_retry_attempted(self, submission_id: str, now: float | None = None) -> bool:
        """Claim one retry attempt for a record.

        Returns:
            True if the attempt was recorded; False if the record is missing
            or already at its retry ceiling (its status then derives to
            ``failed`` when no delivery stage has succeeded)
        """
        now = self.clock() if now is None else now
        with self._lock:
            record = self._store.get(submission_id)
            if record is None:
                return False

            if record.retry_count >= record.max_retries:
                logger.warning(
                    "retry_ceiling_reached",
                    submission_id=submission_id,
                    retry_count=record.retry_count,
                )
                return False

            record.retry_count += 1
            record.in_flight = True
            record.last_attempt_at = now
            self._store.update(record)
            return True

    def release(self, submission_id: str) -> bool:
        """End an in-flight attempt without recording outcomes.

        The claimed retry still counts toward the ceiling.
        """
        with self._lock:
            record = self._store.get(submission_id)
            if record is None or not record.in_flight:
                return False
            record.in_flight = False
            self._store.update(record)
            return True

    def remove(self, submission_id: str) -> bool:
        with self._lock:
            return self._store.delete(submission_id)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._last_purge = self.clock()

    # ── reads ────────────────────────────────────────────────────

    def get(self, submission_id: str) -> SubmissionRecord | None:
        with self._lock:
            record = self._store.get(submission_id)
            return copy.deepcopy(record) if record is not None else None

    def list_all(
        self, status: SubmissionStatus | None = None, now: float | None = None
    ) -> list[SubmissionRecord]:
        """All records, optionally filtered by derived status, oldest first."""
        now = self.clock() if now is None else now
        with self._lock:
            self._maybe_purge(now)
            records = [
                copy.deepcopy(record)
                for record in self._store.values()
                if status is None or record.status == status
            ]
        return sorted(records, key=lambda r: r.created_at)

    def list_retryable(self, now: float | None = None) -> list[SubmissionRecord]:
        """Pending or partial records still under their retry ceiling."""
        return [record for record in self.list_all(now=now) if record.can_retry()]

    def __len__(self) -> int:
        with self._lock:
            return self._store.count()

    def stats(self, now: float | None = None) -> dict[str, Any]:
        """Counts by derived status."""
        records = self.list_all(now=now)
        counts = {status.value: 0 for status in SubmissionStatus}
        for record in records:
            counts[record.status.value] += 1
        return {
            "total": len(records),
            **counts,
            "retryable": sum(1 for record in records if record.can_retry()),
            "max_size": self.max_size,
        }
