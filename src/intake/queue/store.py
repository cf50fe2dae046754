"""
Storage seam for the submission queue.

:class:`SubmissionQueue` only talks to a :class:`SubmissionStore`, so a
durable keyed store (with TTL and atomic increment) can replace the
in-memory default without touching the saga or the recovery sweep.
"""

from __future__ import annotations

from typing import Protocol

from intake.queue.models import SubmissionRecord


class SubmissionStore(Protocol):
    """Keyed storage of submission records."""

    def add(self, record: SubmissionRecord) -> None: ...

    def get(self, submission_id: str) -> SubmissionRecord | None: ...

    def update(self, record: SubmissionRecord) -> None: ...

    def delete(self, submission_id: str) -> bool: ...

    def values(self) -> list[SubmissionRecord]: ...

    def count(self) -> int: ...

    def clear(self) -> None: ...


class InMemorySubmissionStore:
    """Dict-backed store. Volatile: records do not survive a restart."""

    def __init__(self) -> None:
        self._records: dict[str, SubmissionRecord] = {}

    def add(self, record: SubmissionRecord) -> None:
        self._records[record.id] = record

    def get(self, submission_id: str) -> SubmissionRecord | None:
        return self._records.get(submission_id)

    def update(self, record: SubmissionRecord) -> None:
        self._records[record.id] = record

    def delete(self, submission_id: str) -> bool:
        return self._records.pop(submission_id, None) is not None

    def values(self) -> list[SubmissionRecord]:
        return list(self._records.values())

    def count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()
