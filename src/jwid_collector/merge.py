"""Folding duplicate work codes together and promoting alternatives."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from copy import copy

from jwid_collector.models import WorkRecord


__all__ = ['ResultSet', 'merge_by_work_code', 'promote_alternative']


class ResultSet:
    """Primary records of one job, at most one per work code, in arrival order.

    A record whose work code is already present is not added again; its
    alternatives are folded into the existing record's list instead. Records
    without a work code are kept as they are and never merged.
    """

    def __init__(self, records: Iterable[WorkRecord] = ()) -> None:
        self._records: list[WorkRecord] = []
        self._by_code: dict[str, WorkRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: WorkRecord) -> bool:
        """Add *record*; return False when it was merged into an existing one."""
        existing = self._by_code.get(record.work_code) if record.work_code else None
        if existing is None:
            self._records.append(record)
            if record.work_code:
                self._by_code[record.work_code] = record
            return True
        for alt in record.alternatives:
            existing.add_alternative(alt)
        return False

    def __contains__(self, work_code: object) -> bool:
        return work_code in self._by_code

    def __iter__(self) -> Iterator[WorkRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> list[WorkRecord]:
        return list(self._records)


def merge_by_work_code(records: Iterable[WorkRecord]) -> list[WorkRecord]:
    return ResultSet(records).records()


def promote_alternative(record: WorkRecord, index: int) -> WorkRecord:
    """Return a copy of alternative *index* as the primary record.

    Its alternatives become the old primary followed by the remaining
    alternatives. Neither input record is modified.
    """
    if not 0 <= index < len(record.alternatives):
        raise IndexError(f'record {record.work_code} has no alternative {index}')

    chosen = record.alternatives[index]
    old_main = copy(record)
    old_main.alternatives = []

    promoted = copy(chosen)
    promoted.alternatives = []
    promoted.add_alternative(old_main)
    for i, alt in enumerate(record.alternatives):
        if i != index:
            promoted.add_alternative(alt)
    return promoted
