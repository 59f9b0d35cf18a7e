"""
payroll_engines.intervals -- ordered, non-overlapping effective-dated intervals.

Responsibility:
    Pure index over the assignments of one (employee, component) key.
    Intervals are half-open ``[effective_from, effective_to)``; ``None`` as
    the upper bound means open-ended.  Lookups use binary search over the
    sorted start dates.

Invariants enforced:
    - Intervals never overlap, so at most one contains any date.
    - ``effective_to`` is strictly after ``effective_from``.

Failure modes:
    - InvalidIntervalError for an empty or inverted interval.
    - OverlapError when an added interval intersects an existing one.
"""

from bisect import bisect_left, bisect_right, insort
from collections.abc import Iterable, Iterator
from datetime import date

from payroll_kernel.domain.dtos import AssignmentInfo
from payroll_kernel.exceptions import InvalidIntervalError, OverlapError


def validate_interval(effective_from: date, effective_to: date | None) -> None:
    if effective_to is not None and effective_to <= effective_from:
        raise InvalidIntervalError(
            effective_from, effective_to, "effective_to must be after effective_from"
        )


def _ends_after(item: AssignmentInfo, day: date) -> bool:
    return item.effective_to is None or item.effective_to > day


class IntervalIndex:
    """Sorted assignments of a single key with O(log n) point lookups."""

    def __init__(self, assignments: Iterable[AssignmentInfo] = ()):
        self._items: list[AssignmentInfo] = []
        self._starts: list[date] = []
        for item in sorted(assignments, key=lambda a: a.effective_from):
            self.add(item)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[AssignmentInfo]:
        return iter(self._items)

    def resolve(self, as_of: date) -> AssignmentInfo | None:
        """The interval containing ``as_of``, if any."""
        idx = bisect_right(self._starts, as_of) - 1
        if idx >= 0 and self._items[idx].contains(as_of):
            return self._items[idx]
        return None

    def find_overlap(
        self, effective_from: date, effective_to: date | None
    ) -> AssignmentInfo | None:
        """First stored interval intersecting ``[effective_from, effective_to)``."""
        before = bisect_right(self._starts, effective_from) - 1
        if before >= 0 and _ends_after(self._items[before], effective_from):
            return self._items[before]
        after = bisect_left(self._starts, effective_from)
        if after < len(self._items):
            candidate = self._items[after]
            if effective_to is None or candidate.effective_from < effective_to:
                return candidate
        return None

    def add(self, item: AssignmentInfo) -> None:
        validate_interval(item.effective_from, item.effective_to)
        clash = self.find_overlap(item.effective_from, item.effective_to)
        if clash is not None:
            raise OverlapError(
                employee_id=item.employee_id,
                component_id=item.component_id,
                effective_from=item.effective_from,
                effective_to=item.effective_to,
                existing_from=clash.effective_from,
                existing_to=clash.effective_to,
            )
        idx = bisect_left(self._starts, item.effective_from)
        self._items.insert(idx, item)
        insort(self._starts, item.effective_from)

    def intersecting(self, start: date, end: date) -> list[AssignmentInfo]:
        """Intervals sharing at least one day with the inclusive range ``[start, end]``."""
        idx = max(bisect_right(self._starts, start) - 1, 0)
        found: list[AssignmentInfo] = []
        while idx < len(self._items) and self._items[idx].effective_from <= end:
            item = self._items[idx]
            if _ends_after(item, start):
                found.append(item)
            idx += 1
        return found
