"""
Teacher availability for one scheduling run.

A cell is forbidden for a teacher when:
- its day is one of the teacher's unavailable days
- its period tag is one of the teacher's unavailable periods
- it is a break

On top of that static picture the index keeps a running weekly-hour
counter per teacher. Once the counter reaches zero every further cell is
disallowed for that teacher, whatever the slot.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .data.models import Teacher, TimeCell, TimetableEntry
from .grid import TimeGrid


logger = logging.getLogger(__name__)


class AvailabilityIndex:
    """Forbidden cells and remaining weekly hours, keyed by teacher ID."""

    def __init__(self, grid: TimeGrid, teachers: Iterable[Teacher]):
        self.grid = grid
        self._forbidden: dict[str, frozenset[str]] = {}
        self._remaining: dict[str, int] = {}
        self._max_hours: dict[str, int] = {}

        for teacher in teachers:
            self._forbidden[teacher.id] = frozenset(
                cell.id for cell in grid if _is_forbidden_for(teacher, cell)
            )
            self._remaining[teacher.id] = teacher.max_weekly_hours
            self._max_hours[teacher.id] = teacher.max_weekly_hours

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def knows(self, teacher_id: str) -> bool:
        return teacher_id in self._forbidden

    def is_forbidden(self, teacher_id: str, cell: TimeCell) -> bool:
        """Static check only: days, periods and breaks. Unknown teachers are forbidden everywhere."""
        forbidden = self._forbidden.get(teacher_id)
        if forbidden is None:
            return True
        return cell.is_break or cell.id in forbidden

    def is_allowed(self, teacher_id: str, cell: TimeCell) -> bool:
        """Whether the teacher may be placed in this cell right now."""
        if self.remaining_weekly_hours(teacher_id) <= 0:
            return False
        return not self.is_forbidden(teacher_id, cell)

    def remaining_weekly_hours(self, teacher_id: str) -> int:
        return self._remaining.get(teacher_id, 0)

    def max_weekly_hours(self, teacher_id: str) -> int:
        return self._max_hours.get(teacher_id, 0)

    def allowed_cells(self, teacher_id: str) -> list[TimeCell]:
        """Teaching cells the teacher is not statically barred from, in grid order."""
        return [c for c in self.grid.teaching_cells if not self.is_forbidden(teacher_id, c)]

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def consume(self, teacher_id: str, cell: TimeCell) -> None:
        """Charge one period in `cell` against the teacher's weekly hours."""
        if teacher_id not in self._remaining:
            raise KeyError(f"Unknown teacher: {teacher_id}")
        if self._remaining[teacher_id] > 0:
            self._remaining[teacher_id] -= 1
        else:
            logger.debug("Teacher %s charged for %s with no hours left", teacher_id, cell.id)

    def reserve(self, entries: Iterable[TimetableEntry]) -> int:
        """
        Charge kept entries from earlier runs against the weekly caps.

        Entries for teachers or cells unknown to this index are ignored.

        Returns:
            Number of entries charged
        """
        charged = 0
        for entry in entries:
            cell = self.grid.get(entry.time_cell_id)
            if cell is None or entry.teacher_id not in self._remaining:
                continue
            self.consume(entry.teacher_id, cell)
            charged += 1
        return charged


def _is_forbidden_for(teacher: Teacher, cell: TimeCell) -> bool:
    return (
        cell.is_break
        or cell.day in teacher.unavailable_days
        or cell.period_tag in teacher.unavailable_periods
    )
