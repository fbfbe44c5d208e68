"""
Greedy lesson placement.

The engine places lesson units one at a time onto the time grid:

1. Units are ordered most-constrained-first: teachers with the fewest
   usable cells go first. Ties fall back to (teacher, class, subject or
   module, lesson index) so identical input always gives identical output.
2. For each unit every teaching cell is checked against class occupancy,
   teacher occupancy, teacher availability, the weekly cap and the
   consecutive-period cap for the teacher+class pair.
3. Among the cells that pass, the one on the class's lightest day wins;
   remaining ties go to the earliest (day, period).
4. A unit with no valid cell becomes a Conflict and the run moves on.
   Nothing already placed is undone.

There is no backtracking. A run with conflicts is still a normal result;
the conflicts tell the caller which assignments need manual attention.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from .availability import AvailabilityIndex
from .core.config import EngineConfig
from .data.models import Day, TimeCell, TimetableEntry
from .grid import TimeGrid
from .requirements import LessonUnit


logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================

class ConflictReason(str, Enum):
    """Why a lesson unit could not be placed."""
    TEACHER_UNAVAILABLE = "TEACHER_UNAVAILABLE"
    TEACHER_OVERLOADED = "TEACHER_OVERLOADED"
    NO_FREE_SLOT_FOR_CLASS = "NO_FREE_SLOT_FOR_CLASS"
    CONSECUTIVE_LIMIT = "CONSECUTIVE_LIMIT"


@dataclass(frozen=True)
class Conflict:
    """A lesson unit that was left unplaced."""
    unit: LessonUnit
    reason: ConflictReason

    @property
    def teacher_id(self) -> str:
        return self.unit.teacher_id

    @property
    def class_id(self) -> str:
        return self.unit.class_id


@dataclass
class ScheduleResult:
    """Outcome of one engine run."""
    placed: list[TimetableEntry] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.conflicts

    @property
    def total_units(self) -> int:
        return len(self.placed) + len(self.conflicts)

    def conflicts_by_reason(self) -> dict[str, int]:
        counts: dict[str, int] = defaultdict(int)
        for conflict in self.conflicts:
            counts[conflict.reason.value] += 1
        return dict(sorted(counts.items()))


# =============================================================================
# Occupancy
# =============================================================================

class Occupancy:
    """
    Which cells are taken, by class and by teacher.

    Also tracks the cells held by each (teacher, class) pair, for the
    consecutive-period rule, and per-class lesson counts per day, for the
    balancing tie-break.
    """

    def __init__(self) -> None:
        self.class_busy: set[tuple[str, str]] = set()
        self.teacher_busy: set[tuple[str, str]] = set()
        self.pair_cells: dict[tuple[str, str], set[str]] = defaultdict(set)
        self.class_day_load: dict[tuple[str, Day], int] = defaultdict(int)

    @classmethod
    def from_entries(cls, entries: Iterable[TimetableEntry], grid: TimeGrid) -> "Occupancy":
        """Seed occupancy from entries kept from earlier runs."""
        occupancy = cls()
        for entry in entries:
            cell = grid.get(entry.time_cell_id)
            if cell is None:
                logger.warning(
                    "Entry for class %s references unknown time cell %s; ignored",
                    entry.class_id, entry.time_cell_id,
                )
                continue
            occupancy.occupy(entry.teacher_id, entry.class_id, cell)
        return occupancy

    def occupy(self, teacher_id: str, class_id: str, cell: TimeCell) -> None:
        self.class_busy.add((class_id, cell.id))
        self.teacher_busy.add((teacher_id, cell.id))
        self.pair_cells[(teacher_id, class_id)].add(cell.id)
        self.class_day_load[(class_id, cell.day)] += 1

    def is_class_busy(self, class_id: str, cell: TimeCell) -> bool:
        return (class_id, cell.id) in self.class_busy

    def is_teacher_busy(self, teacher_id: str, cell: TimeCell) -> bool:
        return (teacher_id, cell.id) in self.teacher_busy

    def run_length_with(self, teacher_id: str, class_id: str, cell: TimeCell, grid: TimeGrid) -> int:
        """Length of the pair's back-to-back run on that day if `cell` were added."""
        held = self.pair_cells.get((teacher_id, class_id), set())
        length = 1

        neighbour = grid.previous_cell(cell)
        while neighbour is not None and neighbour.id in held:
            length += 1
            neighbour = grid.previous_cell(neighbour)

        neighbour = grid.next_cell(cell)
        while neighbour is not None and neighbour.id in held:
            length += 1
            neighbour = grid.next_cell(neighbour)

        return length


# =============================================================================
# Engine
# =============================================================================

class SchedulingEngine:
    """Places lesson units on a grid; see module docstring for the policy."""

    def __init__(self, grid: TimeGrid, config: Optional[EngineConfig] = None):
        self.grid = grid
        self.config = config or EngineConfig()

    def order_units(
        self,
        units: Sequence[LessonUnit],
        occupancy: Occupancy,
        availability: AvailabilityIndex,
    ) -> list[LessonUnit]:
        """
        Most constrained teacher first, then a fixed lexical order.

        Capacity is measured once against the starting occupancy and
        remaining hours; the order is not re-sorted as units are placed.
        """
        capacity: dict[str, int] = {}
        for teacher_id in sorted({u.teacher_id for u in units}):
            free = sum(
                1 for c in availability.allowed_cells(teacher_id)
                if not occupancy.is_teacher_busy(teacher_id, c)
            )
            capacity[teacher_id] = min(free, availability.remaining_weekly_hours(teacher_id))

        return sorted(units, key=lambda u: (capacity[u.teacher_id], u.sort_key))

    def schedule(
        self,
        units: Sequence[LessonUnit],
        occupancy: Occupancy,
        availability: AvailabilityIndex,
        *,
        school_id: str,
    ) -> ScheduleResult:
        """
        Place every unit it can and report the rest.

        `occupancy` and `availability` are updated in place as units are
        committed.

        Args:
            units: Lesson units to place
            occupancy: Cells already taken at the start of the run
            availability: Teacher availability for this run
            school_id: School written into every entry

        Returns:
            ScheduleResult with placed entries in placement order
        """
        result = ScheduleResult()

        for unit in self.order_units(units, occupancy, availability):
            cell = self._best_cell(unit, occupancy, availability)
            if cell is None:
                reason = self._diagnose(unit, occupancy, availability)
                result.conflicts.append(Conflict(unit=unit, reason=reason))
                logger.info("Could not place %s: %s", unit, reason.value)
                continue

            occupancy.occupy(unit.teacher_id, unit.class_id, cell)
            availability.consume(unit.teacher_id, cell)
            result.placed.append(TimetableEntry(
                school_id=school_id,
                class_id=unit.class_id,
                teacher_id=unit.teacher_id,
                subject_id=unit.subject_id,
                module_id=unit.module_id,
                time_cell_id=cell.id,
            ))
            logger.debug("Placed %s at %s", unit, cell)

        logger.info(
            "Scheduling run finished: %d placed, %d conflicts [school=%s]",
            len(result.placed), len(result.conflicts), school_id,
        )
        return result

    # -------------------------------------------------------------------------
    # Candidate selection
    # -------------------------------------------------------------------------

    def _is_candidate(
        self,
        unit: LessonUnit,
        cell: TimeCell,
        occupancy: Occupancy,
        availability: AvailabilityIndex,
    ) -> bool:
        return (
            not cell.is_break
            and not occupancy.is_class_busy(unit.class_id, cell)
            and not occupancy.is_teacher_busy(unit.teacher_id, cell)
            and availability.is_allowed(unit.teacher_id, cell)
            and occupancy.run_length_with(unit.teacher_id, unit.class_id, cell, self.grid)
            <= self.config.max_consecutive_periods
        )

    def _best_cell(
        self,
        unit: LessonUnit,
        occupancy: Occupancy,
        availability: AvailabilityIndex,
    ) -> Optional[TimeCell]:
        if availability.remaining_weekly_hours(unit.teacher_id) <= 0:
            return None

        candidates = [
            c for c in self.grid.teaching_cells
            if self._is_candidate(unit, c, occupancy, availability)
        ]
        if not candidates:
            return None

        return min(
            candidates,
            key=lambda c: (occupancy.class_day_load.get((unit.class_id, c.day), 0), c.sort_key),
        )

    def _diagnose(
        self,
        unit: LessonUnit,
        occupancy: Occupancy,
        availability: AvailabilityIndex,
    ) -> ConflictReason:
        """Name the constraint that eliminated every cell."""
        if availability.remaining_weekly_hours(unit.teacher_id) <= 0:
            return ConflictReason.TEACHER_OVERLOADED

        class_free = [
            c for c in self.grid.teaching_cells
            if not occupancy.is_class_busy(unit.class_id, c)
        ]
        if not class_free:
            return ConflictReason.NO_FREE_SLOT_FOR_CLASS

        teacher_ok = [
            c for c in class_free
            if not occupancy.is_teacher_busy(unit.teacher_id, c)
            and availability.is_allowed(unit.teacher_id, c)
        ]
        if not teacher_ok:
            return ConflictReason.TEACHER_UNAVAILABLE

        return ConflictReason.CONSECUTIVE_LIMIT
