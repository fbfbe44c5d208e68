"""
Weekly time grid.

The grid is the ordered set of (day, period) cells a school can schedule
into. Periods are contiguous positions within a day; break cells sit at
their own position so two teaching cells are adjacent only when nothing
separates them.

The default school day:

    P1 08:00-08:40   P2 08:40-09:20   P3 09:20-10:00
    -- morning break 10:00-10:20 --
    P4 10:20-11:00   P5 11:00-11:40
    -- lunch 11:40-13:10 --
    P6 13:10-13:50   P7 13:50-14:30   P8 14:30-15:10
    -- afternoon break 15:10-15:30 --
    P9 15:30-16:10   P10 16:10-16:50
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Iterator, Optional, Sequence

from .data.models import Day, TimeCell, WEEKDAYS, time_to_minutes


class GridValidationError(ValueError):
    """Raised when time cells do not form a valid weekly grid."""
    pass


# (kind, label, start, end); kind is "P" for teaching, "B" for break
DEFAULT_DAY_LAYOUT: list[tuple[str, str, str, str]] = [
    ("P", "P1", "08:00", "08:40"),
    ("P", "P2", "08:40", "09:20"),
    ("P", "P3", "09:20", "10:00"),
    ("B", "Morning Break", "10:00", "10:20"),
    ("P", "P4", "10:20", "11:00"),
    ("P", "P5", "11:00", "11:40"),
    ("B", "Lunch Break", "11:40", "13:10"),
    ("P", "P6", "13:10", "13:50"),
    ("P", "P7", "13:50", "14:30"),
    ("P", "P8", "14:30", "15:10"),
    ("B", "Afternoon Break", "15:10", "15:30"),
    ("P", "P9", "15:30", "16:10"),
    ("P", "P10", "16:10", "16:50"),
]


class TimeGrid:
    """Immutable, ordered view over a school's time cells."""

    def __init__(self, cells: Iterable[TimeCell]):
        self._cells: list[TimeCell] = sorted(cells, key=lambda c: (c.sort_key, c.id))
        self._by_id: dict[str, TimeCell] = {}
        self._by_position: dict[tuple[int, int], TimeCell] = {}
        self._by_day: dict[Day, list[TimeCell]] = defaultdict(list)

        errors: list[str] = []
        for cell in self._cells:
            if cell.id in self._by_id:
                errors.append(f"Duplicate time cell ID: '{cell.id}'")
                continue
            if cell.sort_key in self._by_position:
                other = self._by_position[cell.sort_key]
                errors.append(f"Cells '{other.id}' and '{cell.id}' share {cell.day.name} period {cell.period}")
                continue
            self._by_id[cell.id] = cell
            self._by_position[cell.sort_key] = cell
            self._by_day[cell.day].append(cell)

        for day, day_cells in self._by_day.items():
            periods = [c.period for c in day_cells]
            expected = list(range(periods[0], periods[0] + len(periods)))
            if periods != expected:
                errors.append(f"Periods on {day.name} are not contiguous: {periods}")

        if errors:
            raise GridValidationError("Time grid validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        self._teaching = [c for c in self._cells if not c.is_break]

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    @property
    def cells(self) -> list[TimeCell]:
        return list(self._cells)

    @property
    def teaching_cells(self) -> list[TimeCell]:
        """Cells that may host a lesson, in (day, period) order."""
        return list(self._teaching)

    @property
    def days(self) -> list[Day]:
        return sorted(self._by_day)

    def cells_on(self, day: Day) -> list[TimeCell]:
        return list(self._by_day.get(day, []))

    def get(self, cell_id: str) -> Optional[TimeCell]:
        return self._by_id.get(cell_id)

    def __contains__(self, cell_id: object) -> bool:
        return cell_id in self._by_id

    def previous_cell(self, cell: TimeCell) -> Optional[TimeCell]:
        return self._by_position.get((int(cell.day), cell.period - 1))

    def next_cell(self, cell: TimeCell) -> Optional[TimeCell]:
        return self._by_position.get((int(cell.day), cell.period + 1))

    def __iter__(self) -> Iterator[TimeCell]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        return f"TimeGrid(days={len(self._by_day)}, cells={len(self._cells)}, teaching={len(self._teaching)})"


# =============================================================================
# Builders
# =============================================================================

def build_default_grid(days: Sequence[Day] = WEEKDAYS) -> TimeGrid:
    """
    Build the standard P1-P10 school day for each given day.

    Cell IDs look like "MON-P4" for teaching cells and "MON-B7" for breaks.
    """
    cells: list[TimeCell] = []
    for day in days:
        prefix = day.name[:3]
        for position, (kind, label, start, end) in enumerate(DEFAULT_DAY_LAYOUT, start=1):
            is_break = kind == "B"
            cells.append(TimeCell(
                id=f"{prefix}-B{position}" if is_break else f"{prefix}-{label}",
                day=day,
                period=position,
                is_break=is_break,
                tag=None if is_break else label,
                name=label if is_break else f"Period {label[1:]}",
                start_minutes=time_to_minutes(start),
                end_minutes=time_to_minutes(end),
            ))
    return TimeGrid(cells)


def build_grid(
    days: Sequence[Day] = WEEKDAYS,
    periods_per_day: int = 8,
    breaks_after: Sequence[int] = (),
) -> TimeGrid:
    """
    Build a plain grid with numbered teaching periods.

    Args:
        days: Days to include
        periods_per_day: Teaching periods per day
        breaks_after: Teaching period numbers followed by a break

    Example:
        >>> grid = build_grid(periods_per_day=4, breaks_after=[2])
        >>> [c.period_tag for c in grid.cells_on(Day.MONDAY)]
        ['P1', 'P2', 'B3', 'P3', 'P4']
    """
    cells: list[TimeCell] = []
    for day in days:
        prefix = day.name[:3]
        position = 0
        for teaching_number in range(1, periods_per_day + 1):
            position += 1
            cells.append(TimeCell(
                id=f"{prefix}-P{teaching_number}",
                day=day,
                period=position,
                tag=f"P{teaching_number}",
            ))
            if teaching_number in breaks_after and teaching_number < periods_per_day:
                position += 1
                cells.append(TimeCell(
                    id=f"{prefix}-B{position}",
                    day=day,
                    period=position,
                    is_break=True,
                ))
    return TimeGrid(cells)
