"""
Audit and quality metrics for stored timetables.

`audit_timetable` re-checks a set of entries against every hard rule the
engine enforces, independently of how the entries were produced. It is
what `timetabler audit` runs against a school document, and what the test
suite uses to check engine output.

`daily_balance` measures how evenly each class's lessons are spread over
the days of the grid.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..availability import AvailabilityIndex
from ..data.models import Teacher, TimetableEntry
from ..grid import TimeGrid


# =============================================================================
# Constants
# =============================================================================

# Target thresholds for quality assessment
DEFAULT_TARGETS = {
    "daily_balance": 1.5,         # Max std dev of lessons per day
}

CLASS_DOUBLE_BOOKED = "CLASS_DOUBLE_BOOKED"
TEACHER_DOUBLE_BOOKED = "TEACHER_DOUBLE_BOOKED"
UNKNOWN_TIME_CELL = "UNKNOWN_TIME_CELL"
BREAK_CELL = "BREAK_CELL"
UNKNOWN_TEACHER = "UNKNOWN_TEACHER"
TEACHER_UNAVAILABLE = "TEACHER_UNAVAILABLE"
WEEKLY_CAP_EXCEEDED = "WEEKLY_CAP_EXCEEDED"
CONSECUTIVE_LIMIT_EXCEEDED = "CONSECUTIVE_LIMIT_EXCEEDED"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class AuditViolation:
    """One broken rule."""
    kind: str
    message: str
    teacher_id: Optional[str] = None
    class_id: Optional[str] = None
    time_cell_id: Optional[str] = None


@dataclass
class AuditReport:
    """Every violation found in a set of entries."""
    entries_checked: int
    violations: list[AuditViolation] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.violations

    def counts_by_kind(self) -> dict[str, int]:
        return dict(sorted(Counter(v.kind for v in self.violations).items()))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "valid": self.valid,
            "entriesChecked": self.entries_checked,
            "countsByKind": self.counts_by_kind(),
            "violations": [
                {
                    "kind": v.kind,
                    "message": v.message,
                    "teacherId": v.teacher_id,
                    "classId": v.class_id,
                    "timeCellId": v.time_cell_id,
                }
                for v in self.violations
            ],
        }


@dataclass
class BalanceMetrics:
    """Metrics for daily lesson balance per class."""
    average_std_dev: float
    max_std_dev: float
    class_balance: dict[str, float] = field(default_factory=dict)
    unbalanced_classes: list[str] = field(default_factory=list)

    @property
    def score(self) -> float:
        """Lower std dev is better. Returns 100 - normalized deviation."""
        # Normalize: 0 std dev = 100, 3+ std dev = 0
        normalized = max(0, 100 - (self.average_std_dev / 3) * 100)
        return round(normalized, 2)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "averageStdDev": self.average_std_dev,
            "maxStdDev": self.max_std_dev,
            "classBalance": self.class_balance,
            "unbalancedClasses": self.unbalanced_classes,
        }


# =============================================================================
# Audit
# =============================================================================

def audit_timetable(
    entries: Iterable[TimetableEntry],
    grid: TimeGrid,
    teachers: Iterable[Teacher],
    max_consecutive: int = 2,
) -> AuditReport:
    """
    Check entries against the hard scheduling rules.

    Reports:
    - A class or a teacher booked twice in one cell
    - Entries in unknown cells or break cells
    - Entries for unknown teachers, or in cells the teacher is unavailable
    - Teachers over their weekly cap
    - Teacher+class pairs with more than `max_consecutive` back-to-back periods

    Args:
        entries: Entries to check
        grid: Grid the entries refer to
        teachers: Teachers of the school
        max_consecutive: Longest allowed run for one teacher+class pair

    Returns:
        AuditReport listing violations in a stable order
    """
    entries = list(entries)
    teachers = list(teachers)
    availability = AvailabilityIndex(grid, teachers)
    caps = {t.id: t.max_weekly_hours for t in teachers}
    report = AuditReport(entries_checked=len(entries))
    add = report.violations.append

    class_cells: set[tuple[str, str]] = set()
    teacher_cells: set[tuple[str, str]] = set()
    weekly: Counter[str] = Counter()
    pair_cells: dict[tuple[str, str], set[str]] = defaultdict(set)

    for entry in entries:
        class_key = (entry.class_id, entry.time_cell_id)
        teacher_key = (entry.teacher_id, entry.time_cell_id)
        if class_key in class_cells:
            add(AuditViolation(
                CLASS_DOUBLE_BOOKED,
                f"Class {entry.class_id} has more than one lesson in {entry.time_cell_id}",
                class_id=entry.class_id, time_cell_id=entry.time_cell_id,
            ))
        if teacher_key in teacher_cells:
            add(AuditViolation(
                TEACHER_DOUBLE_BOOKED,
                f"Teacher {entry.teacher_id} has more than one lesson in {entry.time_cell_id}",
                teacher_id=entry.teacher_id, time_cell_id=entry.time_cell_id,
            ))
        class_cells.add(class_key)
        teacher_cells.add(teacher_key)
        weekly[entry.teacher_id] += 1
        pair_cells[(entry.teacher_id, entry.class_id)].add(entry.time_cell_id)

        cell = grid.get(entry.time_cell_id)
        if cell is None:
            add(AuditViolation(
                UNKNOWN_TIME_CELL,
                f"Entry for class {entry.class_id} is in unknown cell {entry.time_cell_id}",
                teacher_id=entry.teacher_id, class_id=entry.class_id, time_cell_id=entry.time_cell_id,
            ))
        elif cell.is_break:
            add(AuditViolation(
                BREAK_CELL,
                f"Class {entry.class_id} has a lesson during break {entry.time_cell_id}",
                teacher_id=entry.teacher_id, class_id=entry.class_id, time_cell_id=entry.time_cell_id,
            ))
        elif not availability.knows(entry.teacher_id):
            add(AuditViolation(
                UNKNOWN_TEACHER,
                f"Entry in {entry.time_cell_id} references unknown teacher {entry.teacher_id}",
                teacher_id=entry.teacher_id, class_id=entry.class_id, time_cell_id=entry.time_cell_id,
            ))
        elif availability.is_forbidden(entry.teacher_id, cell):
            add(AuditViolation(
                TEACHER_UNAVAILABLE,
                f"Teacher {entry.teacher_id} is unavailable in {entry.time_cell_id}",
                teacher_id=entry.teacher_id, class_id=entry.class_id, time_cell_id=entry.time_cell_id,
            ))

    for teacher_id, count in sorted(weekly.items()):
        if teacher_id in caps and count > caps[teacher_id]:
            add(AuditViolation(
                WEEKLY_CAP_EXCEEDED,
                f"Teacher {teacher_id} teaches {count} periods, max is {caps[teacher_id]}",
                teacher_id=teacher_id,
            ))

    for (teacher_id, class_id), held in sorted(pair_cells.items()):
        for run in _runs(held, grid):
            if len(run) > max_consecutive:
                add(AuditViolation(
                    CONSECUTIVE_LIMIT_EXCEEDED,
                    f"Teacher {teacher_id} has class {class_id} for {len(run)} periods in a row "
                    f"from {run[0]}, max is {max_consecutive}",
                    teacher_id=teacher_id, class_id=class_id, time_cell_id=run[0],
                ))

    return report


def _runs(cell_ids: set[str], grid: TimeGrid) -> list[list[str]]:
    """Maximal back-to-back runs among the given cells, in grid order."""
    runs: list[list[str]] = []
    cells = sorted((grid.get(c) for c in cell_ids if c in grid), key=lambda c: c.sort_key)
    for cell in cells:
        previous = grid.previous_cell(cell)
        if runs and previous is not None and previous.id == runs[-1][-1]:
            runs[-1].append(cell.id)
        else:
            runs.append([cell.id])
    return runs


# =============================================================================
# Balance
# =============================================================================

def daily_balance(
    entries: Iterable[TimetableEntry],
    grid: TimeGrid,
    targets: dict[str, float] | None = None,
) -> BalanceMetrics:
    """
    Calculate daily lesson balance for classes.

    For each class, count lessons per grid day and calculate the standard
    deviation. Days with no lessons count as zero.

    Args:
        entries: Placed entries
        grid: Grid defining the days
        targets: Custom target thresholds (optional)

    Returns:
        BalanceMetrics with per-class deviations
    """
    targets = {**DEFAULT_TARGETS, **(targets or {})}
    days = grid.days
    per_day: dict[str, Counter] = defaultdict(Counter)

    for entry in entries:
        cell = grid.get(entry.time_cell_id)
        if cell is not None:
            per_day[entry.class_id][cell.day] += 1

    class_std_devs: dict[str, float] = {}
    unbalanced: list[str] = []
    for class_id, counts in sorted(per_day.items()):
        std_dev = round(_std_dev([counts.get(day, 0) for day in days]), 2)
        class_std_devs[class_id] = std_dev
        if std_dev > targets["daily_balance"]:
            unbalanced.append(class_id)

    if not class_std_devs:
        return BalanceMetrics(average_std_dev=0.0, max_std_dev=0.0)

    return BalanceMetrics(
        average_std_dev=round(sum(class_std_devs.values()) / len(class_std_devs), 2),
        max_std_dev=max(class_std_devs.values()),
        class_balance=class_std_devs,
        unbalanced_classes=unbalanced,
    )


def _std_dev(values: list[int]) -> float:
    """Population standard deviation."""
    if not values:
        return 0.0
    n = len(values)
    mean = sum(values) / n
    variance = sum((x - mean) ** 2 for x in values) / n
    return math.sqrt(variance)
