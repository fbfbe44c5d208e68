"""
Generation scopes.

A generation request names what to (re)schedule:

- one class, keeping every other class's lessons as fixed occupancy
- one teacher, keeping every other teacher's lessons as fixed occupancy
- the whole school, by all classes, all teachers or both

Each request runs the same pipeline: check the target, build lesson units,
purge the entries being replaced, seed occupancy from what is left, run the
engine and write the new entries. Purge and write happen in one repository
transaction; a persistence failure leaves the school exactly as it was.

Usage:
    controller = ScopeController(repository)
    result = controller.generate_for_class("school-1", "S2A", GenerationOptions(regenerate=True))
    if result.success:
        ...
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from .availability import AvailabilityIndex
from .core.config import EngineConfig
from .engine import Conflict, Occupancy, SchedulingEngine
from .data.models import TimetableEntry
from .grid import TimeGrid
from .repository.base import TimetableRepository
from .requirements import LessonUnit, RequirementBuilder, RequirementWarning, filter_units


logger = logging.getLogger(__name__)


# =============================================================================
# Request and Result Types
# =============================================================================

class SchoolScope(str, Enum):
    """What a whole-school run rebuilds."""
    ALL_CLASSES = "all-classes"
    ALL_TEACHERS = "all-teachers"
    BOTH = "both"


class GenerationStatus(str, Enum):
    COMPLETED = "COMPLETED"
    ALREADY_SCHEDULED = "ALREADY_SCHEDULED"
    NO_ASSIGNMENTS = "NO_ASSIGNMENTS"
    TARGET_NOT_FOUND = "TARGET_NOT_FOUND"


@dataclass
class GenerationOptions:
    """
    Options for a single-class or single-teacher run.

    `regenerate` wins over `incremental`. With neither set the target's
    existing entries are replaced, same as `regenerate`.
    """
    incremental: bool = False
    regenerate: bool = False

    @property
    def replaces_existing(self) -> bool:
        return self.regenerate or not self.incremental


@dataclass
class GenerationResult:
    """Outcome of one generation request."""
    status: GenerationStatus
    school_id: str
    target_id: Optional[str] = None
    placed: list[TimetableEntry] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    deleted_count: int = 0
    warnings: list[RequirementWarning] = field(default_factory=list)
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status == GenerationStatus.COMPLETED and not self.conflicts

    @property
    def is_notice(self) -> bool:
        return self.status != GenerationStatus.COMPLETED

    def conflicts_by_reason(self) -> dict[str, int]:
        counts: dict[str, int] = defaultdict(int)
        for conflict in self.conflicts:
            counts[conflict.reason.value] += 1
        return dict(sorted(counts.items()))


class SchoolLockRegistry:
    """One lock per school; requests for different schools never wait on each other."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, school_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(school_id)
            if lock is None:
                lock = self._locks[school_id] = threading.Lock()
            return lock


DEFAULT_LOCKS = SchoolLockRegistry()


@dataclass
class _Purge:
    """Entries to delete before a run; `everything` ignores the ID lists."""
    everything: bool = False
    class_ids: Optional[list[str]] = None
    teacher_ids: Optional[list[str]] = None


# =============================================================================
# Controller
# =============================================================================

class ScopeController:
    """Runs generation requests against a repository."""

    def __init__(
        self,
        repository: TimetableRepository,
        config: Optional[EngineConfig] = None,
        locks: Optional[SchoolLockRegistry] = None,
    ):
        self.repository = repository
        self.config = config or EngineConfig()
        self.locks = locks or DEFAULT_LOCKS

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def generate_whole_school(
        self,
        school_id: str,
        scope: SchoolScope = SchoolScope.BOTH,
    ) -> GenerationResult:
        """
        Rebuild the timetable of a whole school.

        BOTH purges every entry of the school. ALL_CLASSES purges the
        entries of classes that have lesson units, ALL_TEACHERS those of
        teachers that have lesson units; other entries stay as occupancy.
        """
        scope = SchoolScope(scope)
        with self.locks.lock_for(school_id):
            report = RequirementBuilder(self.repository).build(school_id)
            units = report.units
            if not units:
                return self._notice(
                    GenerationStatus.NO_ASSIGNMENTS, school_id, None, report.warnings,
                    "No teacher or trainer assignments found for this school",
                )

            if scope == SchoolScope.BOTH:
                purge = _Purge(everything=True)
            elif scope == SchoolScope.ALL_CLASSES:
                purge = _Purge(class_ids=sorted({u.class_id for u in units}))
            else:
                purge = _Purge(teacher_ids=sorted({u.teacher_id for u in units}))

            return self._run(school_id, None, units, purge, report.warnings)

    def generate_for_class(
        self,
        school_id: str,
        class_id: str,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """Schedule one class around every other class's existing lessons."""
        options = options or GenerationOptions()
        with self.locks.lock_for(school_id):
            if class_id not in {c.id for c in self.repository.load_classes(school_id)}:
                return self._notice(
                    GenerationStatus.TARGET_NOT_FOUND, school_id, class_id, [],
                    f"Class '{class_id}' not found",
                )

            report = RequirementBuilder(self.repository).build(school_id)
            units = filter_units(report.units, class_id=class_id)
            warnings = _warnings_for(report.warnings, class_id=class_id)
            if not units:
                return self._notice(
                    GenerationStatus.NO_ASSIGNMENTS, school_id, class_id, warnings,
                    f"No teacher or trainer assignments found for class '{class_id}'",
                )

            if not options.replaces_existing:
                existing = [e for e in self.repository.load_occupancy(school_id) if e.class_id == class_id]
                if existing:
                    return self._notice(
                        GenerationStatus.ALREADY_SCHEDULED, school_id, class_id, warnings,
                        f"Class '{class_id}' already has {len(existing)} timetable entries; "
                        "use regenerate to replace them",
                    )

            return self._run(school_id, class_id, units, _Purge(class_ids=[class_id]), warnings)

    def generate_for_teacher(
        self,
        school_id: str,
        teacher_id: str,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """Schedule one teacher around every other teacher's existing lessons."""
        options = options or GenerationOptions()
        with self.locks.lock_for(school_id):
            if teacher_id not in {t.id for t in self.repository.load_teachers(school_id)}:
                return self._notice(
                    GenerationStatus.TARGET_NOT_FOUND, school_id, teacher_id, [],
                    f"Teacher '{teacher_id}' not found",
                )

            report = RequirementBuilder(self.repository).build(school_id)
            units = filter_units(report.units, teacher_id=teacher_id)
            warnings = _warnings_for(report.warnings, teacher_id=teacher_id)
            if not units:
                return self._notice(
                    GenerationStatus.NO_ASSIGNMENTS, school_id, teacher_id, warnings,
                    f"No class assignments found for teacher '{teacher_id}'",
                )

            if not options.replaces_existing:
                existing = [e for e in self.repository.load_occupancy(school_id) if e.teacher_id == teacher_id]
                if existing:
                    return self._notice(
                        GenerationStatus.ALREADY_SCHEDULED, school_id, teacher_id, warnings,
                        f"Teacher '{teacher_id}' already has {len(existing)} timetable entries; "
                        "use regenerate to replace them",
                    )

            return self._run(school_id, teacher_id, units, _Purge(teacher_ids=[teacher_id]), warnings)

    def clear_all(self, school_id: str) -> int:
        """Delete every timetable entry of the school."""
        with self.locks.lock_for(school_id):
            with self.repository.transaction():
                deleted = self.repository.delete_entries(school_id)
        logger.info("Cleared %d timetable entries [school=%s]", deleted, school_id)
        return deleted

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _run(
        self,
        school_id: str,
        target_id: Optional[str],
        units: Sequence[LessonUnit],
        purge: _Purge,
        warnings: list[RequirementWarning],
    ) -> GenerationResult:
        repo = self.repository
        grid = TimeGrid(repo.load_time_cells(school_id))
        teachers = repo.load_teachers(school_id)
        engine = SchedulingEngine(grid, self.config)

        with repo.transaction():
            if purge.everything:
                deleted = repo.delete_entries(school_id)
            else:
                deleted = repo.delete_entries(
                    school_id, class_ids=purge.class_ids, teacher_ids=purge.teacher_ids,
                )

            kept = repo.load_occupancy(school_id)
            occupancy = Occupancy.from_entries(kept, grid)
            availability = AvailabilityIndex(grid, teachers)
            if self.config.count_existing_hours:
                availability.reserve(kept)

            outcome = engine.schedule(units, occupancy, availability, school_id=school_id)
            repo.write_entries(school_id, outcome.placed)

        result = GenerationResult(
            status=GenerationStatus.COMPLETED,
            school_id=school_id,
            target_id=target_id,
            placed=outcome.placed,
            conflicts=outcome.conflicts,
            deleted_count=deleted,
            warnings=list(warnings),
            message=f"Placed {len(outcome.placed)} of {len(units)} lessons",
        )
        logger.info(
            "Generation finished: %d placed, %d conflicts, %d deleted, %d kept [school=%s target=%s]",
            len(result.placed), len(result.conflicts), deleted, len(kept), school_id, target_id or "*",
        )
        return result

    def _notice(
        self,
        status: GenerationStatus,
        school_id: str,
        target_id: Optional[str],
        warnings: list[RequirementWarning],
        message: str,
    ) -> GenerationResult:
        logger.info("%s: %s [school=%s]", status.value, message, school_id)
        return GenerationResult(
            status=status,
            school_id=school_id,
            target_id=target_id,
            warnings=list(warnings),
            message=message,
        )


def _warnings_for(
    warnings: Sequence[RequirementWarning],
    class_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
) -> list[RequirementWarning]:
    """Keep warnings about the target's own assignments."""
    return [
        w for w in warnings
        if w.assignment is None
        or (class_id is not None and w.assignment.class_id == class_id)
        or (teacher_id is not None and w.assignment.teacher_id == teacher_id)
    ]
