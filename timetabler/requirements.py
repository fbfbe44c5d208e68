"""
Lesson preparation.

Turns teacher-subject-class and trainer-module-class assignments into the
atomic lesson units the scheduling engine places, one unit per weekly
period. Assignments that point at missing records are skipped with a
warning; bulk-uploaded data is often inconsistent and one bad row must not
stop the rest of the school from being scheduled.

Usage:
    builder = RequirementBuilder(repository)
    report = builder.build("school-1")
    units = filter_units(report.units, class_id="S2A")
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .data.models import (
    Assignment,
    ClassGroup,
    Teacher,
    TeacherSubjectAssignment,
    Track,
)
from .repository.base import TimetableRepository


logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class LessonUnit:
    """One still-unplaced weekly period of an assignment."""
    teacher_id: str
    class_id: str
    track: Track
    subject_id: Optional[str] = None
    module_id: Optional[str] = None
    lesson_index: int = 1    # 1..total_lessons within its assignment
    total_lessons: int = 1

    @property
    def subject_or_module_id(self) -> str:
        return self.subject_id or self.module_id or ""

    @property
    def sort_key(self) -> tuple[str, str, str, int]:
        return (self.teacher_id, self.class_id, self.subject_or_module_id, self.lesson_index)

    def __str__(self) -> str:
        return (
            f"{self.subject_or_module_id} for {self.class_id} by {self.teacher_id} "
            f"({self.lesson_index}/{self.total_lessons})"
        )


@dataclass(frozen=True)
class RequirementWarning:
    """A soft problem found while preparing lessons."""
    code: str
    message: str
    assignment: Optional[Assignment] = None


@dataclass
class RequirementReport:
    """Lesson units for a school plus everything that was skipped."""
    school_id: str
    units: list[LessonUnit] = field(default_factory=list)
    warnings: list[RequirementWarning] = field(default_factory=list)
    assignments_read: int = 0
    assignments_skipped: int = 0


@dataclass
class LessonStatistics:
    """Counts over a set of lesson units."""
    total: int = 0
    by_track: dict[str, int] = field(default_factory=dict)
    by_class: dict[str, int] = field(default_factory=dict)
    by_teacher: dict[str, int] = field(default_factory=dict)
    average_per_teacher: float = 0.0
    max_per_teacher: int = 0


# =============================================================================
# Builder
# =============================================================================

class RequirementBuilder:
    """Derives lesson units from a repository's assignment records."""

    def __init__(self, repository: TimetableRepository):
        self.repository = repository

    def build(self, school_id: str) -> RequirementReport:
        """
        Expand every assignment of the school into lesson units.

        Each assignment yields exactly `periods_per_week` units of its
        subject or module; a value below one still yields one unit.

        Args:
            school_id: Tenant to read assignments for

        Returns:
            RequirementReport with units in assignment order
        """
        repo = self.repository
        teachers = {t.id: t for t in repo.load_teachers(school_id)}
        class_ids = {c.id for c in repo.load_classes(school_id)}
        subjects = {s.id: s for s in repo.load_subjects(school_id)}
        modules = {m.id: m for m in repo.load_modules(school_id)}
        assignments = repo.load_assignments(school_id)

        report = RequirementReport(school_id=school_id, assignments_read=len(assignments))

        for assignment in assignments:
            if isinstance(assignment, TeacherSubjectAssignment):
                source = subjects.get(assignment.subject_id)
                missing = None if source else f"unknown subject '{assignment.subject_id}'"
            else:
                source = modules.get(assignment.module_id)
                missing = None if source else f"unknown module '{assignment.module_id}'"

            teacher = teachers.get(assignment.teacher_id)
            if missing is None and teacher is None:
                missing = f"unknown teacher '{assignment.teacher_id}'"
            elif missing is None and not teacher.is_active:
                missing = f"inactive teacher '{assignment.teacher_id}'"
            if missing is None and assignment.class_id not in class_ids:
                missing = f"unknown class '{assignment.class_id}'"

            if missing is not None:
                message = (
                    f"Skipped {assignment.kind} assignment "
                    f"({assignment.teacher_id}, {assignment.class_id}, "
                    f"{assignment.subject_or_module_id}): {missing}"
                )
                logger.warning("%s [school=%s]", message, school_id)
                report.warnings.append(RequirementWarning("DANGLING_REFERENCE", message, assignment))
                report.assignments_skipped += 1
                continue

            count = max(1, source.periods_per_week)
            for index in range(1, count + 1):
                report.units.append(LessonUnit(
                    teacher_id=assignment.teacher_id,
                    class_id=assignment.class_id,
                    track=source.track,
                    subject_id=getattr(assignment, "subject_id", None),
                    module_id=getattr(assignment, "module_id", None),
                    lesson_index=index,
                    total_lessons=count,
                ))

        logger.info(
            "Prepared %d lesson units from %d assignments (%d skipped) [school=%s]",
            len(report.units), report.assignments_read, report.assignments_skipped, school_id,
        )
        return report


def build_lesson_units(repository: TimetableRepository, school_id: str) -> list[LessonUnit]:
    """Convenience wrapper returning only the units."""
    return RequirementBuilder(repository).build(school_id).units


def filter_units(
    units: Iterable[LessonUnit],
    class_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
) -> list[LessonUnit]:
    """Keep units matching every given key."""
    return [
        u for u in units
        if (class_id is None or u.class_id == class_id)
        and (teacher_id is None or u.teacher_id == teacher_id)
    ]


# =============================================================================
# Reporting
# =============================================================================

def lesson_statistics(units: Iterable[LessonUnit]) -> LessonStatistics:
    """Summarize units by track, class and teacher."""
    units = list(units)
    by_track = Counter(u.track.value for u in units)
    by_class = Counter(u.class_id for u in units)
    by_teacher = Counter(u.teacher_id for u in units)

    return LessonStatistics(
        total=len(units),
        by_track=dict(sorted(by_track.items())),
        by_class=dict(sorted(by_class.items())),
        by_teacher=dict(sorted(by_teacher.items())),
        average_per_teacher=round(len(units) / len(by_teacher), 2) if by_teacher else 0.0,
        max_per_teacher=max(by_teacher.values(), default=0),
    )


def coverage_warnings(
    units: Iterable[LessonUnit],
    teachers: Iterable[Teacher],
    classes: Iterable[ClassGroup],
    teaching_cell_count: int,
) -> list[RequirementWarning]:
    """
    Find coverage problems worth fixing before a run.

    Reports:
    - Active teachers with no lesson units
    - Classes with no lesson units
    - Classes needing more periods than the grid has teaching cells
    - Teachers whose units exceed their weekly cap
    """
    stats = lesson_statistics(units)
    warnings: list[RequirementWarning] = []

    for teacher in sorted(teachers, key=lambda t: t.id):
        load = stats.by_teacher.get(teacher.id, 0)
        if teacher.is_active and load == 0:
            warnings.append(RequirementWarning(
                "TEACHER_WITHOUT_LESSONS",
                f"Teacher '{teacher.id}' has no class assignments",
            ))
        elif load > teacher.max_weekly_hours:
            warnings.append(RequirementWarning(
                "TEACHER_OVER_CAPACITY",
                f"Teacher '{teacher.id}' needs {load} periods but max is {teacher.max_weekly_hours}",
            ))

    for cls in sorted(classes, key=lambda c: c.id):
        load = stats.by_class.get(cls.id, 0)
        if load == 0:
            warnings.append(RequirementWarning(
                "CLASS_WITHOUT_LESSONS",
                f"Class '{cls.id}' has no teacher or trainer assignments",
            ))
        elif load > teaching_cell_count:
            warnings.append(RequirementWarning(
                "CLASS_OVER_CAPACITY",
                f"Class '{cls.id}' needs {load} periods but only {teaching_cell_count} teaching cells exist",
            ))

    return warnings
