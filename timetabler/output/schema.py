"""
Output schema for generation results.

This module defines the JSON-serializable output format for a generation
run: status, counts, placed entries enriched with grid details, conflicts,
preparation warnings and pre-computed class and teacher views.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from ..data.models import TimetableEntry, day_name, minutes_to_time
from ..engine import Conflict
from ..grid import TimeGrid
from ..requirements import RequirementWarning
from ..scope import GenerationResult


# =============================================================================
# Entry Output
# =============================================================================

class EntryOutput(BaseModel):
    """A single placed lesson in the output."""
    school_id: str = Field(alias="schoolId")
    class_id: str = Field(alias="classId")
    teacher_id: str = Field(alias="teacherId")
    time_cell_id: str = Field(alias="timeCellId")
    subject_id: Optional[str] = Field(default=None, alias="subjectId")
    module_id: Optional[str] = Field(default=None, alias="moduleId")

    # Grid details; absent when the cell is unknown to the grid
    day: Optional[int] = None
    day_name: Optional[str] = Field(default=None, alias="dayName")
    period: Optional[str] = None
    start_time: Optional[str] = Field(default=None, alias="startTime")  # 'HH:MM'
    end_time: Optional[str] = Field(default=None, alias="endTime")  # 'HH:MM'

    # Optional enriched data
    teacher_name: Optional[str] = Field(default=None, alias="teacherName")
    class_name: Optional[str] = Field(default=None, alias="className")
    subject_name: Optional[str] = Field(default=None, alias="subjectName")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_entry(
        cls,
        entry: TimetableEntry,
        grid: TimeGrid,
        teacher_names: dict[str, str],
        class_names: dict[str, str],
        subject_names: dict[str, str],
    ) -> EntryOutput:
        """Create from a TimetableEntry, looking its cell up in the grid."""
        cell = grid.get(entry.time_cell_id)
        return cls(
            schoolId=entry.school_id,
            classId=entry.class_id,
            teacherId=entry.teacher_id,
            timeCellId=entry.time_cell_id,
            subjectId=entry.subject_id,
            moduleId=entry.module_id,
            day=int(cell.day) if cell else None,
            dayName=day_name(cell.day) if cell else None,
            period=cell.period_tag if cell else None,
            startTime=minutes_to_time(cell.start_minutes) if cell and cell.start_minutes is not None else None,
            endTime=minutes_to_time(cell.end_minutes) if cell and cell.end_minutes is not None else None,
            teacherName=teacher_names.get(entry.teacher_id),
            className=class_names.get(entry.class_id),
            subjectName=subject_names.get(entry.subject_or_module_id),
        )

    @property
    def sort_key(self) -> tuple[int, str, str]:
        position = -1 if self.day is None else self.day
        return (position, self.start_time or "", self.time_cell_id)


# =============================================================================
# Conflicts and Warnings
# =============================================================================

class ConflictOutput(BaseModel):
    """A lesson unit that could not be placed."""
    teacher_id: str = Field(alias="teacherId")
    class_id: str = Field(alias="classId")
    subject_id: Optional[str] = Field(default=None, alias="subjectId")
    module_id: Optional[str] = Field(default=None, alias="moduleId")
    lesson_index: int = Field(alias="lessonIndex")
    total_lessons: int = Field(alias="totalLessons")
    reason: str

    model_config = {"populate_by_name": True}

    @classmethod
    def from_conflict(cls, conflict: Conflict) -> ConflictOutput:
        unit = conflict.unit
        return cls(
            teacherId=unit.teacher_id,
            classId=unit.class_id,
            subjectId=unit.subject_id,
            moduleId=unit.module_id,
            lessonIndex=unit.lesson_index,
            totalLessons=unit.total_lessons,
            reason=conflict.reason.value,
        )


class WarningOutput(BaseModel):
    code: str
    message: str

    @classmethod
    def from_warning(cls, warning: RequirementWarning) -> WarningOutput:
        return cls(code=warning.code, message=warning.message)


# =============================================================================
# Views
# =============================================================================

class EntitySchedule(BaseModel):
    """Schedule for a class or a teacher."""
    id: str
    name: str
    entries: list[EntryOutput]
    by_day: dict[int, list[EntryOutput]] = Field(
        default_factory=dict,
        alias="byDay"
    )

    model_config = {"populate_by_name": True}


class TimetableViews(BaseModel):
    """Pre-computed views of the timetable for convenience."""
    by_teacher: dict[str, EntitySchedule] = Field(
        default_factory=dict,
        alias="byTeacher"
    )
    by_class: dict[str, EntitySchedule] = Field(
        default_factory=dict,
        alias="byClass"
    )

    model_config = {"populate_by_name": True}


# =============================================================================
# Complete Output
# =============================================================================

class GenerationSummary(BaseModel):
    placed_count: int = Field(alias="placedCount")
    conflict_count: int = Field(alias="conflictCount")
    deleted_count: int = Field(alias="deletedCount")
    conflicts_by_reason: dict[str, int] = Field(default_factory=dict, alias="conflictsByReason")

    model_config = {"populate_by_name": True}


class GenerationOutput(BaseModel):
    """Complete output for one generation request."""
    status: str
    success: bool
    school_id: str = Field(alias="schoolId")
    target_id: Optional[str] = Field(default=None, alias="targetId")
    message: str = ""
    summary: GenerationSummary
    entries: list[EntryOutput] = Field(default_factory=list)
    conflicts: list[ConflictOutput] = Field(default_factory=list)
    warnings: list[WarningOutput] = Field(default_factory=list)
    views: TimetableViews = Field(default_factory=TimetableViews)

    model_config = {"populate_by_name": True}

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return self.model_dump_json(by_alias=True, indent=indent)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return self.model_dump(by_alias=True)


# =============================================================================
# Conversion Functions
# =============================================================================

def entries_to_output(
    entries: Iterable[TimetableEntry],
    grid: TimeGrid,
    teacher_names: dict[str, str] | None = None,
    class_names: dict[str, str] | None = None,
    subject_names: dict[str, str] | None = None,
) -> list[EntryOutput]:
    """Enrich entries with grid details and names, sorted by day and time."""
    outputs = [
        EntryOutput.from_entry(e, grid, teacher_names or {}, class_names or {}, subject_names or {})
        for e in entries
    ]
    return sorted(outputs, key=lambda o: o.sort_key)


def create_generation_output(
    result: GenerationResult,
    grid: TimeGrid,
    teacher_names: dict[str, str] | None = None,
    class_names: dict[str, str] | None = None,
    subject_names: dict[str, str] | None = None,
) -> GenerationOutput:
    """
    Create a GenerationOutput from a GenerationResult.

    Args:
        result: The generation result
        grid: Grid the entries were placed on
        teacher_names: Optional mapping of teacher_id to name
        class_names: Optional mapping of class_id to name
        subject_names: Optional mapping of subject or module ID to name

    Returns:
        GenerationOutput with views populated
    """
    teacher_names = teacher_names or {}
    class_names = class_names or {}

    entries = entries_to_output(result.placed, grid, teacher_names, class_names, subject_names)

    return GenerationOutput(
        status=result.status.value,
        success=result.success,
        schoolId=result.school_id,
        targetId=result.target_id,
        message=result.message,
        summary=GenerationSummary(
            placedCount=len(result.placed),
            conflictCount=len(result.conflicts),
            deletedCount=result.deleted_count,
            conflictsByReason=result.conflicts_by_reason(),
        ),
        entries=entries,
        conflicts=[ConflictOutput.from_conflict(c) for c in result.conflicts],
        warnings=[WarningOutput.from_warning(w) for w in result.warnings],
        views=create_views(entries, teacher_names, class_names),
    )


def create_views(
    entries: list[EntryOutput],
    teacher_names: dict[str, str] | None = None,
    class_names: dict[str, str] | None = None,
) -> TimetableViews:
    """Group already-sorted entries by teacher and by class."""
    teacher_names = teacher_names or {}
    class_names = class_names or {}

    by_teacher: dict[str, list[EntryOutput]] = {}
    by_class: dict[str, list[EntryOutput]] = {}
    for entry in entries:
        by_teacher.setdefault(entry.teacher_id, []).append(entry)
        by_class.setdefault(entry.class_id, []).append(entry)

    return TimetableViews(
        byTeacher={
            teacher_id: EntitySchedule(
                id=teacher_id,
                name=teacher_names.get(teacher_id) or teacher_id,
                entries=items,
                byDay=_group_by_day(items),
            )
            for teacher_id, items in sorted(by_teacher.items())
        },
        byClass={
            class_id: EntitySchedule(
                id=class_id,
                name=class_names.get(class_id) or class_id,
                entries=items,
                byDay=_group_by_day(items),
            )
            for class_id, items in sorted(by_class.items())
        },
    )


def _group_by_day(entries: list[EntryOutput]) -> dict[int, list[EntryOutput]]:
    """Group entries by day; entries without a known cell are left out."""
    by_day: dict[int, list[EntryOutput]] = {}
    for entry in entries:
        if entry.day is None:
            continue
        by_day.setdefault(entry.day, []).append(entry)
    return by_day
