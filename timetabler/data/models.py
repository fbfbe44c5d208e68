"""
Pydantic models for the timetabler data model.

Day conventions:
- Days are 0-5 (Monday-Saturday); day names are accepted on input
- Periods are 1-based positions within a day; break cells occupy their own
  period position so that a break always separates two teaching runs

Period tags:
- A teaching cell is addressed by its tag ("P1".."P10"), which is what
  teacher unavailability refers to
- Bare numbers ("3", 3) are read as "P3"
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# Constants and Enums
# =============================================================================

class Day(int, Enum):
    """Day of week: 0=Monday through 5=Saturday."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5


WEEKDAYS = (Day.MONDAY, Day.TUESDAY, Day.WEDNESDAY, Day.THURSDAY, Day.FRIDAY)


class Track(str, Enum):
    """Teaching track of a subject or module."""
    ACADEMIC = "ACADEMIC"
    TECHNICAL = "TECHNICAL"


class ModuleCategory(str, Enum):
    """Category of a technical module."""
    SPECIFIC = "SPECIFIC"
    GENERAL = "GENERAL"
    COMPLEMENTARY = "COMPLEMENTARY"


# =============================================================================
# Helper Functions
# =============================================================================

def minutes_to_time(minutes: int) -> str:
    """Convert minutes from midnight to HH:MM format."""
    h, m = divmod(minutes, 60)
    return f"{h:02d}:{m:02d}"


def time_to_minutes(time_str: str) -> int:
    """Convert HH:MM format to minutes from midnight."""
    h, m = map(int, time_str.split(":"))
    return h * 60 + m


def day_name(day: int) -> str:
    """Get day name from index."""
    names = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
    return names[day] if 0 <= day <= 5 else f"Day {day}"


def parse_day(value: Any) -> Day:
    """
    Coerce a day given as enum, index or name into a Day.

    Accepts "MONDAY", "monday", "Mon", 0 and Day.MONDAY alike.

    Raises:
        ValueError: If the value names no known day
    """
    if isinstance(value, Day):
        return value
    if isinstance(value, int):
        return Day(value)
    if isinstance(value, str):
        key = value.strip().upper()
        if key.isdigit():
            return Day(int(key))
        for day in Day:
            if day.name == key or day.name[:3] == key:
                return day
    raise ValueError(f"Unknown day: {value!r}")


def normalize_period_tag(value: Any) -> str:
    """Normalize a period reference to its tag form ("P3")."""
    if isinstance(value, int):
        return f"P{value}"
    tag = str(value).strip().upper()
    if tag.isdigit():
        return f"P{int(tag)}"
    return tag


# =============================================================================
# Grid
# =============================================================================

class TimeCell(BaseModel):
    """One (day, period) slot of the weekly grid."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1, description="Unique identifier")
    day: Day = Field(description="Day of week")
    period: int = Field(ge=0, le=24, description="Position within the day")
    is_break: bool = Field(default=False, description="Break cells never host lessons")
    tag: Optional[str] = Field(default=None, description="Period tag, e.g. 'P4'")
    name: Optional[str] = Field(default=None, description="Display name")
    start_minutes: Optional[int] = Field(default=None, ge=0, le=1439)
    end_minutes: Optional[int] = Field(default=None, ge=0, le=1439)

    @field_validator("day", mode="before")
    @classmethod
    def _coerce_day(cls, v: Any) -> Day:
        return parse_day(v)

    @field_validator("tag", mode="before")
    @classmethod
    def _coerce_tag(cls, v: Any) -> Optional[str]:
        return None if v is None else normalize_period_tag(v)

    @model_validator(mode="after")
    def validate_time_range(self) -> "TimeCell":
        """Ensure start time is before end time when both are given."""
        if self.start_minutes is not None and self.end_minutes is not None:
            if self.start_minutes >= self.end_minutes:
                raise ValueError(
                    f"start_minutes ({self.start_minutes}) must be less than "
                    f"end_minutes ({self.end_minutes})"
                )
        return self

    @property
    def period_tag(self) -> str:
        if self.tag:
            return self.tag
        return f"B{self.period}" if self.is_break else f"P{self.period}"

    @property
    def sort_key(self) -> tuple[int, int]:
        return (int(self.day), self.period)

    def __str__(self) -> str:
        label = "Break" if self.is_break else self.period_tag
        return f"{day_name(self.day)} {label}"


# =============================================================================
# Core Entity Models
# =============================================================================

class Teacher(BaseModel):
    """Teacher or trainer, with availability and weekly cap."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    name: Optional[str] = Field(default=None, description="Full name")
    max_weekly_hours: int = Field(default=40, ge=0, le=80, description="Max periods per week")
    unavailable_days: set[Day] = Field(default_factory=set, description="Days off")
    unavailable_periods: set[str] = Field(default_factory=set, description="Period tags off")
    track: Track = Field(default=Track.ACADEMIC, description="Teaching track")
    is_active: bool = Field(default=True, description="Inactive teachers get no lessons")

    @field_validator("unavailable_days", mode="before")
    @classmethod
    def _coerce_days(cls, v: Any) -> set[Day]:
        if v is None:
            return set()
        return {parse_day(d) for d in v}

    @field_validator("unavailable_periods", mode="before")
    @classmethod
    def _coerce_periods(cls, v: Any) -> set[str]:
        if v is None:
            return set()
        return {normalize_period_tag(p) for p in v}

    def __str__(self) -> str:
        return f"{self.name} ({self.id})" if self.name else self.id


class ClassGroup(BaseModel):
    """Student class; only its identity matters to the scheduler."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    name: Optional[str] = Field(default=None, description="Class name (e.g., 'S2 A')")
    level: Optional[str] = Field(default=None, description="Level (e.g., 'S2', 'L4')")
    stream: Optional[str] = Field(default=None, description="Stream or trade")

    def __str__(self) -> str:
        return self.name or self.id


class Subject(BaseModel):
    """Academic subject."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    name: Optional[str] = Field(default=None, description="Subject name")
    periods_per_week: int = Field(default=1, ge=0, le=40, description="Weekly periods")
    track: Track = Field(default=Track.ACADEMIC)

    def __str__(self) -> str:
        return self.name or self.id


class Module(BaseModel):
    """Technical (trainer) module."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    name: Optional[str] = Field(default=None, description="Module name")
    periods_per_week: int = Field(default=1, ge=0, le=40, description="Weekly periods")
    category: Optional[ModuleCategory] = Field(default=None)
    track: Track = Field(default=Track.TECHNICAL)

    def __str__(self) -> str:
        return self.name or self.id


# =============================================================================
# Assignments
# =============================================================================

class TeacherSubjectAssignment(BaseModel):
    """A teacher teaches a subject to a class."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["teacher_subject"] = "teacher_subject"
    teacher_id: str = Field(min_length=1)
    class_id: str = Field(min_length=1)
    subject_id: str = Field(min_length=1)

    @property
    def subject_or_module_id(self) -> str:
        return self.subject_id


class TrainerModuleAssignment(BaseModel):
    """A trainer teaches a module to a class."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["trainer_module"] = "trainer_module"
    teacher_id: str = Field(min_length=1)
    class_id: str = Field(min_length=1)
    module_id: str = Field(min_length=1)

    @property
    def subject_or_module_id(self) -> str:
        return self.module_id


Assignment = Annotated[
    Union[TeacherSubjectAssignment, TrainerModuleAssignment],
    Field(discriminator="kind"),
]


# =============================================================================
# Result Records
# =============================================================================

class TimetableEntry(BaseModel):
    """One persisted lesson placement."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    school_id: str = Field(min_length=1)
    class_id: str = Field(min_length=1)
    teacher_id: str = Field(min_length=1)
    time_cell_id: str = Field(min_length=1)
    subject_id: Optional[str] = None
    module_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_subject_or_module(self) -> "TimetableEntry":
        """Exactly one of subject_id and module_id must be set."""
        if (self.subject_id is None) == (self.module_id is None):
            raise ValueError("exactly one of subject_id and module_id must be set")
        return self

    @property
    def subject_or_module_id(self) -> str:
        return self.subject_id or self.module_id  # type: ignore[return-value]


# =============================================================================
# School Document
# =============================================================================

class SchoolData(BaseModel):
    """
    Complete data for one school.

    Dangling references inside assignments are deliberately accepted here:
    bulk-imported data is often inconsistent and lesson preparation skips
    such rows with a warning instead of refusing the whole document.
    """
    model_config = ConfigDict(extra="forbid")

    school_id: str = Field(min_length=1, description="Tenant identifier")
    name: Optional[str] = Field(default=None, description="School name")

    time_cells: list[TimeCell] = Field(default_factory=list)
    teachers: list[Teacher] = Field(default_factory=list)
    classes: list[ClassGroup] = Field(default_factory=list)
    subjects: list[Subject] = Field(default_factory=list)
    modules: list[Module] = Field(default_factory=list)
    assignments: list[Assignment] = Field(default_factory=list)
    entries: list[TimetableEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_no_duplicate_ids(self) -> "SchoolData":
        """Ensure no duplicate IDs within each entity type."""
        errors: list[str] = []

        def check_duplicates(items: list, entity_name: str) -> None:
            seen: set[str] = set()
            for item in items:
                if item.id in seen:
                    errors.append(f"Duplicate {entity_name} ID: '{item.id}'")
                seen.add(item.id)

        check_duplicates(self.time_cells, "time cell")
        check_duplicates(self.teachers, "teacher")
        check_duplicates(self.classes, "class")
        check_duplicates(self.subjects, "subject")
        check_duplicates(self.modules, "module")

        if errors:
            raise ValueError("Duplicate ID validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        return self

    @model_validator(mode="after")
    def validate_entries(self) -> "SchoolData":
        """Stored entries must belong to this school and respect uniqueness."""
        errors: list[str] = []
        class_cells: set[tuple[str, str]] = set()
        teacher_cells: set[tuple[str, str]] = set()

        for entry in self.entries:
            if entry.school_id != self.school_id:
                errors.append(f"Entry for school '{entry.school_id}' in document of '{self.school_id}'")
            class_key = (entry.class_id, entry.time_cell_id)
            teacher_key = (entry.teacher_id, entry.time_cell_id)
            if class_key in class_cells:
                errors.append(f"Class '{entry.class_id}' double-booked in cell '{entry.time_cell_id}'")
            if teacher_key in teacher_cells:
                errors.append(f"Teacher '{entry.teacher_id}' double-booked in cell '{entry.time_cell_id}'")
            class_cells.add(class_key)
            teacher_cells.add(teacher_key)

        if errors:
            raise ValueError("Entry validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        return self

    # -------------------------------------------------------------------------
    # Lookup Methods
    # -------------------------------------------------------------------------

    def get_teacher(self, teacher_id: str) -> Optional[Teacher]:
        return next((t for t in self.teachers if t.id == teacher_id), None)

    def get_class(self, class_id: str) -> Optional[ClassGroup]:
        return next((c for c in self.classes if c.id == class_id), None)

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        return next((s for s in self.subjects if s.id == subject_id), None)

    def get_module(self, module_id: str) -> Optional[Module]:
        return next((m for m in self.modules if m.id == module_id), None)

    def summary(self) -> dict[str, Any]:
        """Get a summary of the school data."""
        return {
            "school_id": self.school_id,
            "name": self.name,
            "time_cells": len(self.time_cells),
            "teaching_cells": sum(1 for c in self.time_cells if not c.is_break),
            "teachers": len(self.teachers),
            "classes": len(self.classes),
            "subjects": len(self.subjects),
            "modules": len(self.modules),
            "assignments": len(self.assignments),
            "entries": len(self.entries),
        }
