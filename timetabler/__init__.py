"""Timetabler - greedy weekly school timetable generation."""

from .engine import Conflict, ConflictReason, ScheduleResult, SchedulingEngine
from .grid import TimeGrid, build_default_grid, build_grid
from .requirements import LessonUnit, RequirementBuilder
from .scope import (
    GenerationOptions,
    GenerationResult,
    GenerationStatus,
    SchoolScope,
    ScopeController,
)

__all__ = [
    # Engine
    "Conflict",
    "ConflictReason",
    "ScheduleResult",
    "SchedulingEngine",
    # Grid
    "TimeGrid",
    "build_default_grid",
    "build_grid",
    # Requirements
    "LessonUnit",
    "RequirementBuilder",
    # Scope
    "GenerationOptions",
    "GenerationResult",
    "GenerationStatus",
    "SchoolScope",
    "ScopeController",
]
