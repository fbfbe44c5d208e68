"""Data model and loading utilities."""

from .loader import (
    DataValidationError,
    check_references,
    load_school_data,
    parse_school_data,
    save_school_data,
)
from .models import (
    Assignment,
    ClassGroup,
    Day,
    Module,
    SchoolData,
    Subject,
    Teacher,
    TeacherSubjectAssignment,
    TimeCell,
    TimetableEntry,
    Track,
    TrainerModuleAssignment,
)

__all__ = [
    # Loader
    "DataValidationError",
    "check_references",
    "load_school_data",
    "parse_school_data",
    "save_school_data",
    # Models
    "Assignment",
    "ClassGroup",
    "Day",
    "Module",
    "SchoolData",
    "Subject",
    "Teacher",
    "TeacherSubjectAssignment",
    "TimeCell",
    "TimetableEntry",
    "Track",
    "TrainerModuleAssignment",
]
