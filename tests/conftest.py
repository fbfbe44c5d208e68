"""Shared fixtures for the timetabler tests."""

from __future__ import annotations

import pytest

from timetabler.data.models import (
    ClassGroup,
    Day,
    Module,
    SchoolData,
    Subject,
    Teacher,
    TeacherSubjectAssignment,
    TrainerModuleAssignment,
)
from timetabler.grid import build_default_grid


ALL_DAYS = tuple(Day)


@pytest.fixture
def basic_school() -> SchoolData:
    """One class, one teacher off on Saturday, one subject of three periods, six-day grid."""
    return SchoolData(
        school_id="school-1",
        name="Basic School",
        time_cells=build_default_grid(ALL_DAYS).cells,
        teachers=[Teacher(id="T1", name="Alice Uwase", max_weekly_hours=10, unavailable_days=["SATURDAY"])],
        classes=[ClassGroup(id="C1", name="S1 A"), ClassGroup(id="C2", name="S1 B")],
        subjects=[Subject(id="SUBJ1", name="Mathematics", periods_per_week=3)],
        assignments=[TeacherSubjectAssignment(teacher_id="T1", class_id="C1", subject_id="SUBJ1")],
    )


@pytest.fixture
def mixed_school() -> SchoolData:
    """Two academic classes and one technical class sharing teachers on a five-day grid."""
    return SchoolData(
        school_id="school-2",
        name="Mixed School",
        time_cells=build_default_grid().cells,
        teachers=[
            Teacher(id="T1", name="Alice Uwase", max_weekly_hours=20),
            Teacher(id="T2", name="Jean Mugisha", max_weekly_hours=20, unavailable_periods=["P1", "P2"]),
            Teacher(id="TR1", name="Grace Ingabire", max_weekly_hours=20, track="TECHNICAL"),
            Teacher(id="T9", name="Idle Teacher", max_weekly_hours=20),
        ],
        classes=[
            ClassGroup(id="C1", name="S1 A", level="S1"),
            ClassGroup(id="C2", name="S1 B", level="S1"),
            ClassGroup(id="L3", name="L3 SOD", level="L3", stream="SOD"),
        ],
        subjects=[
            Subject(id="MAT", name="Mathematics", periods_per_week=4),
            Subject(id="ENG", name="English", periods_per_week=3),
        ],
        modules=[Module(id="SWD", name="Software Development", periods_per_week=5, category="SPECIFIC")],
        assignments=[
            TeacherSubjectAssignment(teacher_id="T1", class_id="C1", subject_id="MAT"),
            TeacherSubjectAssignment(teacher_id="T1", class_id="C2", subject_id="MAT"),
            TeacherSubjectAssignment(teacher_id="T2", class_id="C1", subject_id="ENG"),
            TeacherSubjectAssignment(teacher_id="T2", class_id="C2", subject_id="ENG"),
            TrainerModuleAssignment(teacher_id="TR1", class_id="L3", module_id="SWD"),
        ],
    )
