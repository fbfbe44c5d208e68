"""Tests for the pydantic data model."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from timetabler.data.models import (
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
    day_name,
    minutes_to_time,
    normalize_period_tag,
    parse_day,
    time_to_minutes,
)


class TestHelpers:
    """Tests for the conversion helpers."""

    def test_minutes_round_trip(self):
        assert minutes_to_time(490) == "08:10"
        assert time_to_minutes("16:50") == 1010

    def test_day_name(self):
        assert day_name(0) == "Monday"
        assert day_name(5) == "Saturday"
        assert day_name(9) == "Day 9"

    @pytest.mark.parametrize("value", ["SATURDAY", "saturday", "Sat", 5, "5", Day.SATURDAY])
    def test_parse_day_accepts_names_and_indices(self, value):
        assert parse_day(value) is Day.SATURDAY

    def test_parse_day_rejects_unknown(self):
        with pytest.raises(ValueError, match="Unknown day"):
            parse_day("Sunday")

    def test_normalize_period_tag(self):
        assert normalize_period_tag(3) == "P3"
        assert normalize_period_tag("07") == "P7"
        assert normalize_period_tag(" p4 ") == "P4"


class TestTimeCell:
    """Tests for TimeCell validation."""

    def test_day_coerced_from_name(self):
        cell = TimeCell(id="MON-P1", day="Monday", period=1)
        assert cell.day is Day.MONDAY

    def test_period_tag_defaults_to_position(self):
        assert TimeCell(id="a", day=0, period=3).period_tag == "P3"
        assert TimeCell(id="b", day=0, period=4, is_break=True).period_tag == "B4"
        assert TimeCell(id="c", day=0, period=5, tag="p4").period_tag == "P4"

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError, match="start_minutes"):
            TimeCell(id="x", day=0, period=1, start_minutes=600, end_minutes=540)

    def test_cells_are_frozen(self):
        cell = TimeCell(id="x", day=0, period=1)
        with pytest.raises(ValidationError):
            cell.period = 2

    def test_unknown_day_rejected(self):
        with pytest.raises(ValidationError):
            TimeCell(id="x", day="SUNDAY", period=1)


class TestTeacher:
    """Tests for Teacher availability coercion."""

    def test_defaults(self):
        teacher = Teacher(id="T1")
        assert teacher.max_weekly_hours == 40
        assert teacher.unavailable_days == set()
        assert teacher.track is Track.ACADEMIC
        assert teacher.is_active

    def test_availability_coerced(self):
        teacher = Teacher(id="T1", unavailable_days=["friday", 5], unavailable_periods=[1, "p10"])
        assert teacher.unavailable_days == {Day.FRIDAY, Day.SATURDAY}
        assert teacher.unavailable_periods == {"P1", "P10"}

    def test_negative_hours_rejected(self):
        with pytest.raises(ValidationError):
            Teacher(id="T1", max_weekly_hours=-1)


class TestAssignments:
    """Tests for the assignment union."""

    def test_discriminated_by_kind(self):
        school = SchoolData(
            school_id="s",
            assignments=[
                {"kind": "teacher_subject", "teacher_id": "T1", "class_id": "C1", "subject_id": "MAT"},
                {"kind": "trainer_module", "teacher_id": "TR1", "class_id": "L3", "module_id": "SWD"},
            ],
        )
        assert isinstance(school.assignments[0], TeacherSubjectAssignment)
        assert isinstance(school.assignments[1], TrainerModuleAssignment)
        assert school.assignments[1].subject_or_module_id == "SWD"

    def test_module_defaults_to_technical_track(self):
        assert Module(id="SWD").track is Track.TECHNICAL
        assert Subject(id="MAT").track is Track.ACADEMIC


class TestTimetableEntry:
    """Tests for TimetableEntry."""

    def test_requires_exactly_one_target(self):
        with pytest.raises(ValidationError, match="exactly one"):
            TimetableEntry(school_id="s", class_id="C1", teacher_id="T1", time_cell_id="MON-P1")
        with pytest.raises(ValidationError, match="exactly one"):
            TimetableEntry(
                school_id="s", class_id="C1", teacher_id="T1", time_cell_id="MON-P1",
                subject_id="MAT", module_id="SWD",
            )

    def test_subject_or_module_id(self):
        entry = TimetableEntry(school_id="s", class_id="C1", teacher_id="T1", time_cell_id="x", module_id="SWD")
        assert entry.subject_or_module_id == "SWD"


class TestSchoolData:
    """Tests for school-level validation."""

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate teacher ID"):
            SchoolData(school_id="s", teachers=[Teacher(id="T1"), Teacher(id="T1")])

    def test_entry_double_booking_rejected(self):
        entries = [
            TimetableEntry(school_id="s", class_id="C1", teacher_id="T1", time_cell_id="x", subject_id="A"),
            TimetableEntry(school_id="s", class_id="C2", teacher_id="T1", time_cell_id="x", subject_id="B"),
        ]
        with pytest.raises(ValidationError, match="Teacher 'T1' double-booked"):
            SchoolData(school_id="s", entries=entries)

    def test_entry_for_other_school_rejected(self):
        entry = TimetableEntry(school_id="other", class_id="C1", teacher_id="T1", time_cell_id="x", subject_id="A")
        with pytest.raises(ValidationError, match="Entry for school 'other'"):
            SchoolData(school_id="s", entries=[entry])

    def test_lookups_and_summary(self, mixed_school):
        assert mixed_school.get_teacher("T2").name == "Jean Mugisha"
        assert mixed_school.get_class("L3").stream == "SOD"
        assert mixed_school.get_module("SWD").periods_per_week == 5
        assert mixed_school.get_subject("nope") is None

        summary = mixed_school.summary()
        assert summary["teaching_cells"] == 50
        assert summary["assignments"] == 5

    def test_dangling_assignment_accepted(self):
        school = SchoolData(
            school_id="s",
            classes=[ClassGroup(id="C1")],
            assignments=[TeacherSubjectAssignment(teacher_id="ghost", class_id="C1", subject_id="MAT")],
        )
        assert len(school.assignments) == 1
