"""Tests for the greedy scheduling engine."""

from __future__ import annotations

import pytest

from timetabler.availability import AvailabilityIndex
from timetabler.core.config import EngineConfig
from timetabler.data.models import Day, Teacher, TimetableEntry, Track
from timetabler.engine import ConflictReason, Occupancy, SchedulingEngine
from timetabler.grid import build_default_grid, build_grid
from timetabler.output.metrics import audit_timetable
from timetabler.repository.memory import InMemoryRepository
from timetabler.requirements import LessonUnit, build_lesson_units


def make_units(teacher_id: str, class_id: str, subject_id: str, count: int) -> list[LessonUnit]:
    return [
        LessonUnit(
            teacher_id=teacher_id,
            class_id=class_id,
            track=Track.ACADEMIC,
            subject_id=subject_id,
            lesson_index=i,
            total_lessons=count,
        )
        for i in range(1, count + 1)
    ]


def run(grid, teachers, units, entries=(), config=None):
    engine = SchedulingEngine(grid, config)
    occupancy = Occupancy.from_entries(entries, grid)
    availability = AvailabilityIndex(grid, teachers)
    return engine.schedule(units, occupancy, availability, school_id="s")


# =============================================================================
# Reference Scenarios
# =============================================================================

class TestReferenceScenarios:
    """The three-lesson, one-teacher scenarios."""

    def test_all_lessons_placed_on_weekdays(self, basic_school):
        grid = build_default_grid(tuple(Day))
        units = build_lesson_units(InMemoryRepository([basic_school]), "school-1")
        result = run(grid, basic_school.teachers, units)

        assert result.success
        assert result.conflicts == []
        assert len(result.placed) == 3
        assert all(grid.get(e.time_cell_id).day != Day.SATURDAY for e in result.placed)

    def test_weekly_cap_leaves_one_conflict(self, basic_school):
        grid = build_default_grid(tuple(Day))
        teachers = [basic_school.teachers[0].model_copy(update={"max_weekly_hours": 2})]
        units = build_lesson_units(InMemoryRepository([basic_school]), "school-1")
        result = run(grid, teachers, units)

        assert not result.success
        assert len(result.placed) == 2
        assert [c.reason for c in result.conflicts] == [ConflictReason.TEACHER_OVERLOADED]
        assert result.conflicts[0].teacher_id == "T1"
        assert result.conflicts_by_reason() == {"TEACHER_OVERLOADED": 1}


# =============================================================================
# Placement Policy
# =============================================================================

class TestPlacementPolicy:
    """Tests for cell choice and unit ordering."""

    def test_lessons_spread_over_lightest_days(self):
        grid = build_default_grid()
        result = run(grid, [Teacher(id="T1")], make_units("T1", "C1", "MAT", 3))
        assert [e.time_cell_id for e in result.placed] == ["MON-P1", "TUE-P1", "WED-P1"]

    def test_existing_occupancy_respected(self):
        grid = build_default_grid()
        existing = [
            TimetableEntry(school_id="s", class_id="C1", teacher_id="T2", time_cell_id="MON-P1", subject_id="ENG"),
        ]
        result = run(grid, [Teacher(id="T1"), Teacher(id="T2")], make_units("T1", "C1", "MAT", 1), existing)
        # Monday already holds a C1 lesson, so Tuesday is the lighter day
        assert [e.time_cell_id for e in result.placed] == ["TUE-P1"]

    def test_busy_teacher_not_double_booked(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=2)
        existing = [
            TimetableEntry(school_id="s", class_id="C9", teacher_id="T1", time_cell_id="MON-P1", subject_id="ENG"),
        ]
        result = run(grid, [Teacher(id="T1")], make_units("T1", "C1", "MAT", 1), existing)
        assert [e.time_cell_id for e in result.placed] == ["MON-P2"]

    def test_most_constrained_teacher_goes_first(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=2)
        teachers = [Teacher(id="TA"), Teacher(id="TB", unavailable_periods=["P2"])]
        units = make_units("TA", "C1", "MAT", 1) + make_units("TB", "C1", "ENG", 1)
        result = run(grid, teachers, units)

        assert result.success
        placed = {e.teacher_id: e.time_cell_id for e in result.placed}
        assert placed == {"TB": "MON-P1", "TA": "MON-P2"}

    def test_order_uses_starting_occupancy(self):
        """A teacher already busy at the start has less room and goes first."""
        grid = build_grid(days=[Day.MONDAY], periods_per_day=3)
        existing = [
            TimetableEntry(school_id="s", class_id="C9", teacher_id="TB", time_cell_id="MON-P1", subject_id="ART"),
        ]
        units = make_units("TA", "C1", "MAT", 2) + make_units("TB", "C2", "ENG", 2)
        engine = SchedulingEngine(grid)
        availability = AvailabilityIndex(grid, [Teacher(id="TA"), Teacher(id="TB")])

        ordered = engine.order_units(units, Occupancy.from_entries(existing, grid), availability)
        assert [u.teacher_id for u in ordered] == ["TB", "TB", "TA", "TA"]

        ordered = engine.order_units(units, Occupancy(), availability)
        assert [u.teacher_id for u in ordered] == ["TA", "TA", "TB", "TB"]

    def test_breaks_never_used(self):
        grid = build_default_grid(days=[Day.MONDAY])
        result = run(grid, [Teacher(id="T1")], make_units("T1", "C1", "MAT", 8))
        assert all(not grid.get(e.time_cell_id).is_break for e in result.placed)


# =============================================================================
# Conflict Reasons
# =============================================================================

class TestConflictReasons:
    """Tests for diagnosing unplaceable units."""

    def test_consecutive_limit(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=4)
        result = run(grid, [Teacher(id="T1")], make_units("T1", "C1", "MAT", 4))

        assert [e.time_cell_id for e in result.placed] == ["MON-P1", "MON-P2", "MON-P4"]
        assert [c.reason for c in result.conflicts] == [ConflictReason.CONSECUTIVE_LIMIT]

    def test_consecutive_limit_is_configurable(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=4)
        config = EngineConfig(max_consecutive_periods=4)
        result = run(grid, [Teacher(id="T1")], make_units("T1", "C1", "MAT", 4), config=config)
        assert result.success

    def test_break_resets_consecutive_run(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=4, breaks_after=[2])
        result = run(grid, [Teacher(id="T1")], make_units("T1", "C1", "MAT", 4))
        assert result.success

    def test_no_free_slot_for_class(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=2)
        units = make_units("T1", "C1", "MAT", 1) + make_units("T2", "C1", "ENG", 2)
        result = run(grid, [Teacher(id="T1"), Teacher(id="T2")], units)

        assert len(result.placed) == 2
        assert [c.reason for c in result.conflicts] == [ConflictReason.NO_FREE_SLOT_FOR_CLASS]

    def test_teacher_unavailable(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=2)
        teachers = [Teacher(id="T1", unavailable_days=["MONDAY"])]
        result = run(grid, teachers, make_units("T1", "C1", "MAT", 1))
        assert [c.reason for c in result.conflicts] == [ConflictReason.TEACHER_UNAVAILABLE]

    def test_teacher_busy_elsewhere_reported_as_unavailable(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=1)
        units = make_units("T1", "C1", "MAT", 1) + make_units("T1", "C2", "MAT", 1)
        result = run(grid, [Teacher(id="T1")], units)

        assert [e.class_id for e in result.placed] == ["C1"]
        assert [c.reason for c in result.conflicts] == [ConflictReason.TEACHER_UNAVAILABLE]

    def test_unknown_teacher_is_overloaded(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=2)
        result = run(grid, [], make_units("GHOST", "C1", "MAT", 1))
        assert [c.reason for c in result.conflicts] == [ConflictReason.TEACHER_OVERLOADED]

    def test_empty_grid_means_no_slot(self):
        result = run(build_grid(days=[]), [Teacher(id="T1")], make_units("T1", "C1", "MAT", 2))
        assert [c.reason for c in result.conflicts] == [ConflictReason.NO_FREE_SLOT_FOR_CLASS] * 2


# =============================================================================
# Properties
# =============================================================================

class TestProperties:
    """Whole-run guarantees checked on a mixed school."""

    @pytest.fixture
    def outcome(self, mixed_school):
        grid = build_default_grid()
        units = build_lesson_units(InMemoryRepository([mixed_school]), "school-2")
        return grid, units, run(grid, mixed_school.teachers, units)

    def test_conservation(self, outcome):
        _, units, result = outcome
        assert len(result.placed) + len(result.conflicts) == len(units)
        assert result.total_units == len(units)

    def test_hard_rules_hold(self, mixed_school, outcome):
        grid, _, result = outcome
        report = audit_timetable(result.placed, grid, mixed_school.teachers, max_consecutive=2)
        assert report.valid, report.violations

    def test_unavailable_periods_avoided(self, outcome):
        grid, _, result = outcome
        t2_tags = {grid.get(e.time_cell_id).period_tag for e in result.placed if e.teacher_id == "T2"}
        assert t2_tags.isdisjoint({"P1", "P2"})

    def test_deterministic(self, mixed_school, outcome):
        grid, units, first = outcome
        second = run(grid, mixed_school.teachers, list(reversed(units)))
        assert first.placed == second.placed
        assert first.conflicts == second.conflicts

    def test_weekly_cap(self, mixed_school):
        grid = build_default_grid()
        teachers = [t.model_copy(update={"max_weekly_hours": 5}) for t in mixed_school.teachers]
        units = build_lesson_units(InMemoryRepository([mixed_school]), "school-2")
        result = run(grid, teachers, units)

        per_teacher: dict[str, int] = {}
        for entry in result.placed:
            per_teacher[entry.teacher_id] = per_teacher.get(entry.teacher_id, 0) + 1
        assert max(per_teacher.values()) <= 5
        assert result.conflicts_by_reason()["TEACHER_OVERLOADED"] == (8 - 5) + (6 - 5)
