"""Tests for the weekly time grid."""

from __future__ import annotations

import pytest

from timetabler.data.models import Day, TimeCell
from timetabler.grid import GridValidationError, TimeGrid, build_default_grid, build_grid


class TestDefaultGrid:
    """Tests for the standard P1-P10 layout."""

    def test_shape(self):
        grid = build_default_grid()
        assert len(grid) == 5 * 13
        assert len(grid.teaching_cells) == 50
        assert grid.days == [Day.MONDAY, Day.TUESDAY, Day.WEDNESDAY, Day.THURSDAY, Day.FRIDAY]

    def test_cell_ids_and_times(self):
        grid = build_default_grid()
        p4 = grid.get("MON-P4")
        assert p4.period_tag == "P4"
        assert p4.start_minutes == 10 * 60 + 20
        assert grid.get("MON-B4").is_break
        assert grid.get("FRI-P10").end_minutes == 16 * 60 + 50

    def test_breaks_separate_teaching_cells(self):
        grid = build_default_grid()
        p3 = grid.get("MON-P3")
        p4 = grid.get("MON-P4")
        assert grid.next_cell(p3).is_break
        assert grid.previous_cell(p4).is_break
        assert grid.next_cell(grid.get("MON-P1")).id == "MON-P2"

    def test_day_edges_have_no_neighbours(self):
        grid = build_default_grid()
        assert grid.previous_cell(grid.get("TUE-P1")) is None
        assert grid.next_cell(grid.get("MON-P10")) is None

    def test_teaching_cells_in_day_period_order(self):
        cells = build_default_grid().teaching_cells
        assert [c.sort_key for c in cells] == sorted(c.sort_key for c in cells)
        assert cells[0].id == "MON-P1"
        assert cells[-1].id == "FRI-P10"

    def test_saturday_optional(self):
        grid = build_default_grid(tuple(Day))
        assert Day.SATURDAY in grid.days
        assert "SAT-P1" in grid


class TestBuildGrid:
    """Tests for plain numbered grids."""

    def test_break_positions(self):
        grid = build_grid(periods_per_day=4, breaks_after=[2])
        assert [c.period_tag for c in grid.cells_on(Day.MONDAY)] == ["P1", "P2", "B3", "P3", "P4"]

    def test_break_after_last_period_ignored(self):
        grid = build_grid(days=[Day.MONDAY], periods_per_day=3, breaks_after=[3])
        assert len(grid) == 3


class TestValidation:
    """Tests for grid validation."""

    def test_duplicate_ids_rejected(self):
        cells = [TimeCell(id="x", day=0, period=1), TimeCell(id="x", day=0, period=2)]
        with pytest.raises(GridValidationError, match="Duplicate time cell ID"):
            TimeGrid(cells)

    def test_shared_position_rejected(self):
        cells = [TimeCell(id="a", day=0, period=1), TimeCell(id="b", day=0, period=1)]
        with pytest.raises(GridValidationError, match="share MONDAY period 1"):
            TimeGrid(cells)

    def test_gap_in_periods_rejected(self):
        cells = [TimeCell(id="a", day=0, period=1), TimeCell(id="b", day=0, period=3)]
        with pytest.raises(GridValidationError, match="not contiguous"):
            TimeGrid(cells)

    def test_empty_grid_allowed(self):
        grid = TimeGrid([])
        assert len(grid) == 0
        assert grid.teaching_cells == []
