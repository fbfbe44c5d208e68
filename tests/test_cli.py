"""Tests for CLI module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from timetabler.cli import app
from timetabler.data.loader import load_school_data, save_school_data
from timetabler.data.models import TimetableEntry


runner = CliRunner()


@pytest.fixture
def school_file(basic_school, tmp_path) -> Path:
    """The basic school written to a temporary file."""
    return save_school_data(basic_school, tmp_path / "school.json")


@pytest.fixture
def generated_file(school_file) -> Path:
    """A school file that already holds a generated timetable."""
    result = runner.invoke(app, ["generate", str(school_file)])
    assert result.exit_code == 0, result.output
    return school_file


class TestHelpCommand:
    """Tests for help command."""

    def test_main_help(self):
        """Main help shows all commands."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("generate", "clear", "validate", "view", "audit", "sample"):
            assert command in result.output

    def test_generate_help(self):
        result = runner.invoke(app, ["generate", "--help"])
        assert result.exit_code == 0
        assert "--incremental" in result.output
        assert "--regenerate" in result.output


class TestGenerateCommand:
    """Tests for generate command."""

    def test_whole_school(self, school_file):
        """Entries are written back into the school document."""
        result = runner.invoke(app, ["generate", str(school_file)])
        assert result.exit_code == 0, result.output
        assert "SUCCESS" in result.output
        assert len(load_school_data(school_file).entries) == 3

    def test_class_with_output(self, school_file, tmp_path):
        """--output writes the camelCase result document."""
        out = tmp_path / "out" / "result.json"
        result = runner.invoke(app, ["generate", str(school_file), "--class", "C1", "-o", str(out)])
        assert result.exit_code == 0, result.output

        data = json.loads(out.read_text())
        assert data["status"] == "COMPLETED"
        assert data["targetId"] == "C1"
        assert data["summary"]["placedCount"] == 3

    def test_incremental_on_scheduled_class(self, generated_file):
        """An already scheduled class is reported, not rebuilt."""
        result = runner.invoke(app, ["generate", str(generated_file), "--class", "C1", "--incremental"])
        assert result.exit_code == 0
        assert "ALREADY_SCHEDULED" in result.output
        assert len(load_school_data(generated_file).entries) == 3

    def test_teacher_regenerate(self, generated_file):
        result = runner.invoke(app, ["generate", str(generated_file), "-T", "T1", "--regenerate"])
        assert result.exit_code == 0, result.output
        assert len(load_school_data(generated_file).entries) == 3

    def test_unknown_class(self, school_file):
        result = runner.invoke(app, ["generate", str(school_file), "--class", "NOPE"])
        assert result.exit_code == 1
        assert "TARGET_NOT_FOUND" in result.output

    def test_class_and_teacher_together(self, school_file):
        result = runner.invoke(app, ["generate", str(school_file), "-C", "C1", "-T", "T1"])
        assert result.exit_code == 1
        assert "not both" in result.output

    def test_conflicts_still_exit_zero(self, basic_school, tmp_path):
        """A partial timetable is a normal result."""
        teacher = basic_school.teachers[0].model_copy(update={"max_weekly_hours": 1})
        path = save_school_data(basic_school.model_copy(update={"teachers": [teacher]}), tmp_path / "s.json")

        result = runner.invoke(app, ["generate", str(path)])
        assert result.exit_code == 0
        assert "PARTIAL" in result.output
        assert "TEACHER_OVERLOADED" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["generate", str(tmp_path / "missing.json")])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestClearCommand:
    """Tests for clear command."""

    def test_clear_with_yes(self, generated_file):
        result = runner.invoke(app, ["clear", str(generated_file), "--yes"])
        assert result.exit_code == 0
        assert "Deleted 3 timetable entries" in result.output
        assert load_school_data(generated_file).entries == []

    def test_clear_aborted(self, generated_file):
        result = runner.invoke(app, ["clear", str(generated_file)], input="n\n")
        assert result.exit_code == 1
        assert len(load_school_data(generated_file).entries) == 3


class TestValidateCommand:
    """Tests for validate command."""

    def test_validate_valid_school(self, school_file):
        result = runner.invoke(app, ["validate", str(school_file), "-v"])
        assert result.exit_code == 0, result.output
        assert "Validation complete" in result.output
        assert "Lesson units" in result.output

    def test_validate_reports_coverage(self, school_file):
        """C2 has no assignments."""
        result = runner.invoke(app, ["validate", str(school_file)])
        assert result.exit_code == 0
        assert "C2" in result.output

    def test_validate_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{ not valid")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_validate_schema_error(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"teachers": []}))
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "school_id" in result.output


class TestViewCommand:
    """Tests for view command."""

    def test_view_overview(self, generated_file):
        result = runner.invoke(app, ["view", str(generated_file)])
        assert result.exit_code == 0
        assert "3 entries" in result.output

    def test_view_class(self, generated_file):
        result = runner.invoke(app, ["view", str(generated_file), "--class", "C1"])
        assert result.exit_code == 0
        assert "Class Schedule" in result.output
        assert "3 entries" in result.output

    def test_view_unknown_teacher(self, generated_file):
        result = runner.invoke(app, ["view", str(generated_file), "--teacher", "ghost"])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestAuditCommand:
    """Tests for audit command."""

    def test_audit_clean(self, generated_file):
        result = runner.invoke(app, ["audit", str(generated_file)])
        assert result.exit_code == 0, result.output
        assert "No violations found" in result.output

    def test_audit_json(self, generated_file):
        result = runner.invoke(app, ["audit", str(generated_file), "--format", "json"])
        assert result.exit_code == 0
        assert '"valid": true' in result.output

    def test_audit_violation(self, basic_school, tmp_path):
        """A lesson on the teacher's day off fails the audit."""
        entry = TimetableEntry(
            school_id="school-1", class_id="C1", teacher_id="T1", time_cell_id="SAT-P1", subject_id="SUBJ1",
        )
        path = save_school_data(basic_school.model_copy(update={"entries": [entry]}), tmp_path / "s.json")

        result = runner.invoke(app, ["audit", str(path)])
        assert result.exit_code == 1
        assert "TEACHER_UNAVAILABLE" in result.output


class TestSampleCommand:
    """Tests for sample command."""

    def test_sample_small(self, tmp_path):
        path = tmp_path / "small.json"
        result = runner.invoke(app, ["sample", str(path), "--small", "--seed", "1"])
        assert result.exit_code == 0, result.output
        assert load_school_data(path).school_id == "small-school"

    def test_sample_then_generate(self, tmp_path):
        """A generated sample goes through generate and audit."""
        path = tmp_path / "school.json"
        assert runner.invoke(app, ["sample", str(path), "--seed", "3", "--teachers", "8"]).exit_code == 0
        assert runner.invoke(app, ["generate", str(path)]).exit_code == 0
        assert runner.invoke(app, ["audit", str(path)]).exit_code == 0
        assert load_school_data(path).entries
