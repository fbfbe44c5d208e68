"""Load, validate and save school documents as JSON files."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from .models import SchoolData, TeacherSubjectAssignment


class DataValidationError(Exception):
    """Raised when a school document fails validation."""
    pass


def load_school_data(path: Union[str, Path]) -> SchoolData:
    """
    Load a school document from a JSON file.

    Keys may be camelCase or snake_case; both are accepted.

    Args:
        path: Path to the JSON file

    Returns:
        Validated SchoolData

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file isn't valid JSON
        DataValidationError: If the document fails validation
    """
    path = Path(path)

    with open(path) as f:
        data = json.load(f)

    return parse_school_data(data)


def parse_school_data(data: Any) -> SchoolData:
    """Validate an already-decoded school document."""
    if not isinstance(data, dict):
        raise DataValidationError(f"School document must be a JSON object, got {type(data).__name__}")

    converted = _convert_keys_to_snake_case(data)
    if "school_id" not in converted:
        raise DataValidationError("Missing required field: school_id")

    try:
        return SchoolData.model_validate(converted)
    except ValidationError as exc:
        raise DataValidationError(str(exc)) from exc


def save_school_data(school: SchoolData, path: Union[str, Path]) -> Path:
    """Write a school document as indented JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump(school.model_dump(mode="json", exclude_none=True), f, indent=2)
        f.write("\n")

    return path


def check_references(school: SchoolData) -> list[str]:
    """
    List assignments and entries that point at missing records.

    These are not fatal; lesson preparation skips such assignments. The
    list is what `timetabler validate` reports.
    """
    problems: list[str] = []

    teacher_ids = {t.id for t in school.teachers}
    class_ids = {c.id for c in school.classes}
    subject_ids = {s.id for s in school.subjects}
    module_ids = {m.id for m in school.modules}
    cell_ids = {c.id for c in school.time_cells}

    for i, assignment in enumerate(school.assignments):
        label = f"Assignment {i} ({assignment.kind})"
        if assignment.teacher_id not in teacher_ids:
            problems.append(f"{label} references unknown teacher: {assignment.teacher_id}")
        if assignment.class_id not in class_ids:
            problems.append(f"{label} references unknown class: {assignment.class_id}")
        if isinstance(assignment, TeacherSubjectAssignment):
            if assignment.subject_id not in subject_ids:
                problems.append(f"{label} references unknown subject: {assignment.subject_id}")
        elif assignment.module_id not in module_ids:
            problems.append(f"{label} references unknown module: {assignment.module_id}")

    for entry in school.entries:
        if entry.time_cell_id not in cell_ids:
            problems.append(f"Entry for class {entry.class_id} references unknown time cell: {entry.time_cell_id}")

    return problems


def _convert_keys_to_snake_case(obj: Any) -> Any:
    """Recursively convert dictionary keys from camelCase to snake_case."""

    def to_snake_case(name: str) -> str:
        name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
        name = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', name)
        return name.lower()

    if isinstance(obj, dict):
        return {to_snake_case(k): _convert_keys_to_snake_case(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_convert_keys_to_snake_case(item) for item in obj]
    else:
        return obj
