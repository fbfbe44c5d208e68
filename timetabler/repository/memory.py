"""In-memory and JSON-file repositories backed by SchoolData documents."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

from ..data.loader import load_school_data, save_school_data
from ..data.models import (
    Assignment,
    ClassGroup,
    Module,
    SchoolData,
    Subject,
    Teacher,
    TimeCell,
    TimetableEntry,
)
from .base import PersistenceError, SchoolNotFoundError


logger = logging.getLogger(__name__)


class InMemoryRepository:
    """
    Repository over a dict of SchoolData documents.

    Entry writes enforce the same uniqueness rules as the SQL tables: one
    entry per (class, cell) and one per (teacher, cell) within a school.
    A transaction snapshots every school's entries and restores them if the
    block raises.
    """

    def __init__(self, schools: Optional[Sequence[SchoolData]] = None):
        self._schools: dict[str, SchoolData] = {}
        self._entries: dict[str, list[TimetableEntry]] = {}
        self._depth = 0
        for school in schools or []:
            self.add_school(school)

    def add_school(self, school: SchoolData) -> None:
        self._schools[school.school_id] = school
        self._entries[school.school_id] = list(school.entries)

    def _school(self, school_id: str) -> SchoolData:
        try:
            return self._schools[school_id]
        except KeyError:
            raise SchoolNotFoundError(f"Unknown school: {school_id}") from None

    def export_school(self, school_id: str) -> SchoolData:
        """Current document for the school, including written entries."""
        return self._school(school_id).model_copy(update={"entries": list(self._entries[school_id])})

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def load_school_ids(self) -> list[str]:
        return sorted(self._schools)

    def load_time_cells(self, school_id: str) -> list[TimeCell]:
        return list(self._school(school_id).time_cells)

    def load_teachers(self, school_id: str) -> list[Teacher]:
        return list(self._school(school_id).teachers)

    def load_classes(self, school_id: str) -> list[ClassGroup]:
        return list(self._school(school_id).classes)

    def load_subjects(self, school_id: str) -> list[Subject]:
        return list(self._school(school_id).subjects)

    def load_modules(self, school_id: str) -> list[Module]:
        return list(self._school(school_id).modules)

    def load_assignments(self, school_id: str) -> list[Assignment]:
        return list(self._school(school_id).assignments)

    def load_occupancy(self, school_id: str) -> list[TimetableEntry]:
        self._school(school_id)
        return list(self._entries[school_id])

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _require_transaction(self, operation: str) -> None:
        if self._depth == 0:
            raise PersistenceError(f"{operation} must run inside transaction()")

    def write_entries(self, school_id: str, entries: Sequence[TimetableEntry]) -> int:
        self._require_transaction("write_entries")
        current = self._entries[self._school(school_id).school_id]
        class_cells = {(e.class_id, e.time_cell_id) for e in current}
        teacher_cells = {(e.teacher_id, e.time_cell_id) for e in current}

        for entry in entries:
            if entry.school_id != school_id:
                raise PersistenceError(f"Entry for school '{entry.school_id}' written to '{school_id}'")
            class_key = (entry.class_id, entry.time_cell_id)
            teacher_key = (entry.teacher_id, entry.time_cell_id)
            if class_key in class_cells:
                raise PersistenceError(f"Class '{entry.class_id}' already booked in '{entry.time_cell_id}'")
            if teacher_key in teacher_cells:
                raise PersistenceError(f"Teacher '{entry.teacher_id}' already booked in '{entry.time_cell_id}'")
            class_cells.add(class_key)
            teacher_cells.add(teacher_key)
            current.append(entry)

        return len(entries)

    def delete_entries(
        self,
        school_id: str,
        *,
        class_ids: Optional[Sequence[str]] = None,
        teacher_ids: Optional[Sequence[str]] = None,
    ) -> int:
        """
        Delete entries of a school.

        With no filter every entry goes; otherwise an entry goes when its
        class is in `class_ids` or its teacher is in `teacher_ids`.
        """
        self._require_transaction("delete_entries")
        self._school(school_id)
        current = self._entries[school_id]

        if class_ids is None and teacher_ids is None:
            kept: list[TimetableEntry] = []
        else:
            classes = set(class_ids or ())
            teachers = set(teacher_ids or ())
            kept = [e for e in current if e.class_id not in classes and e.teacher_id not in teachers]

        deleted = len(current) - len(kept)
        self._entries[school_id] = kept
        return deleted

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = {school_id: list(entries) for school_id, entries in self._entries.items()}
        self._depth = 1
        try:
            yield
            self._commit()
        except BaseException:
            self._entries = snapshot
            logger.warning("Transaction rolled back")
            raise
        finally:
            self._depth = 0

    def _commit(self) -> None:
        """Hook for subclasses that persist on commit. Raising rolls back."""


class JsonFileRepository(InMemoryRepository):
    """A single school document on disk, rewritten on every commit."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__([load_school_data(self.path)])

    @property
    def school_id(self) -> str:
        return self.load_school_ids()[0]

    def _commit(self) -> None:
        try:
            save_school_data(self.export_school(self.school_id), self.path)
        except OSError as exc:
            raise PersistenceError(f"Could not write {self.path}: {exc}") from exc
