"""Repository interface the scheduler reads inputs from and writes results to."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Optional, Protocol, Sequence, runtime_checkable

from ..data.models import (
    Assignment,
    ClassGroup,
    Module,
    Subject,
    Teacher,
    TimeCell,
    TimetableEntry,
)


class RepositoryError(Exception):
    """Base class for repository failures."""
    pass


class SchoolNotFoundError(RepositoryError):
    """Raised when a school ID is unknown to the repository."""
    pass


class PersistenceError(RepositoryError):
    """Raised when writing or deleting entries fails; the transaction is rolled back."""
    pass


@runtime_checkable
class TimetableRepository(Protocol):
    """
    Capability set needed by lesson preparation and the scope controller.

    Every read is scoped by school ID. Writes and deletes are only valid
    inside `transaction()`, which commits on normal exit and rolls back
    everything on an exception.
    """

    def load_school_ids(self) -> list[str]: ...

    def load_time_cells(self, school_id: str) -> list[TimeCell]: ...

    def load_teachers(self, school_id: str) -> list[Teacher]: ...

    def load_classes(self, school_id: str) -> list[ClassGroup]: ...

    def load_subjects(self, school_id: str) -> list[Subject]: ...

    def load_modules(self, school_id: str) -> list[Module]: ...

    def load_assignments(self, school_id: str) -> list[Assignment]: ...

    def load_occupancy(self, school_id: str) -> list[TimetableEntry]: ...

    def write_entries(self, school_id: str, entries: Sequence[TimetableEntry]) -> int: ...

    def delete_entries(
        self,
        school_id: str,
        *,
        class_ids: Optional[Sequence[str]] = None,
        teacher_ids: Optional[Sequence[str]] = None,
    ) -> int: ...

    def transaction(self) -> AbstractContextManager[None]: ...
