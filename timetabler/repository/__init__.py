"""Storage backends for school data and timetable entries."""

from .base import (
    PersistenceError,
    RepositoryError,
    SchoolNotFoundError,
    TimetableRepository,
)
from .memory import InMemoryRepository, JsonFileRepository
from .sql import SqlRepository

__all__ = [
    "PersistenceError",
    "RepositoryError",
    "SchoolNotFoundError",
    "TimetableRepository",
    "InMemoryRepository",
    "JsonFileRepository",
    "SqlRepository",
]
