"""Output formatting and audit metrics."""

from .metrics import AuditReport, AuditViolation, BalanceMetrics, audit_timetable, daily_balance
from .schema import (
    ConflictOutput,
    EntryOutput,
    GenerationOutput,
    TimetableViews,
    create_generation_output,
    entries_to_output,
)

__all__ = [
    # Metrics
    "AuditReport",
    "AuditViolation",
    "BalanceMetrics",
    "audit_timetable",
    "daily_balance",
    # Schema
    "ConflictOutput",
    "EntryOutput",
    "GenerationOutput",
    "TimetableViews",
    "create_generation_output",
    "entries_to_output",
]
