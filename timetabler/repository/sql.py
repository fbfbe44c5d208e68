"""
SQLAlchemy-backed repository.

Every table carries a `school_id` column and every query filters on it.
Timetable entries are protected by two unique constraints, one per
(school, class, cell) and one per (school, teacher, cell), so a double
booking can never be committed even if a caller bypasses the engine.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence, Union

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.sql import func

from ..core.database import get_engine, make_session_factory
from ..data.models import (
    Assignment,
    ClassGroup,
    Module,
    SchoolData,
    Subject,
    Teacher,
    TeacherSubjectAssignment,
    TimeCell,
    TimetableEntry,
    TrainerModuleAssignment,
)
from .base import PersistenceError, SchoolNotFoundError


logger = logging.getLogger(__name__)

Base = declarative_base()


# =============================================================================
# Tables
# =============================================================================

class SchoolRow(Base):
    __tablename__ = "schools"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TimeCellRow(Base):
    __tablename__ = "time_cells"

    school_id = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    day = Column(Integer, nullable=False)
    period = Column(Integer, nullable=False)
    is_break = Column(Boolean, nullable=False, default=False)
    tag = Column(String(16), nullable=True)
    name = Column(String(100), nullable=True)
    start_minutes = Column(Integer, nullable=True)
    end_minutes = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("school_id", "day", "period", name="uq_time_cells_school_day_period"),
        CheckConstraint("day >= 0 and day <= 5", name="ck_time_cells_day_range"),
    )


class TeacherRow(Base):
    __tablename__ = "teachers"

    school_id = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=True)
    max_weekly_hours = Column(Integer, nullable=False, default=40)
    unavailable_days = Column(JSON, nullable=False, default=list)
    unavailable_periods = Column(JSON, nullable=False, default=list)
    track = Column(String(16), nullable=False, default="ACADEMIC")
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("max_weekly_hours >= 0", name="ck_teachers_max_weekly_hours"),
    )


class ClassRow(Base):
    __tablename__ = "classes"

    school_id = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=True)
    level = Column(String(32), nullable=True)
    stream = Column(String(64), nullable=True)


class SubjectRow(Base):
    __tablename__ = "subjects"

    school_id = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=True)
    periods_per_week = Column(Integer, nullable=False, default=1)
    track = Column(String(16), nullable=False, default="ACADEMIC")


class ModuleRow(Base):
    __tablename__ = "modules"

    school_id = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=True)
    periods_per_week = Column(Integer, nullable=False, default=1)
    category = Column(String(16), nullable=True)
    track = Column(String(16), nullable=False, default="TECHNICAL")


class AssignmentRow(Base):
    __tablename__ = "assignments"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(String(64), nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    teacher_id = Column(String(64), nullable=False)
    class_id = Column(String(64), nullable=False)
    subject_id = Column(String(64), nullable=True)
    module_id = Column(String(64), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(kind = 'teacher_subject' and subject_id is not null and module_id is null) or "
            "(kind = 'trainer_module' and module_id is not null and subject_id is null)",
            name="ck_assignments_kind_target",
        ),
    )


class TimetableEntryRow(Base):
    __tablename__ = "timetable_entries"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(String(64), nullable=False, index=True)
    class_id = Column(String(64), nullable=False)
    teacher_id = Column(String(64), nullable=False)
    time_cell_id = Column(String(64), nullable=False)
    subject_id = Column(String(64), nullable=True)
    module_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("school_id", "class_id", "time_cell_id", name="uq_entries_school_class_cell"),
        UniqueConstraint("school_id", "teacher_id", "time_cell_id", name="uq_entries_school_teacher_cell"),
        CheckConstraint(
            "(subject_id is null) <> (module_id is null)",
            name="ck_entries_subject_xor_module",
        ),
    )


# =============================================================================
# Repository
# =============================================================================

class SqlRepository:
    """
    Repository over a relational database.

    Reads outside a transaction use a short-lived session; reads inside
    `transaction()` share its session and see its uncommitted changes.
    """

    def __init__(self, engine: Union[Engine, str, None] = None):
        if engine is None or isinstance(engine, str):
            engine = get_engine(engine)
        self.engine = engine
        self._session_factory = make_session_factory(engine)
        self._session: Optional[Session] = None

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _reader(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def _require_school(self, session: Session, school_id: str) -> None:
        if session.get(SchoolRow, school_id) is None:
            raise SchoolNotFoundError(f"Unknown school: {school_id}")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def load_school_ids(self) -> list[str]:
        with self._reader() as session:
            return list(session.scalars(select(SchoolRow.id).order_by(SchoolRow.id)))

    def load_time_cells(self, school_id: str) -> list[TimeCell]:
        with self._reader() as session:
            self._require_school(session, school_id)
            rows = session.scalars(
                select(TimeCellRow)
                .where(TimeCellRow.school_id == school_id)
                .order_by(TimeCellRow.day, TimeCellRow.period)
            )
            return [
                TimeCell(
                    id=r.id, day=r.day, period=r.period, is_break=r.is_break, tag=r.tag,
                    name=r.name, start_minutes=r.start_minutes, end_minutes=r.end_minutes,
                )
                for r in rows
            ]

    def load_teachers(self, school_id: str) -> list[Teacher]:
        with self._reader() as session:
            self._require_school(session, school_id)
            rows = session.scalars(
                select(TeacherRow).where(TeacherRow.school_id == school_id).order_by(TeacherRow.id)
            )
            return [
                Teacher(
                    id=r.id,
                    name=r.name,
                    max_weekly_hours=r.max_weekly_hours,
                    unavailable_days=r.unavailable_days or [],
                    unavailable_periods=r.unavailable_periods or [],
                    track=r.track,
                    is_active=r.is_active,
                )
                for r in rows
            ]

    def load_classes(self, school_id: str) -> list[ClassGroup]:
        with self._reader() as session:
            self._require_school(session, school_id)
            rows = session.scalars(
                select(ClassRow).where(ClassRow.school_id == school_id).order_by(ClassRow.id)
            )
            return [ClassGroup(id=r.id, name=r.name, level=r.level, stream=r.stream) for r in rows]

    def load_subjects(self, school_id: str) -> list[Subject]:
        with self._reader() as session:
            self._require_school(session, school_id)
            rows = session.scalars(
                select(SubjectRow).where(SubjectRow.school_id == school_id).order_by(SubjectRow.id)
            )
            return [
                Subject(id=r.id, name=r.name, periods_per_week=r.periods_per_week, track=r.track)
                for r in rows
            ]

    def load_modules(self, school_id: str) -> list[Module]:
        with self._reader() as session:
            self._require_school(session, school_id)
            rows = session.scalars(
                select(ModuleRow).where(ModuleRow.school_id == school_id).order_by(ModuleRow.id)
            )
            return [
                Module(
                    id=r.id, name=r.name, periods_per_week=r.periods_per_week,
                    category=r.category, track=r.track,
                )
                for r in rows
            ]

    def load_assignments(self, school_id: str) -> list[Assignment]:
        with self._reader() as session:
            self._require_school(session, school_id)
            rows = session.scalars(
                select(AssignmentRow).where(AssignmentRow.school_id == school_id).order_by(AssignmentRow.pk)
            )
            assignments: list[Assignment] = []
            for r in rows:
                if r.kind == "teacher_subject":
                    assignments.append(TeacherSubjectAssignment(
                        teacher_id=r.teacher_id, class_id=r.class_id, subject_id=r.subject_id,
                    ))
                else:
                    assignments.append(TrainerModuleAssignment(
                        teacher_id=r.teacher_id, class_id=r.class_id, module_id=r.module_id,
                    ))
            return assignments

    def load_occupancy(self, school_id: str) -> list[TimetableEntry]:
        with self._reader() as session:
            self._require_school(session, school_id)
            rows = session.scalars(
                select(TimetableEntryRow)
                .where(TimetableEntryRow.school_id == school_id)
                .order_by(TimetableEntryRow.pk)
            )
            return [
                TimetableEntry(
                    school_id=r.school_id, class_id=r.class_id, teacher_id=r.teacher_id,
                    time_cell_id=r.time_cell_id, subject_id=r.subject_id, module_id=r.module_id,
                )
                for r in rows
            ]

    def export_school(self, school_id: str) -> SchoolData:
        """Read a complete school document back out of the database."""
        with self._reader() as session:
            self._require_school(session, school_id)
            name = session.get(SchoolRow, school_id).name
        return SchoolData(
            school_id=school_id,
            name=name,
            time_cells=self.load_time_cells(school_id),
            teachers=self.load_teachers(school_id),
            classes=self.load_classes(school_id),
            subjects=self.load_subjects(school_id),
            modules=self.load_modules(school_id),
            assignments=self.load_assignments(school_id),
            entries=self.load_occupancy(school_id),
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _writer(self, operation: str) -> Session:
        if self._session is None:
            raise PersistenceError(f"{operation} must run inside transaction()")
        return self._session

    def write_entries(self, school_id: str, entries: Sequence[TimetableEntry]) -> int:
        session = self._writer("write_entries")
        self._require_school(session, school_id)
        for entry in entries:
            if entry.school_id != school_id:
                raise PersistenceError(f"Entry for school '{entry.school_id}' written to '{school_id}'")
        session.add_all([
            TimetableEntryRow(
                school_id=e.school_id, class_id=e.class_id, teacher_id=e.teacher_id,
                time_cell_id=e.time_cell_id, subject_id=e.subject_id, module_id=e.module_id,
            )
            for e in entries
        ])
        session.flush()
        return len(entries)

    def delete_entries(
        self,
        school_id: str,
        *,
        class_ids: Optional[Sequence[str]] = None,
        teacher_ids: Optional[Sequence[str]] = None,
    ) -> int:
        session = self._writer("delete_entries")
        self._require_school(session, school_id)

        query = session.query(TimetableEntryRow).filter(TimetableEntryRow.school_id == school_id)
        if class_ids is not None or teacher_ids is not None:
            conditions = []
            if class_ids is not None:
                conditions.append(TimetableEntryRow.class_id.in_(list(class_ids)))
            if teacher_ids is not None:
                conditions.append(TimetableEntryRow.teacher_id.in_(list(teacher_ids)))
            query = query.filter(or_(*conditions))

        deleted = query.delete(synchronize_session=False)
        session.flush()
        return deleted

    def import_school(self, school: SchoolData, *, replace: bool = False) -> None:
        """
        Insert a complete school document.

        Args:
            school: Document to store
            replace: Drop any existing rows for the school first

        Raises:
            PersistenceError: If the school exists and `replace` is false
        """
        with self.transaction():
            session = self._session
            existing = session.get(SchoolRow, school.school_id)
            if existing is not None and not replace:
                raise PersistenceError(f"School '{school.school_id}' already exists")
            if existing is not None:
                for table in (
                    TimetableEntryRow, AssignmentRow, ModuleRow, SubjectRow,
                    ClassRow, TeacherRow, TimeCellRow,
                ):
                    session.query(table).filter(table.school_id == school.school_id).delete(
                        synchronize_session=False
                    )
                session.delete(existing)
                session.flush()

            sid = school.school_id
            session.add(SchoolRow(id=sid, name=school.name))
            session.add_all([
                TimeCellRow(
                    school_id=sid, id=c.id, day=int(c.day), period=c.period, is_break=c.is_break,
                    tag=c.tag, name=c.name, start_minutes=c.start_minutes, end_minutes=c.end_minutes,
                )
                for c in school.time_cells
            ])
            session.add_all([
                TeacherRow(
                    school_id=sid, id=t.id, name=t.name, max_weekly_hours=t.max_weekly_hours,
                    unavailable_days=sorted(int(d) for d in t.unavailable_days),
                    unavailable_periods=sorted(t.unavailable_periods),
                    track=t.track.value, is_active=t.is_active,
                )
                for t in school.teachers
            ])
            session.add_all([
                ClassRow(school_id=sid, id=c.id, name=c.name, level=c.level, stream=c.stream)
                for c in school.classes
            ])
            session.add_all([
                SubjectRow(
                    school_id=sid, id=s.id, name=s.name,
                    periods_per_week=s.periods_per_week, track=s.track.value,
                )
                for s in school.subjects
            ])
            session.add_all([
                ModuleRow(
                    school_id=sid, id=m.id, name=m.name, periods_per_week=m.periods_per_week,
                    category=m.category.value if m.category else None, track=m.track.value,
                )
                for m in school.modules
            ])
            session.add_all([
                AssignmentRow(
                    school_id=sid, kind=a.kind, teacher_id=a.teacher_id, class_id=a.class_id,
                    subject_id=getattr(a, "subject_id", None), module_id=getattr(a, "module_id", None),
                )
                for a in school.assignments
            ])
            session.flush()
            self.write_entries(sid, school.entries)

        logger.info("Imported school %s (%s)", school.school_id, school.summary())

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._session is not None:
            yield
            return

        session = self._session_factory()
        self._session = session
        try:
            yield
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("Transaction rolled back: %s", exc)
            raise PersistenceError(f"Database write failed: {exc}") from exc
        except BaseException:
            session.rollback()
            logger.warning("Transaction rolled back")
            raise
        finally:
            session.close()
            self._session = None
