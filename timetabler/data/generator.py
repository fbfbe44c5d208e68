"""
Sample data generator for testing the timetabler.

Generates a school with academic classes taught by teachers (subjects) and
technical classes taught by trainers (modules), on the default P1-P10 grid.
The same seed always yields the same school.

Usage:
    from timetabler.data.generator import generate_sample_school, generate_small_school

    # Generate with custom config
    school = generate_sample_school(GeneratorConfig(num_teachers=16, seed=7))

    # Quick test data
    small_school = generate_small_school(seed=1)
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Union

from ..grid import build_default_grid
from .loader import save_school_data
from .models import (
    WEEKDAYS,
    ClassGroup,
    Day,
    Module,
    ModuleCategory,
    SchoolData,
    Subject,
    Teacher,
    TeacherSubjectAssignment,
    Track,
    TrainerModuleAssignment,
)


# =============================================================================
# Name Data
# =============================================================================

FIRST_NAMES = [
    "Alice", "Jean", "Grace", "Eric", "Diane", "Patrick", "Claudine", "Olivier",
    "Aline", "Emmanuel", "Josiane", "David", "Chantal", "Samuel", "Esther", "Paul",
    "Vestine", "Joseph", "Solange", "Innocent", "Sarah", "Daniel", "Yvonne", "Peter",
]

LAST_NAMES = [
    "Uwase", "Mugisha", "Ingabire", "Niyonzima", "Mukamana", "Habimana", "Uwimana",
    "Nshimiyimana", "Iradukunda", "Hakizimana", "Mutoni", "Bizimana", "Umutoni",
    "Ndayisaba", "Kamanzi", "Gasana", "Murenzi", "Keza",
]


# =============================================================================
# Subject and Module Definitions
# =============================================================================

# (id, name, periods per week)
ACADEMIC_SUBJECTS = [
    ("MAT", "Mathematics", 6),
    ("ENG", "English", 5),
    ("PHY", "Physics", 4),
    ("CHE", "Chemistry", 3),
    ("BIO", "Biology", 3),
    ("HIS", "History", 2),
    ("GEO", "Geography", 2),
    ("ENT", "Entrepreneurship", 2),
]

# (id, name, periods per week, category)
TECHNICAL_MODULES = [
    ("SWD", "Software Development", 8, ModuleCategory.SPECIFIC),
    ("WEB", "Web Development", 6, ModuleCategory.SPECIFIC),
    ("DBM", "Database Management", 4, ModuleCategory.SPECIFIC),
    ("AMA", "Applied Mathematics", 3, ModuleCategory.GENERAL),
    ("COM", "Communication Skills", 2, ModuleCategory.COMPLEMENTARY),
    ("CEN", "Career Entrepreneurship", 2, ModuleCategory.COMPLEMENTARY),
]


# =============================================================================
# Generator Configuration
# =============================================================================

@dataclass
class GeneratorConfig:
    """Configuration for data generation.

    The defaults give a school the engine can place completely: no class
    needs more than the 50 teaching cells of a five-day week and teacher
    loads stay under their weekly caps.
    """
    school_id: str = "sample-school"
    school_name: str = "Generated Test School"

    # Entity counts
    num_teachers: int = 10
    num_trainers: int = 4
    academic_levels: list[str] = field(default_factory=lambda: ["S1", "S2", "S3"])
    sections_per_level: int = 2
    technical_levels: list[str] = field(default_factory=lambda: ["L3", "L4"])
    technical_stream: str = "SOD"

    # Teacher settings
    teacher_min_hours: int = 20
    teacher_max_hours: int = 30
    unavailable_day_chance: float = 0.2
    max_unavailable_periods: int = 2

    # Grid
    days: Sequence[Day] = WEEKDAYS

    # Randomization
    seed: Optional[int] = None


# =============================================================================
# Generator Functions
# =============================================================================

def generate_sample_school(config: GeneratorConfig | None = None) -> SchoolData:
    """
    Generate a sample school document.

    Args:
        config: Generator configuration (uses defaults if None)

    Returns:
        SchoolData with grid, staff, classes, curriculum and assignments
    """
    if config is None:
        config = GeneratorConfig()

    rng = random.Random(config.seed)

    subjects = [Subject(id=sid, name=name, periods_per_week=n) for sid, name, n in ACADEMIC_SUBJECTS]
    modules = [
        Module(id=mid, name=name, periods_per_week=n, category=category)
        for mid, name, n, category in TECHNICAL_MODULES
    ]
    teachers = _generate_staff(rng, config, config.num_teachers, "T", Track.ACADEMIC)
    trainers = _generate_staff(rng, config, config.num_trainers, "TR", Track.TECHNICAL)
    classes = _generate_classes(config)

    academic_classes = [c for c in classes if c.stream is None]
    technical_classes = [c for c in classes if c.stream is not None]

    assignments = []
    for cls, teacher_id, subject in _distribute(rng, academic_classes, teachers, subjects):
        assignments.append(TeacherSubjectAssignment(teacher_id=teacher_id, class_id=cls.id, subject_id=subject.id))
    for cls, teacher_id, module in _distribute(rng, technical_classes, trainers, modules):
        assignments.append(TrainerModuleAssignment(teacher_id=teacher_id, class_id=cls.id, module_id=module.id))

    return SchoolData(
        school_id=config.school_id,
        name=config.school_name,
        time_cells=build_default_grid(config.days).cells,
        teachers=teachers + trainers,
        classes=classes,
        subjects=subjects,
        modules=modules,
        assignments=assignments,
    )


def generate_small_school(seed: int | None = None) -> SchoolData:
    """
    Generate a small school for quick testing.

    - 6 teachers, 2 trainers
    - 2 academic classes (S1 A, S1 B) and 1 technical class (L3 SOD)

    Args:
        seed: Random seed for reproducibility

    Returns:
        SchoolData with small school data
    """
    config = GeneratorConfig(
        school_id="small-school",
        school_name="Small Test School",
        num_teachers=6,
        num_trainers=2,
        academic_levels=["S1"],
        sections_per_level=2,
        technical_levels=["L3"],
        seed=seed,
    )
    return generate_sample_school(config)


# =============================================================================
# Private Generator Helpers
# =============================================================================

def _generate_staff(
    rng: random.Random,
    config: GeneratorConfig,
    count: int,
    prefix: str,
    track: Track,
) -> list[Teacher]:
    """Generate teachers or trainers with random unavailability."""
    staff = []
    used_names: set[str] = set()

    for i in range(count):
        while True:
            full_name = f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"
            if full_name not in used_names or len(used_names) >= len(FIRST_NAMES) * len(LAST_NAMES):
                used_names.add(full_name)
                break

        unavailable_days = set()
        if rng.random() < config.unavailable_day_chance:
            unavailable_days.add(rng.choice(list(config.days)))

        num_periods = rng.randint(0, config.max_unavailable_periods)
        unavailable_periods = {f"P{n}" for n in rng.sample(range(1, 11), num_periods)}

        staff.append(Teacher(
            id=f"{prefix}{i + 1:02d}",
            name=full_name,
            max_weekly_hours=rng.randint(config.teacher_min_hours, config.teacher_max_hours),
            unavailable_days=unavailable_days,
            unavailable_periods=unavailable_periods,
            track=track,
        ))

    return staff


def _generate_classes(config: GeneratorConfig) -> list[ClassGroup]:
    """Generate academic sections per level plus one technical class per level."""
    classes = []

    for level in config.academic_levels:
        for set_num in range(config.sections_per_level):
            letter = chr(ord("A") + set_num)
            classes.append(ClassGroup(id=f"{level}{letter}", name=f"{level} {letter}", level=level))

    for level in config.technical_levels:
        classes.append(ClassGroup(
            id=f"{level}-{config.technical_stream}",
            name=f"{level} {config.technical_stream}",
            level=level,
            stream=config.technical_stream,
        ))

    return classes


def _distribute(rng: random.Random, classes: list[ClassGroup], staff: list[Teacher], items: list):
    """
    Pick a teacher for every (class, subject or module) pair.

    Each teacher is qualified for two items, dealt round-robin so every
    item has someone. The least-loaded qualified teacher with room under
    their weekly cap gets the pair; pairs nobody can take are left out.
    """
    if not staff or not items:
        return []

    qualified: dict[str, list[Teacher]] = {item.id: [] for item in items}
    for i, teacher in enumerate(staff):
        picks = {items[i % len(items)].id, rng.choice(items).id}
        for item_id in sorted(picks):
            qualified[item_id].append(teacher)

    load = {t.id: 0 for t in staff}
    pairs = []
    for cls in classes:
        for item in items:
            candidates = [
                t for t in qualified[item.id]
                if load[t.id] + item.periods_per_week <= t.max_weekly_hours
            ]
            if not candidates:
                continue
            teacher = min(candidates, key=lambda t: (load[t.id], t.id))
            load[teacher.id] += item.periods_per_week
            pairs.append((cls, teacher.id, item))

    return pairs


# =============================================================================
# Utility Functions
# =============================================================================

def save_generated_school(school: SchoolData, filepath: Union[str, Path]) -> Path:
    """
    Save generated school data to a JSON file.

    Args:
        school: Generated SchoolData
        filepath: Path to save JSON file
    """
    return save_school_data(school, filepath)


def get_generation_stats(school: SchoolData) -> dict:
    """
    Get statistics about generated school data.

    Args:
        school: Generated SchoolData

    Returns:
        Dictionary with statistics
    """
    periods = {s.id: s.periods_per_week for s in school.subjects}
    periods.update({m.id: m.periods_per_week for m in school.modules})

    class_load: dict[str, int] = {}
    teacher_load: dict[str, int] = {}
    for a in school.assignments:
        n = max(1, periods.get(a.subject_or_module_id, 1))
        class_load[a.class_id] = class_load.get(a.class_id, 0) + n
        teacher_load[a.teacher_id] = teacher_load.get(a.teacher_id, 0) + n

    teaching_cells = sum(1 for c in school.time_cells if not c.is_break)
    caps = {t.id: t.max_weekly_hours for t in school.teachers}
    max_class_load = max(class_load.values(), default=0)
    overloaded = sorted(t for t, n in teacher_load.items() if n > caps.get(t, 0))

    return {
        "teachers": len(school.teachers),
        "classes": len(school.classes),
        "subjects": len(school.subjects),
        "modules": len(school.modules),
        "assignments": len(school.assignments),
        "lesson_units": sum(class_load.values()),
        "teaching_cells": teaching_cells,
        "max_class_load": max_class_load,
        "max_teacher_load": max(teacher_load.values(), default=0),
        "overloaded_teachers": overloaded,
        "is_feasible": max_class_load <= teaching_cells and not overloaded,
    }
