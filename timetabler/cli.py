"""
Command-line interface for the timetabler.

Every command works on a school document (JSON). `generate` and `clear`
write the resulting entries back into the same document.

Usage:
    python -m timetabler generate school.json --class S2A --regenerate
    python -m timetabler generate school.json --scope both -o result.json
    python -m timetabler validate school.json
    python -m timetabler view school.json --teacher T01
    python -m timetabler audit school.json
    python -m timetabler sample school.json --small --seed 1
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .core.config import settings
from .core.logging import setup_logging
from .data.generator import (
    GeneratorConfig,
    generate_sample_school,
    generate_small_school,
    get_generation_stats,
    save_generated_school,
)
from .data.loader import DataValidationError, check_references, parse_school_data
from .data.models import SchoolData, day_name, minutes_to_time
from .grid import GridValidationError, TimeGrid
from .output.metrics import audit_timetable, daily_balance
from .output.schema import create_generation_output
from .repository.base import RepositoryError
from .repository.memory import InMemoryRepository, JsonFileRepository
from .requirements import RequirementBuilder, coverage_warnings, lesson_statistics
from .scope import GenerationOptions, GenerationResult, GenerationStatus, SchoolScope, ScopeController

# Create Typer app
app = typer.Typer(
    name="timetabler",
    help="Weekly school timetable generator.",
    add_completion=False,
)

# Rich console for pretty output
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================

def open_repository(school_file: Path) -> JsonFileRepository:
    """Open a school document, exiting with a message if it cannot be read."""
    if not school_file.exists():
        console.print(f"[red]Error:[/red] School file not found: {school_file}")
        raise typer.Exit(code=1)

    try:
        return JsonFileRepository(school_file)
    except (json.JSONDecodeError, DataValidationError) as e:
        console.print(f"[red]Error loading school:[/red] {e}")
        raise typer.Exit(code=1)


def load_grid(school: SchoolData) -> TimeGrid:
    try:
        return TimeGrid(school.time_cells)
    except GridValidationError as e:
        console.print(f"[red]Invalid time grid:[/red] {e}")
        raise typer.Exit(code=1)


def name_maps(school: SchoolData) -> tuple[dict[str, str], dict[str, str], dict[str, str]]:
    """Teacher, class and subject-or-module display names keyed by ID."""
    teachers = {t.id: t.name or t.id for t in school.teachers}
    classes = {c.id: c.name or c.id for c in school.classes}
    subjects = {s.id: s.name or s.id for s in school.subjects}
    subjects.update({m.id: m.name or m.id for m in school.modules})
    return teachers, classes, subjects


def print_result(result: GenerationResult) -> None:
    """Print a generation result to the console."""
    if result.status != GenerationStatus.COMPLETED:
        console.print(Panel(
            Text(result.message, style="yellow"),
            title=result.status.value,
        ))
        return

    status_color = "green" if result.success else "yellow"
    console.print(Panel(
        Text("SUCCESS" if result.success else "PARTIAL", style=f"bold {status_color}"),
        title="Generation Status",
        subtitle=result.message,
    ))

    table = Table(title="Summary", show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Entries Placed", str(len(result.placed)))
    table.add_row("Conflicts", str(len(result.conflicts)))
    table.add_row("Entries Replaced", str(result.deleted_count))
    table.add_row("Warnings", str(len(result.warnings)))

    console.print(table)

    if result.conflicts:
        conflicts = Table(title="Unplaced Lessons", show_header=True, header_style="bold yellow")
        conflicts.add_column("Teacher")
        conflicts.add_column("Class")
        conflicts.add_column("Subject/Module")
        conflicts.add_column("Lesson")
        conflicts.add_column("Reason")
        for conflict in result.conflicts:
            unit = conflict.unit
            conflicts.add_row(
                unit.teacher_id,
                unit.class_id,
                unit.subject_or_module_id,
                f"{unit.lesson_index}/{unit.total_lessons}",
                conflict.reason.value,
            )
        console.print(conflicts)

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning.message}")


# =============================================================================
# Commands
# =============================================================================

@app.callback()
def configure(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    ),
) -> None:
    """Weekly school timetable generator."""
    setup_logging(
        environment=settings.environment,
        level=log_level or settings.log_level or "WARNING",
    )


@app.command()
def generate(
    school_file: Path = typer.Argument(
        ...,
        help="Path to the school JSON document",
    ),
    class_id: Optional[str] = typer.Option(
        None,
        "--class", "-C",
        help="Generate for one class only",
    ),
    teacher_id: Optional[str] = typer.Option(
        None,
        "--teacher", "-T",
        help="Generate for one teacher only",
    ),
    scope: SchoolScope = typer.Option(
        SchoolScope.BOTH,
        "--scope", "-s",
        help="Whole-school scope when no class or teacher is given",
    ),
    incremental: bool = typer.Option(
        False,
        "--incremental",
        help="Keep the target's existing entries; do nothing if it has any",
    ),
    regenerate: bool = typer.Option(
        False,
        "--regenerate",
        help="Replace the target's existing entries",
    ),
    max_consecutive: Optional[int] = typer.Option(
        None,
        "--max-consecutive",
        help="Maximum back-to-back periods for one teacher+class pair",
        min=1,
        max=6,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Path to write the generation result JSON",
    ),
) -> None:
    """
    Generate timetable entries and save them into the school document.

    Examples:
        python -m timetabler generate school.json
        python -m timetabler generate school.json --class S2A --incremental
        python -m timetabler generate school.json --teacher T01 --regenerate
    """
    if class_id and teacher_id:
        console.print("[red]Error:[/red] Use either --class or --teacher, not both")
        raise typer.Exit(code=1)

    repository = open_repository(school_file)
    school_id = repository.school_id
    config = settings.engine_config()
    if max_consecutive is not None:
        config = config.model_copy(update={"max_consecutive_periods": max_consecutive})

    controller = ScopeController(repository, config)
    options = GenerationOptions(incremental=incremental, regenerate=regenerate)

    try:
        if class_id:
            result = controller.generate_for_class(school_id, class_id, options)
        elif teacher_id:
            result = controller.generate_for_teacher(school_id, teacher_id, options)
        else:
            result = controller.generate_whole_school(school_id, scope)
    except (GridValidationError, RepositoryError) as e:
        console.print(f"[red]Generation failed:[/red] {e}")
        raise typer.Exit(code=1)

    console.print()
    print_result(result)

    if output:
        school = repository.export_school(school_id)
        generation_output = create_generation_output(result, TimeGrid(school.time_cells), *name_maps(school))
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w") as f:
            f.write(generation_output.to_json())
        console.print(f"\n[green]Result saved to:[/green] {output}")

    if result.status == GenerationStatus.TARGET_NOT_FOUND:
        raise typer.Exit(code=1)


@app.command()
def clear(
    school_file: Path = typer.Argument(
        ...,
        help="Path to the school JSON document",
    ),
    yes: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Do not ask for confirmation",
    ),
) -> None:
    """Delete every timetable entry of the school."""
    repository = open_repository(school_file)
    school_id = repository.school_id

    if not yes:
        typer.confirm(f"Delete all timetable entries of '{school_id}'?", abort=True)

    deleted = ScopeController(repository).clear_all(school_id)
    console.print(f"[green]Deleted {deleted} timetable entries.[/green]")


@app.command()
def validate(
    school_file: Path = typer.Argument(
        ...,
        help="Path to the school JSON document to validate",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show detailed validation results",
    ),
) -> None:
    """
    Validate a school document.

    Checks for:
    - Valid JSON structure
    - Schema compliance
    - A well-formed time grid
    - Reference integrity (teacher, class, subject and module IDs)
    - Coverage (idle teachers, classes without lessons, overloads)

    Example:
        python -m timetabler validate school.json
    """
    console.print(f"\n[bold]Validating:[/bold] {school_file}\n")

    if not school_file.exists():
        console.print(f"[red]Error:[/red] File not found: {school_file}")
        raise typer.Exit(code=1)

    # Step 1: JSON parsing
    console.print("[cyan]1. Checking JSON syntax...[/cyan]")
    try:
        with open(school_file) as f:
            raw_data = json.load(f)
        console.print("   [green]JSON syntax is valid[/green]")
    except json.JSONDecodeError as e:
        console.print(f"   [red]Invalid JSON:[/red] {e}")
        raise typer.Exit(code=1)

    # Step 2: Schema validation
    console.print("[cyan]2. Validating against schema...[/cyan]")
    try:
        school = parse_school_data(raw_data)
        console.print("   [green]Schema validation passed[/green]")
    except DataValidationError as e:
        console.print("   [red]Schema validation failed:[/red]")
        for line in str(e).split("\n"):
            console.print(f"   {line}")
        raise typer.Exit(code=1)

    # Step 3: Grid
    console.print("[cyan]3. Checking time grid...[/cyan]")
    grid = load_grid(school)
    console.print(f"   [green]{len(grid.teaching_cells)} teaching cells over {len(grid.days)} days[/green]")

    # Step 4: References and coverage
    console.print("[cyan]4. Checking references and coverage...[/cyan]")
    units = RequirementBuilder(InMemoryRepository([school])).build(school.school_id).units
    warnings = check_references(school) + [
        w.message for w in coverage_warnings(units, school.teachers, school.classes, len(grid.teaching_cells))
    ]

    if warnings:
        console.print("   [yellow]Warnings found:[/yellow]")
        for w in warnings:
            console.print(f"   - {w}")
    else:
        console.print("   [green]No reference or coverage issues[/green]")

    # Summary
    stats = lesson_statistics(units)
    console.print("\n[bold]Summary:[/bold]")
    table = Table(show_header=False, box=None)
    table.add_column("Entity", style="cyan")
    table.add_column("Count", style="white")

    for key, value in school.summary().items():
        if key in ("school_id", "name"):
            continue
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    table.add_row("Lesson units", str(stats.total))

    console.print(table)

    if verbose:
        console.print("\n[bold]Detailed breakdown:[/bold]")
        for track, count in stats.by_track.items():
            console.print(f"  {track.capitalize()} lesson units: {count}")
        console.print(f"  Average units per teacher: {stats.average_per_teacher}")
        console.print(f"  Most units for one teacher: {stats.max_per_teacher}")

    console.print("\n[green]Validation complete.[/green]\n")


@app.command()
def view(
    school_file: Path = typer.Argument(
        ...,
        help="Path to the school JSON document",
    ),
    teacher: Optional[str] = typer.Option(
        None,
        "--teacher", "-T",
        help="Show schedule for specific teacher ID",
    ),
    class_id: Optional[str] = typer.Option(
        None,
        "--class", "-C",
        help="Show schedule for specific class ID",
    ),
) -> None:
    """
    Display the stored timetable as a weekly grid.

    Examples:
        python -m timetabler view school.json --teacher T01
        python -m timetabler view school.json --class S2A
        python -m timetabler view school.json
    """
    repository = open_repository(school_file)
    school = repository.export_school(repository.school_id)
    grid = load_grid(school)
    teacher_names, class_names, subject_names = name_maps(school)

    if teacher:
        if teacher not in teacher_names:
            console.print(f"[red]Error:[/red] Teacher '{teacher}' not found")
            raise typer.Exit(code=1)
        entries = [e for e in school.entries if e.teacher_id == teacher]
        title = f"Teacher Schedule: {teacher_names[teacher]} ({teacher})"
        label = lambda e: f"{subject_names.get(e.subject_or_module_id, e.subject_or_module_id)}\n{e.class_id}"
    elif class_id:
        if class_id not in class_names:
            console.print(f"[red]Error:[/red] Class '{class_id}' not found")
            raise typer.Exit(code=1)
        entries = [e for e in school.entries if e.class_id == class_id]
        title = f"Class Schedule: {class_names[class_id]} ({class_id})"
        label = lambda e: f"{subject_names.get(e.subject_or_module_id, e.subject_or_module_id)}\n{e.teacher_id}"
    else:
        entries = list(school.entries)
        title = "Weekly Overview (lessons per cell)"
        label = None

    _print_week_grid(grid, entries, title, label)


def _print_week_grid(grid: TimeGrid, entries, title: str, label) -> None:
    """Print entries as a period-by-day table."""
    if not grid.days:
        console.print("[yellow]The school has no time grid[/yellow]")
        return

    by_cell: dict[str, list] = {}
    for entry in entries:
        by_cell.setdefault(entry.time_cell_id, []).append(entry)

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Period", style="dim")
    for day in grid.days:
        table.add_column(day_name(day)[:3], justify="center")

    positions = sorted({c.period for c in grid})
    for position in positions:
        cells = {day: next((c for c in grid.cells_on(day) if c.period == position), None) for day in grid.days}
        sample = next(c for c in cells.values() if c is not None)
        heading = sample.name if sample.is_break and sample.name else sample.period_tag
        if sample.start_minutes is not None:
            heading = f"{heading} {minutes_to_time(sample.start_minutes)}"

        row = [heading]
        for day in grid.days:
            cell = cells[day]
            if cell is None or cell.is_break:
                row.append("[dim]-[/dim]")
                continue
            held = by_cell.get(cell.id, [])
            if not held:
                row.append("")
            elif label is None:
                row.append(str(len(held)))
            else:
                row.append("\n".join(label(e) for e in held))
        table.add_row(*row)

    console.print(table)
    console.print(f"[dim]{len(entries)} entries[/dim]")


@app.command()
def audit(
    school_file: Path = typer.Argument(
        ...,
        help="Path to the school JSON document",
    ),
    format: str = typer.Option(
        "table",
        "--format", "-f",
        help="Output format: table or json",
    ),
    max_consecutive: Optional[int] = typer.Option(
        None,
        "--max-consecutive",
        help="Consecutive-period limit to check against",
        min=1,
        max=6,
    ),
) -> None:
    """
    Check stored entries against the scheduling rules.

    Exits with code 1 when any violation is found.

    Examples:
        python -m timetabler audit school.json
        python -m timetabler audit school.json --format json
    """
    repository = open_repository(school_file)
    school = repository.export_school(repository.school_id)
    grid = load_grid(school)
    limit = max_consecutive or settings.max_consecutive_periods

    report = audit_timetable(school.entries, grid, school.teachers, limit)
    balance = daily_balance(school.entries, grid)

    if format == "json":
        data = {"audit": report.to_dict(), "balance": balance.to_dict()}
        console.print_json(json.dumps(data, indent=2))
    else:
        console.print(Panel("[bold]Timetable Audit[/bold]"))

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Check")
        table.add_column("Value")
        table.add_column("Status")

        table.add_row("Entries Checked", str(report.entries_checked), "[green]OK[/green]")
        for kind, count in report.counts_by_kind().items():
            table.add_row(kind, str(count), "[red]FAIL[/red]")
        balance_color = "green" if balance.score >= 80 else "yellow" if balance.score >= 60 else "red"
        table.add_row(
            "Daily Balance",
            f"avg std dev {balance.average_std_dev:.2f}",
            f"[{balance_color}]{balance.score}/100[/{balance_color}]",
        )
        console.print(table)

        for violation in report.violations:
            console.print(f"  [red]*[/red] {violation.message}")

        if report.valid:
            console.print("\n[green]No violations found.[/green]")

    if not report.valid:
        raise typer.Exit(code=1)


@app.command()
def sample(
    output: Path = typer.Argument(
        ...,
        help="Path to write the generated school JSON",
    ),
    small: bool = typer.Option(
        False,
        "--small",
        help="Generate the small test school",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Random seed for reproducible output",
    ),
    teachers: int = typer.Option(
        10,
        "--teachers",
        help="Number of academic teachers",
        min=1,
    ),
    trainers: int = typer.Option(
        4,
        "--trainers",
        help="Number of technical trainers",
        min=0,
    ),
) -> None:
    """
    Generate a sample school document.

    Examples:
        python -m timetabler sample school.json --seed 42
        python -m timetabler sample small.json --small
    """
    if small:
        school = generate_small_school(seed=seed)
    else:
        school = generate_sample_school(GeneratorConfig(num_teachers=teachers, num_trainers=trainers, seed=seed))

    save_generated_school(school, output)
    stats = get_generation_stats(school)

    table = Table(title="Generated School", show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    for key, value in stats.items():
        if isinstance(value, list):
            value = ", ".join(value) or "-"
        table.add_row(key.replace("_", " ").capitalize(), str(value))

    console.print(table)
    console.print(f"\n[green]School saved to:[/green] {output}")


# =============================================================================
# Main Entry Point
# =============================================================================

def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
