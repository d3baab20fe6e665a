"""
Command-line interface for the appointment planner.

Usage:
    python -m planner solve input.json -o output.json --algorithm csp_backtrack
    python -m planner validate input.json
    python -m planner diagnostics input.json --invalid-only
    python -m planner view output.json --person teacher_1
    python -m planner metrics output.json
    python -m planner demo demo.json
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import List, Optional, Union

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from .data.generator import (
    GeneratorConfig,
    generate_demo_input,
    generate_sample_input,
    get_generation_stats,
    save_generated_input,
)
from .data.models import (
    SLOT_MINUTES,
    Algorithm,
    ScheduleInput,
    load_input_from_json,
    weekday_name,
)
from .domains import describe_stage
from .engine import SolveFailure, prepare, solve as run_solve, solve_with_extension
from .errors import PlannerError
from .logging_config import configure_logging
from .output.metrics import ScheduleMetricsCalculator, generate_report
from .output.schema import (
    AppointmentOutput,
    ScheduleOutput,
    create_failure_output,
    create_schedule_output,
)

# Create Typer app
app = typer.Typer(
    name="planner",
    help="Recurring appointment planner with pluggable search strategies.",
    add_completion=False,
)

# Rich console for pretty output
console = Console()

MAX_ROOMS = 10


# =============================================================================
# Helper Functions
# =============================================================================

def load_input(input_path: Path) -> ScheduleInput:
    """Load and validate input data."""
    if not input_path.exists():
        console.print(f"[red]Error:[/red] Input file not found: {input_path}")
        raise typer.Exit(code=1)

    try:
        return load_input_from_json(input_path)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Error loading input:[/red] {e}")
        raise typer.Exit(code=1)


def load_output(output_path: Path) -> ScheduleOutput:
    """Load output JSON file."""
    if not output_path.exists():
        console.print(f"[red]Error:[/red] Output file not found: {output_path}")
        raise typer.Exit(code=1)

    try:
        with open(output_path) as f:
            data = json.load(f)
        return ScheduleOutput.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Error loading output:[/red] {e}")
        raise typer.Exit(code=1)


def parse_rooms(value: Optional[str]) -> Optional[Union[int, str]]:
    """'auto' or a room count between 1 and 10."""
    if value is None or value == "auto":
        return value
    try:
        rooms = int(value)
    except ValueError:
        raise typer.BadParameter(f"expected 'auto' or a number, got '{value}'")
    if not 1 <= rooms <= MAX_ROOMS:
        raise typer.BadParameter(f"room count must be between 1 and {MAX_ROOMS}")
    return rooms


def _status_color(status: str) -> str:
    return {"complete": "green", "partial": "yellow"}.get(status, "red")


def print_summary(output: ScheduleOutput) -> None:
    """Print solution summary to console."""
    status = output.status.value
    console.print(Panel(
        Text(status.upper(), style=f"bold {_status_color(status)}"),
        title="Schedule Status",
        subtitle=f"Solved in {output.solve_time_seconds:.2f}s",
    ))

    table = Table(title="Summary", show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    invalid = sum(1 for d in output.diagnostics if d.status == "invalid")
    table.add_row("Algorithm", output.algorithm)
    table.add_row("Window", f"{output.window.start_date} to {output.window.end_date}")
    table.add_row("Rooms", str(output.room_count))
    table.add_row("Tasks", str(output.total_tasks))
    table.add_row("Scheduled", str(output.scheduled_count))
    table.add_row("Unscheduled", str(len(output.unscheduled)))
    table.add_row("Invalid Tasks", str(invalid))
    table.add_row("Conflicts", str(len(output.conflicts)))
    if output.resolutions:
        table.add_row("Proposed Moves", str(len(output.resolutions)))
    if output.extensions:
        table.add_row("Window Extensions", str(output.extensions))

    console.print(table)


def _appointment_table(appointments: list[AppointmentOutput], title: Optional[str] = None) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Date", style="cyan")
    table.add_column("Day")
    table.add_column("Time")
    table.add_column("Person")
    table.add_column("Room", justify="right")

    for a in sorted(appointments, key=lambda a: (a.slot, a.room)):
        table.add_row(
            a.date,
            weekday_name(a.weekday)[:3],
            f"{a.start_time}-{a.end_time}",
            a.person_id,
            str(a.room),
        )
    return table


# =============================================================================
# Commands
# =============================================================================

@app.command()
def solve(
    input_file: Path = typer.Argument(
        ...,
        help="Path to input JSON file with planning data",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Path to write output JSON file",
    ),
    algorithm: Optional[Algorithm] = typer.Option(
        None,
        "--algorithm", "-a",
        help="Search strategy (defaults to the input's)",
    ),
    rooms: Optional[str] = typer.Option(
        None,
        "--rooms", "-r",
        help="Room count 1-10 or 'auto'",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout", "-t",
        help="Solver time budget in seconds",
        min=0.1,
        max=3600,
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Random seed for the randomized strategies",
    ),
    weeks: Optional[List[int]] = typer.Option(
        None,
        "--weeks", "-w",
        help="Only plan these period weeks (repeatable)",
    ),
    extend: bool = typer.Option(
        False,
        "--extend",
        help="Extend the window week by week while tasks stay unscheduled",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
) -> None:
    """
    Solve a planning problem.

    Loads the input data, runs the chosen strategy and outputs the schedule.

    Example:
        python -m planner solve input.json -o output.json -a min_conflict --seed 7
    """
    configure_logging(verbose)
    console.print(f"\n[bold]Loading input from:[/bold] {input_file}")

    input_data = load_input(input_file)
    room_count = parse_rooms(rooms)

    updates = {}
    if algorithm is not None:
        updates["algorithm"] = algorithm
    if room_count is not None:
        updates["room_count"] = room_count
    if seed is not None:
        updates["seed"] = seed
    if timeout is not None:
        updates["settings"] = input_data.settings.model_copy(update={"time_budget": timeout})
    if updates:
        input_data = input_data.model_copy(update=updates)

    summary = input_data.summary()
    console.print(f"[green]Loaded:[/green] {summary['groups']} groups, "
                  f"{summary['persons']} persons, window {summary['window']}")

    if extend and weeks:
        console.print("[red]Error:[/red] --extend cannot be combined with --weeks")
        raise typer.Exit(code=1)

    console.print(f"\n[bold]Solving with {input_data.algorithm.value} "
                  f"(budget: {input_data.settings.time_budget:g}s)...[/bold]")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Searching for a schedule...", total=None)
        if extend:
            outcome = solve_with_extension(input_data)
        else:
            outcome = run_solve(input_data, weeks=weeks or None)

    if isinstance(outcome, SolveFailure):
        console.print(f"\n[red]Solve failed ({outcome.error}):[/red] {outcome.message}")
        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            with open(output, "w") as f:
                f.write(create_failure_output(outcome).to_json())
        raise typer.Exit(code=1)

    schedule_output = create_schedule_output(outcome)

    console.print()
    print_summary(schedule_output)

    if schedule_output.unscheduled and verbose:
        console.print("\n[yellow]Unscheduled tasks:[/yellow]")
        for task_id in schedule_output.unscheduled:
            console.print(f"  - {task_id}")

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w") as f:
            f.write(schedule_output.to_json())
        console.print(f"\n[green]Schedule saved to:[/green] {output}")

    console.print()


@app.command()
def validate(
    input_file: Path = typer.Argument(
        ...,
        help="Path to input JSON file to validate",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show detailed validation results",
    ),
) -> None:
    """
    Validate input data against the schema.

    Checks for:
    - Valid JSON structure
    - Schema compliance
    - Reference integrity (group IDs in constraints)
    - Capacity of the planning window

    Example:
        python -m planner validate input.json
    """
    console.print(f"\n[bold]Validating:[/bold] {input_file}\n")

    if not input_file.exists():
        console.print(f"[red]Error:[/red] File not found: {input_file}")
        raise typer.Exit(code=1)

    # Step 1: JSON parsing
    console.print("[cyan]1. Checking JSON syntax...[/cyan]")
    try:
        with open(input_file) as f:
            json.load(f)
        console.print("   [green]JSON syntax is valid[/green]")
    except json.JSONDecodeError as e:
        console.print(f"   [red]Invalid JSON:[/red] {e}")
        raise typer.Exit(code=1)

    # Step 2: Schema validation
    console.print("[cyan]2. Validating against schema...[/cyan]")
    try:
        input_data = load_input_from_json(input_file)
        console.print("   [green]Schema validation passed[/green]")
    except ValidationError as e:
        console.print("   [red]Schema validation failed:[/red]")
        for line in str(e).split("\n"):
            console.print(f"   {line}")
        raise typer.Exit(code=1)

    # Step 3: Logical consistency
    console.print("[cyan]3. Checking logical consistency...[/cyan]")
    warnings = []

    known_persons = {p for g in input_data.groups for p in g.person_ids()}
    for person_id in input_data.individual_constraints:
        if person_id not in known_persons:
            warnings.append(f"Availability given for unknown person '{person_id}'")

    for constraint in input_data.group_constraints:
        if constraint.type.value == "only_day" and constraint.value in (0, 6):
            warnings.append(
                f"Group '{input_data.get_group(constraint.group).display_name}' is limited to "
                f"{weekday_name(constraint.value)}, which has no working hours"
            )

    tasks = 0
    slots = 0
    invalid = 0
    demand_minutes = 0
    try:
        problem = prepare(input_data)
        tasks = len(problem.tasks)
        slots = len(problem.slots)
        invalid = sum(1 for d in problem.diagnostics if d.status == "invalid")
        demand_minutes = sum(t.duration for t in problem.tasks)
    except PlannerError as e:
        warnings.append(e.message)

    # auto mode tries at most two rooms
    room_limit = 2 if input_data.room_count == "auto" else input_data.room_count
    capacity_minutes = slots * SLOT_MINUTES * room_limit
    if demand_minutes > capacity_minutes:
        warnings.append(
            f"Requested time ({demand_minutes} min) exceeds room capacity ({capacity_minutes} min)"
        )
    if invalid:
        warnings.append(f"{invalid} tasks have no valid slot")

    if warnings:
        console.print("   [yellow]Warnings found:[/yellow]")
        for w in warnings:
            console.print(f"   - {w}")
    else:
        console.print("   [green]No logical consistency issues[/green]")

    # Summary
    console.print("\n[bold]Summary:[/bold]")
    table = Table(show_header=False, box=None)
    table.add_column("Entity", style="cyan")
    table.add_column("Count", style="white")

    summary = input_data.summary()
    table.add_row("Groups", str(summary["groups"]))
    table.add_row("Persons", str(summary["persons"]))
    table.add_row("Restricted persons", str(summary["restricted_persons"]))
    table.add_row("Group constraints", str(summary["group_constraints"]))
    table.add_row("Window", summary["window"])
    table.add_row("Tasks", str(tasks))
    table.add_row("Slots", str(slots))

    console.print(table)

    if verbose:
        console.print("\n[bold]Groups:[/bold]")
        for group in input_data.groups:
            console.print(f"  {group}")
        console.print(f"  Priority order: {', '.join(input_data.effective_priority_order)}")

    console.print("\n[green]Validation complete.[/green]\n")


@app.command()
def diagnostics(
    input_file: Path = typer.Argument(
        ...,
        help="Path to input JSON file",
    ),
    invalid_only: bool = typer.Option(
        False,
        "--invalid-only",
        help="Only show tasks without any valid slot",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show every filtering stage",
    ),
) -> None:
    """
    Show how each task's candidate slots were narrowed down.

    Example:
        python -m planner diagnostics input.json --invalid-only
    """
    configure_logging(False)
    input_data = load_input(input_file)

    try:
        problem = prepare(input_data)
    except PlannerError as e:
        console.print(f"[red]Error ({e.code}):[/red] {e.message}")
        raise typer.Exit(code=1)

    items = problem.diagnostics
    if invalid_only:
        items = [d for d in items if d.status == "invalid"]

    if not items:
        console.print("[green]No tasks to show[/green]")
        return

    table = Table(title="Domain Diagnostics", show_header=True, header_style="bold cyan")
    table.add_column("Task")
    table.add_column("Initial", justify="right")
    table.add_column("Final", justify="right")
    table.add_column("Status")
    table.add_column("Most Restrictive")

    for diagnostic in items:
        color = "red" if diagnostic.status == "invalid" else "green"
        worst = diagnostic.most_restrictive
        table.add_row(
            str(diagnostic.task_id),
            str(diagnostic.initial_slots),
            str(diagnostic.final_slots),
            f"[{color}]{diagnostic.status}[/{color}]",
            worst.description if worst else "-",
        )

    console.print(table)

    if verbose or invalid_only:
        for diagnostic in items:
            console.print(f"\n[bold]{diagnostic.task_id}[/bold]")
            for stage in diagnostic.stages:
                console.print(f"  {describe_stage(stage)}")


@app.command()
def view(
    output_file: Path = typer.Argument(
        ...,
        help="Path to output JSON file",
    ),
    person: Optional[str] = typer.Option(
        None,
        "--person", "-P",
        help="Show appointments for a person ID",
    ),
    day: Optional[str] = typer.Option(
        None,
        "--day", "-D",
        help="Show appointments on a date (YYYY-MM-DD)",
    ),
    room: Optional[int] = typer.Option(
        None,
        "--room", "-R",
        help="Show appointments in a room",
    ),
) -> None:
    """
    Display specific views of a schedule.

    Examples:
        python -m planner view output.json --person teacher_1
        python -m planner view output.json --day 2025-10-29
        python -m planner view output.json --room 2
    """
    output = load_output(output_file)

    if person:
        _show_person_view(output, person)
    elif day:
        _show_day_view(output, day)
    elif room is not None:
        _show_room_view(output, room)
    else:
        _show_overview(output)


def _show_person_view(output: ScheduleOutput, person_id: str) -> None:
    """Show appointments for a specific person."""
    appointments = output.views.by_person.get(person_id)
    if not appointments:
        console.print(f"[red]Error:[/red] No appointments for person '{person_id}'")
        console.print(f"Scheduled persons: {', '.join(sorted(output.views.by_person.keys()))}")
        raise typer.Exit(code=1)

    console.print(Panel(f"[bold]{person_id}[/bold]", title="Person Schedule"))
    console.print(_appointment_table(appointments))


def _show_day_view(output: ScheduleOutput, day: str) -> None:
    """Show appointments on a specific date."""
    try:
        date.fromisoformat(day)
    except ValueError:
        console.print(f"[red]Error:[/red] Invalid date '{day}', expected YYYY-MM-DD")
        raise typer.Exit(code=1)

    day_schedule = output.views.by_day.get(day)
    if not day_schedule:
        console.print(f"[yellow]No appointments scheduled on {day}[/yellow]")
        return

    console.print(Panel(f"[bold]{day_schedule.day_name} {day}[/bold]", title="Daily Schedule"))
    console.print(_appointment_table(day_schedule.appointments))


def _show_room_view(output: ScheduleOutput, room: int) -> None:
    """Show appointments in a specific room."""
    appointments = output.views.by_room.get(str(room))
    if not appointments:
        console.print(f"[red]Error:[/red] No appointments in room {room}")
        console.print(f"Rooms in use: {', '.join(output.views.by_room.keys())}")
        raise typer.Exit(code=1)

    console.print(Panel(f"[bold]Room {room}[/bold]", title="Room Schedule"))
    console.print(_appointment_table(appointments))


def _show_overview(output: ScheduleOutput) -> None:
    """Show overview of the schedule."""
    print_summary(output)

    if not output.views.by_day:
        console.print("[yellow]No appointments scheduled[/yellow]")
        return

    table = Table(title="Appointments per Day", show_header=True, header_style="bold cyan")
    table.add_column("Date", style="dim")
    table.add_column("Day")
    for room in range(1, output.room_count + 1):
        table.add_column(f"Room {room}", justify="right")

    for day, schedule in output.views.by_day.items():
        counts = [sum(1 for a in schedule.appointments if a.room == room)
                  for room in range(1, output.room_count + 1)]
        table.add_row(day, schedule.day_name[:3], *(str(c) if c else "-" for c in counts))

    console.print(table)


@app.command()
def metrics(
    output_file: Path = typer.Argument(
        ...,
        help="Path to output JSON file",
    ),
    format: str = typer.Option(
        "table",
        "--format", "-f",
        help="Output format: table, report, or json",
    ),
) -> None:
    """
    Calculate and display quality metrics for a schedule.

    Analyzes:
    - Completion (scheduled share, per group)
    - Room utilization
    - Preferred weekday hit rate
    - Most restrictive filtering stage per group

    Examples:
        python -m planner metrics output.json
        python -m planner metrics output.json --format json
    """
    output = load_output(output_file)

    if format == "json":
        calculator = ScheduleMetricsCalculator()
        console.print_json(json.dumps(calculator.calculate(output).to_dict(), indent=2))
    elif format == "report":
        console.print(generate_report(output))
    elif format == "table":
        _show_metrics_table(output)
    else:
        console.print(f"[red]Error:[/red] Unknown format '{format}'")
        raise typer.Exit(code=1)


def _score_color(value: float, good: float, fair: float) -> str:
    return "green" if value >= good else "yellow" if value >= fair else "red"


def _show_metrics_table(output: ScheduleOutput) -> None:
    """Show metrics as a table."""
    console.print(Panel("[bold]Schedule Quality Metrics[/bold]"))

    calculator = ScheduleMetricsCalculator()
    report = calculator.calculate(output)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_column("Details")

    completion_color = _score_color(report.completion_rate, 95, 75)
    table.add_row(
        "Completion",
        f"[{completion_color}]{report.completion_rate:.1f}%[/{completion_color}]",
        f"{report.scheduled_tasks}/{report.total_tasks} scheduled, {report.invalid_tasks} invalid",
    )
    pref = report.preference
    pref_color = _score_color(pref.percentage, 80, 50)
    table.add_row(
        "Preferred Days",
        f"[{pref_color}]{pref.percentage:.1f}%[/{pref_color}]",
        f"{pref.on_preferred_day}/{pref.with_preference} honoured",
    )
    table.add_row(
        "Room Utilization",
        f"{report.average_utilization:.1f}%",
        ", ".join(f"R{r.room}: {r.percentage:.0f}%" for r in report.room_utilization),
    )
    table.add_row("Conflicts", str(report.conflicts), "")

    overall_color = _score_color(report.overall_score, 80, 60)
    table.add_row(
        "[bold]Overall Score[/bold]",
        f"[bold {overall_color}]{report.overall_score}/100 ({report.grade})[/bold {overall_color}]",
        "",
    )
    console.print(table)

    groups = Table(title="Group Coverage", show_header=True, header_style="bold cyan")
    groups.add_column("Group")
    groups.add_column("Scheduled", justify="right")
    groups.add_column("Coverage", justify="right")
    groups.add_column("Most Restrictive Stage")
    for coverage in report.group_coverage.values():
        groups.add_row(
            coverage.group_id,
            f"{coverage.scheduled}/{coverage.total}",
            f"{coverage.percentage:.1f}%",
            report.restrictive_stages.get(coverage.group_id, "-"),
        )
    console.print(groups)

    if report.improvement_areas:
        console.print("\n[bold yellow]Areas for Improvement:[/bold yellow]")
        for area in report.improvement_areas:
            console.print(f"  [yellow]*[/yellow] {area}")


@app.command()
def demo(
    output_file: Path = typer.Argument(
        ...,
        help="Where to write the generated input JSON",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Generate random availability with this seed instead of the fixed demo",
    ),
    restricted_share: float = typer.Option(
        0.3,
        "--restricted-share",
        help="Share of persons with limited availability (with --seed)",
        min=0.0,
        max=1.0,
    ),
) -> None:
    """
    Write a sample input file.

    Examples:
        python -m planner demo demo.json
        python -m planner demo random.json --seed 42 --restricted-share 0.5
    """
    if seed is None:
        input_data = generate_demo_input()
    else:
        input_data = generate_sample_input(GeneratorConfig(seed=seed, restricted_share=restricted_share))

    save_generated_input(input_data, output_file)

    stats = get_generation_stats(input_data)
    console.print(f"[green]Sample input written to:[/green] {output_file}")
    console.print(f"  {stats['groups']} groups, {stats['persons']} persons, "
                  f"{stats['restricted_persons']} with limited availability")


# =============================================================================
# Main Entry Point
# =============================================================================

def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
