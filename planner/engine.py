"""
Planning engine: turns a ScheduleInput into a schedule.

The pipeline is slot grid -> tasks -> domains -> solver -> conflict
resolution. Grid and domain failures are returned as SolveFailure values;
anything the solver cannot place is reported as unscheduled.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from .data.models import Algorithm, EngineSettings, PlanningWindow, ScheduleInput
from .domains import DomainCalculator, TaskDiagnostic
from .errors import DomainGenerationTimeoutError, NoWorkableDaysError
from .grid import IsoWeek, Slot, generate_slots, iso_weeks, period_week_map
from .horizon import extend_window
from .resolver import ConflictResolver, Resolution
from .solvers import create_solver
from .solvers.base import Assignment, Conflict, Domains, SolverStats
from .tasks import Task, TaskId, generate_tasks

logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================

@dataclass
class PreparedProblem:
    """Tasks and domains ready for a solver."""
    slots: list[Slot]
    period_weeks: dict[IsoWeek, int]
    tasks: list[Task]
    domains: Domains
    diagnostics: list[TaskDiagnostic]


@dataclass
class ScheduleResult:
    """Everything one solve produced."""
    assignment: Assignment
    unscheduled: list[TaskId]
    diagnostics: list[TaskDiagnostic]
    stats: SolverStats
    conflicts: list[Conflict]
    resolutions: list[Resolution]
    tasks: list[Task]
    room_count: int
    algorithm: Algorithm
    window: PlanningWindow
    slot_count: int
    solve_time_ms: int = 0
    weeks: Optional[list[int]] = None
    extensions: int = 0
    period_weeks: dict[IsoWeek, int] = field(default_factory=dict, repr=False)

    @property
    def scheduled_count(self) -> int:
        return len(self.assignment)

    @property
    def is_complete(self) -> bool:
        return not self.unscheduled

    @property
    def task_map(self) -> dict[TaskId, Task]:
        return {t.id: t for t in self.tasks}

    @property
    def invalid_tasks(self) -> list[TaskId]:
        return [d.task_id for d in self.diagnostics if d.status == "invalid"]


@dataclass(frozen=True)
class SolveFailure:
    """Solve aborted before any solver ran."""
    error: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message}


SolveOutcome = Union[ScheduleResult, SolveFailure]


# =============================================================================
# Pipeline
# =============================================================================

def _task_in_weeks(task: Task, period_weeks: dict[IsoWeek, int], selected: set[int]) -> bool:
    if task.week is not None:
        return period_weeks.get(task.week) in selected
    return not task.enabled_weeks or bool(selected.intersection(task.enabled_weeks))


def prepare(
    schedule_input: ScheduleInput,
    weeks: Optional[list[int]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> PreparedProblem:
    """
    Build the slot grid, tasks and domains for an input.

    Args:
        schedule_input: Validated input
        weeks: Period weeks to plan; None plans the whole window
        clock: Monotonic clock for the domain time budget

    Raises:
        NoWorkableDaysError: If no working slot falls in the (selected) window
        DomainGenerationTimeoutError: If domain calculation runs out of time
    """
    settings = schedule_input.settings
    window = schedule_input.planning_window

    all_slots = generate_slots(
        window.start_date, window.end_date,
        settings.day_start_minutes, settings.day_end_minutes,
    )
    if not all_slots:
        raise NoWorkableDaysError(f"No workable days between {window.start_date} and {window.end_date}")

    period_weeks = period_week_map(iso_weeks(all_slots))
    slots = all_slots
    tasks = generate_tasks(
        schedule_input.groups,
        sorted(period_weeks),
        schedule_input.effective_priority_order,
        schedule_input.weekly_enabled_weeks,
    )

    if weeks:
        selected = set(weeks)
        slots = [s for s in all_slots if period_weeks[s.iso_week] in selected]
        if not slots:
            raise NoWorkableDaysError(f"No workable days in period weeks {sorted(selected)}")
        tasks = [t for t in tasks if _task_in_weeks(t, period_weeks, selected)]

    logger.info("Planning %d tasks over %d slots (%d weeks)", len(tasks), len(slots), len(period_weeks))

    calculator = DomainCalculator(
        slots,
        schedule_input.group_constraints,
        schedule_input.individual_constraints,
        period_weeks=period_weeks,
        time_budget=settings.domain_time_budget,
        clock=clock,
    )
    domain_result = calculator.calculate(tasks)
    return PreparedProblem(
        slots=slots,
        period_weeks=period_weeks,
        tasks=tasks,
        domains=domain_result.domains,
        diagnostics=domain_result.diagnostics,
    )


def solve(
    schedule_input: ScheduleInput,
    *,
    settings: Optional[EngineSettings] = None,
    weeks: Optional[list[int]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> SolveOutcome:
    """
    Solve a scheduling input.

    With ``room_count="auto"`` one room is tried first and two rooms only if
    something stayed unscheduled.

    Args:
        schedule_input: Validated input
        settings: Overrides the input's engine settings
        weeks: Period weeks to plan (partial regeneration); merging the
            result into an earlier one is left to the caller
        clock: Monotonic clock for time budgets

    Returns:
        ScheduleResult, or SolveFailure when no solver could be run
    """
    if settings is not None:
        schedule_input = schedule_input.model_copy(update={"settings": settings})

    started = time.perf_counter()
    try:
        problem = prepare(schedule_input, weeks=weeks, clock=clock)
    except (NoWorkableDaysError, DomainGenerationTimeoutError) as e:
        logger.warning("Solve aborted: %s", e.message)
        return SolveFailure(error=e.code, message=e.message)

    settings = schedule_input.settings
    algorithm = schedule_input.algorithm
    room_options = [1, 2] if schedule_input.room_count == "auto" else [schedule_input.room_count]

    for room_count in room_options:
        logger.info("Running %s with %d room(s)", algorithm.value, room_count)
        solver = create_solver(algorithm, settings, schedule_input.seed, clock)
        solver_result = solver.solve(problem.tasks, problem.domains, room_count)
        if solver_result.is_complete:
            break

    resolutions: list[Resolution] = []
    if solver_result.conflicts:
        resolutions = ConflictResolver(settings.shift_window).resolve(
            solver_result.conflicts,
            solver_result.assignment,
            problem.tasks,
            problem.domains,
            room_count,
        )

    if solver_result.stats.timed_out:
        logger.warning("%s stopped at its time budget", algorithm.value)
    logger.info(
        "Scheduled %d of %d tasks in %d room(s); %d unscheduled",
        len(solver_result.assignment), len(problem.tasks), room_count, len(solver_result.unscheduled),
    )

    return ScheduleResult(
        assignment=solver_result.assignment,
        unscheduled=solver_result.unscheduled,
        diagnostics=problem.diagnostics,
        stats=solver_result.stats,
        conflicts=solver_result.conflicts,
        resolutions=resolutions,
        tasks=problem.tasks,
        room_count=room_count,
        algorithm=algorithm,
        window=schedule_input.planning_window,
        slot_count=len(problem.slots),
        solve_time_ms=int((time.perf_counter() - started) * 1000),
        weeks=sorted(set(weeks)) if weeks else None,
        period_weeks=problem.period_weeks,
    )


def solve_with_extension(
    schedule_input: ScheduleInput,
    *,
    settings: Optional[EngineSettings] = None,
    clock: Callable[[], float] = time.monotonic,
) -> SolveOutcome:
    """
    Solve, growing the window one week at a time while tasks stay unscheduled.

    At most ``settings.max_extensions`` extra weeks are added. A domain
    timeout ends the retries; a window without working days is extended.
    The window never grows past one year of ISO weeks.
    """
    if settings is not None:
        schedule_input = schedule_input.model_copy(update={"settings": settings})

    current = schedule_input
    outcome = solve(current, clock=clock)
    extensions = 0

    while extensions < schedule_input.settings.max_extensions:
        if isinstance(outcome, ScheduleResult) and outcome.is_complete:
            break
        if isinstance(outcome, SolveFailure) and outcome.error != NoWorkableDaysError.code:
            break
        try:
            window = extend_window(current.planning_window)
        except ValidationError:
            logger.warning("Window %s cannot be extended further", current.planning_window)
            break
        extensions += 1
        current = current.model_copy(update={"planning_window": window})
        logger.info("Extending window to %s (attempt %d)", current.planning_window, extensions)
        outcome = solve(current, clock=clock)

    if isinstance(outcome, ScheduleResult):
        outcome.extensions = extensions
    return outcome
