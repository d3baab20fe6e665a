"""
Output schema for solved schedules.

This module defines the JSON-serializable output format for schedules,
including pre-computed views by person, day and room.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..data.models import minutes_to_time, weekday_name
from ..domains import StageTrace, TaskDiagnostic
from ..engine import ScheduleResult, SolveFailure
from ..resolver import Resolution
from ..solvers.base import Conflict, ConflictType, Placement
from ..tasks import Task


# =============================================================================
# Enums
# =============================================================================

class OutputStatus(str, Enum):
    """Schedule status for output."""
    COMPLETE = "complete"
    PARTIAL = "partial"
    TIMEOUT = "timeout"
    FAILED = "failed"


# =============================================================================
# Tasks and Appointments
# =============================================================================

class TaskOutput(BaseModel):
    """A generated task."""
    id: str
    person_id: str = Field(alias="personId")
    group_id: str = Field(alias="groupId")
    week: Optional[int] = None  # ISO week number, None for monthly tasks
    period_week: Optional[int] = Field(default=None, alias="periodWeek")
    duration: int
    priority: int
    preferred_day: Optional[int] = Field(default=None, alias="preferredDay")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_task(cls, task: Task, period_week: Optional[int] = None) -> TaskOutput:
        return cls(
            id=str(task.id),
            personId=task.person_id,
            groupId=task.group_id,
            week=task.week.week if task.week else None,
            periodWeek=period_week,
            duration=task.duration,
            priority=task.priority,
            preferredDay=task.preferred_day,
        )


class AppointmentOutput(BaseModel):
    """A placed task."""
    task_id: str = Field(alias="taskId")
    person_id: str = Field(alias="personId")
    group_id: str = Field(alias="groupId")
    slot: str  # 'YYYY-MM-DD_HH:MM'
    date: str
    weekday: int
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    duration: int
    room: int

    model_config = {"populate_by_name": True}

    @classmethod
    def from_placement(cls, task: Task, placement: Placement) -> AppointmentOutput:
        slot = placement.slot
        return cls(
            taskId=str(task.id),
            personId=task.person_id,
            groupId=task.group_id,
            slot=slot.key,
            date=slot.day.isoformat(),
            weekday=slot.weekday,
            startTime=slot.time,
            endTime=minutes_to_time(slot.minutes + task.duration),
            duration=task.duration,
            room=placement.room,
        )


# =============================================================================
# Diagnostics, Conflicts and Resolutions
# =============================================================================

class StageOutput(BaseModel):
    """One domain filtering stage."""
    type: str
    label: str
    desc: str
    removed: int
    remaining: int

    @classmethod
    def from_stage(cls, stage: StageTrace) -> StageOutput:
        return cls(
            type=stage.type.value,
            label=stage.label,
            desc=stage.description,
            removed=stage.removed,
            remaining=stage.remaining,
        )


class DiagnosticOutput(BaseModel):
    """How a task's domain was built."""
    task_id: str = Field(alias="taskId")
    initial_slots: int = Field(alias="initialSlots")
    constraints: list[StageOutput]
    final_slots: int = Field(alias="finalSlots")
    status: str

    model_config = {"populate_by_name": True}

    @classmethod
    def from_diagnostic(cls, diagnostic: TaskDiagnostic) -> DiagnosticOutput:
        return cls(
            taskId=str(diagnostic.task_id),
            initialSlots=diagnostic.initial_slots,
            constraints=[StageOutput.from_stage(s) for s in diagnostic.stages],
            finalSlots=diagnostic.final_slots,
            status=diagnostic.status,
        )


class ConflictOutput(BaseModel):
    """A double booking found in a local search result."""
    type: str
    task_id: str = Field(alias="taskId")
    conflicts_with: str = Field(alias="conflictsWith")
    slot: str
    room: Optional[int] = None
    person: Optional[str] = None

    model_config = {"populate_by_name": True}

    @classmethod
    def from_conflict(cls, conflict: Conflict) -> ConflictOutput:
        is_person = conflict.type == ConflictType.PERSON
        return cls(
            type=conflict.type.value,
            taskId=str(conflict.task_id),
            conflictsWith=str(conflict.conflicts_with),
            slot=conflict.slot.key,
            room=None if is_person else conflict.room,
            person=conflict.person if is_person else None,
        )


class PlacementRef(BaseModel):
    """Slot key and room."""
    slot: str
    room: int

    @classmethod
    def from_placement(cls, placement: Placement) -> PlacementRef:
        return cls(slot=placement.slot.key, room=placement.room)


class ResolutionOutput(BaseModel):
    """A proposed move."""
    strategy: str
    task_id: str = Field(alias="taskId")
    original: Optional[PlacementRef] = None
    proposed: PlacementRef
    reason: str

    model_config = {"populate_by_name": True}

    @classmethod
    def from_resolution(cls, resolution: Resolution) -> ResolutionOutput:
        return cls(
            strategy=resolution.strategy.value,
            taskId=str(resolution.task_id),
            original=PlacementRef.from_placement(resolution.original) if resolution.original else None,
            proposed=PlacementRef.from_placement(resolution.proposed),
            reason=resolution.reason,
        )


class StatsOutput(BaseModel):
    """Solver counters."""
    assignments: int = 0
    backtracks: int = 0
    constraint_checks: int = Field(default=0, alias="constraintChecks")
    iterations: int = 0
    final_conflicts: Optional[int] = Field(default=None, alias="finalConflicts")
    final_cost: Optional[float] = Field(default=None, alias="finalCost")
    final_temperature: Optional[float] = Field(default=None, alias="finalTemperature")
    timed_out: bool = Field(default=False, alias="timedOut")
    backtrack_limit_reached: bool = Field(default=False, alias="backtrackLimitReached")
    solver_status: Optional[str] = Field(default=None, alias="solverStatus")

    model_config = {"populate_by_name": True}


# =============================================================================
# Views
# =============================================================================

class DaySchedule(BaseModel):
    """Appointments on one date."""
    date: str
    day_name: str = Field(alias="dayName")
    appointments: list[AppointmentOutput]

    model_config = {"populate_by_name": True}


class ScheduleViews(BaseModel):
    """Pre-computed views of the schedule for convenience."""
    by_person: dict[str, list[AppointmentOutput]] = Field(default_factory=dict, alias="byPerson")
    by_day: dict[str, DaySchedule] = Field(default_factory=dict, alias="byDay")
    by_room: dict[str, list[AppointmentOutput]] = Field(default_factory=dict, alias="byRoom")

    model_config = {"populate_by_name": True}


# =============================================================================
# Complete Output
# =============================================================================

class WindowOutput(BaseModel):
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")

    model_config = {"populate_by_name": True}


class ScheduleOutput(BaseModel):
    """Complete output for a solved schedule."""
    status: OutputStatus
    algorithm: str
    room_count: int = Field(alias="roomCount")
    solve_time_seconds: float = Field(alias="solveTimeSeconds")
    window: WindowOutput
    slot_count: int = Field(alias="slotCount")
    weeks: Optional[list[int]] = None
    extensions: int = 0
    tasks: list[TaskOutput]
    assignment: dict[str, AppointmentOutput]
    unscheduled: list[str]
    diagnostics: list[DiagnosticOutput]
    conflicts: list[ConflictOutput] = Field(default_factory=list)
    resolutions: list[ResolutionOutput] = Field(default_factory=list)
    stats: StatsOutput
    views: ScheduleViews = Field(default_factory=ScheduleViews)

    model_config = {"populate_by_name": True}

    @property
    def scheduled_count(self) -> int:
        return len(self.assignment)

    @property
    def total_tasks(self) -> int:
        return len(self.tasks)

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return self.model_dump_json(by_alias=True, indent=indent)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return self.model_dump(by_alias=True)


class FailureOutput(BaseModel):
    """Output written when a solve could not run."""
    status: OutputStatus = OutputStatus.FAILED
    error: str
    message: str

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# =============================================================================
# Conversion Functions
# =============================================================================

def _status_for(result: ScheduleResult) -> OutputStatus:
    if result.stats.timed_out and not result.is_complete:
        return OutputStatus.TIMEOUT
    return OutputStatus.COMPLETE if result.is_complete else OutputStatus.PARTIAL


def create_schedule_output(result: ScheduleResult) -> ScheduleOutput:
    """
    Create a ScheduleOutput from a ScheduleResult.

    Args:
        result: The engine result

    Returns:
        ScheduleOutput with all views populated
    """
    tasks = result.task_map
    appointments = {
        str(task_id): AppointmentOutput.from_placement(tasks[task_id], placement)
        for task_id, placement in result.assignment.items()
    }
    stats = result.stats

    return ScheduleOutput(
        status=_status_for(result),
        algorithm=result.algorithm.value,
        roomCount=result.room_count,
        solveTimeSeconds=result.solve_time_ms / 1000.0,
        window=WindowOutput(
            startDate=result.window.start_date.isoformat(),
            endDate=result.window.end_date.isoformat(),
        ),
        slotCount=result.slot_count,
        weeks=result.weeks,
        extensions=result.extensions,
        tasks=[
            TaskOutput.from_task(t, result.period_weeks.get(t.week) if t.week else None)
            for t in result.tasks
        ],
        assignment=appointments,
        unscheduled=[str(t) for t in result.unscheduled],
        diagnostics=[DiagnosticOutput.from_diagnostic(d) for d in result.diagnostics],
        conflicts=[ConflictOutput.from_conflict(c) for c in result.conflicts],
        resolutions=[ResolutionOutput.from_resolution(r) for r in result.resolutions],
        stats=StatsOutput(
            assignments=stats.assignments,
            backtracks=stats.backtracks,
            constraintChecks=stats.constraint_checks,
            iterations=stats.iterations,
            finalConflicts=stats.final_conflicts,
            finalCost=stats.final_cost,
            finalTemperature=stats.final_temperature,
            timedOut=stats.timed_out,
            backtrackLimitReached=stats.backtrack_limit_reached,
            solverStatus=stats.status,
        ),
        views=_create_views(list(appointments.values())),
    )


def create_failure_output(failure: SolveFailure) -> FailureOutput:
    return FailureOutput(error=failure.error, message=failure.message)


def _create_views(appointments: list[AppointmentOutput]) -> ScheduleViews:
    """Create pre-computed views from appointments."""
    by_person: dict[str, list[AppointmentOutput]] = {}
    by_day: dict[str, list[AppointmentOutput]] = {}
    by_room: dict[str, list[AppointmentOutput]] = {}

    for appointment in sorted(appointments, key=lambda a: (a.slot, a.room)):
        by_person.setdefault(appointment.person_id, []).append(appointment)
        by_day.setdefault(appointment.date, []).append(appointment)
        by_room.setdefault(str(appointment.room), []).append(appointment)

    return ScheduleViews(
        byPerson=by_person,
        byDay={
            day: DaySchedule(date=day, dayName=weekday_name(items[0].weekday), appointments=items)
            for day, items in sorted(by_day.items())
        },
        byRoom=dict(sorted(by_room.items(), key=lambda kv: int(kv[0]))),
    )


# =============================================================================
# Convenience Functions
# =============================================================================

def result_to_json(result: ScheduleResult, indent: int = 2) -> str:
    """Convert a ScheduleResult directly to JSON string."""
    return create_schedule_output(result).to_json(indent=indent)


def result_to_dict(result: ScheduleResult) -> dict[str, Any]:
    """Convert a ScheduleResult directly to dictionary."""
    return create_schedule_output(result).to_dict()
