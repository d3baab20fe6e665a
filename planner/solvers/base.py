"""
Shared solver types.

Every strategy takes tasks, their domains and a room count and returns a
SolverResult whose assignment respects room and person exclusivity.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from ..data.models import Algorithm, EngineSettings
from ..grid import Slot
from ..tasks import Task, TaskId


# =============================================================================
# Result Types
# =============================================================================

@dataclass(frozen=True)
class Placement:
    """Where and when a task takes place. Rooms are numbered from 1."""
    slot: Slot
    room: int

    def __str__(self) -> str:
        return f"{self.slot.key} room {self.room}"


Assignment = dict[TaskId, Placement]
Domains = dict[TaskId, list[Slot]]


class ConflictType(str, Enum):
    """Kind of double booking."""
    ROOM = "room_conflict"
    PERSON = "person_conflict"


@dataclass(frozen=True)
class Conflict:
    """
    Two tasks overlapping in one room, or one person booked twice.

    ``slot`` and ``room`` are the placement of ``task_id``; ``person`` is set
    for person conflicts.
    """
    type: ConflictType
    task_id: TaskId
    conflicts_with: TaskId
    slot: Slot
    room: int
    person: Optional[str] = None

    @property
    def placement(self) -> Placement:
        return Placement(self.slot, self.room)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "taskId": str(self.task_id),
            "conflictsWith": str(self.conflicts_with),
            "slot": self.slot.key,
        }
        if self.type == ConflictType.PERSON:
            data["person"] = self.person
        else:
            data["room"] = self.room
        return data


@dataclass
class SolverStats:
    """Counters reported by a solver run."""
    assignments: int = 0
    backtracks: int = 0
    constraint_checks: int = 0
    iterations: int = 0
    final_conflicts: Optional[int] = None
    final_cost: Optional[float] = None
    final_temperature: Optional[float] = None
    timed_out: bool = False
    backtrack_limit_reached: bool = False
    status: Optional[str] = None
    best_history: list[float] = field(default_factory=list, repr=False)


@dataclass
class SolverResult:
    """Outcome of one solver run."""
    assignment: Assignment
    unscheduled: list[TaskId]
    stats: SolverStats
    conflicts: list[Conflict] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.unscheduled


# =============================================================================
# Time Budget
# =============================================================================

class TimeBudget:
    """Wall-clock allowance measured on a monotonic clock."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.seconds = seconds
        self.clock = clock
        self.started = clock()

    @property
    def elapsed(self) -> float:
        return self.clock() - self.started

    @property
    def remaining(self) -> float:
        return max(self.seconds - self.elapsed, 0.0)

    def expired(self) -> bool:
        return self.elapsed >= self.seconds


# =============================================================================
# Solver Base
# =============================================================================

def mrv_order(tasks: list[Task], domains: Domains) -> list[Task]:
    """Smallest domain first, then higher priority, then task order."""
    return sorted(tasks, key=lambda t: (len(domains.get(t.id, ())), -t.priority, t.rank))


class Solver(ABC):
    """
    Base class for scheduling strategies.

    Args:
        settings: Limits for the run
        seed: Seed for randomized strategies
        clock: Monotonic clock used for the time budget
    """

    algorithm: Algorithm

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        seed: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or EngineSettings()
        self.seed = seed
        self.clock = clock

    @abstractmethod
    def solve(self, tasks: list[Task], domains: Domains, room_count: int) -> SolverResult:
        """Place as many tasks as possible into ``room_count`` rooms."""

    def start_budget(self) -> TimeBudget:
        return TimeBudget(self.settings.time_budget, self.clock)

    @staticmethod
    def build_result(
        tasks: list[Task],
        assignment: Assignment,
        stats: SolverStats,
        conflicts: Optional[list[Conflict]] = None,
    ) -> SolverResult:
        """Result with a fresh assignment and unscheduled tasks in task order."""
        ordered = sorted(tasks, key=lambda t: t.rank)
        final = {t.id: assignment[t.id] for t in ordered if t.id in assignment}
        return SolverResult(
            assignment=final,
            unscheduled=[t.id for t in ordered if t.id not in assignment],
            stats=stats,
            conflicts=list(conflicts or []),
        )
