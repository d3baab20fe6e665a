"""
Domain calculation.

The domain of a task is the ordered list of slots where it may start. It is
built by filtering the task's slots through the group rules, the person's
availability and finally the appointment length, recording how many slots
each stage removed.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional

from .data.models import (
    SLOT_MINUTES,
    AvailabilityRange,
    ConstraintType,
    GroupConstraint,
)
from .errors import DomainGenerationTimeoutError
from .grid import IsoWeek, Slot, iso_weeks, period_week_map
from .tasks import Task, TaskId

logger = logging.getLogger(__name__)

_STEP = timedelta(minutes=SLOT_MINUTES)


class StageType(str, Enum):
    """Filtering stage of the domain pipeline."""
    GROUP_RULE = "group_rule"
    INDIVIDUAL_AVAILABILITY = "individual_availability"
    DURATION_CHECK = "duration_check"


STAGE_LABELS = {
    StageType.GROUP_RULE: "Group Rule (Hard)",
    StageType.INDIVIDUAL_AVAILABILITY: "Individual Availability (Hard)",
    StageType.DURATION_CHECK: "Duration Check (Hard)",
}


@dataclass
class StageTrace:
    """Effect of one filtering stage on a task's slots."""
    type: StageType
    description: str
    removed: int
    remaining: int

    @property
    def label(self) -> str:
        return STAGE_LABELS[self.type]


@dataclass
class TaskDiagnostic:
    """How a task's domain was narrowed down."""
    task_id: TaskId
    initial_slots: int
    stages: list[StageTrace] = field(default_factory=list)
    final_slots: int = 0

    @property
    def status(self) -> str:
        return "invalid" if self.final_slots == 0 else "valid"

    @property
    def most_restrictive(self) -> Optional[StageTrace]:
        """Stage that removed the most slots, if any removed some."""
        removing = [s for s in self.stages if s.removed > 0]
        return max(removing, key=lambda s: s.removed) if removing else None


@dataclass
class DomainResult:
    """Domains and diagnostics for a list of tasks."""
    domains: dict[TaskId, list[Slot]]
    diagnostics: list[TaskDiagnostic]

    @property
    def invalid_tasks(self) -> list[TaskId]:
        return [d.task_id for d in self.diagnostics if d.status == "invalid"]


def _violates(constraint: GroupConstraint, slot: Slot) -> bool:
    if constraint.type == ConstraintType.NOT_DAY:
        return slot.weekday == constraint.value
    return slot.weekday != constraint.value


class DomainCalculator:
    """
    Computes starting-slot domains for tasks over a slot grid.

    Args:
        slots: Grid slots that may be used
        group_constraints: Weekday rules, applied in order
        availability: Availability ranges keyed by person ID
        period_weeks: ISO week to period week map; defaults to the weeks of
            ``slots``. Pass the full window's map when ``slots`` only covers
            some of its weeks.
        time_budget: Seconds allowed for one ``calculate`` call
        clock: Monotonic clock, replaceable in tests
    """

    def __init__(
        self,
        slots: list[Slot],
        group_constraints: Iterable[GroupConstraint] = (),
        availability: Optional[dict[str, list[AvailabilityRange]]] = None,
        period_weeks: Optional[dict[IsoWeek, int]] = None,
        time_budget: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.slots = sorted(slots)
        self.period_weeks = period_weeks if period_weeks is not None else period_week_map(iso_weeks(self.slots))
        self.time_budget = time_budget
        self.clock = clock
        self._availability = availability or {}
        self._constraints: dict[str, list[GroupConstraint]] = defaultdict(list)
        for constraint in group_constraints:
            self._constraints[constraint.group].append(constraint)

        self._slots_by_week: dict[IsoWeek, list[Slot]] = defaultdict(list)
        for slot in self.slots:
            self._slots_by_week[slot.iso_week].append(slot)
        self._allowed_cache: dict[str, set[Slot]] = {}

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def calculate(self, tasks: list[Task]) -> DomainResult:
        """
        Compute domains for every task.

        Raises:
            DomainGenerationTimeoutError: If the time budget runs out
        """
        started = self.clock()
        domains: dict[TaskId, list[Slot]] = {}
        diagnostics: list[TaskDiagnostic] = []

        for i, task in enumerate(tasks):
            elapsed = self.clock() - started
            if elapsed > self.time_budget:
                raise DomainGenerationTimeoutError(
                    f"Domain generation exceeded {self.time_budget:.1f}s "
                    f"after {i} of {len(tasks)} tasks"
                )
            domain, diagnostic = self.domain_for(task)
            domains[task.id] = domain
            diagnostics.append(diagnostic)
            logger.debug("Task %s: %d starting slots", task.id, len(domain))

        invalid = sum(1 for d in diagnostics if d.status == "invalid")
        if invalid:
            logger.warning("%d of %d tasks have no valid slot", invalid, len(tasks))
        return DomainResult(domains=domains, diagnostics=diagnostics)

    def domain_for(self, task: Task) -> tuple[list[Slot], TaskDiagnostic]:
        """Domain and diagnostic for a single task."""
        candidates = self.initial_slots(task)
        diagnostic = TaskDiagnostic(task_id=task.id, initial_slots=len(candidates))

        for constraint in self._constraints.get(task.group_id, []):
            before = len(candidates)
            candidates = [
                s for s in candidates
                if not (constraint.applies_to_week(self.period_weeks.get(s.iso_week)) and _violates(constraint, s))
            ]
            diagnostic.stages.append(StageTrace(
                type=StageType.GROUP_RULE,
                description=str(constraint),
                removed=before - len(candidates),
                remaining=len(candidates),
            ))

        ranges = self._availability.get(task.person_id)
        if ranges:
            allowed = self.allowed_slots(task.person_id)
            before = len(candidates)
            candidates = [s for s in candidates if s in allowed]
            diagnostic.stages.append(StageTrace(
                type=StageType.INDIVIDUAL_AVAILABILITY,
                description=f"Custom hours set ({len(ranges)} ranges)",
                removed=before - len(candidates),
                remaining=len(candidates),
            ))

        before = len(candidates)
        candidates = self._contiguous_starts(candidates, task.slot_count)
        diagnostic.stages.append(StageTrace(
            type=StageType.DURATION_CHECK,
            description=f"Requires {task.duration} mins",
            removed=before - len(candidates),
            remaining=len(candidates),
        ))

        domain = self._order(candidates, task.preferred_day)
        diagnostic.final_slots = len(domain)
        return domain, diagnostic

    def initial_slots(self, task: Task) -> list[Slot]:
        """Slots of the task's week, or of its enabled weeks for monthly tasks."""
        if task.week is not None:
            return list(self._slots_by_week.get(task.week, []))
        if not task.enabled_weeks:
            return list(self.slots)
        enabled = set(task.enabled_weeks)
        return [s for s in self.slots if self.period_weeks.get(s.iso_week) in enabled]

    def allowed_slots(self, person_id: str) -> set[Slot]:
        """Grid slots lying entirely inside one of the person's ranges."""
        if person_id not in self._allowed_cache:
            self._allowed_cache[person_id] = self._expand_ranges(self._availability.get(person_id, []))
        return self._allowed_cache[person_id]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _expand_ranges(self, ranges: list[AvailabilityRange]) -> set[Slot]:
        if not self.slots:
            return set()
        window_start = self.slots[0].start.replace(hour=0, minute=0)
        window_end = self.slots[-1].start.replace(hour=0, minute=0) + timedelta(days=1)

        allowed: set[Slot] = set()
        for availability in ranges:
            lo = max(availability.start, window_start)
            hi = min(availability.end, window_end)
            if lo >= hi:
                continue
            midnight = datetime(lo.year, lo.month, lo.day)
            cursor = midnight + _STEP * -((midnight - lo) // _STEP)
            while cursor + _STEP <= hi:
                allowed.add(Slot.at(cursor))
                cursor += _STEP
        return allowed

    @staticmethod
    def _contiguous_starts(candidates: list[Slot], count: int) -> list[Slot]:
        if count <= 1:
            return list(candidates)
        available = set(candidates)
        return [
            s for s in candidates
            if all(s.shifted(i) in available for i in range(1, count))
        ]

    @staticmethod
    def _order(starts: list[Slot], preferred_day: Optional[int]) -> list[Slot]:
        if preferred_day is None:
            return sorted(starts)
        return sorted(starts, key=lambda s: (s.weekday != preferred_day, s))


def describe_stage(stage: StageTrace) -> str:
    """One-line summary of a stage for reports."""
    return f"{stage.label}: {stage.description} (-{stage.removed}, {stage.remaining} left)"

