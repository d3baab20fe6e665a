"""
Conflict resolution suggestions.

For each reported conflict the resolver tries, in order, to move the lower
priority task elsewhere in its domain, to shift the conflicting task a few
slots on the same day, or to move it to another room at the same time. The
first workable proposal is returned. Proposals are advisory: the assignment
passed in is never modified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from .grid import Slot
from .solvers.base import Assignment, Conflict, ConflictType, Domains, Placement
from .solvers.conflicts import RoomBook
from .tasks import Task, TaskId

logger = logging.getLogger(__name__)


class ResolutionStrategy(str, Enum):
    """Ways a conflict may be resolved."""
    PRIORITY_BASED = "priority_based"
    TIME_SHIFT = "time_shift"
    ROOM_REASSIGN = "room_reassign"


@dataclass(frozen=True)
class Resolution:
    """Proposed move for one task involved in a conflict."""
    strategy: ResolutionStrategy
    conflict: Conflict
    task_id: TaskId
    original: Optional[Placement]
    proposed: Placement
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "taskId": str(self.task_id),
            "original": None if self.original is None else {
                "slot": self.original.slot.key, "room": self.original.room,
            },
            "proposed": {"slot": self.proposed.slot.key, "room": self.proposed.room},
            "reason": self.reason,
        }


class ConflictResolver:
    """
    Proposes moves that would remove reported conflicts.

    Args:
        shift_window: Slots searched either side of the original start by
            the time shift strategy
    """

    def __init__(self, shift_window: int = 8):
        self.shift_window = shift_window

    def resolve(
        self,
        conflicts: Iterable[Conflict],
        assignment: Assignment,
        tasks: Iterable[Task],
        domains: Domains,
        room_count: int,
    ) -> list[Resolution]:
        """
        Propose at most one move per conflict.

        Each proposal is checked against the assignment and the proposals
        made before it. Conflicts involving a task that already has a
        proposal are skipped.
        """
        conflicts = list(conflicts)
        by_id = {t.id: t for t in tasks}
        book = RoomBook.from_assignment(assignment, by_id, room_count)
        known = {c.task_id: c.placement for c in conflicts}
        known.update(assignment)
        moved: set[TaskId] = set()
        resolutions: list[Resolution] = []

        for conflict in conflicts:
            if conflict.task_id in moved or conflict.conflicts_with in moved:
                continue
            resolution = self.resolve_conflict(conflict, by_id, known, assignment, book, domains, room_count)
            if resolution is None:
                logger.debug("No resolution for %s conflict of %s", conflict.type.value, conflict.task_id)
                continue
            moved.add(resolution.task_id)
            resolutions.append(resolution)

        return resolutions

    def resolve_conflict(
        self,
        conflict: Conflict,
        tasks: dict[TaskId, Task],
        known: Assignment,
        assignment: Assignment,
        book: RoomBook,
        domains: Domains,
        room_count: int,
    ) -> Optional[Resolution]:
        """Try each strategy in turn; on success the proposal is booked."""
        strategies = (
            (ResolutionStrategy.PRIORITY_BASED, self._lower_priority(conflict, tasks)),
            (ResolutionStrategy.TIME_SHIFT, conflict.task_id),
            (ResolutionStrategy.ROOM_REASSIGN, conflict.task_id),
        )
        for strategy, task_id in strategies:
            if strategy == ResolutionStrategy.ROOM_REASSIGN and conflict.type != ConflictType.ROOM:
                continue
            task = tasks[task_id]
            original = known.get(task_id)
            if original is None:
                continue

            if task_id in assignment:
                book.release(task, assignment[task_id])
            proposed = self._propose(strategy, task, original, book, domains.get(task_id, []), room_count)
            if proposed is None:
                if task_id in assignment:
                    book.book(task, assignment[task_id])
                continue

            book.book(task, proposed)
            return Resolution(
                strategy=strategy,
                conflict=conflict,
                task_id=task_id,
                original=original,
                proposed=proposed,
                reason=self._reason(strategy, task, original, proposed),
            )
        return None

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    @staticmethod
    def _lower_priority(conflict: Conflict, tasks: dict[TaskId, Task]) -> TaskId:
        a, b = tasks[conflict.task_id], tasks[conflict.conflicts_with]
        if a.priority != b.priority:
            return a.id if a.priority < b.priority else b.id
        return a.id if a.rank > b.rank else b.id

    def _propose(
        self,
        strategy: ResolutionStrategy,
        task: Task,
        original: Placement,
        book: RoomBook,
        domain: list[Slot],
        room_count: int,
    ) -> Optional[Placement]:
        if strategy == ResolutionStrategy.PRIORITY_BASED:
            candidates = (Placement(slot, room) for slot in domain for room in range(1, room_count + 1))
        elif strategy == ResolutionStrategy.TIME_SHIFT:
            candidates = self._shift_candidates(original, set(domain), room_count)
        else:
            candidates = (Placement(original.slot, room) for room in range(1, room_count + 1))

        for candidate in candidates:
            if candidate != original and book.fits(task, candidate):
                return candidate
        return None

    def _shift_candidates(self, original: Placement, domain: set[Slot], room_count: int):
        """Same-day starts nearest to the original first, earlier before later."""
        rooms = [original.room] + [r for r in range(1, room_count + 1) if r != original.room]
        for distance in range(1, self.shift_window + 1):
            for steps in (-distance, distance):
                slot = original.slot.shifted(steps)
                if slot in domain:
                    for room in rooms:
                        yield Placement(slot, room)

    @staticmethod
    def _reason(strategy: ResolutionStrategy, task: Task, original: Placement, proposed: Placement) -> str:
        if strategy == ResolutionStrategy.PRIORITY_BASED:
            return f"Move lower priority task {task.id} to {proposed}"
        if strategy == ResolutionStrategy.TIME_SHIFT:
            minutes = proposed.slot.minutes - original.slot.minutes
            return f"Shift {task.id} by {minutes:+d} minutes to {proposed.slot.time}"
        return f"Move {task.id} from room {original.room} to room {proposed.room}"
