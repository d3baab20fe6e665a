"""
Room and person occupancy bookkeeping shared by the solvers.

RoomBook answers "does this placement fit" for constructive search.
ConflictIndex keeps a running count of overlapping pairs so local search can
evaluate a move without rescanning the whole assignment.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Optional

from ..grid import Slot, covered_slots
from ..tasks import Task, TaskId
from .base import Assignment, Conflict, ConflictType, Placement


class RoomBook:
    """Booked slots per room and per person."""

    def __init__(self, room_count: int):
        self.room_count = room_count
        self._rooms: list[set[Slot]] = [set() for _ in range(room_count)]
        self._persons: dict[str, set[Slot]] = defaultdict(set)

    @classmethod
    def from_assignment(cls, assignment: Assignment, tasks: dict[TaskId, Task], room_count: int) -> "RoomBook":
        book = cls(room_count)
        for task_id, placement in assignment.items():
            book.book(tasks[task_id], placement)
        return book

    def room_free(self, room: int, slots: Iterable[Slot]) -> bool:
        booked = self._rooms[room - 1]
        return not any(s in booked for s in slots)

    def person_free(self, person_id: str, slots: Iterable[Slot]) -> bool:
        booked = self._persons.get(person_id)
        return not booked or not any(s in booked for s in slots)

    def fits(self, task: Task, placement: Placement) -> bool:
        slots = covered_slots(placement.slot, task.duration)
        return self.person_free(task.person_id, slots) and self.room_free(placement.room, slots)

    def free_room(self, task: Task, start: Slot) -> Optional[int]:
        """Lowest numbered room where the task fits at ``start``."""
        slots = covered_slots(start, task.duration)
        if not self.person_free(task.person_id, slots):
            return None
        for room in range(1, self.room_count + 1):
            if self.room_free(room, slots):
                return room
        return None

    def book(self, task: Task, placement: Placement) -> None:
        slots = covered_slots(placement.slot, task.duration)
        self._rooms[placement.room - 1].update(slots)
        self._persons[task.person_id].update(slots)

    def release(self, task: Task, placement: Placement) -> None:
        slots = covered_slots(placement.slot, task.duration)
        self._rooms[placement.room - 1].difference_update(slots)
        self._persons[task.person_id].difference_update(slots)


class ConflictIndex:
    """
    Incremental count of conflicting task pairs.

    A pair of tasks counts once as a room conflict when they overlap in the
    same room and once as a person conflict when they belong to the same
    person and overlap in time.
    """

    def __init__(self, tasks: Iterable[Task]):
        self.tasks = {t.id: t for t in tasks}
        self.placements: Assignment = {}
        self.room_conflicts = 0
        self.person_conflicts = 0
        self._rooms: dict[tuple[int, Slot], set[TaskId]] = defaultdict(set)
        self._persons: dict[tuple[str, Slot], set[TaskId]] = defaultdict(set)

    @property
    def total(self) -> int:
        return self.room_conflicts + self.person_conflicts

    def overlapping(self, task: Task, placement: Placement) -> tuple[set[TaskId], set[TaskId]]:
        """Other tasks sharing the room, and other tasks of the same person."""
        room_others: set[TaskId] = set()
        person_others: set[TaskId] = set()
        for slot in covered_slots(placement.slot, task.duration):
            room_others.update(self._rooms.get((placement.room, slot), ()))
            person_others.update(self._persons.get((task.person_id, slot), ()))
        room_others.discard(task.id)
        person_others.discard(task.id)
        return room_others, person_others

    def conflicts_at(self, task: Task, placement: Placement) -> tuple[int, int]:
        room_others, person_others = self.overlapping(task, placement)
        return len(room_others), len(person_others)

    def place(self, task: Task, placement: Placement) -> None:
        if task.id in self.placements:
            self.remove(task.id)
        rooms, persons = self.conflicts_at(task, placement)
        self.room_conflicts += rooms
        self.person_conflicts += persons
        self.placements[task.id] = placement
        for slot in covered_slots(placement.slot, task.duration):
            self._rooms[(placement.room, slot)].add(task.id)
            self._persons[(task.person_id, slot)].add(task.id)

    def remove(self, task_id: TaskId) -> Optional[Placement]:
        placement = self.placements.pop(task_id, None)
        if placement is None:
            return None
        task = self.tasks[task_id]
        for slot in covered_slots(placement.slot, task.duration):
            self._rooms[(placement.room, slot)].discard(task_id)
            self._persons[(task.person_id, slot)].discard(task_id)
        rooms, persons = self.conflicts_at(task, placement)
        self.room_conflicts -= rooms
        self.person_conflicts -= persons
        return placement

    def task_conflicts(self, task_id: TaskId) -> int:
        placement = self.placements.get(task_id)
        if placement is None:
            return 0
        return sum(self.conflicts_at(self.tasks[task_id], placement))

    def conflicted_tasks(self) -> list[TaskId]:
        """Placed tasks involved in at least one conflict, in placement order."""
        return [tid for tid in self.placements if self.task_conflicts(tid) > 0]

    def snapshot(self) -> Assignment:
        return dict(self.placements)


def detect_conflicts(assignment: Assignment, tasks: Iterable[Task]) -> list[Conflict]:
    """
    List every conflicting pair in an assignment.

    Each pair is reported once per conflict type, from the point of view of
    the later task in task order.
    """
    ordered = sorted((t for t in tasks if t.id in assignment), key=lambda t: t.rank)
    index = ConflictIndex(ordered)
    conflicts: list[Conflict] = []

    for task in ordered:
        placement = assignment[task.id]
        room_others, person_others = index.overlapping(task, placement)
        for other in sorted(room_others, key=lambda tid: index.tasks[tid].rank):
            conflicts.append(Conflict(
                type=ConflictType.ROOM,
                task_id=task.id,
                conflicts_with=other,
                slot=placement.slot,
                room=placement.room,
            ))
        for other in sorted(person_others, key=lambda tid: index.tasks[tid].rank):
            conflicts.append(Conflict(
                type=ConflictType.PERSON,
                task_id=task.id,
                conflicts_with=other,
                slot=placement.slot,
                room=placement.room,
                person=task.person_id,
            ))
        index.place(task, placement)

    return conflicts


def repair(assignment: Assignment, tasks: Iterable[Task], room_count: int) -> tuple[Assignment, list[TaskId]]:
    """
    Drop tasks until no conflicts remain.

    Tasks are kept in priority order (then task order); any task that
    collides with one already kept is evicted.

    Returns:
        The conflict-free assignment and the evicted task IDs
    """
    ordered = sorted((t for t in tasks if t.id in assignment), key=lambda t: (-t.priority, t.rank))
    book = RoomBook(room_count)
    kept: Assignment = {}
    evicted: list[TaskId] = []

    for task in ordered:
        placement = assignment[task.id]
        if book.fits(task, placement):
            book.book(task, placement)
            kept[task.id] = placement
        else:
            evicted.append(task.id)

    return kept, evicted
