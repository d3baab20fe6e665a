"""Tests for conflict resolution proposals."""

from __future__ import annotations

from datetime import date

import pytest

from planner.grid import IsoWeek, Slot
from planner.resolver import ConflictResolver, ResolutionStrategy
from planner.solvers.base import Conflict, ConflictType, Placement
from planner.tasks import Task, TaskId

DAY = date(2025, 10, 27)
W44 = IsoWeek(2025, 44)


def make_task(person: str, rank: int, priority: int = 1, week=W44) -> Task:
    return Task(TaskId(person, person.rsplit("_", 1)[0], week), duration=15, priority=priority, rank=rank)


def at(minutes: int, room: int = 1) -> Placement:
    return Placement(Slot(DAY, minutes), room)


def room_conflict(task: Task, other: Task, placement: Placement) -> Conflict:
    return Conflict(ConflictType.ROOM, task.id, other.id, placement.slot, placement.room)


@pytest.fixture
def resolver() -> ConflictResolver:
    return ConflictResolver(shift_window=8)


class TestPriorityBased:
    """Moving the lower priority task within its domain."""

    def test_lower_priority_task_moved(self, resolver):
        high = make_task("teacher_1", 0, priority=2)
        low = make_task("staff_1", 1, priority=1)
        conflict = room_conflict(low, high, at(540))
        domains = {high.id: [Slot(DAY, 540)], low.id: [Slot(DAY, 540), Slot(DAY, 555)]}

        resolutions = resolver.resolve([conflict], {high.id: at(540)}, [high, low], domains, 1)

        assert len(resolutions) == 1
        resolution = resolutions[0]
        assert resolution.strategy == ResolutionStrategy.PRIORITY_BASED
        assert resolution.task_id == low.id
        assert resolution.original == at(540)
        assert resolution.proposed == at(555)
        assert resolution.conflict is conflict

    def test_to_dict(self, resolver):
        high = make_task("teacher_1", 0, priority=2)
        low = make_task("staff_1", 1, priority=1)
        domains = {high.id: [Slot(DAY, 540)], low.id: [Slot(DAY, 540), Slot(DAY, 555)]}
        resolution = resolver.resolve(
            [room_conflict(low, high, at(540))], {high.id: at(540)}, [high, low], domains, 1
        )[0]
        assert resolution.to_dict() == {
            "strategy": "priority_based",
            "taskId": "staff_1_w44",
            "original": {"slot": "2025-10-27_09:00", "room": 1},
            "proposed": {"slot": "2025-10-27_09:15", "room": 1},
            "reason": "Move lower priority task staff_1_w44 to 2025-10-27_09:15 room 1",
        }

    def test_assignment_not_modified(self, resolver):
        high = make_task("teacher_1", 0, priority=2)
        low = make_task("staff_1", 1, priority=1)
        assignment = {high.id: at(540)}
        domains = {high.id: [Slot(DAY, 540)], low.id: [Slot(DAY, 540), Slot(DAY, 555)]}
        resolver.resolve([room_conflict(low, high, at(540))], assignment, [high, low], domains, 1)
        assert assignment == {high.id: at(540)}


class TestTimeShift:
    """Shifting the reported task on the same day."""

    def test_shift(self, resolver):
        low = make_task("staff_1", 0, priority=1)
        high = make_task("teacher_1", 1, priority=2)
        domains = {low.id: [Slot(DAY, 540)], high.id: [Slot(DAY, 540), Slot(DAY, 570)]}

        resolutions = resolver.resolve(
            [room_conflict(high, low, at(540))], {high.id: at(540)}, [low, high], domains, 1
        )

        assert [r.strategy for r in resolutions] == [ResolutionStrategy.TIME_SHIFT]
        assert resolutions[0].proposed == at(570)
        assert resolutions[0].reason == "Shift teacher_1_w44 by +30 minutes to 09:30"

    def test_earlier_start_preferred(self, resolver):
        low = make_task("staff_1", 0, priority=1)
        high = make_task("teacher_1", 1, priority=2)
        domains = {low.id: [Slot(DAY, 570)], high.id: [Slot(DAY, 555), Slot(DAY, 570), Slot(DAY, 585)]}

        resolutions = resolver.resolve(
            [room_conflict(high, low, at(570))], {high.id: at(570)}, [low, high], domains, 1
        )

        assert resolutions[0].proposed == at(555)

    def test_outside_shift_window(self):
        low = make_task("staff_1", 0, priority=1)
        high = make_task("teacher_1", 1, priority=2)
        domains = {low.id: [Slot(DAY, 540)], high.id: [Slot(DAY, 540), Slot(DAY, 600)]}

        resolutions = ConflictResolver(shift_window=2).resolve(
            [room_conflict(high, low, at(540))], {high.id: at(540)}, [low, high], domains, 1
        )

        assert resolutions == []


class TestRoomReassign:
    """Moving the reported task to another room at the same time."""

    def test_other_room(self, resolver):
        low = make_task("staff_1", 0, priority=1)
        high = make_task("teacher_1", 1, priority=2)
        domains = {low.id: [Slot(DAY, 540)], high.id: [Slot(DAY, 540)]}

        resolutions = resolver.resolve(
            [room_conflict(high, low, at(540))], {high.id: at(540)}, [low, high], domains, 2
        )

        assert [r.strategy for r in resolutions] == [ResolutionStrategy.ROOM_REASSIGN]
        assert resolutions[0].proposed == at(540, 2)
        assert resolutions[0].reason == "Move teacher_1_w44 from room 1 to room 2"

    def test_not_used_for_person_conflicts(self, resolver):
        weekly = make_task("teacher_1", 0)
        monthly = make_task("teacher_1", 1, week=None)
        conflict = Conflict(
            ConflictType.PERSON, monthly.id, weekly.id, Slot(DAY, 540), 2, person="teacher_1"
        )
        domains = {weekly.id: [Slot(DAY, 540)], monthly.id: [Slot(DAY, 540)]}

        resolutions = resolver.resolve([conflict], {weekly.id: at(540)}, [weekly, monthly], domains, 2)

        assert resolutions == []


class TestProposalBooking:
    """Proposals are checked against earlier proposals."""

    def test_second_proposal_cannot_reuse_slot(self, resolver):
        high = make_task("teacher_1", 0, priority=2)
        first = make_task("staff_1", 1, priority=1)
        second = make_task("staff_2", 2, priority=1)
        both = [Slot(DAY, 540), Slot(DAY, 555)]
        domains = {high.id: [Slot(DAY, 540)], first.id: both, second.id: both}
        conflicts = [room_conflict(first, high, at(540)), room_conflict(second, high, at(540))]

        resolutions = resolver.resolve(conflicts, {high.id: at(540)}, [high, first, second], domains, 1)

        assert [r.task_id for r in resolutions] == [first.id]

    def test_task_moved_once(self, resolver):
        high = make_task("teacher_1", 0, priority=2)
        other = make_task("teacher_2", 1, priority=2)
        low = make_task("staff_1", 2, priority=1)
        domains = {
            high.id: [Slot(DAY, 540)],
            other.id: [Slot(DAY, 540)],
            low.id: [Slot(DAY, 540), Slot(DAY, 555)],
        }
        conflicts = [room_conflict(low, high, at(540)), room_conflict(low, other, at(540))]

        resolutions = resolver.resolve(conflicts, {high.id: at(540)}, [high, other, low], domains, 1)

        assert len(resolutions) == 1

    def test_no_conflicts(self, resolver):
        assert resolver.resolve([], {}, [], {}, 1) == []
