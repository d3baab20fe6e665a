"""Depth-first backtracking search with forward checking."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from ..data.models import Algorithm
from ..grid import Slot, covered_slots
from ..tasks import Task, TaskId
from .base import Assignment, Domains, Placement, Solver, SolverResult, SolverStats, mrv_order
from .conflicts import RoomBook

logger = logging.getLogger(__name__)

# Ordered starts plus a set for membership tests
_Domain = tuple[list[Slot], frozenset[Slot]]


@dataclass
class _Frame:
    index: int
    domains: dict[TaskId, _Domain]
    options: Iterator[Placement]
    skipped: int = 0
    placement: Optional[Placement] = None
    skipping: bool = False


class BacktrackingSolver(Solver):
    """
    Assigns tasks in MRV order, trying slots in domain order and rooms in
    ascending order. After each placement the remaining domains are pruned
    and the search backs up as soon as one of them empties.

    A task with no placement that keeps every later domain non-empty is
    skipped and the search carries on with the next task. Branches that can
    no longer place more tasks than the best assignment found so far are
    cut off, so the search stops once no improvement is possible.

    Tasks with an empty domain are left unscheduled without searching. When
    the search is exhausted or hits the backtrack cap or time budget, the
    largest assignment seen is returned.
    """

    algorithm = Algorithm.CSP_BACKTRACK

    def solve(self, tasks: list[Task], domains: Domains, room_count: int) -> SolverResult:
        stats = SolverStats()
        budget = self.start_budget()
        order = [t for t in mrv_order(tasks, domains) if domains.get(t.id)]
        if not order:
            return self.build_result(tasks, {}, stats)

        book = RoomBook(room_count)
        assignment: Assignment = {}
        best: Assignment = {}
        complete = False

        initial = {t.id: (list(domains[t.id]), frozenset(domains[t.id])) for t in order}
        stack = [_Frame(0, initial, self._options(initial[order[0].id], room_count))]

        while stack:
            if budget.expired():
                stats.timed_out = True
                break
            if stats.backtracks >= self.settings.max_backtracks:
                stats.backtrack_limit_reached = True
                break

            frame = stack[-1]
            task = order[frame.index]
            if frame.placement is not None:
                self._undo(task, frame, book, assignment)
                stats.backtracks += 1

            if frame.skipping:
                stack.pop()
                continue
            # Upper bound: every task from here on placed
            if len(order) - frame.skipped <= len(best):
                stack.pop()
                continue

            child: Optional[_Frame] = None
            leaf = False
            for placement in frame.options:
                stats.constraint_checks += 1
                if not book.fits(task, placement):
                    continue

                book.book(task, placement)
                assignment[task.id] = placement
                frame.placement = placement
                stats.assignments += 1
                if len(assignment) > len(best):
                    best = dict(assignment)

                if frame.index + 1 == len(order):
                    complete = frame.skipped == 0
                    leaf = True
                    break

                pruned = self._forward_check(order, frame.index + 1, frame.domains, task, placement, book, stats)
                if pruned is None:
                    self._undo(task, frame, book, assignment)
                    stats.backtracks += 1
                    continue

                child = self._child(order, frame, pruned, frame.skipped, room_count)
                break

            if complete:
                break
            if leaf:
                continue
            if child is None:
                # No placement works here; carry on without this task
                frame.skipping = True
                if frame.index + 1 < len(order) and len(order) - frame.skipped - 1 > len(best):
                    child = self._child(order, frame, frame.domains, frame.skipped + 1, room_count)
            if child is not None:
                stack.append(child)

        if stats.timed_out:
            logger.warning("Backtracking timed out after %d backtracks", stats.backtracks)
        elif stats.backtrack_limit_reached:
            logger.warning("Backtracking stopped at the %d backtrack limit", self.settings.max_backtracks)
        logger.debug(
            "Backtracking placed %d of %d tasks (%d backtracks)",
            len(best), len(tasks), stats.backtracks,
        )
        return self.build_result(tasks, best, stats)

    @staticmethod
    def _options(domain: _Domain, room_count: int) -> Iterator[Placement]:
        slots, _ = domain
        return (Placement(slot, room) for slot in slots for room in range(1, room_count + 1))

    @classmethod
    def _child(
        cls,
        order: list[Task],
        frame: _Frame,
        domains: dict[TaskId, _Domain],
        skipped: int,
        room_count: int,
    ) -> _Frame:
        next_task = order[frame.index + 1]
        return _Frame(frame.index + 1, domains, cls._options(domains[next_task.id], room_count), skipped)

    @staticmethod
    def _undo(task: Task, frame: _Frame, book: RoomBook, assignment: Assignment) -> None:
        book.release(task, frame.placement)
        del assignment[task.id]
        frame.placement = None

    @staticmethod
    def _forward_check(
        order: list[Task],
        start: int,
        domains: dict[TaskId, _Domain],
        placed: Task,
        placement: Placement,
        book: RoomBook,
        stats: SolverStats,
    ) -> Optional[dict[TaskId, _Domain]]:
        """
        Remove starts of unassigned tasks that no longer fit in any room.

        Only starts whose covered slots intersect the new placement are
        re-checked. Returns None when some domain becomes empty.
        """
        occupied = covered_slots(placement.slot, placed.duration)
        week = placement.slot.iso_week
        pruned = dict(domains)

        for other in order[start:]:
            if other.week is not None and other.week != week:
                continue
            slots, members = domains[other.id]
            affected = {s.shifted(-k) for s in occupied for k in range(other.slot_count)}
            hits = [s for s in affected if s in members]
            if not hits:
                continue
            stats.constraint_checks += len(hits)
            removed = {s for s in hits if book.free_room(other, s) is None}
            if not removed:
                continue
            remaining = [s for s in slots if s not in removed]
            if not remaining:
                return None
            pruned[other.id] = (remaining, members - removed)

        return pruned
