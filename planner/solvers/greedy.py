"""Greedy first-fit strategy."""

from __future__ import annotations

import logging

from ..data.models import Algorithm
from ..tasks import Task
from .base import Assignment, Domains, Placement, Solver, SolverResult, SolverStats, mrv_order
from .conflicts import RoomBook

logger = logging.getLogger(__name__)


class GreedySolver(Solver):
    """
    Places tasks one at a time, most constrained first, into the first slot
    and lowest room that fit. Never revisits a decision.
    """

    algorithm = Algorithm.GREEDY

    def solve(self, tasks: list[Task], domains: Domains, room_count: int) -> SolverResult:
        stats = SolverStats()
        book = RoomBook(room_count)
        assignment: Assignment = {}

        for task in mrv_order(tasks, domains):
            for slot in domains.get(task.id, []):
                stats.constraint_checks += 1
                room = book.free_room(task, slot)
                if room is None:
                    continue
                placement = Placement(slot, room)
                book.book(task, placement)
                assignment[task.id] = placement
                stats.assignments += 1
                break

        logger.debug("Greedy placed %d of %d tasks", len(assignment), len(tasks))
        return self.build_result(tasks, assignment, stats)
