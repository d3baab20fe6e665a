"""Min-conflicts local search."""

from __future__ import annotations

import logging
import random
from typing import Optional

from ..data.models import Algorithm
from ..tasks import Task
from .base import Domains, Placement, Solver, SolverResult, SolverStats
from .conflicts import ConflictIndex, detect_conflicts, repair

logger = logging.getLogger(__name__)


def random_assignment(index: ConflictIndex, tasks: list[Task], domains: Domains, room_count: int, rng: random.Random) -> None:
    """Place every task that has a domain at a random slot and room."""
    for task in tasks:
        domain = domains.get(task.id)
        if domain:
            index.place(task, Placement(rng.choice(domain), rng.randint(1, room_count)))


class MinConflictSolver(Solver):
    """
    Starts from a random assignment and repeatedly moves a randomly chosen
    conflicted task to the slot and room that removes the most conflicts.

    Stops at zero conflicts, after ``min_conflict_iterations`` moves or when
    the time budget runs out. The best assignment seen is repaired before it
    is returned; the conflicts it contained are reported.
    """

    algorithm = Algorithm.MIN_CONFLICT

    def solve(self, tasks: list[Task], domains: Domains, room_count: int) -> SolverResult:
        stats = SolverStats()
        budget = self.start_budget()
        rng = random.Random(self.seed)
        max_iterations = self.settings.min_conflict_iterations

        index = ConflictIndex(tasks)
        random_assignment(index, tasks, domains, room_count, rng)
        best = index.snapshot()
        best_conflicts = index.total
        stats.best_history.append(best_conflicts)

        while index.total > 0 and stats.iterations < max_iterations:
            if budget.expired():
                stats.timed_out = True
                break

            task = index.tasks[rng.choice(index.conflicted_tasks())]
            move = self._best_move(task, index, domains[task.id], room_count, stats)
            if move is not None:
                index.place(task, move)
                stats.assignments += 1

            stats.iterations += 1
            if index.total < best_conflicts:
                best = index.snapshot()
                best_conflicts = index.total
            stats.best_history.append(best_conflicts)

        stats.final_conflicts = best_conflicts
        conflicts = detect_conflicts(best, tasks)
        clean, evicted = repair(best, tasks, room_count)
        if evicted:
            logger.info("Min-conflict left %d conflicts; %d tasks unscheduled", best_conflicts, len(evicted))
        return self.build_result(tasks, clean, stats, conflicts)

    @staticmethod
    def _best_move(
        task: Task,
        index: ConflictIndex,
        domain: list,
        room_count: int,
        stats: SolverStats,
    ) -> Optional[Placement]:
        """Placement with the largest conflict reduction; first found wins ties."""
        current = index.placements[task.id]
        current_conflicts = sum(index.conflicts_at(task, current))
        best_move: Optional[Placement] = None
        best_reduction = 0

        for slot in domain:
            for room in range(1, room_count + 1):
                candidate = Placement(slot, room)
                if candidate == current:
                    continue
                stats.constraint_checks += 1
                reduction = current_conflicts - sum(index.conflicts_at(task, candidate))
                if reduction > best_reduction:
                    best_move = candidate
                    best_reduction = reduction

        return best_move
