"""Simulated annealing."""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..data.models import Algorithm, EngineSettings
from ..tasks import Task
from .base import Domains, Placement, Solver, SolverResult, SolverStats
from .conflicts import ConflictIndex, detect_conflicts, repair
from .min_conflict import random_assignment

logger = logging.getLogger(__name__)


@dataclass
class CostWeights:
    """Penalty per conflict or unscheduled task."""
    room_conflict: float = 10.0
    person_conflict: float = 20.0
    unscheduled: float = 5.0

    def cost(self, room_conflicts: int, person_conflicts: int, unscheduled: int) -> float:
        return (
            self.room_conflict * room_conflicts
            + self.person_conflict * person_conflicts
            + self.unscheduled * unscheduled
        )


class SimulatedAnnealingSolver(Solver):
    """
    Random restarts one task at a time, accepting worse assignments with
    probability ``exp(-delta / T)``. The temperature starts at
    ``initial_temperature`` and is multiplied by ``cooling_rate`` after every
    step until it drops below ``min_temperature``.
    """

    algorithm = Algorithm.SIMULATED_ANNEALING

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        seed: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        weights: Optional[CostWeights] = None,
    ):
        super().__init__(settings, seed, clock)
        self.weights = weights or CostWeights()

    def solve(self, tasks: list[Task], domains: Domains, room_count: int) -> SolverResult:
        stats = SolverStats()
        budget = self.start_budget()
        rng = random.Random(self.seed)
        settings = self.settings

        index = ConflictIndex(tasks)
        random_assignment(index, tasks, domains, room_count, rng)
        movable = list(index.placements)
        unplaceable = len(tasks) - len(movable)

        def cost() -> float:
            return self.weights.cost(index.room_conflicts, index.person_conflicts, unplaceable)

        current_cost = cost()
        best = index.snapshot()
        best_cost = current_cost
        stats.best_history.append(best_cost)
        temperature = settings.initial_temperature

        while movable and temperature > settings.min_temperature and stats.iterations < settings.annealing_iterations:
            if best_cost == self.weights.cost(0, 0, unplaceable):
                break
            if budget.expired():
                stats.timed_out = True
                break

            task_id = rng.choice(movable)
            task = index.tasks[task_id]
            previous = index.placements[task_id]
            index.place(task, Placement(rng.choice(domains[task_id]), rng.randint(1, room_count)))
            stats.constraint_checks += 1

            new_cost = cost()
            delta = new_cost - current_cost
            if delta <= 0 or rng.random() < math.exp(-delta / temperature):
                current_cost = new_cost
                stats.assignments += 1
                if current_cost < best_cost:
                    best = index.snapshot()
                    best_cost = current_cost
            else:
                index.place(task, previous)

            temperature *= settings.cooling_rate
            stats.iterations += 1
            stats.best_history.append(best_cost)

        stats.final_cost = best_cost
        stats.final_temperature = temperature
        conflicts = detect_conflicts(best, tasks)
        stats.final_conflicts = len(conflicts)
        clean, evicted = repair(best, tasks, room_count)
        if evicted:
            logger.info("Annealing ended at cost %.1f; %d tasks unscheduled", best_cost, len(evicted))
        return self.build_result(tasks, clean, stats, conflicts)
