"""
Exact strategy built on OR-Tools CP-SAT.

One boolean per (task, start slot, room). Each task takes at most one of
its booleans, and every (room, slot) and (person, slot) cell is covered by
at most one chosen boolean. The objective maximizes scheduled tasks first
and group priority second.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum

from ortools.sat.python import cp_model

from ..data.models import Algorithm
from ..grid import Slot, covered_slots
from ..tasks import Task, TaskId
from .base import Assignment, Domains, Placement, Solver, SolverResult, SolverStats

logger = logging.getLogger(__name__)


class SolverStatus(str, Enum):
    """CP-SAT result status."""
    OPTIMAL = "OPTIMAL"
    FEASIBLE = "FEASIBLE"
    INFEASIBLE = "INFEASIBLE"
    MODEL_INVALID = "MODEL_INVALID"
    UNKNOWN = "UNKNOWN"


class CpSatSolver(Solver):
    """Solves the placement problem exactly within the time budget."""

    algorithm = Algorithm.CP_SAT

    def solve(self, tasks: list[Task], domains: Domains, room_count: int) -> SolverResult:
        stats = SolverStats()
        model = cp_model.CpModel()

        choices: dict[TaskId, list[tuple[Placement, cp_model.IntVar]]] = {}
        room_cells: dict[tuple[int, Slot], list[cp_model.IntVar]] = defaultdict(list)
        person_cells: dict[tuple[str, Slot], list[cp_model.IntVar]] = defaultdict(list)

        for task in tasks:
            options = []
            for slot in domains.get(task.id, []):
                covered = covered_slots(slot, task.duration)
                for room in range(1, room_count + 1):
                    var = model.NewBoolVar(f"{task.id}@{slot.key}#r{room}")
                    options.append((Placement(slot, room), var))
                    for cell in covered:
                        room_cells[(room, cell)].append(var)
                        person_cells[(task.person_id, cell)].append(var)
            if options:
                model.AddAtMostOne([var for _, var in options])
                choices[task.id] = options

        for cell_vars in list(room_cells.values()) + list(person_cells.values()):
            if len(cell_vars) > 1:
                model.AddAtMostOne(cell_vars)

        by_id = {t.id: t for t in tasks}
        # One extra task always outweighs any mix of priorities
        scale = sum(t.priority for t in tasks) + 1
        if choices:
            model.Maximize(sum(
                (scale + by_id[task_id].priority) * var
                for task_id, options in choices.items()
                for _, var in options
            ))

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = max(self.settings.time_budget, 0.01)
        solver.parameters.num_workers = self.settings.cp_sat_workers
        solver.parameters.log_search_progress = False
        if self.seed is not None:
            solver.parameters.random_seed = self.seed

        status_code = solver.Solve(model)

        status_map = {
            cp_model.OPTIMAL: SolverStatus.OPTIMAL,
            cp_model.FEASIBLE: SolverStatus.FEASIBLE,
            cp_model.INFEASIBLE: SolverStatus.INFEASIBLE,
            cp_model.MODEL_INVALID: SolverStatus.MODEL_INVALID,
            cp_model.UNKNOWN: SolverStatus.UNKNOWN,
        }
        status = status_map.get(status_code, SolverStatus.UNKNOWN)
        stats.status = status.value
        stats.timed_out = status in (SolverStatus.FEASIBLE, SolverStatus.UNKNOWN)
        stats.constraint_checks = int(solver.NumConflicts())
        stats.iterations = int(solver.NumBranches())

        assignment: Assignment = {}
        if status in (SolverStatus.OPTIMAL, SolverStatus.FEASIBLE):
            for task_id, options in choices.items():
                for placement, var in options:
                    if solver.Value(var):
                        assignment[task_id] = placement
                        break
            stats.final_cost = float(solver.ObjectiveValue())
        stats.assignments = len(assignment)

        logger.debug(
            "CP-SAT %s: %d of %d tasks in %.2fs",
            status.value, len(assignment), len(tasks), solver.WallTime(),
        )
        return self.build_result(tasks, assignment, stats)
