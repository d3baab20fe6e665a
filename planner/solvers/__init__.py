"""Scheduling strategies."""

from __future__ import annotations

import time
from typing import Callable, Optional

from ..data.models import Algorithm, EngineSettings
from .annealing import CostWeights, SimulatedAnnealingSolver
from .backtracking import BacktrackingSolver
from .base import (
    Assignment,
    Conflict,
    ConflictType,
    Domains,
    Placement,
    Solver,
    SolverResult,
    SolverStats,
    TimeBudget,
    mrv_order,
)
from .conflicts import ConflictIndex, RoomBook, detect_conflicts, repair
from .cp_sat import CpSatSolver
from .greedy import GreedySolver
from .min_conflict import MinConflictSolver

SOLVERS: dict[Algorithm, type[Solver]] = {
    Algorithm.GREEDY: GreedySolver,
    Algorithm.CSP_BACKTRACK: BacktrackingSolver,
    Algorithm.MIN_CONFLICT: MinConflictSolver,
    Algorithm.SIMULATED_ANNEALING: SimulatedAnnealingSolver,
    Algorithm.CP_SAT: CpSatSolver,
}


def create_solver(
    algorithm: Algorithm,
    settings: Optional[EngineSettings] = None,
    seed: Optional[int] = None,
    clock: Callable[[], float] = time.monotonic,
) -> Solver:
    """Instantiate the strategy for an algorithm name."""
    return SOLVERS[Algorithm(algorithm)](settings, seed, clock)


__all__ = [
    "Assignment",
    "BacktrackingSolver",
    "Conflict",
    "ConflictIndex",
    "ConflictType",
    "CostWeights",
    "CpSatSolver",
    "Domains",
    "GreedySolver",
    "MinConflictSolver",
    "Placement",
    "RoomBook",
    "SOLVERS",
    "SimulatedAnnealingSolver",
    "Solver",
    "SolverResult",
    "SolverStats",
    "TimeBudget",
    "create_solver",
    "detect_conflicts",
    "mrv_order",
    "repair",
]
