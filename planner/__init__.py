"""Appointment planner - recurring appointment scheduling with pluggable strategies."""

from .data.models import Algorithm, EngineSettings, ScheduleInput, load_input_from_json
from .engine import ScheduleResult, SolveFailure, prepare, solve, solve_with_extension
from .session import PlanningSession, SessionStatus
from .cli import app as cli_app

__all__ = [
    # Input
    "Algorithm",
    "EngineSettings",
    "ScheduleInput",
    "load_input_from_json",
    # Engine
    "ScheduleResult",
    "SolveFailure",
    "prepare",
    "solve",
    "solve_with_extension",
    # Sessions
    "PlanningSession",
    "SessionStatus",
    # CLI
    "cli_app",
]
