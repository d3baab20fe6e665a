"""Exceptions raised by the planner."""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for planner errors."""

    code = "planner_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class NoWorkableDaysError(PlannerError):
    """Raised when the planning window contains no working slots."""

    code = "no_workable_days"


class DomainGenerationTimeoutError(PlannerError):
    """Raised when domain calculation exceeds its time budget."""

    code = "domain_generation_timeout"


class InvalidTransitionError(PlannerError):
    """Raised on an illegal planning session state change."""

    code = "invalid_transition"


class ArchivedSessionError(PlannerError):
    """Raised when modifying a session that has been archived."""

    code = "session_archived"
