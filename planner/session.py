"""Planning session lifecycle: draft, then active, then archived."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .data.models import Algorithm, PlanningWindow
from .errors import ArchivedSessionError, InvalidTransitionError

if TYPE_CHECKING:
    from .engine import ScheduleResult


class SessionStatus(str, Enum):
    """Lifecycle state of a planning session."""
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.DRAFT: {SessionStatus.ACTIVE},
    SessionStatus.ACTIVE: {SessionStatus.ARCHIVED},
    SessionStatus.ARCHIVED: set(),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PlanningSession(BaseModel):
    """A named planning run over a window, moving forward through its states."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: uuid4().hex, description="Session ID")
    name: str = Field(min_length=1, description="Session name")
    description: str = Field(default="", description="Free text notes")
    window: PlanningWindow = Field(description="Dates being planned")
    algorithm: Algorithm = Field(default=Algorithm.CSP_BACKTRACK, description="Strategy used")
    status: SessionStatus = Field(default=SessionStatus.DRAFT, description="Lifecycle state")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    summary: Optional[dict[str, Any]] = Field(default=None, description="Summary of the latest result")

    def can_transition(self, target: SessionStatus) -> bool:
        return SessionStatus(target) in _TRANSITIONS[self.status]

    def transition(self, target: SessionStatus) -> None:
        """
        Move to ``target``.

        Raises:
            InvalidTransitionError: If the move isn't draft->active or
                active->archived
        """
        target = SessionStatus(target)
        if not self.can_transition(target):
            raise InvalidTransitionError(
                f"Cannot move session '{self.name}' from {self.status.value} to {target.value}"
            )
        self.status = target
        self.updated_at = _now()

    def activate(self) -> None:
        self.transition(SessionStatus.ACTIVE)

    def archive(self) -> None:
        self.transition(SessionStatus.ARCHIVED)

    @property
    def is_archived(self) -> bool:
        return self.status == SessionStatus.ARCHIVED

    def record_result(self, result: "ScheduleResult") -> None:
        """
        Attach a short summary of a solve.

        Raises:
            ArchivedSessionError: If the session is archived
        """
        if self.is_archived:
            raise ArchivedSessionError(f"Session '{self.name}' is archived")
        self.summary = {
            "scheduled": result.scheduled_count,
            "unscheduled": len(result.unscheduled),
            "conflicts": len(result.conflicts),
            "room_count": result.room_count,
            "algorithm": result.algorithm.value,
        }
        self.updated_at = _now()
