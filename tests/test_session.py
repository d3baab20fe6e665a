"""Tests for planning session lifecycle."""

from __future__ import annotations

from datetime import date

import pytest

from planner.data.models import Algorithm, PlanningWindow, ScheduleInput
from planner.engine import solve
from planner.errors import ArchivedSessionError, InvalidTransitionError
from planner.session import PlanningSession, SessionStatus


@pytest.fixture
def session() -> PlanningSession:
    window = PlanningWindow(start_date=date(2025, 10, 27), end_date=date(2025, 11, 2))
    return PlanningSession(name="Autumn term", window=window)


@pytest.fixture
def result():
    schedule_input = ScheduleInput.model_validate({
        "groups": [{"id": "teacher", "count": 2}],
        "planning_window": {"start_date": "2025-10-27", "end_date": "2025-11-02"},
    })
    return solve(schedule_input)


class TestLifecycle:
    """Tests for state transitions."""

    def test_starts_as_draft(self, session):
        assert session.status == SessionStatus.DRAFT
        assert session.algorithm == Algorithm.CSP_BACKTRACK
        assert session.id

    def test_forward_transitions(self, session):
        created = session.updated_at
        session.activate()
        assert session.status == SessionStatus.ACTIVE
        session.archive()
        assert session.is_archived
        assert session.updated_at >= created

    def test_cannot_skip_active(self, session):
        with pytest.raises(InvalidTransitionError) as exc:
            session.archive()
        assert exc.value.code == "invalid_transition"
        assert session.status == SessionStatus.DRAFT

    def test_cannot_go_back(self, session):
        session.activate()
        assert not session.can_transition(SessionStatus.DRAFT)
        with pytest.raises(InvalidTransitionError):
            session.transition("draft")

    def test_archived_is_final(self, session):
        session.activate()
        session.archive()
        for status in SessionStatus:
            assert not session.can_transition(status)

    def test_unique_ids(self, session):
        other = PlanningSession(name="Other", window=session.window)
        assert other.id != session.id


class TestRecordResult:
    """Tests for attaching solve summaries."""

    def test_summary(self, session, result):
        session.record_result(result)
        assert session.summary == {
            "scheduled": 2,
            "unscheduled": 0,
            "conflicts": 0,
            "room_count": 1,
            "algorithm": "greedy",
        }

    def test_draft_and_active_accept_results(self, session, result):
        session.record_result(result)
        session.activate()
        session.record_result(result)
        assert session.summary["scheduled"] == 2

    def test_archived_rejects_results(self, session, result):
        session.activate()
        session.archive()
        with pytest.raises(ArchivedSessionError) as exc:
            session.record_result(result)
        assert exc.value.code == "session_archived"
        assert session.summary is None
