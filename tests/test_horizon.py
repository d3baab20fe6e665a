"""Tests for planning window alignment."""

from __future__ import annotations

from datetime import date

import pytest

from planner.data.models import PlanningWindow
from planner.horizon import (
    StartAlignment,
    align_start_date,
    extend_window,
    first_full_week_of_month,
    next_monday,
    planning_window,
    previous_monday,
    start_of_week_monday,
    working_days_left_in_week,
)

THURSDAY = date(2025, 10, 23)
MONDAY = date(2025, 10, 27)


class TestMondayHelpers:
    """Tests for Monday arithmetic."""

    def test_start_of_week_monday(self):
        assert start_of_week_monday(THURSDAY) == date(2025, 10, 20)
        assert start_of_week_monday(MONDAY) == MONDAY
        assert start_of_week_monday(date(2025, 10, 26)) == date(2025, 10, 20)

    def test_next_monday_is_strictly_after(self):
        assert next_monday(THURSDAY) == MONDAY
        assert next_monday(MONDAY) == date(2025, 11, 3)

    def test_previous_monday_is_strictly_before(self):
        assert previous_monday(THURSDAY) == date(2025, 10, 20)
        assert previous_monday(MONDAY) == date(2025, 10, 20)

    def test_first_full_week_of_month(self):
        assert first_full_week_of_month(date(2025, 10, 15)) == date(2025, 10, 6)
        assert first_full_week_of_month(date(2025, 9, 20)) == date(2025, 9, 1)


class TestAlignStartDate:
    """Tests for start alignment rules."""

    @pytest.mark.parametrize("alignment,expected", [
        (StartAlignment.AS_IS, THURSDAY),
        (StartAlignment.WEEK_MONDAY, date(2025, 10, 20)),
        (StartAlignment.NEXT_MONDAY, MONDAY),
        (StartAlignment.FIRST_FULL_WEEK, date(2025, 10, 6)),
    ])
    def test_alignment(self, alignment, expected):
        assert align_start_date(THURSDAY, alignment) == expected

    def test_previous_monday_needs_allow_past(self):
        assert align_start_date(MONDAY, StartAlignment.PREVIOUS_MONDAY) == MONDAY
        assert align_start_date(MONDAY, StartAlignment.PREVIOUS_MONDAY, allow_past=True) == date(2025, 10, 20)

    def test_first_full_week_uses_month_context(self):
        aligned = align_start_date(THURSDAY, StartAlignment.FIRST_FULL_WEEK, month_context=date(2025, 9, 10))
        assert aligned == date(2025, 9, 1)


class TestWorkingDaysLeft:
    """Tests for counting the rest of a week."""

    def test_monday(self):
        assert working_days_left_in_week(MONDAY) == 5

    def test_thursday(self):
        assert working_days_left_in_week(THURSDAY) == 2

    def test_weekend(self):
        assert working_days_left_in_week(date(2025, 11, 1)) == 0


class TestPlanningWindow:
    """Tests for window construction."""

    def test_end_extended_to_sunday(self):
        window = planning_window(THURSDAY, 5)
        assert window.start_date == THURSDAY
        assert window.end_date == date(2025, 11, 30)

    def test_single_week(self):
        window = planning_window(THURSDAY, 1)
        assert window.end_date == date(2025, 11, 2)

    def test_monday_start(self):
        window = planning_window(MONDAY, 2)
        assert (window.start_date, window.end_date) == (MONDAY, date(2025, 11, 9))

    def test_horizon_at_least_one_week(self):
        assert planning_window(MONDAY, 0).end_date == date(2025, 11, 2)

    def test_skip_partial_week(self):
        window = planning_window(THURSDAY, 2, skip_partial_week=True)
        assert window.start_date == MONDAY
        assert window.end_date == date(2025, 11, 9)

    def test_partial_week_kept_when_long_enough(self):
        window = planning_window(THURSDAY, 2, skip_partial_week=True, min_working_days=2)
        assert window.start_date == THURSDAY

    def test_week_monday_alignment(self):
        window = planning_window(THURSDAY, 1, StartAlignment.WEEK_MONDAY)
        assert window.start_date == date(2025, 10, 20)
        assert window.end_date == date(2025, 10, 26)

    def test_later_anchor_wins(self):
        window = planning_window(date(2025, 10, 20), 1, anchor=THURSDAY)
        assert window.start_date == THURSDAY

    def test_earlier_anchor_ignored(self):
        window = planning_window(THURSDAY, 1, anchor=date(2025, 10, 1))
        assert window.start_date == THURSDAY


class TestExtendWindow:
    """Tests for window extension."""

    def test_extend(self):
        window = PlanningWindow(start_date=MONDAY, end_date=date(2025, 11, 2))
        extended = extend_window(window)
        assert extended.end_date == date(2025, 11, 9)
        assert extend_window(window, 3).end_date == date(2025, 11, 23)
