"""Planning window alignment helpers."""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from typing import Optional

from .data.models import PlanningWindow
from .grid import is_working_day


class StartAlignment(str, Enum):
    """How a requested start date is moved before planning."""
    AS_IS = "as_is"
    WEEK_MONDAY = "week_monday"
    NEXT_MONDAY = "next_monday"
    PREVIOUS_MONDAY = "previous_monday"
    FIRST_FULL_WEEK = "first_full_week"


def start_of_week_monday(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def next_monday(day: date) -> date:
    """First Monday strictly after ``day``."""
    return start_of_week_monday(day) + timedelta(weeks=1)


def previous_monday(day: date) -> date:
    """Last Monday strictly before ``day``."""
    monday = start_of_week_monday(day)
    if monday >= day:
        monday -= timedelta(weeks=1)
    return monday


def first_full_week_of_month(day: date) -> date:
    """First Monday that falls inside the month of ``day``."""
    first = day.replace(day=1)
    monday = start_of_week_monday(first)
    if monday.month != first.month:
        monday += timedelta(weeks=1)
    return monday


def align_start_date(
    anchor: date,
    alignment: StartAlignment = StartAlignment.AS_IS,
    allow_past: bool = False,
    month_context: Optional[date] = None,
) -> date:
    """
    Move a start date according to an alignment rule.

    ``previous_monday`` only reaches into the past when ``allow_past`` is
    set; otherwise it falls back to the Monday of the anchor's week.
    ``first_full_week`` uses ``month_context`` (default: the anchor) to pick
    the month.
    """
    if alignment == StartAlignment.WEEK_MONDAY:
        return start_of_week_monday(anchor)
    if alignment == StartAlignment.NEXT_MONDAY:
        return next_monday(anchor)
    if alignment == StartAlignment.PREVIOUS_MONDAY:
        return previous_monday(anchor) if allow_past else start_of_week_monday(anchor)
    if alignment == StartAlignment.FIRST_FULL_WEEK:
        return first_full_week_of_month(month_context or anchor)
    return anchor


def working_days_left_in_week(day: date) -> int:
    """Weekdays from ``day`` up to and including that week's Sunday."""
    sunday = start_of_week_monday(day) + timedelta(days=6)
    return sum(
        1 for offset in range((sunday - day).days + 1)
        if is_working_day(day + timedelta(days=offset))
    )


def planning_window(
    start: date,
    horizon_weeks: int = 5,
    alignment: StartAlignment = StartAlignment.AS_IS,
    allow_past: bool = False,
    skip_partial_week: bool = False,
    min_working_days: int = 3,
    anchor: Optional[date] = None,
) -> PlanningWindow:
    """
    Build the planning window for a requested start date.

    Args:
        start: Requested start date
        horizon_weeks: Weeks to plan (at least 1)
        alignment: Start alignment rule
        allow_past: Allow ``previous_monday`` to move before the anchor week
        skip_partial_week: Skip the first week when it has too few working days
        min_working_days: Working days (1-5) a first week needs to be kept
        anchor: Alignment anchor; used instead of ``start`` when later

    Returns:
        Window whose end is extended to the following Sunday
    """
    horizon_weeks = max(1, horizon_weeks)
    min_working_days = min(5, max(1, min_working_days))

    base = anchor if anchor is not None and anchor > start else start
    aligned = align_start_date(base, alignment, allow_past, month_context=start)

    if skip_partial_week and working_days_left_in_week(aligned) < min_working_days:
        aligned = next_monday(aligned)

    end = aligned + timedelta(days=horizon_weeks * 7 - 1)
    end += timedelta(days=(6 - end.weekday()))
    return PlanningWindow(start_date=aligned, end_date=end)


def extend_window(window: PlanningWindow, weeks: int = 1) -> PlanningWindow:
    """Window with its end date pushed back by whole weeks."""
    return window.extended(weeks)
