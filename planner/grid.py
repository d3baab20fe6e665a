"""
Slot grid for the planning window.

A slot is one 15 minute step on a working day. Slots order chronologically
and their keys (``YYYY-MM-DD_HH:MM``) sort the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, NamedTuple

from .data.models import SLOT_MINUTES, minutes_to_time, weekday_index

DEFAULT_DAY_START = 540
DEFAULT_DAY_END = 1020

WORKING_WEEKDAYS = {1, 2, 3, 4, 5}


class IsoWeek(NamedTuple):
    """ISO calendar week, ordered by year then week number."""
    year: int
    week: int

    @classmethod
    def of(cls, day: date) -> "IsoWeek":
        iso = day.isocalendar()
        return cls(iso[0], iso[1])

    def __str__(self) -> str:
        return f"{self.year}-W{self.week:02d}"


@dataclass(frozen=True, order=True)
class Slot:
    """Start of a 15 minute step on a given day."""
    day: date
    minutes: int

    @property
    def key(self) -> str:
        return f"{self.day.isoformat()}_{minutes_to_time(self.minutes)}"

    @property
    def time(self) -> str:
        return minutes_to_time(self.minutes)

    @property
    def end_minutes(self) -> int:
        return self.minutes + SLOT_MINUTES

    @property
    def weekday(self) -> int:
        """Weekday with 0=Sunday."""
        return weekday_index(self.day)

    @property
    def iso_week(self) -> IsoWeek:
        return IsoWeek.of(self.day)

    @property
    def start(self) -> datetime:
        return datetime(self.day.year, self.day.month, self.day.day) + timedelta(minutes=self.minutes)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=SLOT_MINUTES)

    def shifted(self, steps: int) -> "Slot":
        """Slot ``steps`` grid steps later on the same day (earlier if negative)."""
        return Slot(self.day, self.minutes + steps * SLOT_MINUTES)

    @classmethod
    def at(cls, moment: datetime) -> "Slot":
        """Slot starting at a datetime (must be slot aligned)."""
        return cls(moment.date(), moment.hour * 60 + moment.minute)

    def __str__(self) -> str:
        return self.key


def is_working_day(day: date) -> bool:
    return weekday_index(day) in WORKING_WEEKDAYS


def working_days(start: date, end: date) -> list[date]:
    """Monday to Friday dates between start and end, inclusive."""
    days = []
    current = start
    while current <= end:
        if is_working_day(current):
            days.append(current)
        current += timedelta(days=1)
    return days


def generate_slots(
    start: date,
    end: date,
    day_start: int = DEFAULT_DAY_START,
    day_end: int = DEFAULT_DAY_END,
) -> list[Slot]:
    """
    Every working slot between two dates, in chronological order.

    Args:
        start: First date (inclusive)
        end: Last date (inclusive)
        day_start: First slot of each day, minutes from midnight
        day_end: End of the working day (exclusive)

    Returns:
        Ordered list of slots; empty when end < start or no weekday falls
        inside the range
    """
    return [
        Slot(day, minutes)
        for day in working_days(start, end)
        for minutes in range(day_start, day_end, SLOT_MINUTES)
    ]


def iso_weeks(slots: Iterable[Slot]) -> list[IsoWeek]:
    """Sorted distinct ISO weeks touched by the slots."""
    return sorted({slot.iso_week for slot in slots})


def period_week_map(weeks: Iterable[IsoWeek]) -> dict[IsoWeek, int]:
    """Map each ISO week to its 1-based position in the planning window."""
    return {week: i for i, week in enumerate(sorted(set(weeks)), start=1)}


def slot_count(duration: int) -> int:
    return duration // SLOT_MINUTES


def covered_slots(start: Slot, duration: int) -> list[Slot]:
    """Slots occupied by an appointment of ``duration`` minutes from ``start``."""
    return [start.shifted(i) for i in range(slot_count(duration))]
