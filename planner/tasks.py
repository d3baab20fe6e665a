"""
Task generation.

A task is one appointment a person needs inside the planning window: one
per ISO week for weekly groups, one per matching period week for
fortnightly groups and a single week-agnostic task for monthly groups.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .data.models import SLOT_MINUTES, Frequency, Group, WeekPattern
from .grid import IsoWeek, period_week_map, slot_count

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskId:
    """Composite task identifier: person, group and ISO week."""
    person_id: str
    group_id: str
    week: Optional[IsoWeek] = None

    @property
    def is_monthly(self) -> bool:
        return self.week is None

    def __str__(self) -> str:
        if self.week is None:
            return f"{self.person_id}_monthly"
        return f"{self.person_id}_w{self.week.week}"


@dataclass(frozen=True)
class Task:
    """One appointment to place."""
    id: TaskId
    duration: int
    priority: int
    rank: int
    preferred_day: Optional[int] = None
    enabled_weeks: tuple[int, ...] = field(default=())

    def __post_init__(self):
        if self.duration <= 0 or self.duration % SLOT_MINUTES:
            raise ValueError(f"Task {self.id}: duration {self.duration} is not a positive multiple of {SLOT_MINUTES}")

    @property
    def person_id(self) -> str:
        return self.id.person_id

    @property
    def group_id(self) -> str:
        return self.id.group_id

    @property
    def week(self) -> Optional[IsoWeek]:
        return self.id.week

    @property
    def slot_count(self) -> int:
        return slot_count(self.duration)

    def __str__(self) -> str:
        return str(self.id)


def priority_values(order: list[str]) -> dict[str, int]:
    """Numeric priority per group ID; higher is more important."""
    return {group_id: len(order) - i for i, group_id in enumerate(order)}


def _matches_pattern(pattern: WeekPattern, period_week: int) -> bool:
    if pattern == WeekPattern.ODD:
        return period_week % 2 == 1
    if pattern == WeekPattern.EVEN:
        return period_week % 2 == 0
    return True


def generate_tasks(
    groups: Iterable[Group],
    weeks: list[IsoWeek],
    priority_order: list[str],
    enabled_weeks: Optional[dict[str, list[int]]] = None,
) -> list[Task]:
    """
    Expand groups into tasks over the planning window.

    Args:
        groups: Groups to expand
        weeks: ISO weeks of the planning window
        priority_order: Group IDs, highest priority first; groups missing
            from it rank below every listed group
        enabled_weeks: Period weeks each monthly group may use

    Returns:
        Tasks ordered by group priority, then person index, then week
    """
    enabled_weeks = enabled_weeks or {}
    groups = list(groups)
    listed = [g for g in priority_order if any(group.id == g for group in groups)]
    order = listed + [g.id for g in groups if g.id not in listed]
    priorities = priority_values(order)
    by_id = {g.id: g for g in groups}
    period_weeks = period_week_map(weeks)
    sorted_weeks = sorted(period_weeks)

    tasks: list[Task] = []
    for group_id in order:
        group = by_id[group_id]
        if group.freq == Frequency.WEEKLY:
            group_weeks: list[Optional[IsoWeek]] = list(sorted_weeks)
        elif group.freq == Frequency.EVERY_2_WEEKS:
            group_weeks = [w for w in sorted_weeks if _matches_pattern(group.pattern, period_weeks[w])]
        else:
            group_weeks = [None]

        allowed = tuple(sorted(set(enabled_weeks.get(group.id, [])))) if group.freq == Frequency.MONTHLY else ()
        for person_id in group.person_ids():
            for week in group_weeks:
                tasks.append(Task(
                    id=TaskId(person_id, group.id, week),
                    duration=group.duration,
                    priority=priorities[group.id],
                    rank=len(tasks),
                    preferred_day=group.preferred_weekday,
                    enabled_weeks=allowed,
                ))

    logger.debug("Generated %d tasks for %d groups over %d weeks", len(tasks), len(order), len(weeks))
    return tasks
