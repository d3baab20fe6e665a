"""
Sample data generator for testing the planner.

This module builds planner inputs from the default group set: either the
fixed demo scenario or randomly restricted availability with a
configurable share of people and seed.

Usage:
    from planner.data.generator import generate_demo_input, generate_sample_input

    # The fixed demo scenario
    demo = generate_demo_input()

    # Random availability, reproducible
    sample = generate_sample_input(GeneratorConfig(seed=7, restricted_share=0.5))
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional, Union

from ..horizon import StartAlignment, planning_window
from .models import (
    Algorithm,
    AvailabilityRange,
    Group,
    GroupConstraint,
    ScheduleInput,
)


# =============================================================================
# Default Groups
# =============================================================================

DEFAULT_GROUPS = [
    {"id": "teacher", "name": "Teachers", "count": 5, "freq": "weekly", "pattern": "any", "duration": 30},
    {"id": "india", "name": "India Students", "count": 4, "freq": "every_2_weeks", "pattern": "any", "duration": 15},
    {"id": "y2023", "name": "Y2023 Students", "count": 10, "freq": "every_2_weeks", "pattern": "odd", "duration": 15},
    {"id": "y2022", "name": "Y2022 Students", "count": 12, "freq": "every_2_weeks", "pattern": "even", "duration": 15},
    {"id": "y2021", "name": "Y2021 Students", "count": 8, "freq": "monthly", "pattern": "any", "duration": 15},
    {"id": "staff", "name": "Staff", "count": 6, "freq": "monthly", "pattern": "any", "duration": 15},
]

DEFAULT_PRIORITY_ORDER = ["teacher", "india", "y2023", "y2022", "y2021", "staff"]

DEFAULT_GROUP_CONSTRAINTS = [
    {"group": "staff", "type": "not_day", "value": 5},
    {"group": "staff", "type": "not_day", "value": 1},
    {"group": "y2023", "type": "only_day", "value": 3},
    {"group": "y2022", "type": "not_day", "value": 1},
    {"group": "y2022", "type": "not_day", "value": 2},
    {"group": "y2021", "type": "only_day", "value": 4},
    {"group": "india", "type": "not_day", "value": 2},
    {"group": "india", "type": "not_day", "value": 5},
]


# =============================================================================
# Demo Scenario
# =============================================================================

DEMO_START_DATE = date(2025, 10, 23)

# (person, [(day, start hour, end hour), ...]) in UTC
DEMO_AVAILABILITY = {
    "teacher_1": [("2025-10-27", 9, 12), ("2025-10-29", 9, 12), ("2025-11-03", 9, 12), ("2025-11-05", 9, 12)],
    "teacher_2": [("2025-10-23", 13, 17), ("2025-10-24", 13, 17), ("2025-10-30", 13, 17), ("2025-10-31", 13, 17)],
    "teacher_3": [("2025-10-29", 14, 16), ("2025-11-05", 14, 16)],
    "staff_1": [("2025-10-29", 10, 15), ("2025-10-30", 10, 15)],
    "staff_2": [("2025-10-28", 9, 17), ("2025-10-29", 9, 17), ("2025-10-30", 9, 17)],
    "y2023_1": [("2025-10-29", 10, 14), ("2025-11-12", 10, 14)],
    "y2023_2": [("2025-10-29", 9, 11), ("2025-11-12", 9, 11)],
    "y2022_1": [("2025-10-24", 13, 17), ("2025-10-29", 13, 17), ("2025-10-30", 13, 17), ("2025-10-31", 13, 17)],
    "y2021_1": [("2025-10-30", 10, 15)],
    "y2021_2": [("2025-10-30", 9, 12)],
    "india_1": [("2025-10-29", 9, 12), ("2025-10-30", 9, 12), ("2025-11-13", 9, 12), ("2025-11-12", 9, 12)],
    "india_3": [("2025-10-29", 9, 17), ("2025-10-30", 9, 17), ("2025-11-12", 9, 17), ("2025-11-13", 9, 17)],
}


def _range(day: date, start_hour: int, end_hour: int) -> AvailabilityRange:
    midnight = datetime(day.year, day.month, day.day)
    return AvailabilityRange(
        start=midnight + timedelta(hours=start_hour),
        end=midnight + timedelta(hours=end_hour),
    )


def default_groups() -> list[Group]:
    return [Group(**g) for g in DEFAULT_GROUPS]


def default_group_constraints() -> list[GroupConstraint]:
    return [GroupConstraint(**c) for c in DEFAULT_GROUP_CONSTRAINTS]


def generate_demo_input(
    algorithm: Algorithm = Algorithm.GREEDY,
    horizon_weeks: int = 5,
) -> ScheduleInput:
    """
    The fixed demo scenario starting on 23 October 2025.

    Several people only have a few hours of availability and some groups
    are limited to one weekday, so not everything can be placed.
    """
    return ScheduleInput(
        groups=default_groups(),
        group_constraints=default_group_constraints(),
        individual_constraints={
            person_id: [_range(date.fromisoformat(d), start, end) for d, start, end in windows]
            for person_id, windows in DEMO_AVAILABILITY.items()
        },
        planning_window=planning_window(DEMO_START_DATE, horizon_weeks),
        room_count="auto",
        algorithm=algorithm,
        priority_order=list(DEFAULT_PRIORITY_ORDER),
    )


# =============================================================================
# Generator Configuration
# =============================================================================

@dataclass
class GeneratorConfig:
    """Configuration for random input generation.

    Restricted people get between ``min_windows`` and ``max_windows``
    availability windows of ``min_window_hours`` to ``max_window_hours``
    on random working days. Everyone else is unrestricted.
    """
    start_date: date = DEMO_START_DATE
    horizon_weeks: int = 5
    alignment: StartAlignment = StartAlignment.WEEK_MONDAY

    # Group settings
    groups: list[dict] = field(default_factory=lambda: [dict(g) for g in DEFAULT_GROUPS])
    include_group_constraints: bool = True
    group_scale: float = 1.0

    # Availability settings
    restricted_share: float = 0.3
    min_windows: int = 2
    max_windows: int = 6
    min_window_hours: int = 1
    max_window_hours: int = 4

    # Solve settings
    room_count: Union[int, str] = "auto"
    algorithm: Algorithm = Algorithm.GREEDY

    # Randomization
    seed: Optional[int] = None


# =============================================================================
# Generator Functions
# =============================================================================

def generate_sample_input(config: Optional[GeneratorConfig] = None) -> ScheduleInput:
    """
    Generate a random planner input.

    Args:
        config: Generator configuration (uses defaults if None)

    Returns:
        ScheduleInput with generated data
    """
    if config is None:
        config = GeneratorConfig()
    rng = random.Random(config.seed)

    groups = []
    for data in config.groups:
        data = dict(data)
        data["count"] = max(0, round(data.get("count", 0) * config.group_scale))
        groups.append(Group(**data))

    window = planning_window(config.start_date, config.horizon_weeks, config.alignment)
    days = [
        window.start_date + timedelta(days=i)
        for i in range(window.days)
        if (window.start_date + timedelta(days=i)).weekday() < 5
    ]

    availability: dict[str, list[AvailabilityRange]] = {}
    for group in groups:
        for person_id in group.person_ids():
            if rng.random() < config.restricted_share:
                availability[person_id] = _random_windows(rng, days, config)

    group_ids = {g.id for g in groups}
    constraints = [
        GroupConstraint(**c) for c in DEFAULT_GROUP_CONSTRAINTS
        if config.include_group_constraints and c["group"] in group_ids
    ]

    return ScheduleInput(
        groups=groups,
        group_constraints=constraints,
        individual_constraints=availability,
        planning_window=window,
        room_count=config.room_count,
        algorithm=config.algorithm,
        priority_order=[g for g in DEFAULT_PRIORITY_ORDER if g in group_ids],
        seed=config.seed,
    )


def _random_windows(rng: random.Random, days: list[date], config: GeneratorConfig) -> list[AvailabilityRange]:
    """Random availability windows inside working hours."""
    count = rng.randint(config.min_windows, config.max_windows)
    windows = []
    for day in sorted(rng.sample(days, min(count, len(days)))):
        hours = rng.randint(config.min_window_hours, config.max_window_hours)
        start = rng.randint(9, 17 - hours)
        windows.append(_range(day, start, start + hours))
    return windows


def save_generated_input(schedule_input: ScheduleInput, filepath: Union[str, Path]) -> None:
    """
    Save a generated input to a JSON file.

    Args:
        schedule_input: Generated ScheduleInput
        filepath: Path to save JSON file
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = schedule_input.model_dump(mode="json", exclude={"settings"})
    with open(path, "w") as f:
        json.dump(data, f, indent=2)


def get_generation_stats(schedule_input: ScheduleInput) -> dict:
    """
    Get statistics about generated input data.

    Args:
        schedule_input: Generated ScheduleInput

    Returns:
        Dictionary with statistics
    """
    restricted = {p: r for p, r in schedule_input.individual_constraints.items() if r}
    return {
        "groups": len(schedule_input.groups),
        "persons": schedule_input.total_persons,
        "restricted_persons": len(restricted),
        "availability_ranges": sum(len(r) for r in restricted.values()),
        "group_constraints": len(schedule_input.group_constraints),
        "window_days": schedule_input.planning_window.days,
    }
