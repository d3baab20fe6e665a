"""
Pydantic models for the appointment planner input.

Time conventions:
- Slot times are minutes from midnight (0-1439), 15 minute granularity
- Weekdays are 0-6 with 0=Sunday (3 = Wednesday)
- Availability ranges are interpreted in UTC; epoch milliseconds and ISO
  datetimes are both accepted

Example times:
- 9:00 AM = 540
- 12:30 PM = 750
- 5:00 PM = 1020
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# Constants and Enums
# =============================================================================

SLOT_MINUTES = 15

WEEKDAY_NAMES = [
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
]


class Frequency(str, Enum):
    """How often each person in a group needs an appointment."""
    WEEKLY = "weekly"
    EVERY_2_WEEKS = "every_2_weeks"
    MONTHLY = "monthly"


class WeekPattern(str, Enum):
    """Which period weeks a fortnightly group uses."""
    ANY = "any"
    ODD = "odd"
    EVEN = "even"


class ConstraintType(str, Enum):
    """Kind of weekday rule applied to a whole group."""
    NOT_DAY = "not_day"
    ONLY_DAY = "only_day"


class Algorithm(str, Enum):
    """Available solving strategies."""
    GREEDY = "greedy"
    CSP_BACKTRACK = "csp_backtrack"
    MIN_CONFLICT = "min_conflict"
    SIMULATED_ANNEALING = "simulated_annealing"
    CP_SAT = "cp_sat"


# Type aliases for documentation
MinutesFromMidnight = Annotated[int, Field(ge=0, le=1440, description="Time as minutes from midnight")]
WeekdayIndex = Annotated[int, Field(ge=0, le=6, description="Day of week (0=Sunday, 6=Saturday)")]
PeriodWeek = Annotated[int, Field(ge=1, description="1-based week inside the planning window")]
RoomCount = Annotated[int, Field(ge=1, le=10, description="Number of rooms")]


# =============================================================================
# Helper Functions
# =============================================================================

def minutes_to_time(minutes: int) -> str:
    """Convert minutes from midnight to HH:MM format."""
    h, m = divmod(minutes, 60)
    return f"{h:02d}:{m:02d}"


def time_to_minutes(time_str: str) -> int:
    """Convert HH:MM format to minutes from midnight."""
    h, m = map(int, time_str.split(":"))
    return h * 60 + m


def weekday_name(day: int) -> str:
    """Get day name from a 0=Sunday index."""
    return WEEKDAY_NAMES[day] if 0 <= day <= 6 else f"Day {day}"


def weekday_index(day: date) -> int:
    """Weekday of a date with 0=Sunday."""
    return day.isoweekday() % 7


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# =============================================================================
# Core Entity Models
# =============================================================================

class Group(BaseModel):
    """A set of people sharing an appointment frequency and duration."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier, also the person id prefix")
    name: Optional[str] = Field(default=None, description="Display name")
    count: int = Field(ge=0, le=1000, description="Number of people in the group")
    duration: int = Field(default=15, ge=SLOT_MINUTES, le=480, description="Appointment length in minutes")
    freq: Frequency = Field(default=Frequency.WEEKLY, description="Appointment frequency")
    pattern: WeekPattern = Field(default=WeekPattern.ANY, description="Period week parity for fortnightly groups")
    preferred_day: Union[Literal["any"], WeekdayIndex] = Field(default="any", description="Preferred weekday")
    measurements: int = Field(default=1, ge=1, description="Measurements taken per appointment")

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        """Durations must fill whole slots."""
        if v % SLOT_MINUTES:
            raise ValueError(f"duration ({v}) must be a multiple of {SLOT_MINUTES} minutes")
        return v

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def preferred_weekday(self) -> Optional[int]:
        """Preferred weekday as an index, or None when any day is fine."""
        return None if self.preferred_day == "any" else int(self.preferred_day)

    def person_ids(self) -> list[str]:
        return [f"{self.id}_{i}" for i in range(1, self.count + 1)]

    def __str__(self) -> str:
        extra = f", {self.measurements} measurements" if self.measurements > 1 else ""
        return f"{self.display_name} ({self.count} x {self.duration} min, {self.freq.value}{extra})"


class GroupConstraint(BaseModel):
    """Weekday rule for every member of a group."""
    model_config = ConfigDict(extra="forbid")

    group: str = Field(min_length=1, description="Group ID")
    week: Union[Literal["all"], PeriodWeek] = Field(default="all", description="Period week or 'all'")
    type: ConstraintType = Field(description="Rule type")
    value: WeekdayIndex = Field(description="Weekday the rule refers to")

    def applies_to_week(self, period_week: Optional[int]) -> bool:
        """Whether the rule covers slots in the given period week."""
        return self.week == "all" or self.week == period_week

    def __str__(self) -> str:
        scope = "" if self.week == "all" else f" (week {self.week})"
        return f"{self.type.value} on {weekday_name(self.value).upper()}{scope}"


class AvailabilityRange(BaseModel):
    """Time range during which a person may be booked."""
    model_config = ConfigDict(extra="forbid")

    start: datetime = Field(description="Range start (UTC)")
    end: datetime = Field(description="Range end (UTC)")

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        """Store all datetimes as naive UTC."""
        return _to_naive_utc(v)

    @model_validator(mode="after")
    def validate_time_range(self) -> "AvailabilityRange":
        """Ensure start is before end."""
        if self.start >= self.end:
            raise ValueError(f"start ({self.start}) must be before end ({self.end})")
        return self

    def __str__(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


class PlanningWindow(BaseModel):
    """Inclusive date range to plan."""
    model_config = ConfigDict(extra="forbid")

    start_date: date = Field(description="First day of the window")
    end_date: date = Field(description="Last day of the window (inclusive)")

    @model_validator(mode="after")
    def validate_week_numbers(self) -> "PlanningWindow":
        """
        Reject windows that touch the same ISO week number twice.

        Task IDs carry the week number without the year, so a window may
        span at most one full year of ISO weeks.
        """
        seen: set[int] = set()
        monday = self.start_date - timedelta(days=self.start_date.weekday())
        while monday <= self.end_date:
            week = monday.isocalendar()[1]
            if week in seen:
                raise ValueError(
                    f"window {self.start_date} to {self.end_date} repeats ISO week {week}; "
                    f"plan at most one year of weeks at a time"
                )
            seen.add(week)
            monday += timedelta(weeks=1)
        return self

    @property
    def days(self) -> int:
        return max((self.end_date - self.start_date).days + 1, 0)

    def extended(self, weeks: int = 1) -> "PlanningWindow":
        """Copy of the window with the end pushed back by whole weeks."""
        return PlanningWindow(
            start_date=self.start_date,
            end_date=self.end_date + timedelta(weeks=weeks),
        )

    def __str__(self) -> str:
        return f"{self.start_date.isoformat()} to {self.end_date.isoformat()}"


# =============================================================================
# Configuration Models
# =============================================================================

class EngineSettings(BaseModel):
    """Tunable limits and working hours for one solve."""
    model_config = ConfigDict(extra="forbid")

    day_start_minutes: MinutesFromMidnight = Field(default=540, description="Working day start (default 9:00)")
    day_end_minutes: MinutesFromMidnight = Field(default=1020, description="Working day end, exclusive (default 17:00)")
    domain_time_budget: float = Field(default=10.0, gt=0, description="Seconds allowed for domain calculation")
    time_budget: float = Field(default=30.0, ge=0, description="Seconds allowed for the solver")
    max_backtracks: int = Field(default=10_000, ge=1, description="Backtracking search cap")
    min_conflict_iterations: int = Field(default=1000, ge=0, description="Min-conflict iteration cap")
    annealing_iterations: int = Field(default=2000, ge=0, description="Simulated annealing iteration cap")
    initial_temperature: float = Field(default=100.0, gt=0, description="Annealing start temperature")
    cooling_rate: float = Field(default=0.95, gt=0, lt=1, description="Annealing temperature multiplier")
    min_temperature: float = Field(default=0.1, gt=0, description="Annealing stop temperature")
    cp_sat_workers: int = Field(default=0, ge=0, description="CP-SAT search workers (0 = all cores)")
    shift_window: int = Field(default=8, ge=1, description="Slots searched either side by time shifting")
    max_extensions: int = Field(default=12, ge=0, description="Weeks the window may grow by")

    @model_validator(mode="after")
    def validate_day_times(self) -> "EngineSettings":
        """Ensure the working day is non-empty and slot aligned."""
        if self.day_start_minutes >= self.day_end_minutes:
            raise ValueError(
                f"day_start_minutes ({self.day_start_minutes}) must be less than "
                f"day_end_minutes ({self.day_end_minutes})"
            )
        for name in ("day_start_minutes", "day_end_minutes"):
            if getattr(self, name) % SLOT_MINUTES:
                raise ValueError(f"{name} must be a multiple of {SLOT_MINUTES}")
        return self


# =============================================================================
# Main Input Model
# =============================================================================

class ScheduleInput(BaseModel):
    """
    Complete planner input.
    This is the main model for loading and validating planning data.
    """
    model_config = ConfigDict(extra="forbid")

    groups: list[Group] = Field(min_length=1, description="Groups to schedule")
    group_constraints: list[GroupConstraint] = Field(default_factory=list, description="Weekday rules")
    individual_constraints: dict[str, list[AvailabilityRange]] = Field(
        default_factory=dict, description="Availability ranges keyed by person ID"
    )
    weekly_enabled_weeks: dict[str, list[PeriodWeek]] = Field(
        default_factory=dict, description="Period weeks monthly groups may use, keyed by group ID"
    )
    planning_window: PlanningWindow = Field(description="Dates to plan")
    room_count: Union[Literal["auto"], RoomCount] = Field(default="auto", description="Rooms, or 'auto'")
    algorithm: Algorithm = Field(default=Algorithm.GREEDY, description="Solving strategy")
    priority_order: list[str] = Field(default_factory=list, description="Group IDs, highest priority first")
    seed: Optional[int] = Field(default=None, description="Seed for randomized strategies")
    settings: EngineSettings = Field(default_factory=EngineSettings, description="Engine limits")

    # Lookup caches (populated after validation)
    _group_map: dict[str, Group] = {}

    def model_post_init(self, __context: Any) -> None:
        """Build lookup maps after model initialization."""
        self._group_map = {g.id: g for g in self.groups}

    @model_validator(mode="after")
    def validate_no_duplicate_ids(self) -> "ScheduleInput":
        """Ensure group IDs are unique."""
        seen: set[str] = set()
        errors: list[str] = []
        for group in self.groups:
            if group.id in seen:
                errors.append(f"Duplicate group ID: '{group.id}'")
            seen.add(group.id)

        if errors:
            raise ValueError("Duplicate ID validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        return self

    @model_validator(mode="after")
    def validate_references(self) -> "ScheduleInput":
        """Validate that constraints only name known groups."""
        errors: list[str] = []
        group_ids = {g.id for g in self.groups}

        for i, constraint in enumerate(self.group_constraints):
            if constraint.group not in group_ids:
                errors.append(f"Group constraint {i}: unknown group '{constraint.group}'")

        for group_id in self.weekly_enabled_weeks:
            if group_id not in group_ids:
                errors.append(f"Enabled weeks: unknown group '{group_id}'")

        if errors:
            raise ValueError("Reference validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        return self

    # -------------------------------------------------------------------------
    # Lookup Methods
    # -------------------------------------------------------------------------

    def get_group(self, group_id: str) -> Optional[Group]:
        """Get group by ID."""
        return self._group_map.get(group_id)

    @property
    def effective_priority_order(self) -> list[str]:
        """
        Group IDs from highest to lowest priority.

        Listed groups come first in list order; groups missing from
        priority_order follow in input order. Listed IDs that name no
        group are ignored.
        """
        listed = [g for g in dict.fromkeys(self.priority_order) if g in self._group_map]
        rest = [g.id for g in self.groups if g.id not in listed]
        return listed + rest

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    @property
    def total_persons(self) -> int:
        return sum(g.count for g in self.groups)

    def summary(self) -> dict[str, Any]:
        """Get a summary of the planning data."""
        return {
            "groups": len(self.groups),
            "persons": self.total_persons,
            "group_constraints": len(self.group_constraints),
            "restricted_persons": sum(1 for ranges in self.individual_constraints.values() if ranges),
            "window": str(self.planning_window),
            "room_count": self.room_count,
            "algorithm": self.algorithm.value,
        }


# =============================================================================
# JSON Loading Helper
# =============================================================================

# Mappings whose keys are identifiers, not field names
_ID_KEYED_FIELDS = ("individual_constraints", "weekly_enabled_weeks")


def load_input_from_json(path: Union[str, Path]) -> ScheduleInput:
    """
    Load and validate planner input from a JSON file.

    Keys may be camelCase or snake_case. Person and group identifiers used
    as mapping keys are left untouched.

    Args:
        path: Path to the JSON file

    Returns:
        Validated ScheduleInput model

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If invalid JSON
        pydantic.ValidationError: If validation fails
    """
    with open(Path(path)) as f:
        data = json.load(f)

    return ScheduleInput.model_validate(_convert_keys_to_snake_case(data))


def to_snake_case(name: str) -> str:
    name = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
    name = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', name)
    return name.lower()


def _convert_keys_to_snake_case(obj: Any) -> Any:
    """Recursively convert dictionary keys from camelCase to snake_case."""
    if isinstance(obj, dict):
        converted = {}
        for key, value in obj.items():
            key = to_snake_case(key)
            if key in _ID_KEYED_FIELDS and isinstance(value, dict):
                converted[key] = {k: _convert_keys_to_snake_case(v) for k, v in value.items()}
            else:
                converted[key] = _convert_keys_to_snake_case(value)
        return converted
    elif isinstance(obj, list):
        return [_convert_keys_to_snake_case(item) for item in obj]
    else:
        return obj
