"""
Quality metrics for solved schedules.

Measures how much of the demand was placed, per group and overall, how
busy each room is, how often preferred weekdays were honoured and which
domain stage removed the most slots for each group.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from ..data.models import SLOT_MINUTES

if TYPE_CHECKING:
    from .schema import ScheduleOutput


# =============================================================================
# Constants
# =============================================================================

# Target thresholds for quality assessment
DEFAULT_TARGETS = {
    "completion": 95.0,       # Min % of tasks scheduled
    "preferred_day": 80.0,    # Min % of preferences honoured
    "utilization": 25.0,      # Min average room utilization %
}


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class GroupCoverage:
    """Scheduled share of one group's tasks."""
    group_id: str
    total: int
    scheduled: int
    invalid: int = 0

    @property
    def percentage(self) -> float:
        return round(100.0 * self.scheduled / self.total, 2) if self.total else 100.0


@dataclass
class RoomUtilization:
    """Booked share of one room's working time."""
    room: int
    booked_minutes: int
    available_minutes: int

    @property
    def percentage(self) -> float:
        if not self.available_minutes:
            return 0.0
        return round(100.0 * self.booked_minutes / self.available_minutes, 2)


@dataclass
class PreferenceMetrics:
    """How often tasks with a preferred weekday got it."""
    with_preference: int
    on_preferred_day: int

    @property
    def percentage(self) -> float:
        if not self.with_preference:
            return 100.0
        return round(100.0 * self.on_preferred_day / self.with_preference, 2)


@dataclass
class ScheduleMetrics:
    """Complete metrics report for a schedule."""
    total_tasks: int
    scheduled_tasks: int
    invalid_tasks: int
    conflicts: int
    group_coverage: dict[str, GroupCoverage]
    room_utilization: list[RoomUtilization]
    preference: PreferenceMetrics
    restrictive_stages: dict[str, str]
    overall_score: float
    grade: str
    improvement_areas: list[str] = field(default_factory=list)

    @property
    def unscheduled_tasks(self) -> int:
        return self.total_tasks - self.scheduled_tasks

    @property
    def completion_rate(self) -> float:
        return round(100.0 * self.scheduled_tasks / self.total_tasks, 2) if self.total_tasks else 100.0

    @property
    def average_utilization(self) -> float:
        if not self.room_utilization:
            return 0.0
        return round(sum(r.percentage for r in self.room_utilization) / len(self.room_utilization), 2)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "overallScore": self.overall_score,
            "grade": self.grade,
            "totalTasks": self.total_tasks,
            "scheduledTasks": self.scheduled_tasks,
            "unscheduledTasks": self.unscheduled_tasks,
            "invalidTasks": self.invalid_tasks,
            "conflicts": self.conflicts,
            "completionRate": self.completion_rate,
            "groups": {
                g.group_id: {
                    "total": g.total,
                    "scheduled": g.scheduled,
                    "invalid": g.invalid,
                    "percentage": g.percentage,
                }
                for g in self.group_coverage.values()
            },
            "rooms": [
                {
                    "room": r.room,
                    "bookedMinutes": r.booked_minutes,
                    "availableMinutes": r.available_minutes,
                    "percentage": r.percentage,
                }
                for r in self.room_utilization
            ],
            "preferredDay": {
                "withPreference": self.preference.with_preference,
                "onPreferredDay": self.preference.on_preferred_day,
                "percentage": self.preference.percentage,
            },
            "restrictiveStages": self.restrictive_stages,
            "improvementAreas": self.improvement_areas,
        }


# =============================================================================
# Calculator
# =============================================================================

class ScheduleMetricsCalculator:
    """
    Calculator for schedule quality metrics.

    Usage:
        calculator = ScheduleMetricsCalculator()
        metrics = calculator.calculate(output)
        print(calculator.generate_report(metrics))
    """

    def __init__(self, targets: Optional[dict[str, float]] = None):
        self.targets = {**DEFAULT_TARGETS, **(targets or {})}

    def calculate(self, output: ScheduleOutput) -> ScheduleMetrics:
        """Calculate all metrics for a schedule output."""
        group_coverage = self.calculate_group_coverage(output)
        room_utilization = self.calculate_room_utilization(output)
        preference = self.calculate_preference(output)

        metrics = ScheduleMetrics(
            total_tasks=output.total_tasks,
            scheduled_tasks=output.scheduled_count,
            invalid_tasks=sum(1 for d in output.diagnostics if d.status == "invalid"),
            conflicts=len(output.conflicts),
            group_coverage=group_coverage,
            room_utilization=room_utilization,
            preference=preference,
            restrictive_stages=self.calculate_restrictive_stages(output),
            overall_score=0.0,
            grade="F",
        )
        metrics.overall_score = self._calculate_overall_score(metrics)
        metrics.grade = self._score_to_grade(metrics.overall_score)
        metrics.improvement_areas = self._identify_improvements(metrics)
        return metrics

    def calculate_group_coverage(self, output: ScheduleOutput) -> dict[str, GroupCoverage]:
        invalid = {d.task_id for d in output.diagnostics if d.status == "invalid"}
        coverage: dict[str, GroupCoverage] = {}
        for task in output.tasks:
            entry = coverage.setdefault(task.group_id, GroupCoverage(task.group_id, 0, 0))
            entry.total += 1
            if task.id in output.assignment:
                entry.scheduled += 1
            if task.id in invalid:
                entry.invalid += 1
        return coverage

    def calculate_room_utilization(self, output: ScheduleOutput) -> list[RoomUtilization]:
        booked: dict[int, int] = defaultdict(int)
        for appointment in output.assignment.values():
            booked[appointment.room] += appointment.duration
        available = output.slot_count * SLOT_MINUTES
        return [
            RoomUtilization(room=room, booked_minutes=booked[room], available_minutes=available)
            for room in range(1, output.room_count + 1)
        ]

    def calculate_preference(self, output: ScheduleOutput) -> PreferenceMetrics:
        with_preference = 0
        hits = 0
        for task in output.tasks:
            appointment = output.assignment.get(task.id)
            if task.preferred_day is None or appointment is None:
                continue
            with_preference += 1
            if appointment.weekday == task.preferred_day:
                hits += 1
        return PreferenceMetrics(with_preference=with_preference, on_preferred_day=hits)

    def calculate_restrictive_stages(self, output: ScheduleOutput) -> dict[str, str]:
        """Stage label that removed the most slots, per group."""
        group_of = {t.id: t.group_id for t in output.tasks}
        removed: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        for diagnostic in output.diagnostics:
            group_id = group_of.get(diagnostic.task_id)
            if group_id is None:
                continue
            for stage in diagnostic.constraints:
                removed[group_id][stage.label] += stage.removed

        result = {}
        for group_id, by_stage in removed.items():
            label, count = max(by_stage.items(), key=lambda kv: kv[1])
            if count > 0:
                result[group_id] = label
        return result

    def generate_report(self, metrics: ScheduleMetrics) -> str:
        """Generate a human-readable report."""
        lines = []

        lines.append("=" * 70)
        lines.append("SCHEDULE QUALITY REPORT")
        lines.append("=" * 70)
        lines.append("")

        lines.append(f"Overall Score: {metrics.overall_score:.1f}/100 (Grade: {metrics.grade})")
        lines.append(f"Scheduled: {metrics.scheduled_tasks}/{metrics.total_tasks} ({metrics.completion_rate:.1f}%)")
        lines.append(f"Invalid Tasks: {metrics.invalid_tasks}")
        lines.append(f"Conflicts Reported: {metrics.conflicts}")
        lines.append("")

        lines.append("-" * 40)
        lines.append("GROUP COVERAGE")
        lines.append("-" * 40)
        for coverage in metrics.group_coverage.values():
            line = f"{coverage.group_id}: {coverage.scheduled}/{coverage.total} ({coverage.percentage:.1f}%)"
            if coverage.invalid:
                line += f", {coverage.invalid} invalid"
            stage = metrics.restrictive_stages.get(coverage.group_id)
            if stage:
                line += f" | most restrictive: {stage}"
            lines.append(line)
        lines.append("")

        lines.append("-" * 40)
        lines.append("ROOM UTILIZATION")
        lines.append("-" * 40)
        for room in metrics.room_utilization:
            lines.append(f"Room {room.room}: {room.booked_minutes}/{room.available_minutes} min ({room.percentage:.1f}%)")
        lines.append("")

        lines.append("-" * 40)
        lines.append("PREFERRED DAYS")
        lines.append("-" * 40)
        pref = metrics.preference
        lines.append(f"Honoured: {pref.on_preferred_day}/{pref.with_preference} ({pref.percentage:.1f}%)")
        lines.append("")

        if metrics.improvement_areas:
            lines.append("-" * 40)
            lines.append("AREAS FOR IMPROVEMENT")
            lines.append("-" * 40)
            for area in metrics.improvement_areas:
                lines.append(f"  * {area}")
            lines.append("")

        lines.append("=" * 70)

        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    def _calculate_overall_score(self, metrics: ScheduleMetrics) -> float:
        """Calculate weighted overall score."""
        weights = {
            "completion": 0.7,
            "preferred_day": 0.2,
            "utilization": 0.1,
        }
        util_score = min(100.0, 100.0 * metrics.average_utilization / self.targets["utilization"]) \
            if self.targets["utilization"] else 100.0
        score = (
            weights["completion"] * metrics.completion_rate +
            weights["preferred_day"] * metrics.preference.percentage +
            weights["utilization"] * util_score
        )
        return round(score, 1)

    def _score_to_grade(self, score: float) -> str:
        """Convert numeric score to letter grade."""
        if score >= 90:
            return "A"
        elif score >= 80:
            return "B"
        elif score >= 70:
            return "C"
        elif score >= 60:
            return "D"
        else:
            return "F"

    def _identify_improvements(self, metrics: ScheduleMetrics) -> list[str]:
        """Identify areas that need improvement."""
        improvements = []

        if metrics.completion_rate < self.targets["completion"]:
            improvements.append(
                f"Schedule more tasks: {metrics.completion_rate:.0f}% scheduled "
                f"is below target ({self.targets['completion']:.0f}%)"
            )

        if metrics.invalid_tasks:
            improvements.append(
                f"Relax constraints: {metrics.invalid_tasks} tasks have no valid slot"
            )

        if metrics.preference.percentage < self.targets["preferred_day"]:
            improvements.append(
                f"Honour preferred days: {metrics.preference.percentage:.0f}% "
                f"is below target ({self.targets['preferred_day']:.0f}%)"
            )

        if metrics.average_utilization < self.targets["utilization"]:
            improvements.append(
                f"Use fewer rooms: average utilization {metrics.average_utilization:.0f}% "
                f"is below target ({self.targets['utilization']:.0f}%)"
            )

        return improvements


# =============================================================================
# Convenience Functions
# =============================================================================

def calculate_metrics(
    output: ScheduleOutput,
    targets: Optional[dict[str, float]] = None,
) -> ScheduleMetrics:
    """
    Calculate quality metrics for a schedule.

    Args:
        output: The schedule output
        targets: Custom target thresholds (optional)

    Returns:
        ScheduleMetrics with all metrics
    """
    return ScheduleMetricsCalculator(targets).calculate(output)


def generate_report(
    output: ScheduleOutput,
    targets: Optional[dict[str, float]] = None,
) -> str:
    """
    Generate a human-readable quality report.

    Args:
        output: The schedule output
        targets: Custom target thresholds (optional)

    Returns:
        Formatted report string
    """
    calculator = ScheduleMetricsCalculator(targets)
    return calculator.generate_report(calculator.calculate(output))
