"""Tests for quality metrics calculator."""

from __future__ import annotations

import pytest

from planner.data.models import ScheduleInput
from planner.engine import solve
from planner.output.metrics import (
    GroupCoverage,
    PreferenceMetrics,
    RoomUtilization,
    ScheduleMetricsCalculator,
    calculate_metrics,
    generate_report,
)
from planner.output.schema import ScheduleOutput, create_schedule_output


def make_output(**overrides) -> ScheduleOutput:
    data = {
        "groups": [
            {"id": "teacher", "count": 1, "duration": 30},
            {"id": "staff", "count": 1, "freq": "monthly"},
        ],
        "planning_window": {"start_date": "2025-10-27", "end_date": "2025-11-02"},
        "room_count": 1,
    }
    data.update(overrides)
    return create_schedule_output(solve(ScheduleInput.model_validate(data)))


@pytest.fixture
def complete_output() -> ScheduleOutput:
    return make_output()


@pytest.fixture
def partial_output() -> ScheduleOutput:
    """Staff excluded from every working day."""
    return make_output(
        group_constraints=[{"group": "staff", "type": "not_day", "value": d} for d in range(1, 6)],
    )


class TestDataClasses:
    """Tests for the metric value types."""

    def test_group_coverage(self):
        assert GroupCoverage("teacher", 4, 3).percentage == 75.0
        assert GroupCoverage("teacher", 0, 0).percentage == 100.0

    def test_room_utilization(self):
        assert RoomUtilization(1, 120, 480).percentage == 25.0
        assert RoomUtilization(1, 0, 0).percentage == 0.0

    def test_preference(self):
        assert PreferenceMetrics(4, 1).percentage == 25.0
        assert PreferenceMetrics(0, 0).percentage == 100.0


class TestCalculator:
    """Tests for ScheduleMetricsCalculator."""

    def test_complete_schedule(self, complete_output):
        metrics = ScheduleMetricsCalculator().calculate(complete_output)
        assert metrics.total_tasks == 2
        assert metrics.scheduled_tasks == 2
        assert metrics.unscheduled_tasks == 0
        assert metrics.completion_rate == 100.0
        assert metrics.invalid_tasks == 0
        assert metrics.conflicts == 0
        assert metrics.grade == "A"

    def test_group_coverage(self, partial_output):
        coverage = ScheduleMetricsCalculator().calculate_group_coverage(partial_output)
        assert (coverage["teacher"].scheduled, coverage["teacher"].total) == (1, 1)
        assert (coverage["staff"].scheduled, coverage["staff"].invalid) == (0, 1)

    def test_room_utilization(self, complete_output):
        rooms = ScheduleMetricsCalculator().calculate_room_utilization(complete_output)
        assert len(rooms) == 1
        assert rooms[0].booked_minutes == 45
        assert rooms[0].available_minutes == 160 * 15

    def test_preferred_day_honoured(self):
        output = make_output(groups=[{"id": "teacher", "count": 2, "preferred_day": 3}])
        preference = ScheduleMetricsCalculator().calculate_preference(output)
        assert (preference.with_preference, preference.on_preferred_day) == (2, 2)

    def test_preferred_day_missed(self):
        output = make_output(
            groups=[{"id": "teacher", "count": 1, "preferred_day": 3}],
            group_constraints=[{"group": "teacher", "type": "not_day", "value": 3}],
        )
        metrics = calculate_metrics(output)
        assert metrics.preference.percentage == 0.0
        assert any("preferred days" in area for area in metrics.improvement_areas)

    def test_restrictive_stages(self, partial_output):
        stages = ScheduleMetricsCalculator().calculate_restrictive_stages(partial_output)
        assert stages == {"teacher": "Duration Check (Hard)", "staff": "Group Rule (Hard)"}

    def test_improvement_areas(self, partial_output):
        areas = calculate_metrics(partial_output).improvement_areas
        assert any(area.startswith("Schedule more tasks") for area in areas)
        assert "Relax constraints: 1 tasks have no valid slot" in areas

    def test_custom_targets(self, complete_output):
        default = calculate_metrics(complete_output)
        relaxed = calculate_metrics(complete_output, {"utilization": 1.0})
        assert any(area.startswith("Use fewer rooms") for area in default.improvement_areas)
        assert relaxed.improvement_areas == []
        assert relaxed.overall_score == 100.0

    def test_to_dict(self, partial_output):
        data = calculate_metrics(partial_output).to_dict()
        assert data["totalTasks"] == 2
        assert data["unscheduledTasks"] == 1
        assert data["completionRate"] == 50.0
        assert data["groups"]["staff"] == {"total": 1, "scheduled": 0, "invalid": 1, "percentage": 0.0}
        assert data["rooms"][0]["room"] == 1
        assert data["preferredDay"]["percentage"] == 100.0


class TestReport:
    """Tests for the text report."""

    def test_report(self, partial_output):
        report = generate_report(partial_output)
        assert "SCHEDULE QUALITY REPORT" in report
        assert "Scheduled: 1/2 (50.0%)" in report
        assert "staff: 0/1 (0.0%), 1 invalid | most restrictive: Group Rule (Hard)" in report
        assert "Room 1: 30/2400 min" in report
        assert "AREAS FOR IMPROVEMENT" in report
