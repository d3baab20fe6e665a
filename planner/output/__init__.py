"""Schedule output and quality metrics."""

from .schema import (
    OutputStatus,
    TaskOutput,
    AppointmentOutput,
    DiagnosticOutput,
    ConflictOutput,
    ResolutionOutput,
    StatsOutput,
    DaySchedule,
    ScheduleViews,
    ScheduleOutput,
    FailureOutput,
    create_schedule_output,
    create_failure_output,
    result_to_json,
    result_to_dict,
)
from .metrics import (
    # Data classes
    GroupCoverage,
    RoomUtilization,
    PreferenceMetrics,
    ScheduleMetrics,
    # Calculator class
    ScheduleMetricsCalculator,
    # Convenience functions
    calculate_metrics,
    generate_report,
)

__all__ = [
    # Schema models
    "OutputStatus",
    "TaskOutput",
    "AppointmentOutput",
    "DiagnosticOutput",
    "ConflictOutput",
    "ResolutionOutput",
    "StatsOutput",
    "DaySchedule",
    "ScheduleViews",
    "ScheduleOutput",
    "FailureOutput",
    # Schema conversion functions
    "create_schedule_output",
    "create_failure_output",
    "result_to_json",
    "result_to_dict",
    # Metrics data classes
    "GroupCoverage",
    "RoomUtilization",
    "PreferenceMetrics",
    "ScheduleMetrics",
    # Metrics calculator
    "ScheduleMetricsCalculator",
    # Metrics convenience functions
    "calculate_metrics",
    "generate_report",
]
