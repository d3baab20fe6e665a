"""Input models and sample data."""

from .models import (
    Algorithm,
    AvailabilityRange,
    ConstraintType,
    EngineSettings,
    Frequency,
    Group,
    GroupConstraint,
    PlanningWindow,
    ScheduleInput,
    WeekPattern,
    load_input_from_json,
)
from .generator import (
    DEFAULT_GROUPS,
    DEFAULT_PRIORITY_ORDER,
    GeneratorConfig,
    generate_demo_input,
    generate_sample_input,
    save_generated_input,
    get_generation_stats,
)

__all__ = [
    # Models
    "Algorithm",
    "AvailabilityRange",
    "ConstraintType",
    "EngineSettings",
    "Frequency",
    "Group",
    "GroupConstraint",
    "PlanningWindow",
    "ScheduleInput",
    "WeekPattern",
    "load_input_from_json",
    # Generator
    "DEFAULT_GROUPS",
    "DEFAULT_PRIORITY_ORDER",
    "GeneratorConfig",
    "generate_demo_input",
    "generate_sample_input",
    "save_generated_input",
    "get_generation_stats",
]
