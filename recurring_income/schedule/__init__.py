"""Schedule calculation package (pure, no side effects)."""

from recurring_income.schedule.calculator import (
    DEFAULT_MAX_BATCH,
    ScheduleCalculator,
    describe_frequency,
    due_occurrences_since,
    preview_next_occurrence,
)
from recurring_income.schedule.custom_dates import (
    normalize_custom_dates,
    parse_custom_dates,
)
from recurring_income.schedule.frequency import (
    ConfigurationError,
    FrequencyRule,
    clamp_to_month,
    iter_occurrences,
    next_on_or_after,
    occurrences_in_range,
    weekday_index,
)

__all__ = [
    "DEFAULT_MAX_BATCH",
    "ConfigurationError",
    "FrequencyRule",
    "ScheduleCalculator",
    "clamp_to_month",
    "describe_frequency",
    "due_occurrences_since",
    "iter_occurrences",
    "next_on_or_after",
    "normalize_custom_dates",
    "occurrences_in_range",
    "parse_custom_dates",
    "preview_next_occurrence",
    "weekday_index",
]
