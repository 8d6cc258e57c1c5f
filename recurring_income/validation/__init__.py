"""Income source validation package."""

from recurring_income.schedule.frequency import ConfigurationError
from recurring_income.validation.validator import (
    SourceConfigValidator,
    validate_source_config,
)

__all__ = ["ConfigurationError", "SourceConfigValidator", "validate_source_config"]
