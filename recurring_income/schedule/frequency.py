"""
Frequency Rules

Pure date math for every supported frequency. Nothing here touches
storage or the clock; the same inputs always give the same dates.

Conventions:
- day_of_week uses 0=Sunday .. 6=Saturday
- day_of_month and custom dates are clamped to the last day of short
  months (31 -> Feb 28/29, Apr 30), never rolled into the next month
- the rule's start_date is inclusive
"""

import calendar
from datetime import date, timedelta
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict

from recurring_income.models.income import (
    WEEKDAY_NAMES,
    Frequency,
    IncomeSource,
    ValidationIssue,
)


class ConfigurationError(Exception):
    """
    Income source configuration is invalid.

    Non-retryable: the user has to fix the source before it can be
    scheduled. Carries the individual issues for field-level display.
    """

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


# =============================================================================
# CALENDAR HELPERS
# =============================================================================

def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_to_month(year: int, month: int, day: int) -> date:
    """Date for `day` in the given month, clamped to the month's last day."""
    return date(year, month, min(day, days_in_month(year, month)))


def next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def weekday_index(d: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return (d.weekday() + 1) % 7


def _round_up(days: int, step: int) -> int:
    return -(-days // step) * step


# =============================================================================
# FREQUENCY RULE
# =============================================================================

class FrequencyRule(BaseModel):
    """
    The schedule-relevant part of an income source.

    Built with FrequencyRule.from_source(), which reads only the fields
    the frequency needs and rejects corrupt values.
    """
    model_config = ConfigDict(frozen=True)

    frequency: Frequency
    start_date: date
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    custom_dates: tuple[int, ...] = ()

    @classmethod
    def from_source(cls, source: IncomeSource) -> "FrequencyRule":
        """
        Extract the rule from a source.

        Raises:
            ConfigurationError: If a field required by the frequency is
                missing or out of range.
        """
        frequency = source.frequency

        if frequency == Frequency.WEEKLY:
            if source.day_of_week is None:
                raise ConfigurationError("Weekly income needs a day of the week")
            if not 0 <= source.day_of_week <= 6:
                raise ConfigurationError(
                    f"Day of week must be between 0 and 6, got {source.day_of_week}"
                )
            return cls(
                frequency=frequency,
                start_date=source.start_date,
                day_of_week=source.day_of_week,
            )

        if frequency == Frequency.MONTHLY:
            if source.day_of_month is None:
                raise ConfigurationError("Monthly income needs a day of the month")
            if not 1 <= source.day_of_month <= 31:
                raise ConfigurationError(
                    f"Day of month must be between 1 and 31, got {source.day_of_month}"
                )
            return cls(
                frequency=frequency,
                start_date=source.start_date,
                day_of_month=source.day_of_month,
            )

        if frequency == Frequency.CUSTOM:
            if not source.custom_dates:
                raise ConfigurationError("Custom income needs at least one date")
            bad = [d for d in source.custom_dates if not 1 <= d <= 31]
            if bad:
                raise ConfigurationError(
                    f"Custom dates must be between 1 and 31, got {bad}"
                )
            return cls(
                frequency=frequency,
                start_date=source.start_date,
                custom_dates=tuple(sorted(set(source.custom_dates))),
            )

        # Biweekly and manual need nothing beyond the start date
        return cls(frequency=frequency, start_date=source.start_date)

    def describe(self) -> str:
        """Human label, e.g. 'Every Monday' or 'Day 31 of each month'."""
        if self.frequency == Frequency.WEEKLY:
            return f"Every {WEEKDAY_NAMES[self.day_of_week]}"
        if self.frequency == Frequency.BIWEEKLY:
            return "Every 2 weeks"
        if self.frequency == Frequency.MONTHLY:
            return f"Day {self.day_of_month} of each month"
        if self.frequency == Frequency.CUSTOM:
            days = ", ".join(str(d) for d in self.custom_dates)
            return f"Days {days} of each month"
        return "Manual entry only"


# =============================================================================
# OCCURRENCE MATH
# =============================================================================

def next_on_or_after(rule: FrequencyRule, target: date) -> Optional[date]:
    """
    Smallest occurrence date >= target, or None for manual rules.

    Weekly and biweekly series are anchored on the rule's start date.
    Monthly and custom dates are computed per calendar month.
    """
    if rule.frequency == Frequency.WEEKLY:
        offset = (rule.day_of_week - weekday_index(rule.start_date)) % 7
        anchor = rule.start_date + timedelta(days=offset)
        if target <= anchor:
            return anchor
        return anchor + timedelta(days=_round_up((target - anchor).days, 7))

    if rule.frequency == Frequency.BIWEEKLY:
        delta = (target - rule.start_date).days
        if delta <= 0:
            return rule.start_date
        return rule.start_date + timedelta(days=_round_up(delta, 14))

    if rule.frequency == Frequency.MONTHLY:
        candidate = clamp_to_month(target.year, target.month, rule.day_of_month)
        if candidate >= target:
            return candidate
        year, month = next_month(target.year, target.month)
        return clamp_to_month(year, month, rule.day_of_month)

    if rule.frequency == Frequency.CUSTOM:
        for day in rule.custom_dates:
            candidate = clamp_to_month(target.year, target.month, day)
            if candidate >= target:
                return candidate
        year, month = next_month(target.year, target.month)
        return clamp_to_month(year, month, rule.custom_dates[0])

    return None


def iter_occurrences(rule: FrequencyRule, start: date) -> Iterator[date]:
    """
    Lazily yield occurrences on/after `start`, ascending and distinct.

    Custom dates that clamp onto the same day (30 and 31 in February)
    come out once.
    """
    cursor = start
    while True:
        occurrence = next_on_or_after(rule, cursor)
        if occurrence is None:
            return
        yield occurrence
        cursor = occurrence + timedelta(days=1)


def occurrences_in_range(
    rule: FrequencyRule,
    start: date,
    end: date,
    limit: Optional[int] = None,
) -> list[date]:
    """All occurrences with start <= d <= end (both inclusive), ascending."""
    result: list[date] = []
    if start > end:
        return result

    for occurrence in iter_occurrences(rule, start):
        if occurrence > end:
            break
        result.append(occurrence)
        if limit is not None and len(result) >= limit:
            break
    return result
