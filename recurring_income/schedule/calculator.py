"""
Schedule Calculator

Binds a FrequencyRule to one income source and answers the two
questions the rest of the system asks:

1. Which occurrences are due since the watermark? (reconciliation)
2. When is the next one? (settings screen preview)

GUARANTEES:
- No occurrence is ever earlier than the source's start date
- Results are ascending and distinct
- Manual sources never have occurrences
- Catch-up is bounded: at most max_batch dates per call
"""

from datetime import date, timedelta
from typing import Iterator, Optional
from uuid import UUID

from recurring_income.models.income import Frequency, IncomeSource, Occurrence
from recurring_income.schedule.frequency import (
    ConfigurationError,
    FrequencyRule,
    iter_occurrences,
    next_on_or_after,
    occurrences_in_range,
)

DEFAULT_MAX_BATCH = 366


class ScheduleCalculator:
    """
    Occurrence calculator for a single source's schedule.

    Use ScheduleCalculator.for_source(source) to build one; that raises
    ConfigurationError when the stored configuration is corrupt.
    """

    def __init__(self, rule: FrequencyRule, source_id: Optional[UUID] = None):
        self._rule = rule
        self._source_id = source_id

    @classmethod
    def for_source(cls, source: IncomeSource) -> "ScheduleCalculator":
        return cls(FrequencyRule.from_source(source), source_id=source.id)

    @property
    def rule(self) -> FrequencyRule:
        return self._rule

    @property
    def start_date(self) -> date:
        return self._rule.start_date

    def next_on_or_after(self, target: date) -> Optional[date]:
        """Next occurrence >= target, never before the start date."""
        return next_on_or_after(self._rule, max(target, self.start_date))

    def iter_occurrences(self, start: Optional[date] = None) -> Iterator[date]:
        """Lazy, unbounded sequence of occurrences from `start` (default: start date)."""
        first = self.start_date if start is None else max(start, self.start_date)
        return iter_occurrences(self._rule, first)

    def occurrences_in_range(
        self,
        start: date,
        end: date,
        limit: Optional[int] = None,
    ) -> list[date]:
        return occurrences_in_range(
            self._rule, max(start, self.start_date), end, limit=limit
        )

    def resume_date(self, watermark: Optional[date]) -> date:
        """First date still eligible: the day after the watermark, or the start date."""
        if watermark is None:
            return self.start_date
        return max(watermark + timedelta(days=1), self.start_date)

    def due_since(
        self,
        watermark: Optional[date],
        today: date,
        max_batch: int = DEFAULT_MAX_BATCH,
    ) -> list[date]:
        """
        Occurrences strictly after the watermark and on/before today.

        Returns at most max_batch dates; call again with the last
        returned date as the new watermark to get the rest. A watermark
        ahead of today (device clock moved back) yields nothing.
        """
        resume = self.resume_date(watermark)
        if resume > today:
            return []
        return occurrences_in_range(self._rule, resume, today, limit=max_batch)

    def due_occurrences(
        self,
        watermark: Optional[date],
        today: date,
        max_batch: int = DEFAULT_MAX_BATCH,
    ) -> list[Occurrence]:
        """due_since() tagged with the source ID, for calculators built by for_source()."""
        return [
            Occurrence(source_id=self._source_id, occurrence_date=d)
            for d in self.due_since(watermark, today, max_batch)
        ]


def due_occurrences_since(
    source: IncomeSource,
    today: date,
    max_batch: int = DEFAULT_MAX_BATCH,
    watermark: Optional[date] = None,
) -> list[date]:
    """
    Occurrences of `source` due on/before today that are not yet posted.

    `watermark` overrides source.last_posted_date, for callers that
    recovered a later watermark elsewhere (e.g. from the ledger).

    Raises:
        ConfigurationError: If the source's schedule fields are corrupt.
    """
    if source.frequency == Frequency.MANUAL:
        return []
    effective = watermark if watermark is not None else source.last_posted_date
    return ScheduleCalculator.for_source(source).due_since(effective, today, max_batch)


def preview_next_occurrence(
    source: IncomeSource,
    today: Optional[date] = None,
) -> Optional[date]:
    """
    The date to show as "Next: <date>" for a source.

    None for manual, non-auto-add, inactive or misconfigured sources.
    """
    if not source.is_schedulable:
        return None

    today = today or date.today()
    try:
        calculator = ScheduleCalculator.for_source(source)
    except ConfigurationError:
        return None

    start = today
    if source.last_posted_date and source.last_posted_date >= today:
        start = source.last_posted_date + timedelta(days=1)
    return calculator.next_on_or_after(start)


def describe_frequency(source: IncomeSource) -> str:
    """Human label for a source's schedule."""
    try:
        return FrequencyRule.from_source(source).describe()
    except ConfigurationError:
        return "Invalid schedule"
