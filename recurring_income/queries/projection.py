"""
Income Projection

DESIGN DECISION: A projection never double counts.
Expected income for a period is:
1. Everything the ledger already holds for the period (recorded)
2. Plus occurrences of auto-add sources that the engine has not
   materialized yet, i.e. strictly after each source's watermark

Occurrences at or before the watermark are already in the ledger
(or were deliberately skipped), so they are never projected.
"""

from datetime import date
from decimal import Decimal

from recurring_income.models.income import (
    IncomeProjection,
    IncomeSource,
    ProjectedIncome,
)
from recurring_income.schedule.calculator import ScheduleCalculator
from recurring_income.schedule.frequency import ConfigurationError
from recurring_income.services.storage import (
    IncomeSourceRegistryInterface,
    LedgerInterface,
)


class ProjectionError(Exception):
    """Invalid projection request."""
    pass


class IncomeProjector:
    """
    Computes expected income for a date range.

    Read-only: it never posts and never moves a watermark.
    """

    def __init__(
        self,
        registry: IncomeSourceRegistryInterface,
        ledger: LedgerInterface,
    ):
        self._registry = registry
        self._ledger = ledger

    async def project(self, date_from: date, date_to: date) -> IncomeProjection:
        """
        Project income between date_from and date_to (both inclusive).

        Raises:
            ProjectionError: If date_from is after date_to
        """
        if date_from > date_to:
            raise ProjectionError(
                f"Projection start {date_from} is after its end {date_to}"
            )

        recorded = await self._ledger.list_transactions(
            date_from=date_from,
            date_to=date_to,
        )
        projection = IncomeProjection(
            date_from=date_from,
            date_to=date_to,
            recorded_total=sum((t.amount for t in recorded), Decimal("0")),
            recorded_count=len(recorded),
        )

        sources = await self._registry.list_sources(auto_add_only=True)
        for source in sources:
            projection.projected.extend(self._pending(source, date_from, date_to))

        projection.projected.sort(key=lambda p: (p.occurrence_date, p.source_name))
        projection.projected_total = sum(
            (p.amount for p in projection.projected), Decimal("0")
        )
        return projection

    def _pending(
        self,
        source: IncomeSource,
        date_from: date,
        date_to: date,
    ) -> list[ProjectedIncome]:
        """Unposted occurrences of one source inside the window."""
        if not source.is_schedulable:
            return []
        try:
            calculator = ScheduleCalculator.for_source(source)
        except ConfigurationError:
            # Reconciliation reports these; a projection just leaves them out
            return []

        start = max(date_from, calculator.resume_date(source.last_posted_date))
        if start > date_to:
            return []

        return [
            ProjectedIncome(
                source_id=source.id,
                source_name=source.name,
                occurrence_date=d,
                amount=source.amount,
            )
            for d in calculator.occurrences_in_range(start, date_to)
        ]
