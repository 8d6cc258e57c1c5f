"""
Auto-Post Reconciliation Engine

Runs on app activation (or a manual trigger) and turns due occurrences
into ledger income, exactly once each.

POSTING PROTOCOL, per source, per occurrence (ascending):
1. Post the transaction to the ledger
2. Only then advance the watermark in the registry
3. On any failure stop this source; the watermark stays at the last
   committed occurrence, so the next pass retries from there

A pass can be abandoned between occurrences without corrupting state.
If it is abandoned between steps 1 and 2, the next pass recovers the
watermark from the ledger's last auto-posted date, and the ledger itself
rejects a duplicate (source, date) as a last line of defense.

Sources are independent: one failing source never blocks another.
Passes are serialized by a thread lock, so two passes never race, even
when Streamlit sessions run them on different threads and event loops.
"""

import asyncio
import threading
from datetime import date
from typing import Optional
from uuid import UUID

from recurring_income.audit import AuditLogger, create_correlation_id
from recurring_income.config import get_settings
from recurring_income.models.income import (
    IncomeSource,
    IncomeTransaction,
    ReconciliationFailure,
    ReconciliationReport,
    SourceOutcome,
    SourceState,
    UnreadableSource,
    utcnow,
)
from recurring_income.schedule.calculator import ScheduleCalculator
from recurring_income.schedule.frequency import ConfigurationError
from recurring_income.services.storage import (
    DuplicateError,
    IncomeSourceRegistryInterface,
    LedgerInterface,
)

LOCK_POLL_SECONDS = 0.05


class PostingFailure(Exception):
    """
    The ledger did not accept an occurrence (retryable).

    Raised inside the engine; callers only ever see it as a
    ReconciliationFailure in the report.
    """

    def __init__(self, source_id: UUID, occurrence_date: date, reason: str):
        self.source_id = source_id
        self.occurrence_date = occurrence_date
        self.reason = reason
        super().__init__(f"Posting {occurrence_date} for {source_id} failed: {reason}")


class WatermarkFailure(Exception):
    """The ledger write succeeded but the registry did not record it."""

    def __init__(self, source_id: UUID, occurrence_date: date, reason: str):
        self.source_id = source_id
        self.occurrence_date = occurrence_date
        self.reason = reason
        super().__init__(f"Watermark {occurrence_date} for {source_id} not stored: {reason}")


class AutoPostEngine:
    """
    Posts due income occurrences and advances per-source watermarks.

    Stateless between passes: everything is recomputed from the
    registry, the ledger and `today`.
    """

    def __init__(
        self,
        registry: IncomeSourceRegistryInterface,
        ledger: LedgerInterface,
        audit_logger: Optional[AuditLogger] = None,
        max_batch_size: Optional[int] = None,
        recover_watermark: Optional[bool] = None,
    ):
        settings = get_settings().scheduler
        self._registry = registry
        self._ledger = ledger
        self._audit_logger = audit_logger or AuditLogger()
        self._max_batch = max_batch_size or settings.max_batch_size
        self._recover = (
            settings.recover_watermark_from_ledger
            if recover_watermark is None
            else recover_watermark
        )
        self._lock = threading.Lock()

    async def run(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ReconciliationReport:
        """
        Run one reconciliation pass over every auto-add source.

        A pass started while another is running waits for it, then
        works from the watermarks the first pass left behind. The
        other pass may be running on another thread's event loop.

        Raises:
            StorageError: If the registry cannot list sources at all
        """
        await self._acquire_pass_lock()
        try:
            return await self._run_pass(
                today or date.today(),
                correlation_id or create_correlation_id(),
            )
        finally:
            self._lock.release()

    async def _acquire_pass_lock(self) -> None:
        # Polled so the waiting loop stays responsive and cancellation never
        # leaves the lock held
        while not self._lock.acquire(blocking=False):
            await asyncio.sleep(LOCK_POLL_SECONDS)

    async def _run_pass(self, today: date, run_id: UUID) -> ReconciliationReport:
        report = ReconciliationReport(run_id=run_id, today=today)

        try:
            sources = await self._registry.list_sources(auto_add_only=True)
            unreadable = await self._registry.list_unreadable_sources(auto_add_only=True)
        except Exception as e:
            await self._audit_logger.log_external_service_error(
                service="income_source_registry",
                error_message=str(e),
                correlation_id=report.run_id,
            )
            raise

        await self._audit_logger.log_reconciliation_started(
            run_id=report.run_id,
            today=today,
            source_count=len(sources) + len(unreadable),
        )

        for record in unreadable:
            outcome, failure = await self._skip_unreadable(record, report.run_id)
            report.outcomes.append(outcome)
            report.failures.append(failure)

        for source in sources:
            if not source.is_schedulable:
                continue
            outcome, failure = await self.reconcile_source(source, today, report.run_id)
            report.outcomes.append(outcome)
            report.posted_count += len(outcome.posted_dates)
            if failure:
                report.failures.append(failure)

        report.completed_at = utcnow()
        await self._audit_logger.log_reconciliation_completed(
            run_id=report.run_id,
            posted_count=report.posted_count,
            failure_count=len(report.failures),
        )
        return report

    async def _skip_unreadable(
        self,
        record: UnreadableSource,
        correlation_id: UUID,
    ) -> tuple[SourceOutcome, ReconciliationFailure]:
        """A stored source that no longer parses is reported, never posted."""
        await self._audit_logger.log_source_skipped(
            source_id=record.source_id,
            reason=record.error,
            correlation_id=correlation_id,
        )
        return (
            SourceOutcome(source_id=record.source_id, state=SourceState.SKIPPED),
            ReconciliationFailure(
                source_id=record.source_id,
                source_name=record.name,
                reason=f"Stored configuration could not be read: {record.error}",
                error_type="configuration_error",
                retryable=False,
            ),
        )

    async def reconcile_source(
        self,
        source: IncomeSource,
        today: date,
        correlation_id: UUID,
    ) -> tuple[SourceOutcome, Optional[ReconciliationFailure]]:
        """
        Post every due occurrence of one source.

        Returns:
            (outcome, failure) - failure is None unless the source ended
            in SKIPPED or PARTIAL_FAILURE
        """
        outcome = SourceOutcome(
            source_id=source.id,
            state=SourceState.COMPUTING,
            watermark=source.last_posted_date,
        )

        try:
            calculator = ScheduleCalculator.for_source(source)
        except ConfigurationError as e:
            outcome.state = SourceState.SKIPPED
            await self._audit_logger.log_source_skipped(
                source_id=source.id,
                reason=str(e),
                correlation_id=correlation_id,
            )
            return outcome, ReconciliationFailure(
                source_id=source.id,
                source_name=source.name,
                reason=str(e),
                error_type="configuration_error",
                retryable=False,
            )

        try:
            watermark = await self._effective_watermark(source, correlation_id)
        except Exception as e:
            await self._audit_logger.log_error(
                error_type="watermark_recovery_failed",
                error_message=str(e),
                details={"source_id": str(source.id)},
                correlation_id=correlation_id,
            )
            outcome.state = SourceState.PARTIAL_FAILURE
            return outcome, ReconciliationFailure(
                source_id=source.id,
                source_name=source.name,
                reason=f"Could not read ledger: {e}",
                error_type="posting_failure",
            )
        outcome.watermark = watermark

        if watermark is not None and today < watermark:
            # Device clock moved backwards; nothing is due
            await self._audit_logger.log_clock_skew(
                source_id=source.id,
                today=today,
                watermark=watermark,
                correlation_id=correlation_id,
            )
            outcome.state = SourceState.IDLE
            return outcome, None

        advanced = False
        while True:
            due = calculator.due_occurrences(watermark, today, self._max_batch)
            if not due:
                break

            await self._audit_logger.log_occurrences_computed(
                source_id=source.id,
                due_dates=[o.occurrence_date for o in due],
                correlation_id=correlation_id,
            )
            outcome.state = SourceState.POSTING

            for occurrence in due:
                occurrence_date = occurrence.occurrence_date
                try:
                    posted = await self._post_occurrence(source, occurrence_date, correlation_id)
                    await self._commit_watermark(
                        source, watermark, occurrence_date, correlation_id
                    )
                except PostingFailure as e:
                    outcome.state = SourceState.PARTIAL_FAILURE
                    return outcome, ReconciliationFailure(
                        source_id=source.id,
                        source_name=source.name,
                        reason=e.reason,
                        error_type="posting_failure",
                        occurrence_date=occurrence_date,
                    )
                except WatermarkFailure as e:
                    # Posted but not recorded; next pass recovers from the ledger
                    if posted:
                        outcome.posted_dates.append(occurrence_date)
                    outcome.state = SourceState.PARTIAL_FAILURE
                    return outcome, ReconciliationFailure(
                        source_id=source.id,
                        source_name=source.name,
                        reason=e.reason,
                        error_type="watermark_failure",
                        occurrence_date=occurrence_date,
                    )

                if posted:
                    outcome.posted_dates.append(occurrence_date)
                watermark = occurrence_date
                outcome.watermark = watermark
                advanced = True

            if len(due) < self._max_batch:
                break

        outcome.state = SourceState.COMMITTED if advanced else SourceState.IDLE
        return outcome, None

    async def _effective_watermark(
        self,
        source: IncomeSource,
        correlation_id: UUID,
    ) -> Optional[date]:
        """
        The later of the stored watermark and the ledger's last auto-post.

        The ledger can only be ahead when a previous pass stopped between
        posting and recording the watermark.
        """
        stored = source.last_posted_date
        if not self._recover:
            return stored

        from_ledger = await self._ledger.last_auto_posted_date(source.id)
        if from_ledger is None or from_ledger < source.start_date:
            return stored
        if stored is not None and from_ledger <= stored:
            return stored

        await self._audit_logger.log_watermark_recovered(
            source_id=source.id,
            stored=stored,
            recovered=from_ledger,
            correlation_id=correlation_id,
        )
        try:
            await self._registry.update_watermark(source.id, from_ledger)
        except Exception as e:
            # The ledger still rejects duplicates, so carry on with the recovered value
            await self._audit_logger.log_watermark_update_failed(
                source_id=source.id,
                occurrence_date=from_ledger,
                reason=str(e),
                correlation_id=correlation_id,
            )
        return from_ledger

    async def _post_occurrence(
        self,
        source: IncomeSource,
        occurrence_date: date,
        correlation_id: UUID,
    ) -> bool:
        """
        Post one occurrence.

        Returns:
            True if a new transaction was stored, False if the ledger
            already held it

        Raises:
            PostingFailure: If the ledger refused or failed the write
        """
        transaction = IncomeTransaction.for_occurrence(source, occurrence_date)
        try:
            accepted = await self._ledger.post_income(transaction)
        except DuplicateError:
            await self._audit_logger.log_duplicate_skipped(
                source_id=source.id,
                occurrence_date=occurrence_date,
                correlation_id=correlation_id,
            )
            return False
        except Exception as e:
            await self._audit_logger.log_posting_failed(
                source_id=source.id,
                occurrence_date=occurrence_date,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise PostingFailure(source.id, occurrence_date, str(e)) from e

        if not accepted:
            reason = "Ledger rejected the transaction"
            await self._audit_logger.log_posting_failed(
                source_id=source.id,
                occurrence_date=occurrence_date,
                reason=reason,
                correlation_id=correlation_id,
            )
            raise PostingFailure(source.id, occurrence_date, reason)

        await self._audit_logger.log_income_posted(
            source_id=source.id,
            transaction_id=transaction.id,
            occurrence_date=occurrence_date,
            amount=str(source.amount),
            correlation_id=correlation_id,
        )
        return True

    async def _commit_watermark(
        self,
        source: IncomeSource,
        previous: Optional[date],
        occurrence_date: date,
        correlation_id: UUID,
    ) -> None:
        """
        Advance the stored watermark to occurrence_date.

        Raises:
            WatermarkFailure: If the registry did not record it
        """
        try:
            stored = await self._registry.update_watermark(source.id, occurrence_date)
            reason = None if stored else "Registry rejected the watermark update"
        except Exception as e:
            reason = str(e)

        if reason is not None:
            await self._audit_logger.log_watermark_update_failed(
                source_id=source.id,
                occurrence_date=occurrence_date,
                reason=reason,
                correlation_id=correlation_id,
            )
            raise WatermarkFailure(source.id, occurrence_date, reason)

        await self._audit_logger.log_watermark_advanced(
            source_id=source.id,
            previous=previous,
            current=occurrence_date,
            correlation_id=correlation_id,
        )
