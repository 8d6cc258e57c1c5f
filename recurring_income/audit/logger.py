"""
Audit Logger

DESIGN DECISION: Every posting decision is logged.
This provides:
1. Complete traceability of auto-posted income
2. Debugging capability for interrupted or partial passes
3. User can see why an income entry appeared

The audit logger:
- Is async to match the rest of the pipeline
- Gracefully handles failures (doesn't crash a pass if logging fails)
- Supports correlation IDs: every event of one pass shares the run ID
"""

from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import structlog

from recurring_income.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from recurring_income.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, if configured (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("recurring_income.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_reconciliation_started(
        self,
        run_id: UUID,
        today: date,
        source_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.reconciliation_started(
            run_id=run_id,
            today=today,
            source_count=source_count,
        ))

    async def log_reconciliation_completed(
        self,
        run_id: UUID,
        posted_count: int,
        failure_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.reconciliation_completed(
            run_id=run_id,
            posted_count=posted_count,
            failure_count=failure_count,
        ))

    async def log_occurrences_computed(
        self,
        source_id: UUID,
        due_dates: list[date],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.occurrences_computed(
            source_id=source_id,
            due_dates=due_dates,
            correlation_id=correlation_id,
        ))

    async def log_income_posted(
        self,
        source_id: UUID,
        transaction_id: UUID,
        occurrence_date: date,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.income_posted(
            source_id=source_id,
            transaction_id=transaction_id,
            occurrence_date=occurrence_date,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_duplicate_skipped(
        self,
        source_id: UUID,
        occurrence_date: date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.duplicate_skipped(
            source_id=source_id,
            occurrence_date=occurrence_date,
            correlation_id=correlation_id,
        ))

    async def log_watermark_advanced(
        self,
        source_id: UUID,
        previous: Optional[date],
        current: date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.watermark_advanced(
            source_id=source_id,
            previous=previous,
            current=current,
            correlation_id=correlation_id,
        ))

    async def log_watermark_recovered(
        self,
        source_id: UUID,
        stored: Optional[date],
        recovered: date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.watermark_recovered(
            source_id=source_id,
            stored=stored,
            recovered=recovered,
            correlation_id=correlation_id,
        ))

    async def log_posting_failed(
        self,
        source_id: UUID,
        occurrence_date: date,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.posting_failed(
            source_id=source_id,
            occurrence_date=occurrence_date,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_watermark_update_failed(
        self,
        source_id: UUID,
        occurrence_date: date,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.watermark_update_failed(
            source_id=source_id,
            occurrence_date=occurrence_date,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_source_skipped(
        self,
        source_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.source_skipped(
            source_id=source_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_clock_skew(
        self,
        source_id: UUID,
        today: date,
        watermark: date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.clock_skew_detected(
            source_id=source_id,
            today=today,
            watermark=watermark,
            correlation_id=correlation_id,
        ))

    async def log_config_rejected(
        self,
        source_id: Optional[UUID],
        issues: list[dict],
    ) -> None:
        await self.log(AuditEventBuilder.source_config_rejected(
            source_id=source_id,
            issues=issues,
        ))

    async def log_source_saved(
        self,
        source_id: UUID,
        name: str,
        frequency: str,
        created: bool,
    ) -> None:
        await self.log(AuditEventBuilder.source_saved(
            source_id=source_id,
            name=name,
            frequency=frequency,
            created=created,
        ))

    async def log_source_deleted(self, source_id: UUID) -> None:
        await self.log(AuditEventBuilder.source_deleted(source_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    One per reconciliation pass; pass it through every step.
    """
    return uuid4()
