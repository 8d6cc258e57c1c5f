"""
Audit Models for Recurring Income

Every posting decision the reconciliation engine makes is logged.
This provides:
1. Complete traceability of every auto-posted transaction
2. Debugging information when a pass fails part-way
3. A way to reconstruct why a watermark moved

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from recurring_income.models.income import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Reconciliation pass
    RECONCILIATION_STARTED = "reconciliation_started"
    RECONCILIATION_COMPLETED = "reconciliation_completed"
    OCCURRENCES_COMPUTED = "occurrences_computed"
    INCOME_POSTED = "income_posted"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    WATERMARK_ADVANCED = "watermark_advanced"
    WATERMARK_RECOVERED = "watermark_recovered"
    POSTING_FAILED = "posting_failed"
    WATERMARK_UPDATE_FAILED = "watermark_update_failed"
    SOURCE_SKIPPED = "source_skipped"
    CLOCK_SKEW_DETECTED = "clock_skew_detected"

    # Source configuration
    SOURCE_CONFIG_REJECTED = "source_config_rejected"
    SOURCE_SAVED = "source_saved"
    SOURCE_DELETED = "source_deleted"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'income_source', 'reconciliation')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - all events of one reconciliation pass share this
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


def _iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.income_posted(source_id, date, amount, run_id)
        event = AuditEventBuilder.posting_failed(source_id, date, reason, run_id)
    """

    @staticmethod
    def reconciliation_started(
        run_id: UUID,
        today: date,
        source_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_STARTED,
            entity_type="reconciliation",
            entity_id=run_id,
            correlation_id=run_id,
            description=f"Reconciliation started for {source_count} sources",
            details={
                "today": today.isoformat(),
                "source_count": source_count,
            },
        )

    @staticmethod
    def reconciliation_completed(
        run_id: UUID,
        posted_count: int,
        failure_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_COMPLETED,
            severity=AuditSeverity.WARNING if failure_count else AuditSeverity.INFO,
            entity_type="reconciliation",
            entity_id=run_id,
            correlation_id=run_id,
            description=(
                f"Reconciliation completed: {posted_count} posted, "
                f"{failure_count} failures"
            ),
            details={
                "posted_count": posted_count,
                "failure_count": failure_count,
            },
        )

    @staticmethod
    def occurrences_computed(
        source_id: UUID,
        due_dates: list[date],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCCURRENCES_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="income_source",
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"{len(due_dates)} occurrences due",
            details={
                "first": _iso(due_dates[0]) if due_dates else None,
                "last": _iso(due_dates[-1]) if due_dates else None,
                "count": len(due_dates),
            },
        )

    @staticmethod
    def income_posted(
        source_id: UUID,
        transaction_id: UUID,
        occurrence_date: date,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_POSTED,
            entity_type="income_source",
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Income posted for {occurrence_date.isoformat()}: {amount}",
            details={
                "transaction_id": str(transaction_id),
                "occurrence_date": occurrence_date.isoformat(),
                "amount": amount,
            },
        )

    @staticmethod
    def duplicate_skipped(
        source_id: UUID,
        occurrence_date: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="income_source",
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Ledger already holds income for {occurrence_date.isoformat()}",
            details={"occurrence_date": occurrence_date.isoformat()},
        )

    @staticmethod
    def watermark_advanced(
        source_id: UUID,
        previous: Optional[date],
        current: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WATERMARK_ADVANCED,
            severity=AuditSeverity.DEBUG,
            entity_type="income_source",
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Watermark advanced to {current.isoformat()}",
            details={
                "previous": _iso(previous),
                "current": current.isoformat(),
            },
        )

    @staticmethod
    def watermark_recovered(
        source_id: UUID,
        stored: Optional[date],
        recovered: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WATERMARK_RECOVERED,
            severity=AuditSeverity.WARNING,
            entity_type="income_source",
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Watermark recovered from ledger: {recovered.isoformat()}",
            details={
                "stored": _iso(stored),
                "recovered": recovered.isoformat(),
            },
        )

    @staticmethod
    def posting_failed(
        source_id: UUID,
        occurrence_date: date,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.POSTING_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="income_source",
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Posting failed for {occurrence_date.isoformat()}",
            error_message=reason,
            details={"occurrence_date": occurrence_date.isoformat()},
        )

    @staticmethod
    def watermark_update_failed(
        source_id: UUID,
        occurrence_date: date,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WATERMARK_UPDATE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="income_source",
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Watermark could not be advanced to {occurrence_date.isoformat()}",
            error_message=reason,
            details={"occurrence_date": occurrence_date.isoformat()},
        )

    @staticmethod
    def source_skipped(
        source_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SOURCE_SKIPPED,
            severity=AuditSeverity.ERROR,
            entity_type="income_source",
            entity_id=source_id,
            correlation_id=correlation_id,
            description="Source skipped: invalid configuration",
            error_message=reason,
        )

    @staticmethod
    def clock_skew_detected(
        source_id: UUID,
        today: date,
        watermark: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLOCK_SKEW_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="income_source",
            entity_id=source_id,
            correlation_id=correlation_id,
            description="Device date is earlier than the last posted occurrence",
            details={
                "today": today.isoformat(),
                "watermark": watermark.isoformat(),
            },
        )

    @staticmethod
    def source_config_rejected(
        source_id: Optional[UUID],
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SOURCE_CONFIG_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="income_source",
            entity_id=source_id,
            description=f"Income source rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def source_saved(
        source_id: UUID,
        name: str,
        frequency: str,
        created: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SOURCE_SAVED,
            entity_type="income_source",
            entity_id=source_id,
            description=f"Income source {'created' if created else 'updated'}: {name}",
            details={
                "frequency": frequency,
                "created": created,
            },
            is_user_action=True,
        )

    @staticmethod
    def source_deleted(source_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SOURCE_DELETED,
            entity_type="income_source",
            entity_id=source_id,
            description="Income source deleted",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
