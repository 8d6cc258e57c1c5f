"""
Data Models Package

This package contains all Pydantic models used by the recurring income scheduler.
All data flowing through the system must conform to these schemas.
"""

from recurring_income.models.income import (
    WEEKDAY_NAMES,
    Frequency,
    IncomeProjection,
    IncomeSource,
    IncomeSourceDraft,
    IncomeTransaction,
    Occurrence,
    ProjectedIncome,
    ReconciliationFailure,
    ReconciliationReport,
    SourceOutcome,
    SourceState,
    UnreadableSource,
    ValidationIssue,
    ValidationResult,
)
from recurring_income.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Income models
    "WEEKDAY_NAMES",
    "Frequency",
    "IncomeProjection",
    "IncomeSource",
    "IncomeSourceDraft",
    "IncomeTransaction",
    "Occurrence",
    "ProjectedIncome",
    "ReconciliationFailure",
    "ReconciliationReport",
    "SourceOutcome",
    "SourceState",
    "UnreadableSource",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
