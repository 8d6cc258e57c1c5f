"""
Core Data Models for Recurring Income

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Frequency-specific fields (day_of_week, day_of_month,
custom_dates) are stored permissively on IncomeSource. A user switching
frequency can leave stale values behind, so the schedule code reads only the
fields the current frequency needs and checks them itself.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Frequency(str, Enum):
    """
    How often an income source pays out.

    MANUAL sources never produce automatic occurrences; the user
    records their income by hand.
    """
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"
    MANUAL = "manual"

    @classmethod
    def _missing_(cls, value):
        # Accept upper-case names ("WEEKLY") typed into the sheet by hand
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class SourceState(str, Enum):
    """
    Where a single source ended up after one reconciliation pass.

    IDLE -> COMPUTING -> POSTING -> COMMITTED | PARTIAL_FAILURE
    SKIPPED is used for sources whose stored configuration is corrupt.
    """
    IDLE = "idle"
    COMPUTING = "computing"
    POSTING = "posting"
    COMMITTED = "committed"
    PARTIAL_FAILURE = "partial_failure"
    SKIPPED = "skipped"


WEEKDAY_NAMES = [
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
]


# =============================================================================
# INCOME SOURCE
# =============================================================================

class IncomeSource(BaseModel):
    """
    A recurring (or manual) income source.

    last_posted_date is the watermark: the latest occurrence already
    materialized as a ledger transaction. It is the only field the
    reconciliation engine ever changes.
    """
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique income source ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display label, also used as the transaction description"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount per occurrence (currency-agnostic)"
    )
    frequency: Frequency

    # Frequency-specific fields
    day_of_week: Optional[int] = Field(
        default=None,
        description="Weekly only: 0=Sunday .. 6=Saturday"
    )
    day_of_month: Optional[int] = Field(
        default=None,
        description="Monthly only: 1-31, clamped to short months"
    )
    custom_dates: list[int] = Field(
        default_factory=list,
        description="Custom only: days of month, sorted and distinct"
    )

    start_date: date = Field(
        ...,
        description="No occurrence is ever earlier than this date"
    )
    auto_add: bool = Field(
        default=True,
        description="Post occurrences automatically"
    )
    is_active: bool = True
    last_posted_date: Optional[date] = Field(
        default=None,
        description="Watermark: most recent occurrence already posted"
    )

    # Entry currency, carried through for display
    original_amount: Optional[Decimal] = None
    original_currency: Optional[str] = Field(default=None, max_length=3)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('custom_dates')
    @classmethod
    def normalize_custom_dates(cls, v: list[int]) -> list[int]:
        """Custom dates are kept sorted and deduplicated on write."""
        return sorted(set(v))

    @property
    def is_schedulable(self) -> bool:
        """Can the reconciliation engine post for this source at all?"""
        return self.auto_add and self.is_active and self.frequency != Frequency.MANUAL


class IncomeSourceDraft(BaseModel):
    """
    Editable form state for an income source.

    Everything is optional here because the user fills the form in
    steps. A draft only becomes an IncomeSource after it passes
    SourceConfigValidator.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    source_id: Optional[UUID] = Field(
        default=None,
        description="Set when editing an existing source"
    )
    name: str = ""
    amount: Optional[Decimal] = None
    frequency: Optional[Frequency] = None
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    custom_dates: list[int] = Field(default_factory=list)
    custom_dates_input: Optional[str] = Field(
        default=None,
        description="Free text such as '15, 30'; takes precedence over custom_dates"
    )
    start_date: Optional[date] = None
    auto_add: bool = True
    is_active: bool = True
    original_amount: Optional[Decimal] = None
    original_currency: Optional[str] = None

    @classmethod
    def from_source(cls, source: IncomeSource) -> "IncomeSourceDraft":
        """Prefill a draft for editing an existing source."""
        return cls(
            source_id=source.id,
            name=source.name,
            amount=source.amount,
            frequency=source.frequency,
            day_of_week=source.day_of_week,
            day_of_month=source.day_of_month,
            custom_dates=list(source.custom_dates),
            custom_dates_input=", ".join(str(d) for d in source.custom_dates) or None,
            start_date=source.start_date,
            auto_add=source.auto_add,
            is_active=source.is_active,
            original_amount=source.original_amount,
            original_currency=source.original_currency,
        )


# =============================================================================
# OCCURRENCES AND TRANSACTIONS
# =============================================================================

class Occurrence(BaseModel):
    """A single calendar date on which a source is due. Never persisted."""
    model_config = ConfigDict(frozen=True)

    source_id: UUID
    occurrence_date: date


class IncomeTransaction(BaseModel):
    """
    An income entry in the ledger.

    Auto-posted transactions carry auto_added=True; the ledger uses
    (source_id, transaction_date) of auto-posted entries to reject
    duplicates.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    source_id: Optional[UUID] = None
    transaction_date: date
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=200)
    auto_added: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    original_amount: Optional[Decimal] = None
    original_currency: Optional[str] = None

    @classmethod
    def for_occurrence(cls, source: IncomeSource, occurrence_date: date) -> "IncomeTransaction":
        """Build the auto-posted transaction for one occurrence of a source."""
        return cls(
            source_id=source.id,
            transaction_date=occurrence_date,
            amount=source.amount,
            description=source.name,
            auto_added=True,
            original_amount=source.original_amount,
            original_currency=source.original_currency,
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'out_of_range', 'empty')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Result of validating an income source configuration."""

    validated_at: datetime = Field(default_factory=utcnow)
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    # Custom dates after parsing, so the form can preview them
    parsed_custom_dates: list[int] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def errors_for(self, field: str) -> list[ValidationIssue]:
        return [i for i in self.issues if i.field == field and i.severity == "error"]


# =============================================================================
# RECONCILIATION MODELS
# =============================================================================

class ReconciliationFailure(BaseModel):
    """One source that could not be fully reconciled in a pass."""

    source_id: UUID
    source_name: Optional[str] = None
    reason: str
    error_type: str = Field(
        ...,
        pattern="^(posting_failure|watermark_failure|configuration_error)$",
    )
    occurrence_date: Optional[date] = Field(
        default=None,
        description="The occurrence that failed, if the failure was a post"
    )
    retryable: bool = True


class UnreadableSource(BaseModel):
    """A stored source record that no longer converts to an IncomeSource."""

    source_id: UUID
    name: Optional[str] = None
    error: str


class SourceOutcome(BaseModel):
    """What happened to one source during a pass."""

    source_id: UUID
    state: SourceState = SourceState.IDLE
    posted_dates: list[date] = Field(default_factory=list)
    watermark: Optional[date] = None


class ReconciliationReport(BaseModel):
    """
    Result of one reconciliation pass.

    posted_count and failures are what UI callers read; outcomes give
    the per-source detail.
    """

    run_id: UUID = Field(default_factory=uuid4)
    today: date
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    posted_count: int = Field(default=0, ge=0)
    failures: list[ReconciliationFailure] = Field(default_factory=list)
    outcomes: list[SourceOutcome] = Field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def outcome_for(self, source_id: UUID) -> Optional[SourceOutcome]:
        for outcome in self.outcomes:
            if outcome.source_id == source_id:
                return outcome
        return None


# =============================================================================
# PROJECTION MODELS
# =============================================================================

class ProjectedIncome(BaseModel):
    """An occurrence inside a projection window that is not yet posted."""

    source_id: UUID
    source_name: str
    occurrence_date: date
    amount: Decimal


class IncomeProjection(BaseModel):
    """Expected income for a period: what is recorded plus what is still to come."""

    date_from: date
    date_to: date
    recorded_total: Decimal = Decimal("0")
    projected_total: Decimal = Decimal("0")
    recorded_count: int = 0
    projected: list[ProjectedIncome] = Field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return self.recorded_total + self.projected_total
