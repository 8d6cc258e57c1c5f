"""
Tests for Recurring Income models

Test strategy:
1. Unit tests for individual components (models, validators, date math)
2. Integration tests for flows (with in-memory storage)
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from recurring_income.models.income import (
    Frequency,
    IncomeProjection,
    IncomeSource,
    IncomeSourceDraft,
    IncomeTransaction,
    ProjectedIncome,
    ReconciliationFailure,
    ReconciliationReport,
    SourceOutcome,
    SourceState,
    ValidationIssue,
    ValidationResult,
)
from recurring_income.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestIncomeSourceModels:
    """Tests for income source Pydantic models."""

    def test_income_source_creation(self):
        """Test IncomeSource model creation."""
        source = IncomeSource(
            name="Salary",
            amount=Decimal("2500.00"),
            frequency=Frequency.MONTHLY,
            day_of_month=25,
            start_date=date(2024, 1, 25),
        )
        assert source.name == "Salary"
        assert source.auto_add is True
        assert source.last_posted_date is None

    def test_income_source_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        source = IncomeSource(
            name="  Freelance  ",
            amount=Decimal("10"),
            frequency=Frequency.MANUAL,
            start_date=date(2024, 1, 1),
        )
        assert source.name == "Freelance"

    def test_income_source_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            IncomeSource(
                name="Salary",
                amount=Decimal("0"),
                frequency=Frequency.MANUAL,
                start_date=date(2024, 1, 1),
            )

    def test_custom_dates_sorted_and_deduplicated(self):
        """Test custom dates normalization on write."""
        source = IncomeSource(
            name="Rent share",
            amount=Decimal("300"),
            frequency=Frequency.CUSTOM,
            custom_dates=[30, 15, 15, 1],
            start_date=date(2024, 1, 1),
        )
        assert source.custom_dates == [1, 15, 30]

    def test_frequency_accepts_upper_case(self):
        """Test that legacy upper-case frequency names still load."""
        assert Frequency("WEEKLY") == Frequency.WEEKLY
        assert Frequency("Biweekly") == Frequency.BIWEEKLY

    def test_frequency_rejects_unknown(self):
        with pytest.raises(ValueError):
            Frequency("yearly")

    @pytest.mark.parametrize(
        "frequency,auto_add,is_active,expected",
        [
            (Frequency.WEEKLY, True, True, True),
            (Frequency.WEEKLY, False, True, False),
            (Frequency.WEEKLY, True, False, False),
            (Frequency.MANUAL, True, True, False),
        ],
    )
    def test_is_schedulable(self, frequency, auto_add, is_active, expected):
        source = IncomeSource(
            name="Salary",
            amount=Decimal("1"),
            frequency=frequency,
            day_of_week=1,
            start_date=date(2024, 1, 1),
            auto_add=auto_add,
            is_active=is_active,
        )
        assert source.is_schedulable is expected

    def test_draft_from_source_prefills_custom_text(self):
        """Test that editing a custom source shows its days as text."""
        source = IncomeSource(
            name="Side gig",
            amount=Decimal("50"),
            frequency=Frequency.CUSTOM,
            custom_dates=[15, 30],
            start_date=date(2024, 1, 1),
            last_posted_date=date(2024, 2, 15),
        )
        draft = IncomeSourceDraft.from_source(source)
        assert draft.source_id == source.id
        assert draft.custom_dates_input == "15, 30"
        assert draft.frequency == Frequency.CUSTOM


class TestTransactionModels:
    """Tests for ledger transaction models."""

    def test_for_occurrence(self):
        """Test that an auto-posted transaction copies the source."""
        source = IncomeSource(
            name="Salary",
            amount=Decimal("2500.00"),
            frequency=Frequency.MONTHLY,
            day_of_month=25,
            start_date=date(2024, 1, 25),
            original_amount=Decimal("2300.00"),
            original_currency="EUR",
        )
        transaction = IncomeTransaction.for_occurrence(source, date(2024, 2, 25))

        assert transaction.source_id == source.id
        assert transaction.transaction_date == date(2024, 2, 25)
        assert transaction.amount == Decimal("2500.00")
        assert transaction.description == "Salary"
        assert transaction.auto_added is True
        assert transaction.original_currency == "EUR"

    def test_manual_transaction_defaults(self):
        transaction = IncomeTransaction(
            transaction_date=date(2024, 3, 1),
            amount=Decimal("75"),
            description="Gift",
        )
        assert transaction.auto_added is False
        assert transaction.source_id is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.INCOME_POSTED,
            description="Income posted",
        )
        assert event.event_type == AuditEventType.INCOME_POSTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SOURCE_SAVED,
            description="Income source created",
            details={"frequency": "weekly"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "source_saved"
        assert log_dict["details"]["frequency"] == "weekly"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.SOURCE_DELETED,
            description="Income source deleted",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "source_deleted"  # event_type
        assert row[10] == "True"  # is_user_action

    def test_audit_event_builder_income_posted(self):
        """Test AuditEventBuilder.income_posted."""
        source_id = uuid4()
        transaction_id = uuid4()
        run_id = uuid4()

        event = AuditEventBuilder.income_posted(
            source_id=source_id,
            transaction_id=transaction_id,
            occurrence_date=date(2024, 3, 18),
            amount="1000.00",
            correlation_id=run_id,
        )

        assert event.event_type == AuditEventType.INCOME_POSTED
        assert event.entity_id == source_id
        assert event.correlation_id == run_id
        assert event.details["occurrence_date"] == "2024-03-18"

    def test_audit_event_builder_clock_skew_is_warning(self):
        event = AuditEventBuilder.clock_skew_detected(
            source_id=uuid4(),
            today=date(2024, 3, 1),
            watermark=date(2024, 3, 18),
            correlation_id=uuid4(),
        )
        assert event.event_type == AuditEventType.CLOCK_SKEW_DETECTED
        assert event.severity == AuditSeverity.WARNING

    def test_audit_event_builder_completed_with_failures_is_warning(self):
        run_id = uuid4()
        event = AuditEventBuilder.reconciliation_completed(
            run_id=run_id,
            posted_count=2,
            failure_count=1,
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.correlation_id == run_id


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="day_of_week",
                    issue_type="missing",
                    message="Please select a day of the week",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert len(result.errors_for("day_of_week")) == 1
        assert result.errors_for("name") == []

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="start_date",
                    issue_type="catch_up",
                    message="Past payments will be added",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0

    def test_validation_issue_rejects_unknown_severity(self):
        with pytest.raises(ValueError):
            ValidationIssue(
                field="name",
                issue_type="missing",
                message="x",
                severity="fatal",
            )


class TestReconciliationModels:
    """Tests for reconciliation report models."""

    def test_report_outcome_lookup(self):
        source_id = uuid4()
        report = ReconciliationReport(
            today=date(2024, 3, 18),
            outcomes=[SourceOutcome(source_id=source_id, state=SourceState.COMMITTED)],
        )
        assert report.outcome_for(source_id).state == SourceState.COMMITTED
        assert report.outcome_for(uuid4()) is None
        assert report.has_failures is False

    def test_failure_error_type_is_restricted(self):
        with pytest.raises(ValueError):
            ReconciliationFailure(
                source_id=uuid4(),
                reason="x",
                error_type="something_else",
            )

    def test_projection_total(self):
        projection = IncomeProjection(
            date_from=date(2024, 3, 1),
            date_to=date(2024, 3, 31),
            recorded_total=Decimal("1000"),
            projected_total=Decimal("250.50"),
            projected=[
                ProjectedIncome(
                    source_id=uuid4(),
                    source_name="Salary",
                    occurrence_date=date(2024, 3, 25),
                    amount=Decimal("250.50"),
                ),
            ],
        )
        assert projection.total == Decimal("1250.50")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
