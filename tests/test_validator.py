"""
Tests for income source validation.

The validator's clock is pinned so catch-up warnings are stable.
"""

import pytest
from datetime import date
from decimal import Decimal

from recurring_income.models.income import Frequency, IncomeSourceDraft
from recurring_income.validation import (
    ConfigurationError,
    SourceConfigValidator,
    validate_source_config,
)

TODAY = date(2024, 3, 18)


def draft(**fields) -> IncomeSourceDraft:
    base = dict(
        name="Salary",
        amount=Decimal("1000"),
        frequency=Frequency.WEEKLY,
        day_of_week=1,
        start_date=TODAY,
    )
    base.update(fields)
    return IncomeSourceDraft(**base)


class TestValidateSourceConfig:
    """Frequency-specific field checks."""

    def test_missing_frequency(self):
        result = validate_source_config(None)
        assert result.is_valid is False
        assert result.errors_for("frequency")

    def test_weekly_requires_day_of_week(self):
        result = validate_source_config(Frequency.WEEKLY)
        assert result.is_valid is False
        assert result.errors_for("day_of_week")[0].issue_type == "missing"

    def test_weekly_day_of_week_range(self):
        result = validate_source_config(Frequency.WEEKLY, day_of_week=7)
        assert result.errors_for("day_of_week")[0].issue_type == "out_of_range"

    def test_monthly_requires_day_of_month(self):
        result = validate_source_config(Frequency.MONTHLY)
        assert result.errors_for("day_of_month")[0].issue_type == "missing"

    @pytest.mark.parametrize("day", [0, 32])
    def test_monthly_day_of_month_range(self, day):
        result = validate_source_config(Frequency.MONTHLY, day_of_month=day)
        assert result.errors_for("day_of_month")[0].issue_type == "out_of_range"

    def test_monthly_31_is_valid(self):
        assert validate_source_config(Frequency.MONTHLY, day_of_month=31).is_valid

    def test_custom_text_is_parsed(self):
        result = validate_source_config(Frequency.CUSTOM, custom_dates="15, 30, 31, 32, abc, 1")
        assert result.is_valid is True
        assert result.parsed_custom_dates == [1, 15, 30, 31]

    def test_custom_text_with_nothing_valid(self):
        result = validate_source_config(Frequency.CUSTOM, custom_dates="40, -1")
        assert result.is_valid is False
        issue = result.errors_for("custom_dates")[0]
        assert issue.issue_type == "empty"
        assert issue.suggested_fix == "e.g. 15, 30"

    def test_custom_list_out_of_range_is_reported(self):
        result = validate_source_config(Frequency.CUSTOM, custom_dates=[0, 15])
        assert result.errors_for("custom_dates")[0].issue_type == "out_of_range"

    @pytest.mark.parametrize("frequency", [Frequency.BIWEEKLY, Frequency.MANUAL])
    def test_no_extra_fields_needed(self, frequency):
        assert validate_source_config(frequency).is_valid

    def test_unused_fields_are_ignored(self):
        result = validate_source_config(Frequency.MONTHLY, day_of_week=9, day_of_month=5)
        assert result.is_valid is True


class TestSourceConfigValidator:
    """Draft validation and conversion."""

    @pytest.fixture
    def validator(self):
        return SourceConfigValidator(today=TODAY)

    def test_valid_draft(self, validator):
        result = validator.validate(draft())
        assert result.is_valid is True
        assert result.issues == []

    def test_missing_name_and_amount(self, validator):
        result = validator.validate(draft(name="   ", amount=None))
        assert result.is_valid is False
        assert result.errors_for("name")
        assert result.errors_for("amount")

    def test_non_positive_amount(self, validator):
        result = validator.validate(draft(amount=Decimal("0")))
        assert result.errors_for("amount")[0].issue_type == "invalid_value"

    def test_missing_start_date(self, validator):
        result = validator.validate(draft(start_date=None))
        assert result.errors_for("start_date")

    def test_catch_up_warning_does_not_block(self, validator):
        result = validator.validate(draft(start_date=date(2024, 1, 8)))
        assert result.is_valid is True
        warning = [i for i in result.issues if i.issue_type == "catch_up"][0]
        assert warning.severity == "warning"
        assert "11 past payments" in warning.message

    def test_single_pending_payment_is_not_warned(self, validator):
        result = validator.validate(draft(start_date=TODAY))
        assert not [i for i in result.issues if i.issue_type == "catch_up"]

    def test_no_catch_up_warning_without_auto_add(self, validator):
        result = validator.validate(draft(start_date=date(2024, 1, 8), auto_add=False))
        assert not [i for i in result.issues if i.issue_type == "catch_up"]

    def test_clamp_notice_for_late_days(self, validator):
        result = validator.validate(draft(
            frequency=Frequency.MONTHLY,
            day_of_week=None,
            day_of_month=31,
            start_date=date(2024, 4, 1),
        ))
        assert result.is_valid is True
        notice = [i for i in result.issues if i.issue_type == "clamped"][0]
        assert notice.severity == "info"

    def test_custom_input_text_takes_precedence(self, validator):
        result = validator.validate(draft(
            frequency=Frequency.CUSTOM,
            custom_dates=[5],
            custom_dates_input="15, 20",
            start_date=date(2024, 4, 1),
        ))
        assert result.parsed_custom_dates == [15, 20]

    def test_build_source_blanks_unused_fields(self, validator):
        source = validator.build_source(draft(
            frequency=Frequency.MONTHLY,
            day_of_week=3,
            day_of_month=15,
            custom_dates=[1, 2],
        ))
        assert source.day_of_month == 15
        assert source.day_of_week is None
        assert source.custom_dates == []

    def test_build_source_uses_draft_id(self, validator, make_source):
        existing_id = make_source().id
        source = validator.build_source(draft(source_id=existing_id))
        assert source.id == existing_id

    def test_build_source_keeps_watermark_on_edit(self, validator, make_source):
        existing = make_source(last_posted_date=date(2024, 3, 11))
        edited = draft(
            source_id=existing.id,
            name="Salary (new job)",
            frequency=Frequency.BIWEEKLY,
            day_of_week=None,
            start_date=date(2024, 1, 8),
        )
        source = validator.build_source(edited, existing=existing)

        assert source.id == existing.id
        assert source.created_at == existing.created_at
        assert source.last_posted_date == date(2024, 3, 11)
        assert source.frequency == Frequency.BIWEEKLY
        assert source.name == "Salary (new job)"

    def test_build_source_raises_with_issues(self, validator):
        with pytest.raises(ConfigurationError) as exc_info:
            validator.build_source(draft(frequency=Frequency.CUSTOM, custom_dates_input="40, -1"))
        assert exc_info.value.issues
        assert exc_info.value.issues[0].field == "custom_dates"

    def test_summary_for_valid(self, validator):
        summary = validator.get_user_friendly_summary(validator.validate(draft()))
        assert summary == "✅ Looks good!"

    def test_summary_lists_errors_and_fixes(self, validator):
        result = validator.validate(draft(frequency=Frequency.CUSTOM, custom_dates_input="abc"))
        summary = validator.get_user_friendly_summary(result)
        assert "Please fix the following" in summary
        assert "e.g. 15, 30" in summary
