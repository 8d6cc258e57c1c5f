"""
Income Source Validation

DESIGN DECISION: Validation happens in two stages, before a source ever
reaches the registry:

STAGE 1 - FIELD VALIDATION:
- Name and amount present and sane
- Frequency chosen, start date set
- Exactly the frequency-specific field the frequency needs:
  weekly -> day_of_week, monthly -> day_of_month, custom -> custom_dates

STAGE 2 - SCHEDULE CHECKS (only if stage 1 passes):
- Warn when a past start date will trigger an immediate catch-up
- Warn when a monthly/custom day will be clamped in short months

Errors block save. Warnings are shown but never block.

IMPORTANT: Validation NEVER silently fixes configuration, with one
exception: free-text custom dates are parsed leniently, dropping tokens
that are not days of the month.
"""

from datetime import date
from typing import Optional, Union

from recurring_income.models.income import (
    Frequency,
    IncomeSource,
    IncomeSourceDraft,
    ValidationIssue,
    ValidationResult,
    utcnow,
)
from recurring_income.schedule.calculator import ScheduleCalculator
from recurring_income.schedule.custom_dates import (
    normalize_custom_dates,
    out_of_range,
    parse_custom_dates,
)
from recurring_income.schedule.frequency import ConfigurationError

CATCH_UP_WARNING_THRESHOLD = 1


def _error(field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=fix,
    )


def _resolve_custom_dates(
    custom_dates: Union[str, list[int], None],
) -> tuple[list[int], list[int]]:
    """Return (days, rejected) from either free text or an explicit list."""
    if custom_dates is None:
        return [], []
    if isinstance(custom_dates, str):
        return parse_custom_dates(custom_dates), []
    days = normalize_custom_dates(list(custom_dates))
    rejected = out_of_range(days)
    return [d for d in days if d not in rejected], rejected


def validate_source_config(
    frequency: Optional[Frequency],
    day_of_week: Optional[int] = None,
    day_of_month: Optional[int] = None,
    custom_dates: Union[str, list[int], None] = None,
) -> ValidationResult:
    """
    Check the frequency-specific fields of a source configuration.

    custom_dates may be the raw text from the form ("15, 30") or a list
    of ints. Fields that the frequency does not use are ignored.
    """
    issues: list[ValidationIssue] = []
    parsed: list[int] = []

    if frequency is None:
        issues.append(_error(
            "frequency", "missing", "Please choose how often this income arrives",
        ))
        return ValidationResult(is_valid=False, issues=issues)

    if frequency == Frequency.WEEKLY:
        if day_of_week is None:
            issues.append(_error(
                "day_of_week", "missing", "Please select a day of the week",
            ))
        elif not 0 <= day_of_week <= 6:
            issues.append(_error(
                "day_of_week", "out_of_range",
                f"Day of week must be between 0 (Sunday) and 6 (Saturday), got {day_of_week}",
            ))

    elif frequency == Frequency.MONTHLY:
        if day_of_month is None:
            issues.append(_error(
                "day_of_month", "missing", "Please select a day of the month",
            ))
        elif not 1 <= day_of_month <= 31:
            issues.append(_error(
                "day_of_month", "out_of_range",
                f"Day of month must be between 1 and 31, got {day_of_month}",
            ))

    elif frequency == Frequency.CUSTOM:
        parsed, rejected = _resolve_custom_dates(custom_dates)
        if rejected:
            issues.append(_error(
                "custom_dates", "out_of_range",
                f"Custom dates must be between 1 and 31, got {rejected}",
            ))
        elif not parsed:
            issues.append(_error(
                "custom_dates", "empty",
                "Please enter at least one custom date",
                fix="e.g. 15, 30",
            ))

    is_valid = not any(issue.severity == "error" for issue in issues)
    return ValidationResult(is_valid=is_valid, issues=issues, parsed_custom_dates=parsed)


class SourceConfigValidator:
    """
    Validates IncomeSourceDraft objects and converts them to IncomeSource.

    Stateless apart from the clock, which tests can pin with `today`.
    """

    def __init__(self, today: Optional[date] = None):
        self._today = today

    def _current_date(self) -> date:
        return self._today or date.today()

    def _validate_fields(self, draft: IncomeSourceDraft) -> list[ValidationIssue]:
        """Stage 1: required fields and frequency-specific fields."""
        issues = []

        if not draft.name:
            issues.append(_error("name", "missing", "Please enter a name for this income"))
        elif len(draft.name) > 200:
            issues.append(_error("name", "too_long", "Name must be at most 200 characters"))

        if draft.amount is None:
            issues.append(_error("amount", "missing", "Please enter an amount"))
        elif draft.amount <= 0:
            issues.append(_error(
                "amount", "invalid_value", "Amount must be greater than zero",
            ))

        if draft.start_date is None:
            issues.append(_error("start_date", "missing", "Please choose a start date"))

        custom = draft.custom_dates_input if draft.custom_dates_input is not None else draft.custom_dates
        config = validate_source_config(
            draft.frequency,
            day_of_week=draft.day_of_week,
            day_of_month=draft.day_of_month,
            custom_dates=custom,
        )
        issues.extend(config.issues)
        return issues

    def _check_schedule(self, source: IncomeSource) -> list[ValidationIssue]:
        """Stage 2: non-blocking warnings about the resulting schedule."""
        issues = []
        if source.frequency == Frequency.MANUAL:
            return issues

        today = self._current_date()
        if source.auto_add and source.start_date <= today:
            pending = ScheduleCalculator.for_source(source).due_since(
                source.last_posted_date, today
            )
            if len(pending) > CATCH_UP_WARNING_THRESHOLD:
                issues.append(ValidationIssue(
                    field="start_date",
                    issue_type="catch_up",
                    message=(
                        f"{len(pending)} past payments since {source.start_date} "
                        "will be added right away"
                    ),
                    severity="warning",
                    suggested_fix="Move the start date forward if they are already recorded",
                ))

        days = []
        if source.frequency == Frequency.MONTHLY:
            days = [source.day_of_month]
        elif source.frequency == Frequency.CUSTOM:
            days = source.custom_dates
        if any(d > 28 for d in days):
            issues.append(ValidationIssue(
                field="day_of_month" if source.frequency == Frequency.MONTHLY else "custom_dates",
                issue_type="clamped",
                message="In shorter months this income is added on the last day of the month",
                severity="info",
            ))
        return issues

    def validate(self, draft: IncomeSourceDraft) -> ValidationResult:
        """Run both stages and return every issue found."""
        issues = self._validate_fields(draft)
        parsed = []
        if draft.frequency == Frequency.CUSTOM:
            custom = draft.custom_dates_input if draft.custom_dates_input is not None else draft.custom_dates
            parsed, _ = _resolve_custom_dates(custom)

        is_valid = not any(issue.severity == "error" for issue in issues)
        if is_valid:
            issues.extend(self._check_schedule(self._to_source(draft, parsed)))

        return ValidationResult(is_valid=is_valid, issues=issues, parsed_custom_dates=parsed)

    def _to_source(
        self,
        draft: IncomeSourceDraft,
        custom_dates: list[int],
        existing: Optional[IncomeSource] = None,
    ) -> IncomeSource:
        """Build the source with only the fields its frequency uses."""
        frequency = draft.frequency
        fields = dict(
            name=draft.name,
            amount=draft.amount,
            frequency=frequency,
            day_of_week=draft.day_of_week if frequency == Frequency.WEEKLY else None,
            day_of_month=draft.day_of_month if frequency == Frequency.MONTHLY else None,
            custom_dates=custom_dates if frequency == Frequency.CUSTOM else [],
            start_date=draft.start_date,
            auto_add=draft.auto_add,
            is_active=draft.is_active,
            original_amount=draft.original_amount,
            original_currency=draft.original_currency,
        )
        if existing is None:
            if draft.source_id is not None:
                fields["id"] = draft.source_id
            return IncomeSource(**fields)

        # Edits never touch the watermark
        return IncomeSource(
            id=existing.id,
            created_at=existing.created_at,
            updated_at=utcnow(),
            last_posted_date=existing.last_posted_date,
            **fields,
        )

    def build_source(
        self,
        draft: IncomeSourceDraft,
        existing: Optional[IncomeSource] = None,
    ) -> IncomeSource:
        """
        Convert a validated draft into an IncomeSource.

        Args:
            draft: The form state
            existing: The stored source when editing; its id, created_at
                and last_posted_date are kept

        Raises:
            ConfigurationError: If the draft has any error-level issue
        """
        result = self.validate(draft)
        if not result.is_valid:
            errors = [i for i in result.issues if i.severity == "error"]
            raise ConfigurationError(
                "; ".join(i.message for i in errors),
                issues=errors,
            )
        return self._to_source(draft, result.parsed_custom_dates, existing)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Summary shown under the form."""
        if result.is_valid and not result.issues:
            return "✅ Looks good!"

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        notes = [i for i in result.issues if i.severity != "error"]

        if errors:
            lines.append("❌ Please fix the following:")
            for issue in errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if notes:
            if lines:
                lines.append("")
            lines.append("⚠️ Good to know:")
            for issue in notes:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
