"""
Main Orchestrator for Recurring Income

This module ties together all the components and defines the flows
the app uses:
1. Reconciliation (activation -> due occurrences -> ledger -> watermark)
2. Source editing (form -> draft -> validate -> save)
3. Display helpers (next occurrence, frequency label, projection)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No source is stored without passing validation
- Edits never move a watermark; only the engine does
- Every state change is audited

The UI talks to IncomeScheduleService only.
"""

from datetime import date
from typing import Optional, Union
from uuid import UUID

import structlog

from recurring_income.audit import AuditLogger, create_correlation_id
from recurring_income.config import get_settings
from recurring_income.engine import AutoPostEngine
from recurring_income.models.income import (
    Frequency,
    IncomeProjection,
    IncomeSource,
    IncomeSourceDraft,
    ReconciliationReport,
    ValidationResult,
)
from recurring_income.queries import IncomeProjector
from recurring_income.schedule import calculator
from recurring_income.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsIncomeSourceRegistry,
    GoogleSheetsLedger,
    IncomeSourceRegistryInterface,
    InMemoryIncomeSourceRegistry,
    InMemoryLedger,
    LedgerInterface,
    NotFoundError,
)
from recurring_income.validation import (
    ConfigurationError,
    SourceConfigValidator,
    validate_source_config,
)

logger = structlog.get_logger("recurring_income.orchestrator")


class IncomeScheduleService:
    """
    Facade over the scheduler, engine, validator and projector.

    Flow for the settings screen:
    1. User edits the form -> IncomeSourceDraft
    2. validate_draft() -> issues shown inline
    3. save_draft() -> stored source (create or update)

    Flow on app activation:
    1. run_reconciliation() -> ReconciliationReport
    """

    def __init__(
        self,
        registry: IncomeSourceRegistryInterface,
        ledger: LedgerInterface,
        audit_logger: Optional[AuditLogger] = None,
        engine: Optional[AutoPostEngine] = None,
        validator: Optional[SourceConfigValidator] = None,
    ):
        self._registry = registry
        self._ledger = ledger
        self._audit_logger = audit_logger or AuditLogger()
        self._engine = engine or AutoPostEngine(
            registry, ledger, audit_logger=self._audit_logger
        )
        self._validator = validator or SourceConfigValidator()
        self._projector = IncomeProjector(registry, ledger)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def run_reconciliation(self, today: Optional[date] = None) -> ReconciliationReport:
        """
        Post every due occurrence of every auto-add source.

        Safe to call on every activation: a second call on the same day
        posts nothing.
        """
        return await self._engine.run(today=today, correlation_id=create_correlation_id())

    # -------------------------------------------------------------------------
    # Display helpers
    # -------------------------------------------------------------------------

    def preview_next_occurrence(
        self,
        source: IncomeSource,
        today: Optional[date] = None,
    ) -> Optional[date]:
        return calculator.preview_next_occurrence(source, today)

    def describe_frequency(self, source: IncomeSource) -> str:
        return calculator.describe_frequency(source)

    async def project_income(self, date_from: date, date_to: date) -> IncomeProjection:
        """Recorded plus still-expected income between two dates (inclusive)."""
        return await self._projector.project(date_from, date_to)

    # -------------------------------------------------------------------------
    # Source editing
    # -------------------------------------------------------------------------

    def validate_source_config(
        self,
        frequency: Optional[Frequency],
        day_of_week: Optional[int] = None,
        day_of_month: Optional[int] = None,
        custom_dates: Union[str, list[int], None] = None,
    ) -> ValidationResult:
        return validate_source_config(
            frequency,
            day_of_week=day_of_week,
            day_of_month=day_of_month,
            custom_dates=custom_dates,
        )

    def validate_draft(self, draft: IncomeSourceDraft) -> tuple[ValidationResult, str]:
        """
        Validate form state.

        Returns:
            (validation_result, user_message)
        """
        result = self._validator.validate(draft)
        return result, self._validator.get_user_friendly_summary(result)

    async def list_sources(self) -> list[IncomeSource]:
        return await self._registry.list_sources()

    async def get_source(self, source_id: UUID) -> Optional[IncomeSource]:
        return await self._registry.get_source(source_id)

    async def save_draft(self, draft: IncomeSourceDraft) -> IncomeSource:
        """
        Validate a draft and create or update its source.

        An update keeps the stored watermark, so occurrences already
        posted are never posted again.

        Raises:
            ConfigurationError: If the draft does not validate
            NotFoundError: If draft.source_id names a source that is gone
        """
        existing = None
        if draft.source_id is not None:
            existing = await self._registry.get_source(draft.source_id)
            if existing is None:
                raise NotFoundError(f"Income source not found: {draft.source_id}")

        try:
            source = self._validator.build_source(draft, existing=existing)
        except ConfigurationError as e:
            await self._audit_logger.log_config_rejected(
                source_id=draft.source_id,
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in e.issues
                ],
            )
            raise

        if existing is None:
            await self._registry.save_source(source)
        else:
            await self._registry.update_source(source)

        await self._audit_logger.log_source_saved(
            source_id=source.id,
            name=source.name,
            frequency=source.frequency.value,
            created=existing is None,
        )
        return source

    async def delete_source(self, source_id: UUID) -> bool:
        """
        Remove a source. Income it already posted stays in the ledger.

        Returns:
            True if a source was deleted
        """
        deleted = await self._registry.delete_source(source_id)
        if deleted:
            await self._audit_logger.log_source_deleted(source_id)
        return deleted


def create_app_components(
    use_storage: Optional[bool] = None,
) -> tuple[IncomeScheduleService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage. Defaults to
                    the USE_GOOGLE_SHEETS setting. Falls back to
                    in-memory storage if Sheets is not configured.

    Returns:
        (service, sheets_client)
    """
    if use_storage is None:
        use_storage = get_settings().app.use_google_sheets

    sheets_client = None
    registry = None
    ledger = None
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            registry = GoogleSheetsIncomeSourceRegistry(sheets_client)
            ledger = GoogleSheetsLedger(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            registry = None
            ledger = None

    if registry is None:
        registry = InMemoryIncomeSourceRegistry()
        ledger = InMemoryLedger()
        audit_logger = AuditLogger()  # Local-only logging

    service = IncomeScheduleService(
        registry=registry,
        ledger=ledger,
        audit_logger=audit_logger,
    )
    return service, sheets_client
