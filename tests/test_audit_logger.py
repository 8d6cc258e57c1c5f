"""Tests for the audit logger."""

import pytest
from datetime import date
from uuid import uuid4

from recurring_income.audit import AuditLogger, create_correlation_id
from recurring_income.models.audit import AuditEventBuilder, AuditEventType
from recurring_income.services.storage import InMemoryAuditStorage, StorageError


class FailingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise StorageError("Audit sheet unavailable")


class TestAuditLogger:
    """Local logging plus optional persistence."""

    @pytest.mark.asyncio
    async def test_persists_events(self, audit_storage, audit_logger):
        source_id = uuid4()
        await audit_logger.log_source_deleted(source_id)

        assert len(audit_storage.events) == 1
        assert audit_storage.events[0].entity_id == source_id

    @pytest.mark.asyncio
    async def test_local_only(self):
        logger = AuditLogger()
        assert await logger.log(AuditEventBuilder.source_deleted(uuid4())) is True

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_raised(self):
        logger = AuditLogger(FailingAuditStorage())
        result = await logger.log(AuditEventBuilder.source_deleted(uuid4()))
        assert result is False

    @pytest.mark.asyncio
    async def test_wrappers_set_correlation_id(self, audit_storage, audit_logger):
        run_id = create_correlation_id()
        await audit_logger.log_posting_failed(
            source_id=uuid4(),
            occurrence_date=date(2024, 3, 4),
            reason="Ledger rejected the transaction",
            correlation_id=run_id,
        )

        event = audit_storage.events[0]
        assert event.event_type == AuditEventType.POSTING_FAILED
        assert event.correlation_id == run_id
        assert event.error_message == "Ledger rejected the transaction"
