"""
Tests for the Google Sheets backend.

The gspread worksheet is replaced with an in-process fake, so no
network calls are made.
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from recurring_income.engine import AutoPostEngine
from recurring_income.models.audit import AuditEventBuilder
from recurring_income.models.income import Frequency, IncomeTransaction
from recurring_income.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsIncomeSourceRegistry,
    GoogleSheetsLedger,
    InMemoryLedger,
    NotFoundError,
)
from recurring_income.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    SOURCE_COLUMNS,
    TRANSACTION_COLUMNS,
)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage classes."""

    def __init__(self, header):
        self.rows = [list(header)]

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def col_values(self, col):
        return [r[col - 1] if len(r) >= col else "" for r in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def update(self, range_name=None, values=None, value_input_option=None):
        idx = int(range_name[1:]) - 1
        self.rows[idx] = [str(v) for v in values[0]]

    def update_cell(self, row, col, value):
        target = self.rows[row - 1]
        while len(target) < col:
            target.append("")
        target[col - 1] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.sources = FakeWorksheet(SOURCE_COLUMNS)
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_sources_sheet(self):
        return self.sources

    def get_transactions_sheet(self):
        return self.transactions

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def client():
    return FakeSheetsClient()


class TestGoogleSheetsRegistry:
    """Tests for GoogleSheetsIncomeSourceRegistry."""

    @pytest.mark.asyncio
    async def test_source_survives_a_row(self, client, make_source):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        source = make_source(
            frequency=Frequency.CUSTOM,
            day_of_week=None,
            custom_dates=[15, 30],
            original_amount=Decimal("900"),
            original_currency="EUR",
        )
        await registry.save_source(source)

        stored = await registry.get_source(source.id)

        assert stored.id == source.id
        assert stored.custom_dates == [15, 30]
        assert stored.amount == source.amount
        assert stored.day_of_week is None
        assert stored.original_currency == "EUR"
        assert stored.last_posted_date is None

    @pytest.mark.asyncio
    async def test_save_duplicate(self, client, make_source):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        source = make_source()
        await registry.save_source(source)
        with pytest.raises(DuplicateError):
            await registry.save_source(source)

    @pytest.mark.asyncio
    async def test_watermark_is_monotonic(self, client, make_source):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        source = make_source()
        await registry.save_source(source)

        await registry.update_watermark(source.id, date(2024, 3, 11))
        await registry.update_watermark(source.id, date(2024, 3, 4))

        assert (await registry.get_source(source.id)).last_posted_date == date(2024, 3, 11)

    @pytest.mark.asyncio
    async def test_update_keeps_watermark(self, client, make_source):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        source = make_source()
        await registry.save_source(source)
        await registry.update_watermark(source.id, date(2024, 3, 11))

        await registry.update_source(source.model_copy(update={"name": "Renamed"}))

        stored = await registry.get_source(source.id)
        assert stored.name == "Renamed"
        assert stored.last_posted_date == date(2024, 3, 11)

    @pytest.mark.asyncio
    async def test_missing_source(self, client, make_source):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        assert await registry.get_source(uuid4()) is None
        assert await registry.delete_source(uuid4()) is False
        with pytest.raises(NotFoundError):
            await registry.update_watermark(uuid4(), date(2024, 3, 11))

    @pytest.mark.asyncio
    async def test_malformed_rows_are_skipped(self, client, make_source):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        await registry.save_source(make_source())
        client.sources.rows.append([str(uuid4()), "Broken", "not-a-number"])

        sources = await registry.list_sources()

        assert [s.name for s in sources] == ["Salary"]


class TestGoogleSheetsLedger:
    """Tests for GoogleSheetsLedger."""

    @pytest.mark.asyncio
    async def test_post_and_last_auto_posted(self, client, make_source):
        ledger = GoogleSheetsLedger(client)
        source = make_source()
        await ledger.post_income(IncomeTransaction.for_occurrence(source, date(2024, 3, 4)))
        await ledger.post_income(IncomeTransaction.for_occurrence(source, date(2024, 3, 11)))

        assert await ledger.last_auto_posted_date(source.id) == date(2024, 3, 11)
        listed = await ledger.list_transactions(source_id=source.id, date_from=date(2024, 3, 5))
        assert [t.transaction_date for t in listed] == [date(2024, 3, 11)]

    @pytest.mark.asyncio
    async def test_rejects_duplicate_auto_post(self, client, make_source):
        ledger = GoogleSheetsLedger(client)
        source = make_source()
        await ledger.post_income(IncomeTransaction.for_occurrence(source, date(2024, 3, 4)))
        with pytest.raises(DuplicateError):
            await ledger.post_income(IncomeTransaction.for_occurrence(source, date(2024, 3, 4)))
        assert len(client.transactions.rows) == 2  # header + one


class TestGoogleSheetsAuditStorage:
    """Tests for GoogleSheetsAuditStorage."""

    @pytest.mark.asyncio
    async def test_append_and_read_back(self, client):
        storage = GoogleSheetsAuditStorage(client)
        run_id = uuid4()
        await storage.append_event(AuditEventBuilder.reconciliation_started(run_id, date(2024, 3, 18), 2))

        events = await storage.get_events_by_correlation_id(run_id)

        assert len(events) == 1
        assert events[0].details["source_count"] == 2


class TestUnreadableSourceRows:
    """Rows that no longer convert are surfaced, not silently dropped."""

    def corrupt_row(self, client, make_source, **cells):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        source = make_source(name="Freelance", start_date=date(2024, 3, 18))
        row = registry._source_to_row(source)
        for column, value in cells.items():
            row[SOURCE_COLUMNS.index(column)] = value
        client.sources.rows.append(row)
        return source

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "cells",
        [dict(frequency="fortnightly"), dict(day_of_week="Monday")],
    )
    async def test_listed_as_unreadable(self, client, make_source, cells):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        await registry.save_source(make_source())
        broken = self.corrupt_row(client, make_source, **cells)

        unreadable = await registry.list_unreadable_sources()

        assert [s.name for s in await registry.list_sources()] == ["Salary"]
        assert [u.source_id for u in unreadable] == [broken.id]
        assert unreadable[0].name == "Freelance"

    @pytest.mark.asyncio
    async def test_auto_add_filter_applies(self, client, make_source):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        self.corrupt_row(client, make_source, frequency="fortnightly", auto_add="False")

        assert await registry.list_unreadable_sources(auto_add_only=True) == []
        assert len(await registry.list_unreadable_sources()) == 1

    @pytest.mark.asyncio
    async def test_reconciliation_reports_the_row(self, client, make_source):
        registry = GoogleSheetsIncomeSourceRegistry(client)
        healthy = make_source(start_date=date(2024, 3, 18))
        await registry.save_source(healthy)
        broken = self.corrupt_row(client, make_source, frequency="fortnightly")

        report = await AutoPostEngine(registry, InMemoryLedger()).run(today=date(2024, 3, 18))

        assert report.posted_count == 1
        assert [f.source_id for f in report.failures] == [broken.id]
        assert report.failures[0].error_type == "configuration_error"
        assert report.failures[0].source_name == "Freelance"
