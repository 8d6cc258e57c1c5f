"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the persistent backend because:
1. Users can inspect their income sources and posted income directly
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions: the ledger row is written first, the watermark cell
  second. A crash in between is repaired on the next pass from the
  ledger's last auto-posted date.
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interfaces, so we can swap
to SQLite later without changing the engine.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from recurring_income.config import get_settings
from recurring_income.models.audit import AuditEvent, AuditEventType, AuditSeverity
from recurring_income.models.income import (
    Frequency,
    IncomeSource,
    IncomeTransaction,
    UnreadableSource,
    utcnow,
)
from recurring_income.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    IncomeSourceRegistryInterface,
    LedgerInterface,
    NotFoundError,
    StorageError,
)

logger = structlog.get_logger(__name__)


# Column mappings for IncomeSources sheet
SOURCE_COLUMNS = [
    "id",
    "name",
    "amount",
    "frequency",
    "day_of_week",
    "day_of_month",
    "custom_dates_json",
    "start_date",
    "auto_add",
    "is_active",
    "last_posted_date",
    "original_amount",
    "original_currency",
    "created_at",
    "updated_at",
]

# Column mappings for IncomeTransactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "source_id",
    "transaction_date",
    "amount",
    "description",
    "auto_added",
    "created_at",
    "original_amount",
    "original_currency",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

WATERMARK_COLUMN = SOURCE_COLUMNS.index("last_posted_date") + 1
UPDATED_AT_COLUMN = SOURCE_COLUMNS.index("updated_at") + 1

write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((DuplicateError, NotFoundError)),
    reraise=True,
)


def _safe_getter(row: list):
    """Handle missing trailing columns gracefully."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _opt_date(value: str) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _opt_int(value: str) -> Optional[int]:
    return int(value) if value else None


def _opt_decimal(value: str) -> Optional[Decimal]:
    return Decimal(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def get_sources_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.sources_sheet_name, SOURCE_COLUMNS, 200)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, 5000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


class GoogleSheetsIncomeSourceRegistry(IncomeSourceRegistryInterface):
    """
    Google Sheets implementation of the income source registry.

    One source per row; custom dates are JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _source_to_row(self, source: IncomeSource) -> list:
        """Convert an IncomeSource to a spreadsheet row."""
        return [
            str(source.id),
            source.name,
            str(source.amount),
            source.frequency.value,
            "" if source.day_of_week is None else str(source.day_of_week),
            "" if source.day_of_month is None else str(source.day_of_month),
            json.dumps(source.custom_dates),
            source.start_date.isoformat(),
            str(source.auto_add),
            str(source.is_active),
            source.last_posted_date.isoformat() if source.last_posted_date else "",
            str(source.original_amount) if source.original_amount is not None else "",
            source.original_currency or "",
            source.created_at.isoformat(),
            source.updated_at.isoformat(),
        ]

    def _row_to_source(self, row: list) -> IncomeSource:
        """Convert a spreadsheet row to an IncomeSource."""
        safe_get = _safe_getter(row)
        custom_json = safe_get(6)
        return IncomeSource(
            id=UUID(safe_get(0)),
            name=safe_get(1),
            amount=Decimal(safe_get(2)),
            frequency=Frequency(safe_get(3)),
            day_of_week=_opt_int(safe_get(4)),
            day_of_month=_opt_int(safe_get(5)),
            custom_dates=json.loads(custom_json) if custom_json else [],
            start_date=date.fromisoformat(safe_get(7)),
            auto_add=safe_get(8).lower() == "true",
            is_active=safe_get(9, "True").lower() == "true",
            last_posted_date=_opt_date(safe_get(10)),
            original_amount=_opt_decimal(safe_get(11)),
            original_currency=safe_get(12) or None,
            created_at=datetime.fromisoformat(safe_get(13)) if safe_get(13) else utcnow(),
            updated_at=datetime.fromisoformat(safe_get(14)) if safe_get(14) else utcnow(),
        )

    def _find_row(self, sheet: gspread.Worksheet, source_id: UUID) -> tuple[int, list]:
        """Return (1-based row index, row values); raise NotFoundError."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # row 1 is header
            if row and row[0] == str(source_id):
                return idx, row
        raise NotFoundError(f"Income source not found: {source_id}")

    def _read_rows(self, auto_add_only: bool) -> tuple[list[IncomeSource], list[UnreadableSource]]:
        """Split the sheet into readable sources and rows that fail conversion."""
        try:
            sheet = self._client.get_sources_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list income sources: {e}")

        sources = []
        unreadable = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            safe_get = _safe_getter(row)
            if auto_add_only and safe_get(8).lower() != "true":
                continue
            try:
                source = self._row_to_source(row)
            except Exception as e:
                logger.warning("malformed_source_row", source_id=row[0], error=str(e))
                try:
                    source_id = UUID(row[0])
                except ValueError:
                    # No usable ID; nothing can refer to this row
                    continue
                unreadable.append(UnreadableSource(
                    source_id=source_id,
                    name=safe_get(1) or None,
                    error=str(e),
                ))
                continue
            sources.append(source)

        sources.sort(key=lambda s: s.name.lower())
        return sources, unreadable

    async def list_sources(self, auto_add_only: bool = False) -> list[IncomeSource]:
        sources, _ = self._read_rows(auto_add_only)
        return sources

    async def list_unreadable_sources(
        self,
        auto_add_only: bool = False,
    ) -> list[UnreadableSource]:
        _, unreadable = self._read_rows(auto_add_only)
        return unreadable

    async def get_source(self, source_id: UUID) -> Optional[IncomeSource]:
        try:
            sheet = self._client.get_sources_sheet()
            _, row = self._find_row(sheet, source_id)
            return self._row_to_source(row)
        except NotFoundError:
            return None
        except Exception as e:
            raise StorageError(f"Failed to get income source: {e}")

    @write_retry
    async def save_source(self, source: IncomeSource) -> bool:
        try:
            sheet = self._client.get_sources_sheet()
            ids = sheet.col_values(1)[1:]
            if str(source.id) in ids:
                raise DuplicateError(f"Income source already exists: {source.id}")
            sheet.append_row(self._source_to_row(source), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save income source: {e}")

    @write_retry
    async def update_source(self, source: IncomeSource) -> bool:
        try:
            sheet = self._client.get_sources_sheet()
            idx, row = self._find_row(sheet, source.id)
            stored = self._row_to_source(row)
            updated = source.model_copy(
                update={"last_posted_date": stored.last_posted_date, "updated_at": utcnow()}
            )
            sheet.update(
                range_name=f"A{idx}",
                values=[self._source_to_row(updated)],
                value_input_option="RAW",
            )
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update income source: {e}")

    async def delete_source(self, source_id: UUID) -> bool:
        try:
            sheet = self._client.get_sources_sheet()
            idx, _ = self._find_row(sheet, source_id)
            sheet.delete_rows(idx)
            return True
        except NotFoundError:
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete income source: {e}")

    @write_retry
    async def update_watermark(self, source_id: UUID, posted_date: date) -> bool:
        try:
            sheet = self._client.get_sources_sheet()
            idx, row = self._find_row(sheet, source_id)
            current = _opt_date(_safe_getter(row)(WATERMARK_COLUMN - 1))
            if current is not None and posted_date <= current:
                return True
            sheet.update_cell(idx, WATERMARK_COLUMN, posted_date.isoformat())
            sheet.update_cell(idx, UPDATED_AT_COLUMN, utcnow().isoformat())
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update watermark: {e}")


class GoogleSheetsLedger(LedgerInterface):
    """
    Google Sheets implementation of the income ledger.

    Transactions are append-only rows.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction: IncomeTransaction) -> list:
        return [
            str(transaction.id),
            str(transaction.source_id) if transaction.source_id else "",
            transaction.transaction_date.isoformat(),
            str(transaction.amount),
            transaction.description,
            str(transaction.auto_added),
            transaction.created_at.isoformat(),
            str(transaction.original_amount) if transaction.original_amount is not None else "",
            transaction.original_currency or "",
        ]

    def _row_to_transaction(self, row: list) -> IncomeTransaction:
        safe_get = _safe_getter(row)
        return IncomeTransaction(
            id=UUID(safe_get(0)),
            source_id=UUID(safe_get(1)) if safe_get(1) else None,
            transaction_date=date.fromisoformat(safe_get(2)),
            amount=Decimal(safe_get(3)),
            description=safe_get(4),
            auto_added=safe_get(5).lower() == "true",
            created_at=datetime.fromisoformat(safe_get(6)) if safe_get(6) else utcnow(),
            original_amount=_opt_decimal(safe_get(7)),
            original_currency=safe_get(8) or None,
        )

    def _read_all(self) -> list[IncomeTransaction]:
        sheet = self._client.get_transactions_sheet()
        transactions = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except Exception as e:
                logger.warning("malformed_transaction_row", transaction_id=row[0], error=str(e))
        return transactions

    @write_retry
    async def post_income(self, transaction: IncomeTransaction) -> bool:
        try:
            if transaction.auto_added:
                for existing in self._read_all():
                    if (
                        existing.auto_added
                        and existing.source_id == transaction.source_id
                        and existing.transaction_date == transaction.transaction_date
                    ):
                        raise DuplicateError(
                            f"Income for {transaction.source_id} on "
                            f"{transaction.transaction_date} already posted"
                        )
            sheet = self._client.get_transactions_sheet()
            sheet.append_row(self._transaction_to_row(transaction), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to post income: {e}")

    async def last_auto_posted_date(self, source_id: UUID) -> Optional[date]:
        try:
            dates = [
                t.transaction_date for t in self._read_all()
                if t.auto_added and t.source_id == source_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to read ledger: {e}")
        return max(dates) if dates else None

    async def list_transactions(
        self,
        source_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[IncomeTransaction]:
        try:
            transactions = self._read_all()
        except Exception as e:
            raise StorageError(f"Failed to read ledger: {e}")

        result = []
        for t in transactions:
            if source_id and t.source_id != source_id:
                continue
            if date_from and t.transaction_date < date_from:
                continue
            if date_to and t.transaction_date > date_to:
                continue
            result.append(t)
        result.sort(key=lambda t: t.transaction_date)
        return result


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_all(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_all() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_all()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
