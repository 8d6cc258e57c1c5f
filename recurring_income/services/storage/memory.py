"""
In-Memory Storage Implementation

Process-local implementations of the storage interfaces. Used by the
test suite and by the app when no persistent backend is configured.
Everything is lost when the process exits.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from recurring_income.models.audit import AuditEvent
from recurring_income.models.income import IncomeSource, IncomeTransaction, utcnow
from recurring_income.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    IncomeSourceRegistryInterface,
    LedgerInterface,
    NotFoundError,
)


class InMemoryIncomeSourceRegistry(IncomeSourceRegistryInterface):
    """Income sources kept in a dict keyed by ID."""

    def __init__(self, sources: Optional[list[IncomeSource]] = None):
        self._sources: dict[UUID, IncomeSource] = {}
        for source in sources or []:
            self._sources[source.id] = source.model_copy()

    async def list_sources(self, auto_add_only: bool = False) -> list[IncomeSource]:
        sources = [
            s.model_copy() for s in self._sources.values()
            if s.auto_add or not auto_add_only
        ]
        sources.sort(key=lambda s: s.name.lower())
        return sources

    async def get_source(self, source_id: UUID) -> Optional[IncomeSource]:
        source = self._sources.get(source_id)
        return source.model_copy() if source else None

    async def save_source(self, source: IncomeSource) -> bool:
        if source.id in self._sources:
            raise DuplicateError(f"Income source already exists: {source.id}")
        self._sources[source.id] = source.model_copy()
        return True

    async def update_source(self, source: IncomeSource) -> bool:
        stored = self._sources.get(source.id)
        if stored is None:
            raise NotFoundError(f"Income source not found: {source.id}")
        self._sources[source.id] = source.model_copy(
            update={"last_posted_date": stored.last_posted_date, "updated_at": utcnow()}
        )
        return True

    async def delete_source(self, source_id: UUID) -> bool:
        return self._sources.pop(source_id, None) is not None

    async def update_watermark(self, source_id: UUID, posted_date: date) -> bool:
        stored = self._sources.get(source_id)
        if stored is None:
            raise NotFoundError(f"Income source not found: {source_id}")
        if stored.last_posted_date is None or posted_date > stored.last_posted_date:
            self._sources[source_id] = stored.model_copy(
                update={"last_posted_date": posted_date, "updated_at": utcnow()}
            )
        return True


class InMemoryLedger(LedgerInterface):
    """Income transactions kept in insertion order."""

    def __init__(self):
        self._transactions: list[IncomeTransaction] = []

    @property
    def transactions(self) -> list[IncomeTransaction]:
        return list(self._transactions)

    async def post_income(self, transaction: IncomeTransaction) -> bool:
        if transaction.auto_added:
            for existing in self._transactions:
                if (
                    existing.auto_added
                    and existing.source_id == transaction.source_id
                    and existing.transaction_date == transaction.transaction_date
                ):
                    raise DuplicateError(
                        f"Income for {transaction.source_id} on "
                        f"{transaction.transaction_date} already posted"
                    )
        self._transactions.append(transaction.model_copy())
        return True

    async def last_auto_posted_date(self, source_id: UUID) -> Optional[date]:
        dates = [
            t.transaction_date for t in self._transactions
            if t.auto_added and t.source_id == source_id
        ]
        return max(dates) if dates else None

    async def list_transactions(
        self,
        source_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[IncomeTransaction]:
        result = []
        for t in self._transactions:
            if source_id and t.source_id != source_id:
                continue
            if date_from and t.transaction_date < date_from:
                continue
            if date_to and t.transaction_date > date_to:
                continue
            result.append(t.model_copy())
        result.sort(key=lambda t: t.transaction_date)
        return result


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
