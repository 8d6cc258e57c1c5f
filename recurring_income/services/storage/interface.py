"""
Abstract Storage Interface

DESIGN DECISION: The scheduler never talks to a concrete store.
It consumes three narrow interfaces:
1. IncomeSourceRegistryInterface - CRUD for income sources + watermark
2. LedgerInterface - accepts posted income, reports the last auto-post
3. AuditStorageInterface - append-only audit log

This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the posting protocol independent of storage

The interface is intentionally simple - only the operations the
reconciliation engine and the settings screens need.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from recurring_income.models.audit import AuditEvent
from recurring_income.models.income import (
    IncomeSource,
    IncomeTransaction,
    UnreadableSource,
)


class IncomeSourceRegistryInterface(ABC):
    """
    Abstract interface for income source persistence.

    Any storage implementation (Google Sheets, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_sources(self, auto_add_only: bool = False) -> list[IncomeSource]:
        """
        List income sources.

        Args:
            auto_add_only: Only return sources with auto_add enabled

        Returns:
            Sources ordered by name. Records that cannot be read are
            left out; see list_unreadable_sources().
        """
        pass

    async def list_unreadable_sources(
        self,
        auto_add_only: bool = False,
    ) -> list[UnreadableSource]:
        """
        List stored source records that no longer convert to a source.

        Backends that validate on write never hold such records, so the
        default is empty.
        """
        return []

    @abstractmethod
    async def get_source(self, source_id: UUID) -> Optional[IncomeSource]:
        """
        Retrieve a source by its ID.

        Returns:
            The source if found, None otherwise
        """
        pass

    @abstractmethod
    async def save_source(self, source: IncomeSource) -> bool:
        """
        Save a new income source.

        Raises:
            DuplicateError: If a source with this ID already exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_source(self, source: IncomeSource) -> bool:
        """
        Update an existing source's configuration.

        The stored watermark is kept: a watermark is only ever moved by
        update_watermark().

        Raises:
            NotFoundError: If the source doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_source(self, source_id: UUID) -> bool:
        """
        Delete a source by ID.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def update_watermark(self, source_id: UUID, posted_date: date) -> bool:
        """
        Record that occurrences up to `posted_date` are posted.

        The watermark never moves backwards: a date earlier than the
        stored watermark leaves it unchanged and still returns True.

        Returns:
            True if the watermark is at or past posted_date afterwards

        Raises:
            NotFoundError: If the source doesn't exist
            StorageError: If the write fails
        """
        pass


class LedgerInterface(ABC):
    """
    Abstract interface for the income ledger.

    post_income must reject a second auto-added transaction for the same
    (source_id, transaction_date) with DuplicateError, so a bypassed
    watermark can never double-post.
    """

    @abstractmethod
    async def post_income(self, transaction: IncomeTransaction) -> bool:
        """
        Record an income transaction.

        Returns:
            True if stored, False if the ledger refused it

        Raises:
            DuplicateError: Auto-added income for this source and date exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def last_auto_posted_date(self, source_id: UUID) -> Optional[date]:
        """
        Date of the latest auto-added transaction for a source.

        Used to recover the watermark after an interrupted pass.
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        source_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[IncomeTransaction]:
        """
        List transactions, oldest first.

        Args:
            source_id: Only transactions for this source
            date_from: On or after this date
            date_to: On or before this date
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one reconciliation pass).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
