"""
Storage Services Package

Provides abstract interfaces and concrete implementations for income
sources, the income ledger and the audit log. Google Sheets is the
persistent backend; the in-memory backend serves tests and local runs.
"""

from recurring_income.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    IncomeSourceRegistryInterface,
    LedgerInterface,
    NotFoundError,
    StorageError,
)
from recurring_income.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryIncomeSourceRegistry,
    InMemoryLedger,
)
from recurring_income.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsIncomeSourceRegistry,
    GoogleSheetsLedger,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "IncomeSourceRegistryInterface",
    "LedgerInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryIncomeSourceRegistry",
    "InMemoryLedger",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsIncomeSourceRegistry",
    "GoogleSheetsLedger",
]
