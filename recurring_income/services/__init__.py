"""Services package."""

from recurring_income.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsIncomeSourceRegistry,
    GoogleSheetsLedger,
    IncomeSourceRegistryInterface,
    InMemoryAuditStorage,
    InMemoryIncomeSourceRegistry,
    InMemoryLedger,
    LedgerInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsIncomeSourceRegistry",
    "GoogleSheetsLedger",
    "IncomeSourceRegistryInterface",
    "InMemoryAuditStorage",
    "InMemoryIncomeSourceRegistry",
    "InMemoryLedger",
    "LedgerInterface",
    "NotFoundError",
    "StorageError",
]
