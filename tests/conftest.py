"""
Shared fixtures.

All tests run against the in-memory storage and a pinned "today"
(Monday 18 March 2024), never the real clock or Google Sheets.
"""

from datetime import date
from decimal import Decimal

import pytest

from recurring_income.audit import AuditLogger
from recurring_income.models.income import Frequency, IncomeSource
from recurring_income.services.storage import (
    InMemoryAuditStorage,
    InMemoryIncomeSourceRegistry,
    InMemoryLedger,
)

TODAY = date(2024, 3, 18)  # a Monday
MONDAY = 1


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def make_source():
    """Factory for IncomeSource with sensible defaults."""
    def _make(**overrides) -> IncomeSource:
        fields = dict(
            name="Salary",
            amount=Decimal("1000.00"),
            frequency=Frequency.WEEKLY,
            day_of_week=MONDAY,
            start_date=date(2024, 1, 8),
        )
        fields.update(overrides)
        return IncomeSource(**fields)
    return _make


@pytest.fixture
def registry():
    return InMemoryIncomeSourceRegistry()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)
