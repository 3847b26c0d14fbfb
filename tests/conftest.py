"""
Shared fixtures.

Services are async; tests drive them with asyncio.run through the `run`
fixture. Every test gets fresh in-memory storage and a fixed clock.
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from finance_engine.audit import AuditLogger
from finance_engine.config import get_settings
from finance_engine.models.ledger import (
    IncomeSource,
    IncomeType,
    PayFrequency,
    Transaction,
    TransactionType,
)
from finance_engine.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


USER_ID = "user-1"
OTHER_USER_ID = "user-2"
SHARED_ACCOUNT_ID = "household"

# Monday, 10 March 2025 (31-day month)
NOW = datetime(2025, 3, 10, 12, 0)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Isolate tests from any local .env / environment overrides."""
    for name in ("STORAGE_BACKEND", "FORECAST_DEFAULT_MONTHS_AHEAD"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def run():
    return asyncio.run


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def make_source(storage, run):
    """Build an income source and save it."""
    def _make(**overrides) -> IncomeSource:
        fields = {
            "user_id": USER_ID,
            "name": "Salary",
            "type": IncomeType.FIXED,
            "base_amount": Decimal("10000"),
            "frequency": PayFrequency.MONTHLY,
            "pay_days": [30],
            "created_at": NOW,
        }
        fields.update(overrides)
        source = IncomeSource(**fields)
        run(storage.save_income_source(source))
        return source
    return _make


@pytest.fixture
def make_transaction(storage, run):
    """Build a transaction and save it."""
    def _make(**overrides) -> Transaction:
        fields = {
            "user_id": USER_ID,
            "amount": Decimal("100.00"),
            "title": "Groceries",
            "type": TransactionType.EXPENSE,
            "category": "food",
            "date": NOW,
        }
        fields.update(overrides)
        transaction = Transaction(**fields)
        run(storage.save_transaction(transaction))
        return transaction
    return _make
