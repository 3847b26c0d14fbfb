"""Recurring transactions and the transaction ledger."""

from finance_engine.recurrence.ledger import LedgerService, ensure_ledger_access
from finance_engine.recurrence.processor import RecurrenceProcessor, build_instance

__all__ = [
    "LedgerService",
    "RecurrenceProcessor",
    "build_instance",
    "ensure_ledger_access",
]
