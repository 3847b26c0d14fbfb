"""
In-Memory Storage Implementation

Dict-backed implementation of the storage interfaces. Used by the test
suite and for local runs without a spreadsheet.

Rows are copied on the way in and on the way out, so a caller mutating a
returned model never changes what is stored without calling update_*.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finance_engine.models.audit import AuditEvent
from finance_engine.models.ledger import (
    CategoryDefinition,
    CommissionRecord,
    Debt,
    IncomeSource,
    Transaction,
    TransactionType,
)
from finance_engine.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


def _in_ledger(row, user_id: str, account_id: Optional[str]) -> bool:
    """Personal ledger is owner-scoped, a shared ledger is pooled."""
    if account_id is None:
        return row.user_id == user_id and row.account_id is None
    return row.account_id == account_id


def _in_range(
    value: datetime,
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> bool:
    if date_from and value < date_from:
        return False
    if date_to and value > date_to:
        return False
    return True


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage held in plain dictionaries."""

    def __init__(self):
        self._income_sources: dict[UUID, IncomeSource] = {}
        self._commissions: dict[UUID, CommissionRecord] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._debts: dict[UUID, Debt] = {}
        self._categories: list[CategoryDefinition] = []
        self._memberships: set[tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Test / seeding helpers (not part of the interface)
    # ------------------------------------------------------------------

    def add_account_member(self, account_id: str, user_id: str) -> None:
        self._memberships.add((account_id, user_id))

    def all_transactions(self) -> list[Transaction]:
        return [t.model_copy(deep=True) for t in self._transactions.values()]

    # ------------------------------------------------------------------
    # Income sources
    # ------------------------------------------------------------------

    async def save_income_source(self, source: IncomeSource) -> bool:
        if source.id in self._income_sources:
            raise DuplicateError(f"Income source already exists: {source.id}")
        self._income_sources[source.id] = source.model_copy(deep=True)
        return True

    async def get_income_source(
        self,
        source_id: UUID,
        user_id: str,
    ) -> Optional[IncomeSource]:
        source = self._income_sources.get(source_id)
        if source is None or source.user_id != user_id:
            return None
        return source.model_copy(deep=True)

    async def update_income_source(self, source: IncomeSource) -> bool:
        if source.id not in self._income_sources:
            raise NotFoundError(f"Income source not found: {source.id}")
        self._income_sources[source.id] = source.model_copy(deep=True)
        return True

    async def list_income_sources(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        active_only: bool = False,
        forecast_only: bool = False,
    ) -> list[IncomeSource]:
        sources = []
        for source in self._income_sources.values():
            if not _in_ledger(source, user_id, account_id):
                continue
            if active_only and not source.is_active:
                continue
            if forecast_only and not source.include_in_forecast:
                continue
            sources.append(source.model_copy(deep=True))

        sources.sort(key=lambda s: s.created_at)
        return sources

    # ------------------------------------------------------------------
    # Commission records
    # ------------------------------------------------------------------

    async def save_commission(self, record: CommissionRecord) -> bool:
        self._commissions[record.id] = record.model_copy(deep=True)
        return True

    async def get_commission(
        self,
        record_id: UUID,
        user_id: str,
    ) -> Optional[CommissionRecord]:
        record = self._commissions.get(record_id)
        if record is None or record.user_id != user_id:
            return None
        return record.model_copy(deep=True)

    async def update_commission(self, record: CommissionRecord) -> bool:
        if record.id not in self._commissions:
            raise NotFoundError(f"Commission record not found: {record.id}")
        self._commissions[record.id] = record.model_copy(deep=True)
        return True

    async def delete_commission(self, record_id: UUID) -> bool:
        if self._commissions.pop(record_id, None) is None:
            raise NotFoundError(f"Commission record not found: {record_id}")
        return True

    async def list_commissions(
        self,
        user_id: str,
        income_source_id: Optional[UUID] = None,
        created_from: Optional[datetime] = None,
    ) -> list[CommissionRecord]:
        records = []
        for record in self._commissions.values():
            if record.user_id != user_id:
                continue
            if income_source_id and record.income_source_id != income_source_id:
                continue
            if created_from and record.created_at < created_from:
                continue
            records.append(record.model_copy(deep=True))

        records.sort(key=lambda r: (r.period_year, r.period_month), reverse=True)
        return records

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def save_transaction(self, transaction: Transaction) -> bool:
        if transaction.id in self._transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return True

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        transaction = self._transactions.get(transaction_id)
        return transaction.model_copy(deep=True) if transaction else None

    async def update_transaction(self, transaction: Transaction) -> bool:
        if transaction.id not in self._transactions:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return True

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        if self._transactions.pop(transaction_id, None) is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return True

    async def list_transactions(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        transaction_type: Optional[TransactionType] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Transaction]:
        transactions = []
        for tx in self._transactions.values():
            if not _in_ledger(tx, user_id, account_id):
                continue
            if transaction_type and tx.type != transaction_type:
                continue
            if not _in_range(tx.date, date_from, date_to):
                continue
            transactions.append(tx.model_copy(deep=True))

        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def list_due_recurring(
        self,
        user_id: str,
        as_of: datetime,
    ) -> list[Transaction]:
        return [
            tx.model_copy(deep=True)
            for tx in self._transactions.values()
            if tx.user_id == user_id
            and tx.is_recurring
            and tx.next_occurrence is not None
            and tx.next_occurrence <= as_of
        ]

    async def sum_transactions(
        self,
        user_id: str,
        account_id: Optional[str],
        transaction_type: TransactionType,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Decimal:
        transactions = await self.list_transactions(
            user_id=user_id,
            account_id=account_id,
            transaction_type=transaction_type,
            date_from=date_from,
            date_to=date_to,
        )
        return sum((tx.amount for tx in transactions), Decimal("0"))

    async def count_active_months(
        self,
        user_id: str,
        account_id: Optional[str],
        transaction_type: TransactionType,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> int:
        transactions = await self.list_transactions(
            user_id=user_id,
            account_id=account_id,
            transaction_type=transaction_type,
            date_from=date_from,
            date_to=date_to,
        )
        return len({(tx.date.year, tx.date.month) for tx in transactions})

    # ------------------------------------------------------------------
    # Debts
    # ------------------------------------------------------------------

    async def save_debt(self, debt: Debt) -> bool:
        self._debts[debt.id] = debt.model_copy(deep=True)
        return True

    async def get_debt(self, debt_id: UUID, user_id: str) -> Optional[Debt]:
        debt = self._debts.get(debt_id)
        if debt is None or debt.user_id != user_id:
            return None
        return debt.model_copy(deep=True)

    async def update_debt(self, debt: Debt) -> bool:
        if debt.id not in self._debts:
            raise NotFoundError(f"Debt not found: {debt.id}")
        self._debts[debt.id] = debt.model_copy(deep=True)
        return True

    async def delete_debt(self, debt_id: UUID) -> bool:
        if self._debts.pop(debt_id, None) is None:
            raise NotFoundError(f"Debt not found: {debt_id}")
        return True

    async def list_debts(
        self,
        user_id: str,
        include_paid: bool = True,
    ) -> list[Debt]:
        debts = [
            debt.model_copy(deep=True)
            for debt in self._debts.values()
            if debt.user_id == user_id and (include_paid or not debt.is_paid)
        ]
        debts.sort(key=lambda d: d.created_at, reverse=True)
        return debts

    # ------------------------------------------------------------------
    # Categories & accounts
    # ------------------------------------------------------------------

    async def list_custom_categories(self, user_id: str) -> list[CategoryDefinition]:
        return [
            category.model_copy()
            for category in self._categories
            if category.user_id == user_id
        ]

    async def save_custom_category(self, category: CategoryDefinition) -> bool:
        for existing in self._categories:
            if existing.user_id == category.user_id and existing.name == category.name:
                raise DuplicateError(f"Category already exists: {category.name}")
        self._categories.append(category.model_copy())
        return True

    async def is_account_member(self, account_id: str, user_id: str) -> bool:
        return (account_id, user_id) in self._memberships


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
