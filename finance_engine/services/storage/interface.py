"""
Abstract Storage Interface

DESIGN DECISION: The engine never talks to a database directly.
It goes through this interface, which allows us to:
1. Run the engine against Google Sheets or any relational store
2. Use in-memory storage for testing
3. Keep forecast logic decoupled from query syntax

Ledger scoping rule used by every scoped query:
- account_id is None  -> the user's personal ledger (rows with no account)
- account_id is set   -> the shared account's pooled rows, whoever owns
                         them (callers check membership first)

Every method is a single statement from the engine's point of view; no
method wraps several writes in a transaction.
"""

from abc import ABC, abstractmethod
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


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    # ------------------------------------------------------------------
    # Income sources
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_income_source(self, source: IncomeSource) -> bool:
        """
        Insert a new income source.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_income_source(
        self,
        source_id: UUID,
        user_id: str,
    ) -> Optional[IncomeSource]:
        """
        Retrieve an income source owned by the user.

        Returns:
            The source if found and owned by user_id, None otherwise
        """
        pass

    @abstractmethod
    async def update_income_source(self, source: IncomeSource) -> bool:
        """
        Replace a stored income source.

        Raises:
            NotFoundError: If the source doesn't exist
        """
        pass

    @abstractmethod
    async def list_income_sources(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        active_only: bool = False,
        forecast_only: bool = False,
    ) -> list[IncomeSource]:
        """
        List the income sources of one ledger, oldest first.

        Args:
            user_id: Owner
            account_id: Ledger selector (None = personal)
            active_only: Only sources with is_active
            forecast_only: Only sources with include_in_forecast
        """
        pass

    # ------------------------------------------------------------------
    # Commission records
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_commission(self, record: CommissionRecord) -> bool:
        """Insert a commission record."""
        pass

    @abstractmethod
    async def get_commission(
        self,
        record_id: UUID,
        user_id: str,
    ) -> Optional[CommissionRecord]:
        """Retrieve a commission record owned by the user."""
        pass

    @abstractmethod
    async def update_commission(self, record: CommissionRecord) -> bool:
        """
        Replace a stored commission record.

        Raises:
            NotFoundError: If the record doesn't exist
        """
        pass

    @abstractmethod
    async def delete_commission(self, record_id: UUID) -> bool:
        """
        Remove a commission record.

        Raises:
            NotFoundError: If the record doesn't exist
        """
        pass

    @abstractmethod
    async def list_commissions(
        self,
        user_id: str,
        income_source_id: Optional[UUID] = None,
        created_from: Optional[datetime] = None,
    ) -> list[CommissionRecord]:
        """
        List commission records, newest period first.

        Args:
            user_id: Owner
            income_source_id: Only records of this source
            created_from: Only records created at or after this instant
        """
        pass

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        """Insert a transaction."""
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """
        Retrieve a transaction by id, whichever ledger it belongs to.

        Callers decide whether the requesting user may see it.
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> bool:
        """
        Replace a stored transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """
        Remove a transaction.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        transaction_type: Optional[TransactionType] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        List the transactions of one ledger, newest first.

        Date bounds are inclusive.
        """
        pass

    @abstractmethod
    async def list_due_recurring(
        self,
        user_id: str,
        as_of: datetime,
    ) -> list[Transaction]:
        """
        List the user's recurring templates whose next_occurrence <= as_of.

        Templates without a next_occurrence are never due.
        """
        pass

    @abstractmethod
    async def sum_transactions(
        self,
        user_id: str,
        account_id: Optional[str],
        transaction_type: TransactionType,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Decimal:
        """
        Sum transaction amounts of one type in a ledger and date range.

        Returns:
            Decimal("0") when nothing matches
        """
        pass

    @abstractmethod
    async def count_active_months(
        self,
        user_id: str,
        account_id: Optional[str],
        transaction_type: TransactionType,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> int:
        """
        Count distinct calendar months with at least one matching transaction.
        """
        pass

    # ------------------------------------------------------------------
    # Debts
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_debt(self, debt: Debt) -> bool:
        pass

    @abstractmethod
    async def get_debt(self, debt_id: UUID, user_id: str) -> Optional[Debt]:
        pass

    @abstractmethod
    async def update_debt(self, debt: Debt) -> bool:
        """
        Raises:
            NotFoundError: If the debt doesn't exist
        """
        pass

    @abstractmethod
    async def delete_debt(self, debt_id: UUID) -> bool:
        """
        Raises:
            NotFoundError: If the debt doesn't exist
        """
        pass

    @abstractmethod
    async def list_debts(
        self,
        user_id: str,
        include_paid: bool = True,
    ) -> list[Debt]:
        """List debts, newest first."""
        pass

    # ------------------------------------------------------------------
    # Categories & accounts
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_custom_categories(self, user_id: str) -> list[CategoryDefinition]:
        pass

    @abstractmethod
    async def save_custom_category(self, category: CategoryDefinition) -> bool:
        """
        Raises:
            DuplicateError: If the user already has a category with this name
        """
        pass

    @abstractmethod
    async def is_account_member(self, account_id: str, user_id: str) -> bool:
        """Check whether the user may read the shared account's ledger."""
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
        Get all events of one request in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage (or not owned by the caller)."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
