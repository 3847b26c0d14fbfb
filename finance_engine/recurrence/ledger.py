"""
Transaction Ledger Service

Records transactions and reads a ledger back. Reading materializes due
recurring instances first, through an explicit call to the
RecurrenceProcessor, so the list always includes everything that should
have fired by now.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finance_engine.audit import AuditLogger
from finance_engine.config import get_settings
from finance_engine.models.ledger import RecurrencePeriod, Transaction, TransactionType
from finance_engine.periods import add_months, advance_occurrence
from finance_engine.recurrence.processor import RecurrenceProcessor
from finance_engine.services.storage import LedgerStorageInterface, NotFoundError


async def ensure_ledger_access(
    storage: LedgerStorageInterface,
    user_id: str,
    account_id: Optional[str],
) -> None:
    """
    Personal ledgers are always accessible to their owner. A shared ledger
    requires membership; a non-member is told it does not exist.

    Raises:
        NotFoundError: If the user is not a member of the shared account
    """
    if account_id is None:
        return
    if not await storage.is_account_member(account_id, user_id):
        raise NotFoundError(f"Account not found: {account_id}")


class LedgerService:
    """Records and lists transactions for a personal or shared ledger."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        processor: Optional[RecurrenceProcessor] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._processor = processor or RecurrenceProcessor(storage, audit_logger)
        self._audit_logger = audit_logger
        self._settings = get_settings().forecast

    async def record_transaction(
        self,
        user_id: str,
        amount: Decimal,
        title: str,
        transaction_type: TransactionType,
        category: str = "other",
        date: Optional[datetime] = None,
        account_id: Optional[str] = None,
        is_recurring: bool = False,
        recurrence_period: RecurrencePeriod = RecurrencePeriod.NONE,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Save a new transaction.

        A recurring transaction is itself the first occurrence; it becomes
        the template and its next_occurrence is one period after its date.

        Raises:
            NotFoundError: If account_id names a ledger the user can't access
            pydantic.ValidationError: If the transaction fields are invalid
        """
        await ensure_ledger_access(self._storage, user_id, account_id)

        date = date or datetime.now()
        next_occurrence = None
        if is_recurring:
            next_occurrence = advance_occurrence(date, recurrence_period)

        transaction = Transaction(
            user_id=user_id,
            account_id=account_id,
            amount=amount,
            title=title,
            type=transaction_type,
            category=category,
            date=date,
            is_recurring=is_recurring,
            recurrence_period=recurrence_period if is_recurring else RecurrencePeriod.NONE,
            next_occurrence=next_occurrence,
        )
        await self._storage.save_transaction(transaction)

        if self._audit_logger:
            await self._audit_logger.log_transaction_recorded(
                transaction_id=transaction.id,
                user_id=user_id,
                transaction_type=transaction.type.value,
                amount=str(transaction.amount),
                is_recurring=transaction.is_recurring,
                correlation_id=correlation_id,
            )

        return transaction

    async def list_transactions(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        months: Optional[int] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        List a ledger's transactions from the last `months` months,
        newest first, after materializing due recurring instances.
        """
        await ensure_ledger_access(self._storage, user_id, account_id)

        now = now or datetime.now()
        await self._processor.materialize_due(
            user_id, now=now, correlation_id=correlation_id
        )

        months = months or self._settings.transaction_history_months
        return await self._storage.list_transactions(
            user_id=user_id,
            account_id=account_id,
            date_from=add_months(now, -months),
        )

    async def delete_transaction(
        self,
        transaction_id: UUID,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Delete a transaction from a ledger the user can see.

        A personal row can only be deleted by its owner; a shared row by
        any member of its account. Deleting a recurring template stops
        future occurrences; instances already materialized stay.

        Raises:
            NotFoundError: If the transaction doesn't exist or the user
                           can't see its ledger
        """
        transaction = await self._storage.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        if transaction.account_id is None:
            if transaction.user_id != user_id:
                raise NotFoundError(f"Transaction not found: {transaction_id}")
        elif not await self._storage.is_account_member(transaction.account_id, user_id):
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        await self._storage.delete_transaction(transaction_id)

        if self._audit_logger:
            await self._audit_logger.log_record_deleted(
                entity_type="transaction",
                entity_id=transaction_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )

        return transaction
