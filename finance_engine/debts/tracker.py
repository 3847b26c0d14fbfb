"""
Debt Tracker

Money other people owe the user. Debts are personal; they never belong
to a shared ledger.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finance_engine.audit import AuditLogger
from finance_engine.models.ledger import Debt
from finance_engine.services.storage import LedgerStorageInterface, NotFoundError


class DebtTracker:
    """Records debts and tracks their repayment."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def record_debt(
        self,
        user_id: str,
        person_name: str,
        amount: Decimal,
        description: Optional[str] = None,
        due_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Debt:
        debt = Debt(
            user_id=user_id,
            person_name=person_name,
            amount=amount,
            description=description,
            due_date=due_date,
        )
        await self._storage.save_debt(debt)

        if self._audit_logger:
            await self._audit_logger.log_debt_recorded(
                debt_id=debt.id,
                user_id=user_id,
                person_name=debt.person_name,
                amount=str(debt.amount),
                correlation_id=correlation_id,
            )

        return debt

    async def list_debts(
        self,
        user_id: str,
        include_paid: bool = True,
    ) -> list[Debt]:
        """Newest first."""
        return await self._storage.list_debts(user_id, include_paid=include_paid)

    async def mark_paid(
        self,
        debt_id: UUID,
        user_id: str,
        paid: bool = True,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Debt:
        """
        Mark a debt paid (stamping paid_at) or reopen it (clearing paid_at).

        Raises:
            NotFoundError: If the debt doesn't exist or isn't the user's
        """
        debt = await self._storage.get_debt(debt_id, user_id)
        if debt is None:
            raise NotFoundError(f"Debt not found: {debt_id}")

        debt.is_paid = paid
        debt.paid_at = (now or datetime.now()) if paid else None
        await self._storage.update_debt(debt)

        if paid and self._audit_logger:
            await self._audit_logger.log_debt_paid(
                debt_id=debt_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )

        return debt

    async def delete_debt(
        self,
        debt_id: UUID,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Debt:
        """
        Raises:
            NotFoundError: If the debt doesn't exist or isn't the user's
        """
        debt = await self._storage.get_debt(debt_id, user_id)
        if debt is None:
            raise NotFoundError(f"Debt not found: {debt_id}")

        await self._storage.delete_debt(debt_id)

        if self._audit_logger:
            await self._audit_logger.log_record_deleted(
                entity_type="debt",
                entity_id=debt_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )

        return debt

    async def outstanding_total(self, user_id: str) -> Decimal:
        """Sum of all unpaid debts."""
        debts = await self._storage.list_debts(user_id, include_paid=False)
        return sum((d.amount for d in debts), Decimal("0"))
