"""
Ledger Statistics Service

Read-only aggregation over a ledger's transactions:
1. Income and expense per calendar month, over the configured history
   window (transaction_history_months, measured back from now)
2. The current month's expenses grouped by category

Stats read the stored rows as they are; they don't materialize due
recurring instances.
"""

import calendar
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from finance_engine.config import get_settings
from finance_engine.models.ledger import Transaction, TransactionType
from finance_engine.models.stats import CategoryTotal, LedgerStats, MonthlyTotals
from finance_engine.periods import add_months, month_end, month_start
from finance_engine.recurrence.ledger import ensure_ledger_access
from finance_engine.services.storage import LedgerStorageInterface


def monthly_totals(transactions: list[Transaction]) -> list[MonthlyTotals]:
    """Group transactions by calendar month, oldest month first."""
    totals: dict[tuple[int, int], MonthlyTotals] = {}
    for tx in transactions:
        key = (tx.date.year, tx.date.month)
        if key not in totals:
            totals[key] = MonthlyTotals(
                month=calendar.month_abbr[tx.date.month],
                month_num=tx.date.month,
                year=tx.date.year,
            )
        if tx.type == TransactionType.INCOME:
            totals[key].income += tx.amount
        else:
            totals[key].expense += tx.amount

    return [totals[key] for key in sorted(totals)]


def category_totals(transactions: list[Transaction]) -> list[CategoryTotal]:
    """Sum expenses per category, largest total first."""
    sums: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for tx in transactions:
        if tx.type == TransactionType.EXPENSE:
            sums[tx.category] += tx.amount

    return [
        CategoryTotal(category=category, total=total)
        for category, total in sorted(sums.items(), key=lambda item: (-item[1], item[0]))
    ]


class StatsService:
    """Builds LedgerStats for a personal or shared ledger."""

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage
        self._history_months = get_settings().forecast.transaction_history_months

    async def get_stats(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LedgerStats:
        """
        Raises:
            NotFoundError: If the user isn't a member of the shared ledger
        """
        await ensure_ledger_access(self._storage, user_id, account_id)

        now = now or datetime.now()
        history = await self._storage.list_transactions(
            user_id=user_id,
            account_id=account_id,
            date_from=add_months(now, -self._history_months),
        )
        this_month = await self._storage.list_transactions(
            user_id=user_id,
            account_id=account_id,
            transaction_type=TransactionType.EXPENSE,
            date_from=month_start(now),
            date_to=month_end(now),
        )

        return LedgerStats(
            user_id=user_id,
            account_id=account_id,
            generated_at=now,
            monthly=monthly_totals(history),
            categories=category_totals(this_month),
        )
