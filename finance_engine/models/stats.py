"""
Ledger statistics models.

Totals for the statistics view: income and expense per calendar month
over the history window, and the current month's spending by category.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class MonthlyTotals(BaseModel):
    """Income and expense of one calendar month."""
    month: str = Field(..., description="Abbreviated month name, e.g. 'Mar'")
    month_num: int = Field(..., ge=1, le=12)
    year: int
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class CategoryTotal(BaseModel):
    category: str
    total: Decimal


class LedgerStats(BaseModel):
    """
    Statistics for one ledger.

    monthly only lists months that had at least one transaction, oldest
    first. categories covers the current month's expenses, largest first.
    """

    user_id: str
    account_id: Optional[str] = None
    generated_at: datetime = Field(default_factory=datetime.now)
    monthly: list[MonthlyTotals] = Field(default_factory=list)
    categories: list[CategoryTotal] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """Convert to the response shape consumed by the presentation layer."""
        return {
            "monthlyData": [
                {
                    "month": m.month,
                    "monthNum": m.month_num,
                    "year": m.year,
                    "income": float(m.income),
                    "expense": float(m.expense),
                }
                for m in self.monthly
            ],
            "categoryData": [
                {"category": c.category, "total": float(c.total)}
                for c in self.categories
            ],
        }
