"""
Forecast Models

Derived, never persisted. The generator builds these; the presentation
layer receives them through ForecastResult.to_payload(), which is the
only place Decimal amounts are turned into floats.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from finance_engine.models.ledger import IncomeType, PayFrequency


class IncomeDetail(BaseModel):
    """One source's contribution to a payday."""
    name: str
    amount: Decimal
    type: IncomeType


class ForecastDay(BaseModel):
    """A payday inside a projected month."""
    date: date
    day_of_month: int = Field(..., ge=1, le=31)
    income: Decimal = Decimal("0")
    income_details: list[IncomeDetail] = Field(default_factory=list)
    projected_balance: Decimal = Decimal("0")
    is_payday: bool = True


class ForecastMonth(BaseModel):
    """Projection for one calendar month."""
    month: str = Field(..., description="Month name, e.g. 'March'")
    month_num: int = Field(..., ge=1, le=12)
    year: int
    total_income: Decimal
    projected_expenses: Decimal
    projected_balance: Decimal
    paydays: list[ForecastDay] = Field(default_factory=list)


class PaydaySource(BaseModel):
    name: str
    amount: Decimal


class NextPayday(BaseModel):
    """The nearest upcoming payday and who pays on it."""
    day: int = Field(..., ge=1, le=31)
    days_until: int = Field(..., ge=1)
    sources: list[PaydaySource] = Field(default_factory=list)


class IncomeSourceSummary(BaseModel):
    id: UUID
    name: str
    type: IncomeType
    amount: Decimal
    frequency: PayFrequency
    pay_days: list[int]


class ForecastResult(BaseModel):
    """
    Complete forecast for one ledger.

    NOTE: forecast[i].projected_balance is the month-level figure
    (carried balance + income - average expense). The per-payday
    projected_balance values come from an intra-month walk and are allowed
    to differ from it.
    """

    user_id: str
    account_id: Optional[str] = None
    generated_at: datetime = Field(default_factory=datetime.now)

    current_balance: Decimal
    avg_monthly_expense: Decimal
    avg_daily_expense: Decimal
    smart_daily_budget: Decimal
    days_until_next_pay: int
    next_payday: Optional[NextPayday] = None
    income_sources: list[IncomeSourceSummary] = Field(default_factory=list)
    forecast: list[ForecastMonth] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """Convert to the response shape consumed by the presentation layer."""
        next_payday = None
        if self.next_payday:
            next_payday = {
                "day": self.next_payday.day,
                "daysUntil": self.next_payday.days_until,
                "sources": [
                    {"name": s.name, "amount": float(s.amount)}
                    for s in self.next_payday.sources
                ],
            }

        return {
            "currentBalance": float(self.current_balance),
            "avgMonthlyExpense": float(self.avg_monthly_expense),
            "avgDailyExpense": float(self.avg_daily_expense),
            "smartDailyBudget": float(self.smart_daily_budget),
            "daysUntilNextPay": self.days_until_next_pay,
            "nextPayday": next_payday,
            "incomeSources": [
                {
                    "id": str(s.id),
                    "name": s.name,
                    "type": s.type.value,
                    "amount": float(s.amount),
                    "frequency": s.frequency.value,
                    "payDays": list(s.pay_days),
                }
                for s in self.income_sources
            ],
            "forecast": [self._month_to_dict(m) for m in self.forecast],
        }

    @staticmethod
    def _month_to_dict(month: ForecastMonth) -> dict:
        return {
            "month": month.month,
            "monthNum": month.month_num,
            "year": month.year,
            "totalIncome": float(month.total_income),
            "projectedExpenses": float(month.projected_expenses),
            "projectedBalance": float(month.projected_balance),
            "paydays": [
                {
                    "date": day.date.isoformat(),
                    "dayOfMonth": day.day_of_month,
                    "income": float(day.income),
                    "incomeDetails": [
                        {
                            "name": d.name,
                            "amount": float(d.amount),
                            "type": d.type.value,
                        }
                        for d in day.income_details
                    ],
                    "projectedBalance": float(day.projected_balance),
                    "isPayday": day.is_payday,
                }
                for day in month.paydays
            ],
        }


# =============================================================================
# SMART DAILY BUDGET
# =============================================================================

class BudgetHealth(str, Enum):
    """How the daily budget compares with actual spending pace."""
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class SmartBudget(BaseModel):
    """
    Spend-per-day figure with the context needed to display it.

    days_basis tells which tier produced days_until_next_pay:
    'next_payday' when income sources are configured, otherwise
    'month_end'.
    """
    balance: Decimal
    daily_budget: Decimal
    days_until_next_pay: int = Field(..., ge=1)
    days_remaining_in_month: int = Field(..., ge=1)
    days_basis: str = Field(..., pattern="^(next_payday|month_end)$")
    average_daily_spending: Decimal
    health: BudgetHealth
