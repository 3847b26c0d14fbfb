"""
Smart Daily Budget

How much can be spent per day until money next comes in.

Two tiers decide the number of days:
- income sources configured: days until the next payday, from the forecast
- no income sources: days remaining in the month, today included
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from finance_engine.models.forecast import BudgetHealth, ForecastResult, SmartBudget
from finance_engine.periods import days_remaining_in_month


# Budget vs. average daily spending thresholds
CRITICAL_RATIO = Decimal("0.8")
WARNING_RATIO = Decimal("1.2")


def calculate_daily_budget(balance: Decimal, days: int) -> Decimal:
    """Balance spread over `days`; never negative."""
    if balance <= 0 or days <= 0:
        return Decimal("0")
    return balance / days


def budget_health(
    balance: Decimal,
    daily_budget: Decimal,
    average_daily_spending: Decimal,
) -> BudgetHealth:
    if balance <= 0 or daily_budget < average_daily_spending * CRITICAL_RATIO:
        return BudgetHealth.CRITICAL
    if daily_budget < average_daily_spending * WARNING_RATIO:
        return BudgetHealth.WARNING
    return BudgetHealth.HEALTHY


def smart_budget_for(
    balance: Decimal,
    month_expenses: Decimal,
    forecast: Optional[ForecastResult] = None,
    today: Optional[date] = None,
) -> SmartBudget:
    """
    Compute the smart daily budget with its display context.

    Args:
        balance: Current-month balance of the ledger
        month_expenses: Expenses recorded so far this month
        forecast: Forecast of the same ledger, if one was generated
        today: Reference date (defaults to today)
    """
    today = today or date.today()
    remaining = days_remaining_in_month(today)

    if forecast is not None and forecast.income_sources:
        days, basis = forecast.days_until_next_pay, "next_payday"
    else:
        days, basis = remaining, "month_end"

    daily_budget = calculate_daily_budget(balance, days)
    average_daily_spending = month_expenses / today.day

    return SmartBudget(
        balance=balance,
        daily_budget=daily_budget,
        days_until_next_pay=days,
        days_remaining_in_month=remaining,
        days_basis=basis,
        average_daily_spending=average_daily_spending,
        health=budget_health(balance, daily_budget, average_daily_spending),
    )
