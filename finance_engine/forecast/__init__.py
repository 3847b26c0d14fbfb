"""Cash-flow forecast and smart daily budget."""

from finance_engine.forecast.budget import (
    budget_health,
    calculate_daily_budget,
    smart_budget_for,
)
from finance_engine.forecast.generator import (
    ForecastGenerationError,
    ForecastGenerator,
    find_next_payday,
    payment_schedule,
    project_month,
)

__all__ = [
    "ForecastGenerationError",
    "ForecastGenerator",
    "budget_health",
    "calculate_daily_budget",
    "find_next_payday",
    "payment_schedule",
    "project_month",
    "smart_budget_for",
]
