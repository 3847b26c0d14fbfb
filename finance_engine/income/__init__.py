"""Income sources, commissions and variable-income averaging."""

from finance_engine.income.averaging import IncomeAveragingService
from finance_engine.income.sources import IncomeSourceService

__all__ = ["IncomeAveragingService", "IncomeSourceService"]
