"""
Data Models Package

All Pydantic models used by the finance engine. Data read from or written
to the ledger store must conform to these schemas.
"""

from finance_engine.models.ledger import (
    CategoryDefinition,
    CommissionRecord,
    CommissionStatus,
    Debt,
    IncomeSource,
    IncomeSourceDraft,
    IncomeType,
    PayFrequency,
    RecurrencePeriod,
    Transaction,
    TransactionType,
)
from finance_engine.models.forecast import (
    BudgetHealth,
    ForecastDay,
    ForecastMonth,
    ForecastResult,
    IncomeDetail,
    IncomeSourceSummary,
    NextPayday,
    PaydaySource,
    SmartBudget,
)
from finance_engine.models.stats import CategoryTotal, LedgerStats, MonthlyTotals
from finance_engine.models.validation import ValidationIssue, ValidationResult
from finance_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CategoryDefinition",
    "CommissionRecord",
    "CommissionStatus",
    "Debt",
    "IncomeSource",
    "IncomeSourceDraft",
    "IncomeType",
    "PayFrequency",
    "RecurrencePeriod",
    "Transaction",
    "TransactionType",
    # Forecast models
    "BudgetHealth",
    "ForecastDay",
    "ForecastMonth",
    "ForecastResult",
    "IncomeDetail",
    "IncomeSourceSummary",
    "NextPayday",
    "PaydaySource",
    "SmartBudget",
    # Statistics models
    "CategoryTotal",
    "LedgerStats",
    "MonthlyTotals",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
