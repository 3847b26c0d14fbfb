"""
Core Ledger Models for the Finance Engine

These models define the strict schemas for everything the engine reads
from or writes to the ledger store:
1. Income sources and their payday schedules
2. Commission records (instances of variable income)
3. Transactions, including recurring templates and their instances
4. Debts owed to the user
5. Category definitions

DESIGN DECISION: Money is always Decimal. Floats only appear at the
presentation boundary (ForecastResult.to_payload).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class RecurrencePeriod(str, Enum):
    """How often a recurring template fires."""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class IncomeType(str, Enum):
    """
    Income source type.

    VARIABLE sources (commissions, tips) are projected from the trailing
    average of their commission records once one exists.
    """
    FIXED = "fixed"
    VARIABLE = "variable"


class PayFrequency(str, Enum):
    """Payment cadence of an income source."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class CommissionStatus(str, Enum):
    """Lifecycle of a commission record."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAID = "paid"


DEFAULT_PAY_DAYS = [15, 30]


# =============================================================================
# INCOME
# =============================================================================

class IncomeSource(BaseModel):
    """
    A configured source of income.

    Lifecycle: created through IncomeSourceService after validation;
    average_last_3_months is only ever written by IncomeAveragingService;
    disabled through is_active / include_in_forecast, never deleted in
    cascade.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    account_id: Optional[str] = Field(
        default=None,
        description="Shared ledger this source belongs to (None = personal)"
    )

    name: str = Field(..., min_length=1, max_length=255)
    type: IncomeType = Field(default=IncomeType.FIXED)
    base_amount: Decimal = Field(..., gt=0)
    frequency: PayFrequency = Field(default=PayFrequency.MONTHLY)
    pay_days: list[int] = Field(
        default_factory=lambda: list(DEFAULT_PAY_DAYS),
        description="Days of month the source pays on, in configured order"
    )

    # Variable-income only
    min_expected: Optional[Decimal] = Field(default=None, ge=0)
    max_expected: Optional[Decimal] = Field(default=None, ge=0)
    average_last_3_months: Optional[Decimal] = Field(default=None, ge=0)

    is_active: bool = True
    include_in_forecast: bool = True

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator('pay_days')
    @classmethod
    def validate_pay_days(cls, v: list[int]) -> list[int]:
        """Days must be 1-31; duplicates are dropped, first position wins."""
        seen = []
        for day in v:
            if day < 1 or day > 31:
                raise ValueError(f"Pay day out of range (1-31): {day}")
            if day not in seen:
                seen.append(day)
        return seen

    @model_validator(mode='after')
    def validate_schedule(self) -> 'IncomeSource':
        """Enforce schedule and variable-only field rules."""
        if self.frequency != PayFrequency.WEEKLY and not self.pay_days:
            raise ValueError("pay_days must not be empty unless frequency is weekly")

        if self.type == IncomeType.FIXED:
            if self.min_expected is not None or self.max_expected is not None:
                raise ValueError("Expected bounds are only allowed on variable sources")

        return self

    @property
    def effective_amount(self) -> Decimal:
        """Monthly amount used for projections."""
        if self.type == IncomeType.VARIABLE and self.average_last_3_months is not None:
            return self.average_last_3_months
        return self.base_amount


class IncomeSourceDraft(BaseModel):
    """
    Income source as submitted by the configuration form.

    This is PROPOSED data. Everything is optional so the validator can
    report every missing field at once instead of failing on the first.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    type: IncomeType = IncomeType.FIXED
    base_amount: Optional[Decimal] = None
    frequency: PayFrequency = PayFrequency.MONTHLY
    pay_days: Optional[list[int]] = None
    min_expected: Optional[Decimal] = None
    max_expected: Optional[Decimal] = None
    account_id: Optional[str] = None
    include_in_forecast: bool = True


class CommissionRecord(BaseModel):
    """A single posted amount for a variable income source."""

    id: UUID = Field(default_factory=uuid4)
    income_source_id: UUID
    user_id: str = Field(..., min_length=1)

    amount: Decimal = Field(..., gt=0)
    period_month: int = Field(..., ge=1, le=12)
    period_year: int = Field(..., ge=2000, le=2100)
    status: CommissionStatus = Field(default=CommissionStatus.PENDING)
    notes: Optional[str] = Field(default=None, max_length=1000)

    created_at: datetime = Field(default_factory=datetime.now)
    confirmed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A ledger entry.

    Three shapes share this model:
    - plain transaction: is_recurring=False, parent_id=None
    - recurring template: is_recurring=True, next_occurrence set
    - materialized instance: is_recurring=False, parent_id=<template id>
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    account_id: Optional[str] = Field(
        default=None,
        description="Shared ledger id (None = personal ledger)"
    )

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    title: str = Field(..., min_length=1, max_length=255)
    type: TransactionType
    category: str = Field(default="other", min_length=1, max_length=64)
    date: datetime = Field(default_factory=datetime.now)
    created_at: datetime = Field(default_factory=datetime.now)

    is_recurring: bool = False
    recurrence_period: RecurrencePeriod = RecurrencePeriod.NONE
    next_occurrence: Optional[datetime] = None
    parent_id: Optional[UUID] = None

    @field_validator('category')
    @classmethod
    def normalize_category(cls, v: str) -> str:
        return v.lower()

    @model_validator(mode='after')
    def validate_recurrence(self) -> 'Transaction':
        """Templates and materialized instances never overlap."""
        if not self.is_recurring and self.next_occurrence is not None:
            raise ValueError("next_occurrence is only set on recurring transactions")
        if self.parent_id is not None and self.is_recurring:
            raise ValueError("Materialized instances cannot be recurring")
        return self


# =============================================================================
# DEBTS & CATEGORIES
# =============================================================================

class Debt(BaseModel):
    """Money someone owes the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    person_name: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=1000)
    due_date: Optional[date] = None
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode='after')
    def validate_payment(self) -> 'Debt':
        if self.paid_at is not None and not self.is_paid:
            raise ValueError("paid_at is only set on paid debts")
        return self


class CategoryDefinition(BaseModel):
    """A transaction category shown in pickers and charts."""

    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default="Tag", max_length=50)
    color: str = Field(
        default="#94A3B8",
        pattern="^#[0-9A-Fa-f]{6}$"
    )
    type: TransactionType = TransactionType.EXPENSE
    is_default: bool = False
    user_id: Optional[str] = None
