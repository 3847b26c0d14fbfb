"""
Tests for the Finance Engine models

Test strategy:
1. Unit tests for individual components (models, validators, calculators)
2. Service tests against in-memory storage
3. No network calls in tests (Sheets client is mocked)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from finance_engine.models.ledger import (
    CategoryDefinition,
    CommissionRecord,
    Debt,
    IncomeSource,
    IncomeType,
    PayFrequency,
    RecurrencePeriod,
    Transaction,
    TransactionType,
)
from finance_engine.models.forecast import (
    ForecastDay,
    ForecastMonth,
    ForecastResult,
    IncomeDetail,
    IncomeSourceSummary,
    NextPayday,
    PaydaySource,
)
from finance_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finance_engine.models.validation import ValidationIssue, ValidationResult


class TestIncomeSourceModel:
    """Tests for IncomeSource schema rules."""

    def test_defaults(self):
        """Test a minimal source gets default schedule and flags."""
        source = IncomeSource(user_id="u1", name="Salary", base_amount=Decimal("1000"))
        assert source.pay_days == [15, 30]
        assert source.frequency == PayFrequency.MONTHLY
        assert source.type == IncomeType.FIXED
        assert source.is_active is True
        assert source.include_in_forecast is True
        assert source.account_id is None

    def test_name_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        source = IncomeSource(user_id="u1", name="  Salary  ", base_amount=Decimal("1"))
        assert source.name == "Salary"

    def test_pay_days_deduplicated_in_order(self):
        """Test duplicate pay days are dropped, first position wins."""
        source = IncomeSource(
            user_id="u1",
            name="Salary",
            base_amount=Decimal("1000"),
            frequency=PayFrequency.CUSTOM,
            pay_days=[20, 5, 20, 5, 1],
        )
        assert source.pay_days == [20, 5, 1]

    def test_pay_day_out_of_range_rejected(self):
        """Test pay days must be 1-31."""
        with pytest.raises(ValueError, match="out of range"):
            IncomeSource(user_id="u1", name="X", base_amount=Decimal("1"), pay_days=[32])
        with pytest.raises(ValueError):
            IncomeSource(user_id="u1", name="X", base_amount=Decimal("1"), pay_days=[0])

    def test_empty_pay_days_rejected_unless_weekly(self):
        """Test non-weekly sources need at least one pay day."""
        with pytest.raises(ValueError, match="pay_days must not be empty"):
            IncomeSource(user_id="u1", name="X", base_amount=Decimal("1"), pay_days=[])

        weekly = IncomeSource(
            user_id="u1",
            name="Tips",
            base_amount=Decimal("400"),
            frequency=PayFrequency.WEEKLY,
            pay_days=[],
        )
        assert weekly.pay_days == []

    def test_base_amount_must_be_positive(self):
        """Test zero and negative base amounts are rejected."""
        with pytest.raises(ValueError):
            IncomeSource(user_id="u1", name="X", base_amount=Decimal("0"))

    def test_bounds_only_on_variable_sources(self):
        """Test min/max expected are rejected on fixed income."""
        with pytest.raises(ValueError, match="only allowed on variable"):
            IncomeSource(
                user_id="u1",
                name="Salary",
                base_amount=Decimal("1000"),
                min_expected=Decimal("500"),
            )

    def test_effective_amount_fixed_uses_base(self):
        """Test fixed sources always project their base amount."""
        source = IncomeSource(
            user_id="u1",
            name="Salary",
            base_amount=Decimal("1000"),
            average_last_3_months=Decimal("2000"),
        )
        assert source.effective_amount == Decimal("1000")

    def test_effective_amount_variable_without_average(self):
        """Test variable sources fall back to base until an average exists."""
        source = IncomeSource(
            user_id="u1",
            name="Commissions",
            type=IncomeType.VARIABLE,
            base_amount=Decimal("5000"),
        )
        assert source.effective_amount == Decimal("5000")

    def test_effective_amount_variable_with_average(self):
        """Test the average supersedes the base amount once set."""
        source = IncomeSource(
            user_id="u1",
            name="Commissions",
            type=IncomeType.VARIABLE,
            base_amount=Decimal("5000"),
            average_last_3_months=Decimal("6500.50"),
        )
        assert source.effective_amount == Decimal("6500.50")

    def test_effective_amount_zero_average_is_used(self):
        """Test an average of exactly zero is still an average."""
        source = IncomeSource(
            user_id="u1",
            name="Commissions",
            type=IncomeType.VARIABLE,
            base_amount=Decimal("5000"),
            average_last_3_months=Decimal("0"),
        )
        assert source.effective_amount == Decimal("0")


class TestTransactionModel:
    """Tests for Transaction invariants."""

    def test_plain_transaction(self):
        """Test a plain transaction's defaults."""
        tx = Transaction(
            user_id="u1",
            amount=Decimal("12.50"),
            title="Coffee",
            type=TransactionType.EXPENSE,
        )
        assert tx.category == "other"
        assert tx.is_recurring is False
        assert tx.recurrence_period == RecurrencePeriod.NONE
        assert tx.next_occurrence is None
        assert tx.parent_id is None

    def test_category_lowercased(self):
        """Test categories are normalized to lowercase slugs."""
        tx = Transaction(
            user_id="u1",
            amount=Decimal("1"),
            title="Bus",
            type=TransactionType.EXPENSE,
            category="Transport",
        )
        assert tx.category == "transport"

    def test_amount_must_be_positive(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Transaction(
                user_id="u1",
                amount=Decimal("-5"),
                title="Refund",
                type=TransactionType.INCOME,
            )

    def test_next_occurrence_requires_recurring(self):
        """Test only recurring templates carry a next occurrence."""
        with pytest.raises(ValueError, match="only set on recurring"):
            Transaction(
                user_id="u1",
                amount=Decimal("10"),
                title="Rent",
                type=TransactionType.EXPENSE,
                next_occurrence=datetime(2025, 4, 1),
            )

    def test_instance_cannot_be_recurring(self):
        """Test a materialized instance is never itself a template."""
        with pytest.raises(ValueError, match="cannot be recurring"):
            Transaction(
                user_id="u1",
                amount=Decimal("10"),
                title="Rent",
                type=TransactionType.EXPENSE,
                is_recurring=True,
                recurrence_period=RecurrencePeriod.MONTHLY,
                parent_id=uuid4(),
            )


class TestOtherLedgerModels:
    """Tests for commission, debt and category models."""

    def test_commission_period_bounds(self):
        """Test period_month must be a calendar month."""
        with pytest.raises(ValueError):
            CommissionRecord(
                income_source_id=uuid4(),
                user_id="u1",
                amount=Decimal("100"),
                period_month=13,
                period_year=2025,
            )

    def test_debt_paid_at_requires_paid(self):
        """Test paid_at can only be set on a paid debt."""
        with pytest.raises(ValueError, match="only set on paid"):
            Debt(
                user_id="u1",
                person_name="Ana",
                amount=Decimal("50"),
                paid_at=datetime(2025, 3, 1),
            )

    def test_debt_due_date(self):
        """Test debts accept an optional due date."""
        debt = Debt(
            user_id="u1",
            person_name="Ana",
            amount=Decimal("50"),
            due_date=date(2025, 4, 1),
        )
        assert debt.due_date == date(2025, 4, 1)
        assert debt.is_paid is False

    def test_category_color_must_be_hex(self):
        """Test category colors are #RRGGBB."""
        with pytest.raises(ValueError):
            CategoryDefinition(id="pets", name="pets", label="Pets", color="blue")


class TestForecastPayload:
    """Tests for the presentation payload shape."""

    def _result(self) -> ForecastResult:
        source_id = uuid4()
        return ForecastResult(
            user_id="u1",
            current_balance=Decimal("1500.50"),
            avg_monthly_expense=Decimal("900"),
            avg_daily_expense=Decimal("30"),
            smart_daily_budget=Decimal("300.10"),
            days_until_next_pay=5,
            next_payday=NextPayday(
                day=15,
                days_until=5,
                sources=[PaydaySource(name="Salary", amount=Decimal("3000"))],
            ),
            income_sources=[
                IncomeSourceSummary(
                    id=source_id,
                    name="Salary",
                    type=IncomeType.FIXED,
                    amount=Decimal("3000"),
                    frequency=PayFrequency.MONTHLY,
                    pay_days=[15],
                )
            ],
            forecast=[
                ForecastMonth(
                    month="March",
                    month_num=3,
                    year=2025,
                    total_income=Decimal("3000"),
                    projected_expenses=Decimal("900"),
                    projected_balance=Decimal("3600.50"),
                    paydays=[
                        ForecastDay(
                            date=date(2025, 3, 15),
                            day_of_month=15,
                            income=Decimal("3000"),
                            income_details=[
                                IncomeDetail(
                                    name="Salary",
                                    amount=Decimal("3000"),
                                    type=IncomeType.FIXED,
                                )
                            ],
                            projected_balance=Decimal("4065.34"),
                        )
                    ],
                )
            ],
        )

    def test_top_level_keys(self):
        """Test the payload uses the camelCase response keys."""
        payload = self._result().to_payload()
        assert set(payload) == {
            "currentBalance",
            "avgMonthlyExpense",
            "avgDailyExpense",
            "smartDailyBudget",
            "daysUntilNextPay",
            "nextPayday",
            "incomeSources",
            "forecast",
        }

    def test_money_is_float_and_dates_iso(self):
        """Test money becomes floats and dates ISO strings."""
        payload = self._result().to_payload()
        assert payload["currentBalance"] == 1500.5
        assert isinstance(payload["smartDailyBudget"], float)
        payday = payload["forecast"][0]["paydays"][0]
        assert payday["date"] == "2025-03-15"
        assert payday["dayOfMonth"] == 15
        assert payday["isPayday"] is True
        assert payday["incomeDetails"] == [
            {"name": "Salary", "amount": 3000.0, "type": "fixed"}
        ]

    def test_next_payday_and_sources(self):
        """Test nested next payday and income source entries."""
        payload = self._result().to_payload()
        assert payload["nextPayday"] == {
            "day": 15,
            "daysUntil": 5,
            "sources": [{"name": "Salary", "amount": 3000.0}],
        }
        source = payload["incomeSources"][0]
        assert source["frequency"] == "monthly"
        assert source["payDays"] == [15]
        assert isinstance(source["id"], str)

    def test_null_next_payday(self):
        """Test a missing next payday is emitted as None."""
        result = self._result()
        result.next_payday = None
        assert result.to_payload()["nextPayday"] is None


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.FORECAST_GENERATED,
            description="Forecast generated",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_sheets_row(self):
        """Test conversion to the 11-column sheets row."""
        event = AuditEventBuilder.debt_paid(debt_id=uuid4(), user_id="u1")
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "debt_paid"
        assert row[6] == "u1"

    def test_builder_forecast_failed_is_error(self):
        """Test forecast failures are logged at error severity."""
        event = AuditEventBuilder.forecast_failed(
            user_id="u1",
            account_id=None,
            error_message="sheet unavailable",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "sheet unavailable"
        assert event.to_log_dict()["event_type"] == "forecast_failed"


class TestValidationResult:
    """Tests for ValidationResult helpers."""

    def test_has_errors_and_count(self):
        """Test error detection ignores warnings."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(field="a", issue_type="x", message="m", severity="error"),
                ValidationIssue(field="b", issue_type="y", message="n", severity="warning"),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_severity_pattern(self):
        """Test severity must be error, warning or info."""
        with pytest.raises(ValueError):
            ValidationIssue(field="a", issue_type="x", message="m", severity="fatal")
