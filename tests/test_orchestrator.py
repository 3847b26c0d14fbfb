"""
Tests for the request flows

Every flow returns a FlowResult; exceptions never escape.
"""

import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from conftest import NOW, SHARED_ACCOUNT_ID, USER_ID
from finance_engine.models.audit import AuditEventType
from finance_engine.models.forecast import BudgetHealth, SmartBudget
from finance_engine.models.ledger import IncomeSourceDraft, IncomeType, PayFrequency, TransactionType
from finance_engine.orchestrator import (
    INTERNAL_ERROR_MESSAGE,
    FlowStatus,
    create_app_components,
)
from finance_engine.services.identity import StaticSessionProvider
from finance_engine.services.storage import (
    ConnectionError,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    StorageError,
)


class BrokenStorage(InMemoryLedgerStorage):
    """Storage whose aggregate queries fail."""

    async def sum_transactions(self, *args, **kwargs):
        raise StorageError("spreadsheet unavailable")


class CorruptDebtStorage(InMemoryLedgerStorage):
    """Storage that trips over a value it can't parse."""

    async def list_debts(self, *args, **kwargs):
        raise ValueError("invalid literal for Decimal")


@pytest.fixture
def components(storage, audit_storage):
    return create_app_components(
        storage=storage,
        audit_storage=audit_storage,
        session=StaticSessionProvider(USER_ID),
    )


class TestSessionBoundary:
    """Tests for unauthenticated requests."""

    def test_default_components_reject_everything(self, run):
        """Test the default session has no user."""
        app = create_app_components()

        assert isinstance(app.storage, InMemoryLedgerStorage)
        assert app.sheets_client is None
        assert run(app.forecast.get_forecast()).status == FlowStatus.UNAUTHORIZED
        assert run(app.debts.list_debts()).status == FlowStatus.UNAUTHORIZED
        assert run(app.categories.list_categories()).status == FlowStatus.UNAUTHORIZED

    def test_unauthorized_is_audited(self, storage, audit_storage, run):
        """Test a missing session writes an access-denied event."""
        app = create_app_components(storage=storage, audit_storage=audit_storage)

        result = run(app.transactions.list_transactions())

        assert result.status == FlowStatus.UNAUTHORIZED
        assert result.data is None
        events = run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.ACCESS_DENIED
        assert events[0].correlation_id == result.correlation_id


class TestForecastFlow:
    """Tests for the forecast and smart budget flows."""

    def test_payload_shape(self, components, make_source, run):
        """Test a successful forecast returns the camelCase payload."""
        make_source(pay_days=[30])

        result = run(components.forecast.get_forecast(now=NOW))

        assert result.ok
        payload = result.data
        assert payload["currentBalance"] == 0.0
        assert payload["daysUntilNextPay"] == 20
        assert payload["nextPayday"]["day"] == 30
        assert len(payload["forecast"]) == 3
        march = payload["forecast"][0]
        assert march["month"] == "March"
        assert march["paydays"][0]["dayOfMonth"] == 30
        assert march["paydays"][0]["incomeDetails"][0]["name"] == "Salary"

    def test_custom_horizon(self, components, run):
        result = run(components.forecast.get_forecast(months=6, now=NOW))
        assert len(result.data["forecast"]) == 6

    def test_invalid_horizon(self, components, run):
        """Test a negative horizon is a validation error."""
        result = run(components.forecast.get_forecast(months=-1, now=NOW))
        assert result.status == FlowStatus.VALIDATION_ERROR

    def test_shared_ledger_non_member(self, components, run):
        """Test a ledger the user can't see is not found."""
        result = run(components.forecast.get_forecast(account_id=SHARED_ACCOUNT_ID, now=NOW))
        assert result.status == FlowStatus.NOT_FOUND

    def test_storage_failure_is_generic(self, audit_storage, run):
        """Test internal failures hide details and return no data."""
        app = create_app_components(
            storage=BrokenStorage(),
            audit_storage=audit_storage,
            session=StaticSessionProvider(USER_ID),
        )

        result = run(app.forecast.get_forecast(now=NOW))

        assert result.status == FlowStatus.INTERNAL_ERROR
        assert result.message == INTERNAL_ERROR_MESSAGE
        assert result.data is None
        types = [e.event_type for e in run(audit_storage.get_recent_events())]
        assert AuditEventType.SYSTEM_ERROR in types
        assert AuditEventType.FORECAST_FAILED in types

    def test_smart_budget(self, components, make_source, make_transaction, run):
        """Test the smart budget uses days until the next payday."""
        make_source(pay_days=[15])
        make_transaction(type=TransactionType.INCOME, amount=Decimal("2100"), date=datetime(2025, 3, 1))
        make_transaction(amount=Decimal("500"), date=datetime(2025, 3, 5))

        result = run(components.forecast.get_smart_budget(now=NOW))

        assert result.ok
        budget = result.data
        assert isinstance(budget, SmartBudget)
        assert budget.days_basis == "next_payday"
        assert budget.days_until_next_pay == 5
        assert budget.daily_budget == Decimal("320")
        assert budget.average_daily_spending == Decimal("50")
        assert budget.health == BudgetHealth.HEALTHY


class TestDataFlows:
    """Tests for the transaction, income, debt and category flows."""

    def test_record_and_list_transactions(self, components, run):
        recorded = run(components.transactions.record_transaction(
            amount=Decimal("42.00"),
            title="Groceries",
            transaction_type=TransactionType.EXPENSE,
            category="food",
            date=NOW,
        ))
        assert recorded.ok

        listed = run(components.transactions.list_transactions(now=NOW))
        assert [t.id for t in listed.data] == [recorded.data.id]

    def test_invalid_transaction_reports_issues(self, components, run):
        """Test pydantic errors become a validation_error with issues."""
        result = run(components.transactions.record_transaction(
            amount=Decimal("-5"),
            title="Refund",
            transaction_type=TransactionType.EXPENSE,
        ))

        assert result.status == FlowStatus.VALIDATION_ERROR
        assert [i.field for i in result.issues] == ["amount"]

    def test_income_source_validation_issues(self, components, run):
        """Test validator errors are returned as issues."""
        result = run(components.income.create_income_source(
            IncomeSourceDraft(base_amount=Decimal("100"))
        ))

        assert result.status == FlowStatus.VALIDATION_ERROR
        assert result.issues[0].field == "name"

    def test_income_source_round_trip(self, components, run):
        created = run(components.income.create_income_source(IncomeSourceDraft(
            name="Salary",
            base_amount=Decimal("2000"),
            frequency=PayFrequency.BIWEEKLY,
            pay_days=[15, 30],
        )))
        assert created.ok

        updated = run(components.income.update_income_source(
            created.data.id, {"name": "Main salary"}
        ))
        assert updated.data.name == "Main salary"

        listed = run(components.income.list_income_sources())
        assert [s.name for s in listed.data] == ["Main salary"]

    def test_income_source_warnings_returned(self, components, run):
        """Test a source saved with warnings is OK and carries them as issues."""
        result = run(components.income.create_income_source(IncomeSourceDraft(
            name="Commissions",
            type=IncomeType.VARIABLE,
            base_amount=Decimal("100"),
            min_expected=Decimal("500"),
            frequency=PayFrequency.BIWEEKLY,
            pay_days=[15],
        )))

        assert result.ok
        assert result.data.name == "Commissions"
        assert {i.field for i in result.issues} == {"base_amount", "pay_days"}
        assert all(i.severity == "warning" for i in result.issues)
        assert "Please double-check:" in result.message

    def test_clean_source_has_no_issues(self, components, run):
        result = run(components.income.create_income_source(IncomeSourceDraft(
            name="Salary", base_amount=Decimal("2000"), pay_days=[30]
        )))
        assert result.ok
        assert result.issues == []
        assert result.message is None

    def test_unknown_update_field(self, components, make_source, run):
        source = make_source()
        result = run(components.income.update_income_source(source.id, {"id": uuid4()}))
        assert result.status == FlowStatus.VALIDATION_ERROR

    def test_commission_for_missing_source(self, components, run):
        result = run(components.income.record_commission(uuid4(), Decimal("10"), 3, 2025))
        assert result.status == FlowStatus.NOT_FOUND

    def test_debts(self, components, run):
        recorded = run(components.debts.record_debt("Ana", Decimal("25.00")))
        paid = run(components.debts.mark_paid(recorded.data.id))

        assert paid.data.is_paid
        assert run(components.debts.list_debts(include_paid=False)).data == []
        assert run(components.debts.mark_paid(uuid4())).status == FlowStatus.NOT_FOUND

    def test_duplicate_category(self, components, run):
        """Test a duplicate category name is a validation error."""
        assert run(components.categories.create_category("Pets")).ok
        result = run(components.categories.create_category("Pets"))

        assert result.status == FlowStatus.VALIDATION_ERROR
        assert len(run(components.categories.list_categories()).data) == 13

    def test_correlation_id_is_kept(self, components, run):
        cid = uuid4()
        result = run(components.categories.list_categories(correlation_id=cid))
        assert result.correlation_id == cid

    def test_delete_transaction(self, components, run):
        """Test a deleted transaction leaves the ledger and can't be deleted twice."""
        recorded = run(components.transactions.record_transaction(
            amount=Decimal("42.00"),
            title="Groceries",
            transaction_type=TransactionType.EXPENSE,
            date=NOW,
        ))

        deleted = run(components.transactions.delete_transaction(recorded.data.id))

        assert deleted.ok
        assert run(components.transactions.list_transactions(now=NOW)).data == []
        again = run(components.transactions.delete_transaction(recorded.data.id))
        assert again.status == FlowStatus.NOT_FOUND

    def test_delete_debt(self, components, run):
        recorded = run(components.debts.record_debt("Ana", Decimal("25.00")))

        assert run(components.debts.delete_debt(recorded.data.id)).ok
        assert run(components.debts.list_debts()).data == []
        assert run(components.debts.delete_debt(uuid4())).status == FlowStatus.NOT_FOUND

    def test_delete_commission(self, components, make_source, run):
        """Test deleting a commission goes through the income flow."""
        source = make_source(type=IncomeType.VARIABLE)
        recorded = run(components.income.record_commission(source.id, Decimal("10"), 3, 2025))

        assert run(components.income.delete_commission(recorded.data.id)).ok
        missing = run(components.income.delete_commission(recorded.data.id))
        assert missing.status == FlowStatus.NOT_FOUND

    def test_unexpected_value_error_is_internal(self, audit_storage, run):
        """Test a ValueError from deep inside a service is an internal error."""
        app = create_app_components(
            storage=CorruptDebtStorage(),
            audit_storage=audit_storage,
            session=StaticSessionProvider(USER_ID),
        )

        result = run(app.debts.list_debts())

        assert result.status == FlowStatus.INTERNAL_ERROR
        assert result.message == INTERNAL_ERROR_MESSAGE
        events = run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.SYSTEM_ERROR


class TestStatsFlow:
    """Tests for the stats flow."""

    def test_payload(self, components, make_transaction, run):
        make_transaction(type=TransactionType.INCOME, amount=Decimal("2000"), date=datetime(2025, 3, 1))
        make_transaction(amount=Decimal("100"), category="food", date=NOW)

        result = run(components.stats.get_stats(now=NOW))

        assert result.ok
        assert result.data["monthlyData"] == [
            {"month": "Mar", "monthNum": 3, "year": 2025, "income": 2000.0, "expense": 100.0}
        ]
        assert result.data["categoryData"] == [{"category": "food", "total": 100.0}]

    def test_shared_ledger_non_member(self, components, run):
        """Test a ledger the user can't see is not found."""
        result = run(components.stats.get_stats(account_id=SHARED_ACCOUNT_ID, now=NOW))
        assert result.status == FlowStatus.NOT_FOUND


class TestStorageBackendSelection:
    """Tests for building the configured storage backend."""

    @pytest.fixture
    def sheets_backend(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        for name in ("GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID"):
            monkeypatch.delenv(name, raising=False)
        return tmp_path

    def test_missing_sheets_settings(self, sheets_backend):
        """Test selecting Google Sheets without its settings fails at startup."""
        with pytest.raises(ConnectionError, match="Google Sheets is not configured"):
            create_app_components()

    def test_configured_sheets_backend(self, sheets_backend, monkeypatch):
        """Test valid Sheets settings build the Sheets storage without connecting."""
        credentials = sheets_backend / "credentials.json"
        credentials.write_text("{}")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "spreadsheet-1")

        app = create_app_components()

        assert isinstance(app.storage, GoogleSheetsLedgerStorage)
        assert app.sheets_client is not None
        assert app.sheets_client.settings.spreadsheet_id == "spreadsheet-1"
