"""Tests for recurring transaction materialization and the ledger service."""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from conftest import NOW, OTHER_USER_ID, SHARED_ACCOUNT_ID, USER_ID
from finance_engine.models.audit import AuditEventType
from finance_engine.models.ledger import RecurrencePeriod, TransactionType
from finance_engine.recurrence import LedgerService, RecurrenceProcessor
from finance_engine.services.storage import NotFoundError


def _template(storage, transaction_id):
    return next(t for t in storage.all_transactions() if t.id == transaction_id)


class TestRecurrenceProcessor:
    """Tests for RecurrenceProcessor.materialize_due."""

    def test_stale_daily_template_fires_once(self, storage, make_transaction, run):
        """Test a template 10 days behind yields one instance and moves one day."""
        stale = NOW - timedelta(days=10)
        template = make_transaction(
            title="Coffee",
            amount=Decimal("3.50"),
            date=stale - timedelta(days=1),
            is_recurring=True,
            recurrence_period=RecurrencePeriod.DAILY,
            next_occurrence=stale,
        )

        created = run(RecurrenceProcessor(storage).materialize_due(USER_ID, now=NOW))

        assert len(created) == 1
        instance = created[0]
        assert instance.date == stale
        assert instance.parent_id == template.id
        assert instance.is_recurring is False
        assert instance.recurrence_period == RecurrencePeriod.NONE
        assert instance.amount == Decimal("3.50")
        assert instance.title == "Coffee"

        updated = _template(storage, template.id)
        assert updated.next_occurrence == stale + timedelta(days=1)
        assert len(storage.all_transactions()) == 2

    def test_each_call_catches_up_one_period(self, storage, make_transaction, run):
        """Test repeated calls fire once per call, not once per missed period."""
        template = make_transaction(
            is_recurring=True,
            recurrence_period=RecurrencePeriod.DAILY,
            next_occurrence=NOW - timedelta(days=2),
        )
        processor = RecurrenceProcessor(storage)

        assert len(run(processor.materialize_due(USER_ID, now=NOW))) == 1
        assert len(run(processor.materialize_due(USER_ID, now=NOW))) == 1
        assert len(run(processor.materialize_due(USER_ID, now=NOW))) == 1
        # Now ahead of the clock
        assert run(processor.materialize_due(USER_ID, now=NOW)) == []

        assert _template(storage, template.id).next_occurrence == NOW + timedelta(days=1)

    def test_future_template_not_due(self, storage, make_transaction, run):
        """Test templates scheduled after now are left alone."""
        make_transaction(
            is_recurring=True,
            recurrence_period=RecurrencePeriod.WEEKLY,
            next_occurrence=NOW + timedelta(hours=1),
        )
        assert run(RecurrenceProcessor(storage).materialize_due(USER_ID, now=NOW)) == []

    def test_due_exactly_now(self, storage, make_transaction, run):
        """Test next_occurrence equal to now is due."""
        make_transaction(
            is_recurring=True,
            recurrence_period=RecurrencePeriod.WEEKLY,
            next_occurrence=NOW,
        )
        assert len(run(RecurrenceProcessor(storage).materialize_due(USER_ID, now=NOW))) == 1

    def test_monthly_advance_clamps(self, storage, make_transaction, run):
        """Test a Jan 31 monthly template moves to the end of February."""
        template = make_transaction(
            is_recurring=True,
            recurrence_period=RecurrencePeriod.MONTHLY,
            next_occurrence=datetime(2025, 1, 31),
        )
        run(RecurrenceProcessor(storage).materialize_due(USER_ID, now=NOW))
        assert _template(storage, template.id).next_occurrence == datetime(2025, 2, 28)

    def test_period_none_stops_template(self, storage, make_transaction, run):
        """Test a template with no period fires once and then stops."""
        template = make_transaction(
            is_recurring=True,
            recurrence_period=RecurrencePeriod.NONE,
            next_occurrence=NOW - timedelta(days=1),
        )
        processor = RecurrenceProcessor(storage)

        assert len(run(processor.materialize_due(USER_ID, now=NOW))) == 1
        assert _template(storage, template.id).next_occurrence is None
        assert run(processor.materialize_due(USER_ID, now=NOW)) == []

    def test_instance_keeps_ledger_and_category(self, storage, make_transaction, run):
        """Test instances stay in the template's ledger and category."""
        make_transaction(
            account_id=SHARED_ACCOUNT_ID,
            category="housing",
            type=TransactionType.EXPENSE,
            is_recurring=True,
            recurrence_period=RecurrencePeriod.MONTHLY,
            next_occurrence=NOW,
        )
        instance = run(RecurrenceProcessor(storage).materialize_due(USER_ID, now=NOW))[0]
        assert instance.account_id == SHARED_ACCOUNT_ID
        assert instance.category == "housing"
        assert instance.user_id == USER_ID

    def test_other_users_templates_ignored(self, storage, make_transaction, run):
        """Test only the caller's templates are processed."""
        make_transaction(
            user_id=OTHER_USER_ID,
            is_recurring=True,
            recurrence_period=RecurrencePeriod.DAILY,
            next_occurrence=NOW - timedelta(days=1),
        )
        assert run(RecurrenceProcessor(storage).materialize_due(USER_ID, now=NOW)) == []

    def test_materialization_is_audited(self, storage, make_transaction, audit_logger, audit_storage, run):
        """Test each firing writes an audit event."""
        make_transaction(
            is_recurring=True,
            recurrence_period=RecurrencePeriod.DAILY,
            next_occurrence=NOW,
        )
        run(RecurrenceProcessor(storage, audit_logger).materialize_due(USER_ID, now=NOW))

        events = run(audit_storage.get_recent_events())
        assert [e.event_type for e in events] == [AuditEventType.RECURRING_MATERIALIZED]


class TestLedgerService:
    """Tests for recording and listing transactions."""

    def test_recurring_transaction_gets_next_occurrence(self, storage, run):
        """Test a recurring transaction becomes a template one period ahead."""
        service = LedgerService(storage)
        tx = run(service.record_transaction(
            user_id=USER_ID,
            amount=Decimal("1200"),
            title="Rent",
            transaction_type=TransactionType.EXPENSE,
            category="Housing",
            date=datetime(2025, 1, 15),
            is_recurring=True,
            recurrence_period=RecurrencePeriod.MONTHLY,
        ))
        assert tx.is_recurring is True
        assert tx.next_occurrence == datetime(2025, 2, 15)
        assert tx.category == "housing"

    def test_plain_transaction_has_no_schedule(self, storage, run):
        """Test a period without is_recurring is ignored."""
        tx = run(LedgerService(storage).record_transaction(
            user_id=USER_ID,
            amount=Decimal("20"),
            title="Lunch",
            transaction_type=TransactionType.EXPENSE,
            date=NOW,
            recurrence_period=RecurrencePeriod.DAILY,
        ))
        assert tx.next_occurrence is None
        assert tx.recurrence_period == RecurrencePeriod.NONE

    def test_list_materializes_first(self, storage, run):
        """Test listing includes instances that became due."""
        service = LedgerService(storage)
        run(service.record_transaction(
            user_id=USER_ID,
            amount=Decimal("5"),
            title="Coffee",
            transaction_type=TransactionType.EXPENSE,
            date=NOW - timedelta(days=2),
            is_recurring=True,
            recurrence_period=RecurrencePeriod.DAILY,
        ))

        listed = run(service.list_transactions(USER_ID, now=NOW))

        assert len(listed) == 2
        instance = next(t for t in listed if t.parent_id is not None)
        assert instance.date == NOW - timedelta(days=1)

    def test_list_is_newest_first_and_windowed(self, storage, make_transaction, run):
        """Test the default six-month window and ordering."""
        make_transaction(title="Old", date=NOW - timedelta(days=220))
        make_transaction(title="Recent", date=NOW - timedelta(days=3))
        make_transaction(title="Today", date=NOW)

        listed = run(LedgerService(storage).list_transactions(USER_ID, now=NOW))
        assert [t.title for t in listed] == ["Today", "Recent"]

    def test_personal_ledger_excludes_shared_rows(self, storage, make_transaction, run):
        """Test the personal ledger never shows shared-account rows."""
        make_transaction(title="Mine")
        make_transaction(title="Household", account_id=SHARED_ACCOUNT_ID)

        listed = run(LedgerService(storage).list_transactions(USER_ID, now=NOW))
        assert [t.title for t in listed] == ["Mine"]

    def test_shared_ledger_requires_membership(self, storage, run):
        """Test a non-member gets NotFoundError for a shared ledger."""
        service = LedgerService(storage)
        with pytest.raises(NotFoundError):
            run(service.list_transactions(USER_ID, account_id=SHARED_ACCOUNT_ID, now=NOW))
        with pytest.raises(NotFoundError):
            run(service.record_transaction(
                user_id=USER_ID,
                amount=Decimal("10"),
                title="Milk",
                transaction_type=TransactionType.EXPENSE,
                account_id=SHARED_ACCOUNT_ID,
            ))

    def test_shared_ledger_is_pooled(self, storage, make_transaction, run):
        """Test members see every member's rows in a shared ledger."""
        storage.add_account_member(SHARED_ACCOUNT_ID, USER_ID)
        make_transaction(user_id=OTHER_USER_ID, title="Theirs", account_id=SHARED_ACCOUNT_ID)

        listed = run(LedgerService(storage).list_transactions(
            USER_ID, account_id=SHARED_ACCOUNT_ID, now=NOW
        ))
        assert [t.title for t in listed] == ["Theirs"]


class TestTransactionDeletion:
    """Tests for LedgerService.delete_transaction."""

    def test_delete_own_transaction(self, storage, make_transaction, audit_logger, audit_storage, run):
        """Test the owner can delete a personal transaction and it's audited."""
        transaction = make_transaction()

        deleted = run(LedgerService(storage, audit_logger=audit_logger).delete_transaction(
            transaction.id, USER_ID
        ))

        assert deleted.id == transaction.id
        assert storage.all_transactions() == []
        events = run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.TRANSACTION_DELETED
        assert events[0].entity_id == transaction.id

    def test_foreign_personal_transaction(self, storage, make_transaction, run):
        """Test another user's personal row is not found and stays."""
        transaction = make_transaction(user_id=OTHER_USER_ID)

        with pytest.raises(NotFoundError):
            run(LedgerService(storage).delete_transaction(transaction.id, USER_ID))
        assert len(storage.all_transactions()) == 1

    def test_shared_transaction_needs_membership(self, storage, make_transaction, run):
        """Test any member may delete a shared row; a non-member may not."""
        transaction = make_transaction(user_id=OTHER_USER_ID, account_id=SHARED_ACCOUNT_ID)
        service = LedgerService(storage)

        with pytest.raises(NotFoundError):
            run(service.delete_transaction(transaction.id, USER_ID))

        storage.add_account_member(SHARED_ACCOUNT_ID, USER_ID)
        run(service.delete_transaction(transaction.id, USER_ID))
        assert storage.all_transactions() == []

    def test_deleted_template_stops_recurring(self, storage, make_transaction, run):
        """Test deleting a template means nothing more is materialized."""
        template = make_transaction(
            date=NOW - timedelta(days=1),
            is_recurring=True,
            recurrence_period=RecurrencePeriod.DAILY,
            next_occurrence=NOW,
        )
        service = LedgerService(storage)

        run(service.delete_transaction(template.id, USER_ID))

        assert run(service.list_transactions(USER_ID, now=NOW)) == []
