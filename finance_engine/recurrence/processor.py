"""
Recurrence Processor

Turns due recurring templates into concrete, dated transactions.

Each call fires every due template exactly once and moves its
next_occurrence forward by ONE period from the previous (possibly stale)
value. A template that has been dormant for several periods therefore
catches up one instance per call, not one per missed period.

NOTE: The read-insert-advance sequence is not atomic. Two overlapping
calls for the same user can both see a template as due and materialize it
twice; a failure between the insert and the advance leaves the instance
saved with the template not yet moved.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from finance_engine.audit import AuditLogger
from finance_engine.models.ledger import RecurrencePeriod, Transaction
from finance_engine.periods import advance_occurrence
from finance_engine.services.storage import LedgerStorageInterface


def build_instance(template: Transaction, now: datetime) -> Transaction:
    """Concrete transaction produced by one firing of a template."""
    return Transaction(
        user_id=template.user_id,
        account_id=template.account_id,
        amount=template.amount,
        title=template.title,
        type=template.type,
        category=template.category,
        date=template.next_occurrence or now,
        is_recurring=False,
        recurrence_period=RecurrencePeriod.NONE,
        parent_id=template.id,
    )


class RecurrenceProcessor:
    """Materializes due instances of a user's recurring transactions."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def materialize_due(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        Fire every template of the user whose next_occurrence <= now.

        Args:
            user_id: Owner of the templates
            now: Reference instant (defaults to the current time)
            correlation_id: For audit tracking

        Returns:
            The instances created by this call
        """
        now = now or datetime.now()
        due = await self._storage.list_due_recurring(user_id=user_id, as_of=now)

        created = []
        for template in due:
            instance = build_instance(template, now)
            await self._storage.save_transaction(instance)

            previous = template.next_occurrence or now
            template.next_occurrence = advance_occurrence(
                previous, template.recurrence_period
            )
            await self._storage.update_transaction(template)

            if self._audit_logger:
                await self._audit_logger.log_recurring_materialized(
                    instance_id=instance.id,
                    template_id=template.id,
                    user_id=user_id,
                    occurrence=instance.date.isoformat(),
                    next_occurrence=(
                        template.next_occurrence.isoformat()
                        if template.next_occurrence else None
                    ),
                    correlation_id=correlation_id,
                )
            created.append(instance)

        return created
