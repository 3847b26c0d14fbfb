"""
Income Averaging Service

Keeps average_last_3_months of a variable income source in step with
its commission records. The window is selected by the records' creation
time, not by their period_month/period_year.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finance_engine.audit import AuditLogger
from finance_engine.config import get_settings
from finance_engine.models.ledger import IncomeType
from finance_engine.periods import add_months
from finance_engine.services.storage import LedgerStorageInterface, NotFoundError


class IncomeAveragingService:
    """Recomputes the trailing average of a variable income source."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._window_months = get_settings().forecast.average_window_months

    async def recompute_average(
        self,
        income_source_id: UUID,
        user_id: str,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Decimal]:
        """
        Recompute and store the source's trailing average.

        With no records in the window the stored average is left as it is
        and None is returned. Otherwise the plain arithmetic mean of the
        record amounts overwrites it. Only variable sources carry an
        average; for any other source nothing is written and None is
        returned.

        Raises:
            NotFoundError: If the source doesn't exist or isn't the user's
        """
        source = await self._storage.get_income_source(income_source_id, user_id)
        if source is None:
            raise NotFoundError(f"Income source not found: {income_source_id}")
        if source.type != IncomeType.VARIABLE:
            return None

        now = now or datetime.now()
        records = await self._storage.list_commissions(
            user_id=user_id,
            income_source_id=income_source_id,
            created_from=add_months(now, -self._window_months),
        )

        if not records:
            return None

        total = sum((r.amount for r in records), Decimal("0"))
        average = total / len(records)

        source.average_last_3_months = average
        source.updated_at = now
        await self._storage.update_income_source(source)

        if self._audit_logger:
            await self._audit_logger.log_average_recomputed(
                source_id=income_source_id,
                user_id=user_id,
                average=str(average),
                record_count=len(records),
                correlation_id=correlation_id,
            )

        return average
