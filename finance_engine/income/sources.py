"""
Income Source & Commission Service

Configuration side of the forecast: creating and editing income sources,
and posting the commission records that feed variable-income averages.

Income sources are never deleted. They are soft-disabled
(is_active=False) or left out of projections (include_in_forecast=False).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from finance_engine.audit import AuditLogger
from finance_engine.config import get_settings
from finance_engine.income.averaging import IncomeAveragingService
from finance_engine.models.ledger import (
    CommissionRecord,
    CommissionStatus,
    IncomeSource,
    IncomeSourceDraft,
    IncomeType,
)
from finance_engine.models.validation import ValidationResult
from finance_engine.periods import add_months
from finance_engine.recurrence.ledger import ensure_ledger_access
from finance_engine.services.storage import LedgerStorageInterface, NotFoundError
from finance_engine.validation import (
    IncomeSourceValidationError,
    IncomeSourceValidator,
    InvalidRequestError,
)


# Fields a caller may change through update_income_source
UPDATABLE_FIELDS = {
    "name",
    "type",
    "base_amount",
    "frequency",
    "pay_days",
    "min_expected",
    "max_expected",
    "is_active",
    "include_in_forecast",
}


class IncomeSourceService:
    """Manages income sources and their commission records."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[IncomeSourceValidator] = None,
        averaging: Optional[IncomeAveragingService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or IncomeSourceValidator()
        self._averaging = averaging or IncomeAveragingService(storage, audit_logger)
        self._audit_logger = audit_logger
        self._settings = get_settings().forecast

    async def _validate_or_raise(
        self,
        draft: IncomeSourceDraft,
        user_id: str,
        correlation_id: Optional[UUID],
    ) -> ValidationResult:
        result = self._validator.validate(draft)
        if result.is_valid:
            return result

        if self._audit_logger:
            await self._audit_logger.log_income_source_rejected(
                user_id=user_id,
                issues=[i.model_dump() for i in result.issues if i.severity == "error"],
                correlation_id=correlation_id,
            )
        raise IncomeSourceValidationError(result)

    async def _get_owned(self, source_id: UUID, user_id: str) -> IncomeSource:
        source = await self._storage.get_income_source(source_id, user_id)
        if source is None:
            raise NotFoundError(f"Income source not found: {source_id}")
        return source

    async def create_income_source(
        self,
        user_id: str,
        draft: IncomeSourceDraft,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[IncomeSource, ValidationResult]:
        """
        Validate and save a new income source.

        Omitted pay days fall back to the configured defaults; an explicitly
        empty list is kept and rejected unless the source pays weekly.

        Returns:
            (saved_source, validation_result) - the result carries any
            warnings the source was saved with

        Raises:
            IncomeSourceValidationError: If the draft has blocking issues
            NotFoundError: If the draft targets a shared ledger the user
                           isn't a member of
        """
        if draft.pay_days is None:
            draft = draft.model_copy(
                update={"pay_days": list(self._settings.default_pay_days)}
            )

        validation = await self._validate_or_raise(draft, user_id, correlation_id)
        await ensure_ledger_access(self._storage, user_id, draft.account_id)

        source = IncomeSource(
            user_id=user_id,
            account_id=draft.account_id,
            name=draft.name,
            type=draft.type,
            base_amount=draft.base_amount,
            frequency=draft.frequency,
            pay_days=draft.pay_days,
            min_expected=draft.min_expected,
            max_expected=draft.max_expected,
            include_in_forecast=draft.include_in_forecast,
        )
        await self._storage.save_income_source(source)

        if self._audit_logger:
            await self._audit_logger.log_income_source_created(
                source_id=source.id,
                user_id=user_id,
                name=source.name,
                correlation_id=correlation_id,
            )

        return source, validation

    async def update_income_source(
        self,
        source_id: UUID,
        user_id: str,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[IncomeSource, ValidationResult]:
        """
        Apply a partial update. Only keys present in `changes` are touched.

        A source that stops being variable loses its stored average.

        Returns:
            (updated_source, validation_result)

        Raises:
            InvalidRequestError: If `changes` names a field that can't be updated
            IncomeSourceValidationError: If the merged source is invalid
            NotFoundError: If the source doesn't exist or isn't the user's
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidRequestError(f"Fields cannot be updated: {sorted(unknown)}")

        source = await self._get_owned(source_id, user_id)
        merged = source.model_dump()
        merged.update(changes)

        draft = IncomeSourceDraft(**{
            k: merged[k] for k in IncomeSourceDraft.model_fields if k in merged
        })
        validation = await self._validate_or_raise(draft, user_id, correlation_id)

        if IncomeType(merged["type"]) != IncomeType.VARIABLE:
            merged["average_last_3_months"] = None
        merged["updated_at"] = datetime.now()
        updated = IncomeSource.model_validate(merged)
        await self._storage.update_income_source(updated)

        if self._audit_logger:
            await self._audit_logger.log_income_source_updated(
                source_id=source_id,
                user_id=user_id,
                fields=sorted(changes),
                correlation_id=correlation_id,
            )

        return updated, validation

    async def deactivate(
        self,
        source_id: UUID,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> IncomeSource:
        """Soft-disable a source; its history stays in place."""
        source, _ = await self.update_income_source(
            source_id, user_id, {"is_active": False}, correlation_id
        )
        return source

    async def set_forecast_inclusion(
        self,
        source_id: UUID,
        user_id: str,
        include: bool,
        correlation_id: Optional[UUID] = None,
    ) -> IncomeSource:
        source, _ = await self.update_income_source(
            source_id, user_id, {"include_in_forecast": include}, correlation_id
        )
        return source

    async def list_income_sources(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        active_only: bool = False,
    ) -> list[IncomeSource]:
        await ensure_ledger_access(self._storage, user_id, account_id)
        return await self._storage.list_income_sources(
            user_id=user_id,
            account_id=account_id,
            active_only=active_only,
        )

    # ------------------------------------------------------------------
    # Commission records
    # ------------------------------------------------------------------

    async def record_commission(
        self,
        user_id: str,
        income_source_id: UUID,
        amount: Decimal,
        period_month: int,
        period_year: int,
        status: CommissionStatus = CommissionStatus.PENDING,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CommissionRecord:
        """
        Post a commission record and refresh the source's average.

        Raises:
            NotFoundError: If the source doesn't exist or isn't the user's
        """
        await self._get_owned(income_source_id, user_id)

        now = now or datetime.now()
        record = CommissionRecord(
            income_source_id=income_source_id,
            user_id=user_id,
            amount=amount,
            period_month=period_month,
            period_year=period_year,
            status=status,
            notes=notes,
            created_at=now,
            confirmed_at=now if status == CommissionStatus.CONFIRMED else None,
            paid_at=now if status == CommissionStatus.PAID else None,
        )
        await self._storage.save_commission(record)

        if self._audit_logger:
            await self._audit_logger.log_commission_recorded(
                record_id=record.id,
                source_id=income_source_id,
                user_id=user_id,
                amount=str(record.amount),
                correlation_id=correlation_id,
            )

        await self._averaging.recompute_average(
            income_source_id, user_id, now=now, correlation_id=correlation_id
        )

        return record

    async def update_commission(
        self,
        record_id: UUID,
        user_id: str,
        status: Optional[CommissionStatus] = None,
        amount: Optional[Decimal] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CommissionRecord:
        """
        Change a record's status, amount or notes.

        Moving to confirmed stamps confirmed_at, moving to paid stamps
        paid_at. A changed amount refreshes the source's average.

        Raises:
            NotFoundError: If the record doesn't exist or isn't the user's
        """
        record = await self._storage.get_commission(record_id, user_id)
        if record is None:
            raise NotFoundError(f"Commission record not found: {record_id}")

        now = now or datetime.now()
        changes: dict[str, Any] = {}
        if amount is not None:
            changes["amount"] = amount
        if notes is not None:
            changes["notes"] = notes
        if status is not None:
            changes["status"] = status
            if status == CommissionStatus.CONFIRMED:
                changes["confirmed_at"] = now
            elif status == CommissionStatus.PAID:
                changes["paid_at"] = now

        updated = CommissionRecord.model_validate({**record.model_dump(), **changes})
        await self._storage.update_commission(updated)

        if status is not None and self._audit_logger:
            await self._audit_logger.log_commission_status_changed(
                record_id=record_id,
                user_id=user_id,
                status=status.value,
                correlation_id=correlation_id,
            )

        if amount is not None:
            await self._averaging.recompute_average(
                record.income_source_id, user_id, now=now, correlation_id=correlation_id
            )

        return updated

    async def delete_commission(
        self,
        record_id: UUID,
        user_id: str,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CommissionRecord:
        """
        Delete a record and refresh its source's average.

        Raises:
            NotFoundError: If the record doesn't exist or isn't the user's
        """
        record = await self._storage.get_commission(record_id, user_id)
        if record is None:
            raise NotFoundError(f"Commission record not found: {record_id}")

        await self._storage.delete_commission(record_id)

        if self._audit_logger:
            await self._audit_logger.log_record_deleted(
                entity_type="commission",
                entity_id=record_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )

        await self._averaging.recompute_average(
            record.income_source_id, user_id, now=now, correlation_id=correlation_id
        )

        return record

    async def list_commissions(
        self,
        user_id: str,
        income_source_id: Optional[UUID] = None,
        months: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[CommissionRecord]:
        """List records, newest period first, optionally within `months`."""
        created_from = None
        if months:
            created_from = add_months(now or datetime.now(), -months)

        return await self._storage.list_commissions(
            user_id=user_id,
            income_source_id=income_source_id,
            created_from=created_from,
        )
