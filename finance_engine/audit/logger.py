"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every forecast request is logged.
This provides:
1. Traceability of lazily materialized transactions
2. A record of when and why an income average changed
3. Debugging context when a forecast fails

The audit logger:
- Always logs locally through structlog
- Persists to audit storage when one is configured
- Gracefully handles storage failures (never breaks the request)
- Supports correlation IDs to tie one request's events together
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_engine.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_engine.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_income_source_created(
        self,
        source_id: UUID,
        user_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.income_source_created(
            source_id=source_id,
            user_id=user_id,
            name=name,
            correlation_id=correlation_id,
        ))

    async def log_income_source_updated(
        self,
        source_id: UUID,
        user_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.income_source_updated(
            source_id=source_id,
            user_id=user_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_income_source_rejected(
        self,
        user_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.income_source_validation_failed(
            user_id=user_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_commission_recorded(
        self,
        record_id: UUID,
        source_id: UUID,
        user_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.commission_recorded(
            record_id=record_id,
            source_id=source_id,
            user_id=user_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_commission_status_changed(
        self,
        record_id: UUID,
        user_id: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.commission_status_changed(
            record_id=record_id,
            user_id=user_id,
            status=status,
            correlation_id=correlation_id,
        ))

    async def log_average_recomputed(
        self,
        source_id: UUID,
        user_id: str,
        average: Optional[str],
        record_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.average_recomputed(
            source_id=source_id,
            user_id=user_id,
            average=average,
            record_count=record_count,
            correlation_id=correlation_id,
        ))

    async def log_transaction_recorded(
        self,
        transaction_id: UUID,
        user_id: str,
        transaction_type: str,
        amount: str,
        is_recurring: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            is_recurring=is_recurring,
            correlation_id=correlation_id,
        ))

    async def log_recurring_materialized(
        self,
        instance_id: UUID,
        template_id: UUID,
        user_id: str,
        occurrence: str,
        next_occurrence: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_materialized(
            instance_id=instance_id,
            template_id=template_id,
            user_id=user_id,
            occurrence=occurrence,
            next_occurrence=next_occurrence,
            correlation_id=correlation_id,
        ))

    async def log_debt_recorded(
        self,
        debt_id: UUID,
        user_id: str,
        person_name: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.debt_recorded(
            debt_id=debt_id,
            user_id=user_id,
            person_name=person_name,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_debt_paid(
        self,
        debt_id: UUID,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.debt_paid(
            debt_id=debt_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_record_deleted(
        self,
        entity_type: str,
        entity_id: UUID,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_category_created(
        self,
        category_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_created(
            category_id=category_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_forecast_generated(
        self,
        user_id: str,
        account_id: Optional[str],
        months: int,
        source_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.forecast_generated(
            user_id=user_id,
            account_id=account_id,
            months=months,
            source_count=source_count,
            correlation_id=correlation_id,
        ))

    async def log_forecast_failed(
        self,
        user_id: str,
        account_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.forecast_failed(
            user_id=user_id,
            account_id=account_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_access_denied(
        self,
        action: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.access_denied(
            action=action,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request and pass it through all
    subsequent operations.
    """
    return uuid4()
