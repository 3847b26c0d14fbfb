"""
Audit Models for the Finance Engine

Every state change and every forecast request is recorded:
1. Traceability of ledger mutations (materialized instances, averages)
2. Debugging information when a forecast fails
3. Ability to reconstruct why a balance looks the way it does

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Income configuration
    INCOME_SOURCE_CREATED = "income_source_created"
    INCOME_SOURCE_UPDATED = "income_source_updated"
    INCOME_SOURCE_VALIDATION_FAILED = "income_source_validation_failed"
    COMMISSION_RECORDED = "commission_recorded"
    COMMISSION_STATUS_CHANGED = "commission_status_changed"
    COMMISSION_DELETED = "commission_deleted"
    AVERAGE_RECOMPUTED = "average_recomputed"

    # Ledger
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_DELETED = "transaction_deleted"
    RECURRING_MATERIALIZED = "recurring_materialized"
    DEBT_RECORDED = "debt_recorded"
    DEBT_PAID = "debt_paid"
    DEBT_DELETED = "debt_deleted"
    CATEGORY_CREATED = "category_created"

    # Forecast
    FORECAST_GENERATED = "forecast_generated"
    FORECAST_FAILED = "forecast_failed"

    # Access / system
    ACCESS_DENIED = "access_denied"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'income_source', 'transaction')"
    )
    entity_id: Optional[UUID] = None
    user_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one request"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         user_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            self.user_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.average_recomputed(source_id, user_id, ...)
    """

    @staticmethod
    def income_source_created(
        source_id: UUID,
        user_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_SOURCE_CREATED,
            entity_type="income_source",
            entity_id=source_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Income source created: {name}",
            details={"name": name},
        )

    @staticmethod
    def income_source_updated(
        source_id: UUID,
        user_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_SOURCE_UPDATED,
            entity_type="income_source",
            entity_id=source_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Income source updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def income_source_validation_failed(
        user_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_SOURCE_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="income_source",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Income source rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def commission_recorded(
        record_id: UUID,
        source_id: UUID,
        user_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMISSION_RECORDED,
            entity_type="commission",
            entity_id=record_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Commission recorded: {amount}",
            details={"income_source_id": str(source_id), "amount": amount},
        )

    @staticmethod
    def commission_status_changed(
        record_id: UUID,
        user_id: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMISSION_STATUS_CHANGED,
            entity_type="commission",
            entity_id=record_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Commission marked {status}",
            details={"status": status},
        )

    @staticmethod
    def average_recomputed(
        source_id: UUID,
        user_id: str,
        average: Optional[str],
        record_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if average is None:
            description = "3-month average left unchanged (no recent records)"
        else:
            description = f"3-month average set to {average} from {record_count} records"
        return AuditEvent(
            event_type=AuditEventType.AVERAGE_RECOMPUTED,
            entity_type="income_source",
            entity_id=source_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=description,
            details={"average": average, "record_count": record_count},
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: UUID,
        user_id: str,
        transaction_type: str,
        amount: str,
        is_recurring: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} recorded: {amount}",
            details={
                "type": transaction_type,
                "amount": amount,
                "is_recurring": is_recurring,
            },
        )

    @staticmethod
    def recurring_materialized(
        instance_id: UUID,
        template_id: UUID,
        user_id: str,
        occurrence: str,
        next_occurrence: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_MATERIALIZED,
            entity_type="transaction",
            entity_id=instance_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Recurring transaction materialized for {occurrence}",
            details={
                "template_id": str(template_id),
                "occurrence": occurrence,
                "next_occurrence": next_occurrence,
            },
        )

    @staticmethod
    def debt_recorded(
        debt_id: UUID,
        user_id: str,
        person_name: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_RECORDED,
            entity_type="debt",
            entity_id=debt_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Debt recorded: {person_name} owes {amount}",
            details={"person_name": person_name, "amount": amount},
        )

    @staticmethod
    def debt_paid(
        debt_id: UUID,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_PAID,
            entity_type="debt",
            entity_id=debt_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Debt marked as paid",
        )

    @staticmethod
    def record_deleted(
        entity_type: str,
        entity_id: UUID,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_types = {
            "transaction": AuditEventType.TRANSACTION_DELETED,
            "commission": AuditEventType.COMMISSION_DELETED,
            "debt": AuditEventType.DEBT_DELETED,
        }
        return AuditEvent(
            event_type=event_types[entity_type],
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} deleted",
        )

    @staticmethod
    def category_created(
        category_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Custom category created: {category_id}",
            details={"category_id": category_id},
        )

    @staticmethod
    def forecast_generated(
        user_id: str,
        account_id: Optional[str],
        months: int,
        source_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FORECAST_GENERATED,
            entity_type="forecast",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Forecast generated for {months} months from {source_count} income sources",
            details={
                "account_id": account_id,
                "months": months,
                "source_count": source_count,
            },
        )

    @staticmethod
    def forecast_failed(
        user_id: str,
        account_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FORECAST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="forecast",
            user_id=user_id,
            correlation_id=correlation_id,
            description="Forecast generation failed",
            error_message=error_message,
            details={"account_id": account_id},
        )

    @staticmethod
    def access_denied(
        action: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_DENIED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Access denied: {action}",
            details={"action": action, "reason": reason},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
