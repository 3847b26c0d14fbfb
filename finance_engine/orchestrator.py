"""
Request Flows for the Finance Engine

This module ties the engine components together and defines the
request-level flows:
1. Forecast (session → ledger access → forecast → payload / smart budget)
2. Transactions (record, list with lazy materialization)
3. Income (sources, commissions, averages)
4. Debts
5. Categories
6. Stats

DESIGN DECISION: Flows enforce the boundaries:
- Nothing runs without an authenticated session
- Every failure becomes a FlowResult with a status, never an exception
- Internal failures carry a generic message and no partial data
- Every step is audited

Application state lives in an AppComponents container built by
create_app_components(); there are no module-level service instances.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from finance_engine.audit import AuditLogger, create_correlation_id
from finance_engine.categories import CategoryService
from finance_engine.config import get_settings, validate_all_settings
from finance_engine.debts import DebtTracker
from finance_engine.forecast import ForecastGenerator, smart_budget_for
from finance_engine.income import IncomeAveragingService, IncomeSourceService
from finance_engine.models.ledger import (
    CommissionStatus,
    IncomeSourceDraft,
    RecurrencePeriod,
    TransactionType,
)
from finance_engine.models.validation import ValidationIssue, ValidationResult
from finance_engine.periods import month_end, month_start
from finance_engine.recurrence import LedgerService, RecurrenceProcessor
from finance_engine.services.identity import (
    SessionProvider,
    StaticSessionProvider,
    UnauthorizedError,
)
from finance_engine.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
)
from finance_engine.stats import StatsService
from finance_engine.validation import (
    IncomeSourceValidationError,
    IncomeSourceValidator,
    InvalidRequestError,
)


INTERNAL_ERROR_MESSAGE = "Something went wrong. Please try again."


class FlowStatus(str, Enum):
    """Outcome of a request flow."""
    OK = "ok"
    UNAUTHORIZED = "unauthorized"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    INTERNAL_ERROR = "internal_error"


class FlowResult(BaseModel):
    """What a flow hands back to the presentation layer."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: FlowStatus
    data: Any = None
    message: Optional[str] = None
    issues: list[ValidationIssue] = Field(default_factory=list)
    correlation_id: Optional[UUID] = None

    @property
    def ok(self) -> bool:
        return self.status == FlowStatus.OK


def _issues_from_pydantic(error: ValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            field=".".join(str(part) for part in e["loc"]) or "input",
            issue_type=e["type"],
            message=e["msg"],
            severity="error",
        )
        for e in error.errors()
    ]


class _Flow:
    """Session check and error mapping shared by every flow."""

    def __init__(
        self,
        session: SessionProvider,
        audit_logger: AuditLogger,
    ):
        self._session = session
        self._audit_logger = audit_logger

    async def _run(
        self,
        action: str,
        operation: Callable[[str, UUID], Awaitable[Any]],
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            user_id = await self._session.require_user_id()
        except UnauthorizedError as e:
            await self._audit_logger.log_access_denied(
                action=action,
                reason=str(e),
                correlation_id=correlation_id,
            )
            return FlowResult(
                status=FlowStatus.UNAUTHORIZED,
                message="Not authenticated",
                correlation_id=correlation_id,
            )

        try:
            data = await operation(user_id, correlation_id)
        except IncomeSourceValidationError as e:
            return FlowResult(
                status=FlowStatus.VALIDATION_ERROR,
                message=str(e),
                issues=e.result.issues,
                correlation_id=correlation_id,
            )
        except ValidationError as e:
            return FlowResult(
                status=FlowStatus.VALIDATION_ERROR,
                message="Invalid input",
                issues=_issues_from_pydantic(e),
                correlation_id=correlation_id,
            )
        except DuplicateError as e:
            return FlowResult(
                status=FlowStatus.VALIDATION_ERROR,
                message=str(e),
                correlation_id=correlation_id,
            )
        except NotFoundError as e:
            return FlowResult(
                status=FlowStatus.NOT_FOUND,
                message=str(e),
                correlation_id=correlation_id,
            )
        except InvalidRequestError as e:
            return FlowResult(
                status=FlowStatus.VALIDATION_ERROR,
                message=str(e),
                correlation_id=correlation_id,
            )
        except Exception as e:
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"action": action, "user_id": user_id},
                correlation_id=correlation_id,
            )
            return FlowResult(
                status=FlowStatus.INTERNAL_ERROR,
                message=INTERNAL_ERROR_MESSAGE,
                correlation_id=correlation_id,
            )

        return FlowResult(
            status=FlowStatus.OK,
            data=data,
            correlation_id=correlation_id,
        )


class ForecastFlow(_Flow):
    """
    Orchestrates the forecast request.

    Flow:
    1. Session → authenticated user id
    2. Ledger access → personal, or a shared account the user belongs to
    3. Forecast → ForecastResult
    4. Payload → camelCase dict for the presentation layer
    """

    def __init__(
        self,
        generator: ForecastGenerator,
        storage: LedgerStorageInterface,
        session: SessionProvider,
        audit_logger: AuditLogger,
    ):
        super().__init__(session, audit_logger)
        self._generator = generator
        self._storage = storage

    async def get_forecast(
        self,
        account_id: Optional[str] = None,
        months: Optional[int] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        """Forecast response; data is the payload dict."""
        async def operation(user_id: str, cid: UUID):
            result = await self._generator.generate_forecast(
                user_id,
                account_id=account_id,
                months_ahead=months,
                now=now,
                correlation_id=cid,
            )
            return result.to_payload()

        return await self._run("get_forecast", operation, correlation_id)

    async def get_smart_budget(
        self,
        account_id: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        """Smart daily budget for the ledger; data is a SmartBudget."""
        async def operation(user_id: str, cid: UUID):
            moment = now or datetime.now()
            forecast = await self._generator.generate_forecast(
                user_id,
                account_id=account_id,
                now=moment,
                correlation_id=cid,
            )
            month_expenses = await self._storage.sum_transactions(
                user_id,
                account_id,
                TransactionType.EXPENSE,
                date_from=month_start(moment),
                date_to=month_end(moment),
            )
            return smart_budget_for(
                forecast.current_balance,
                month_expenses,
                forecast=forecast,
                today=moment.date(),
            )

        return await self._run("get_smart_budget", operation, correlation_id)


class TransactionFlow(_Flow):
    """Records transactions and lists a ledger."""

    def __init__(
        self,
        ledger: LedgerService,
        session: SessionProvider,
        audit_logger: AuditLogger,
    ):
        super().__init__(session, audit_logger)
        self._ledger = ledger

    async def record_transaction(
        self,
        amount: Decimal,
        title: str,
        transaction_type: TransactionType,
        category: str = "other",
        date: Optional[datetime] = None,
        account_id: Optional[str] = None,
        is_recurring: bool = False,
        recurrence_period: RecurrencePeriod = RecurrencePeriod.NONE,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._ledger.record_transaction(
                user_id=user_id,
                amount=amount,
                title=title,
                transaction_type=transaction_type,
                category=category,
                date=date,
                account_id=account_id,
                is_recurring=is_recurring,
                recurrence_period=recurrence_period,
                correlation_id=cid,
            )

        return await self._run("record_transaction", operation, correlation_id)

    async def list_transactions(
        self,
        account_id: Optional[str] = None,
        months: Optional[int] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._ledger.list_transactions(
                user_id,
                account_id=account_id,
                months=months,
                now=now,
                correlation_id=cid,
            )

        return await self._run("list_transactions", operation, correlation_id)

    async def delete_transaction(
        self,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._ledger.delete_transaction(transaction_id, user_id, cid)

        return await self._run("delete_transaction", operation, correlation_id)


class IncomeFlow(_Flow):
    """Income source configuration and commission records."""

    def __init__(
        self,
        income: IncomeSourceService,
        session: SessionProvider,
        audit_logger: AuditLogger,
    ):
        super().__init__(session, audit_logger)
        self._income = income
        self._validator = IncomeSourceValidator()

    async def _run_validated(
        self,
        action: str,
        operation: Callable[[str, UUID], Awaitable[tuple[Any, ValidationResult]]],
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        """
        Run an operation that returns (source, validation_result).

        On success the source becomes the data and the non-blocking issues
        (warnings and notes) are passed back with a summary message.
        """
        validations: list[ValidationResult] = []

        async def unwrap(user_id: str, cid: UUID):
            source, validation = await operation(user_id, cid)
            validations.append(validation)
            return source

        result = await self._run(action, unwrap, correlation_id)
        if result.ok and validations:
            validation = validations[0]
            result.issues = [i for i in validation.issues if i.severity != "error"]
            if validation.warnings:
                result.message = self._validator.get_user_friendly_summary(
                    validation, result.data.name
                )
        return result

    async def create_income_source(
        self,
        draft: IncomeSourceDraft,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._income.create_income_source(user_id, draft, cid)

        return await self._run_validated("create_income_source", operation, correlation_id)

    async def update_income_source(
        self,
        source_id: UUID,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._income.update_income_source(
                source_id, user_id, changes, cid
            )

        return await self._run_validated("update_income_source", operation, correlation_id)

    async def list_income_sources(
        self,
        account_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._income.list_income_sources(user_id, account_id)

        return await self._run("list_income_sources", operation, correlation_id)

    async def record_commission(
        self,
        income_source_id: UUID,
        amount: Decimal,
        period_month: int,
        period_year: int,
        status: CommissionStatus = CommissionStatus.PENDING,
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._income.record_commission(
                user_id=user_id,
                income_source_id=income_source_id,
                amount=amount,
                period_month=period_month,
                period_year=period_year,
                status=status,
                notes=notes,
                correlation_id=cid,
            )

        return await self._run("record_commission", operation, correlation_id)

    async def update_commission(
        self,
        record_id: UUID,
        status: Optional[CommissionStatus] = None,
        amount: Optional[Decimal] = None,
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._income.update_commission(
                record_id,
                user_id,
                status=status,
                amount=amount,
                notes=notes,
                correlation_id=cid,
            )

        return await self._run("update_commission", operation, correlation_id)

    async def delete_commission(
        self,
        record_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._income.delete_commission(
                record_id, user_id, correlation_id=cid
            )

        return await self._run("delete_commission", operation, correlation_id)


class DebtFlow(_Flow):
    """Debts owed to the user."""

    def __init__(
        self,
        tracker: DebtTracker,
        session: SessionProvider,
        audit_logger: AuditLogger,
    ):
        super().__init__(session, audit_logger)
        self._tracker = tracker

    async def record_debt(
        self,
        person_name: str,
        amount: Decimal,
        description: Optional[str] = None,
        due_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._tracker.record_debt(
                user_id, person_name, amount, description, due_date, cid
            )

        return await self._run("record_debt", operation, correlation_id)

    async def list_debts(
        self,
        include_paid: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._tracker.list_debts(user_id, include_paid)

        return await self._run("list_debts", operation, correlation_id)

    async def mark_paid(
        self,
        debt_id: UUID,
        paid: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._tracker.mark_paid(
                debt_id, user_id, paid=paid, correlation_id=cid
            )

        return await self._run("mark_debt_paid", operation, correlation_id)

    async def delete_debt(
        self,
        debt_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._tracker.delete_debt(debt_id, user_id, cid)

        return await self._run("delete_debt", operation, correlation_id)


class CategoryFlow(_Flow):
    """Category listing and custom category creation."""

    def __init__(
        self,
        categories: CategoryService,
        session: SessionProvider,
        audit_logger: AuditLogger,
    ):
        super().__init__(session, audit_logger)
        self._categories = categories

    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._categories.list_categories(user_id, transaction_type)

        return await self._run("list_categories", operation, correlation_id)

    async def create_category(
        self,
        label: str,
        icon: str = "Tag",
        color: str = "#94A3B8",
        transaction_type: TransactionType = TransactionType.EXPENSE,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        async def operation(user_id: str, cid: UUID):
            return await self._categories.create_custom_category(
                user_id,
                label,
                icon=icon,
                color=color,
                transaction_type=transaction_type,
                correlation_id=cid,
            )

        return await self._run("create_category", operation, correlation_id)


class StatsFlow(_Flow):
    """Monthly totals and category breakdown for a ledger."""

    def __init__(
        self,
        stats: StatsService,
        session: SessionProvider,
        audit_logger: AuditLogger,
    ):
        super().__init__(session, audit_logger)
        self._stats = stats

    async def get_stats(
        self,
        account_id: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        """Stats response; data is the payload dict."""
        async def operation(user_id: str, cid: UUID):
            stats = await self._stats.get_stats(user_id, account_id=account_id, now=now)
            return stats.to_payload()

        return await self._run("get_stats", operation, correlation_id)


@dataclass
class AppComponents:
    """Everything one application instance needs, wired together."""
    storage: LedgerStorageInterface
    audit_logger: AuditLogger
    session: SessionProvider
    forecast: ForecastFlow
    transactions: TransactionFlow
    income: IncomeFlow
    debts: DebtFlow
    categories: CategoryFlow
    stats: StatsFlow
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(
    storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    session: Optional[SessionProvider] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        storage: Ledger storage to use. When None, the backend named by
                 STORAGE_BACKEND is built (in-memory by default).
        audit_storage: Where audit events are persisted. When None and
                       Google Sheets is the backend, the audit worksheet
                       is used; otherwise events are only logged locally.
        session: Session provider. Defaults to one with no user, so every
                 flow answers unauthorized until a real provider is given.

    Raises:
        ConnectionError: If Google Sheets is the configured backend but its
                         settings are missing or invalid
    """
    sheets_client = None

    if storage is None:
        if get_settings().app.storage_backend == "google_sheets":
            status = validate_all_settings()
            if not status["google_sheets"]:
                raise ConnectionError(
                    f"Google Sheets is not configured: {status['google_sheets_error']}"
                )
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsLedgerStorage(sheets_client)
            if audit_storage is None:
                audit_storage = GoogleSheetsAuditStorage(sheets_client)
        else:
            storage = InMemoryLedgerStorage()
            if audit_storage is None:
                audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    session = session or StaticSessionProvider()

    processor = RecurrenceProcessor(storage, audit_logger)
    averaging = IncomeAveragingService(storage, audit_logger)

    return AppComponents(
        storage=storage,
        audit_logger=audit_logger,
        session=session,
        forecast=ForecastFlow(
            ForecastGenerator(storage, audit_logger),
            storage,
            session,
            audit_logger,
        ),
        transactions=TransactionFlow(
            LedgerService(storage, processor, audit_logger),
            session,
            audit_logger,
        ),
        income=IncomeFlow(
            IncomeSourceService(storage, averaging=averaging, audit_logger=audit_logger),
            session,
            audit_logger,
        ),
        debts=DebtFlow(DebtTracker(storage, audit_logger), session, audit_logger),
        categories=CategoryFlow(CategoryService(storage, audit_logger), session, audit_logger),
        stats=StatsFlow(StatsService(storage), session, audit_logger),
        sheets_client=sheets_client,
    )
