"""
Forecast Generator

Projects a ledger's balance forward, month by month, from its configured
income sources and its recent spending.

DESIGN DECISION: Two balance figures are produced per month and they are
NOT reconciled:
1. Per-payday projected_balance: an intra-month walk that charges a
   pro-rated daily expense between paydays and adds each payday's income.
2. Month-level projected_balance: carried balance + month income - the
   average monthly expense. Only this figure is carried into next month.

The walk ignores the spending after the last payday of the month, so the
two figures can differ. Both are part of the response.

Steps:
1. Average monthly expense over the trailing window, divided by the
   number of months that actually had expenses
2. Current balance from the current calendar month
3. Month projections (current month first)
4. Next payday lookahead
5. Smart daily budget
"""

import calendar
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from finance_engine.audit import AuditLogger
from finance_engine.config import ForecastSettings, get_settings
from finance_engine.forecast.budget import calculate_daily_budget
from finance_engine.models.forecast import (
    ForecastDay,
    ForecastMonth,
    ForecastResult,
    IncomeDetail,
    IncomeSourceSummary,
    NextPayday,
    PaydaySource,
)
from finance_engine.models.ledger import IncomeSource, PayFrequency, TransactionType
from finance_engine.periods import (
    add_months,
    clamp_day,
    days_in_month,
    iter_months,
    month_end,
    month_start,
)
from finance_engine.recurrence.ledger import ensure_ledger_access
from finance_engine.services.storage import LedgerStorageInterface, StorageError
from finance_engine.validation import InvalidRequestError


class ForecastGenerationError(Exception):
    """A forecast could not be produced; no partial result exists."""
    pass


def payment_schedule(
    source: IncomeSource,
    settings: ForecastSettings,
) -> tuple[list[int], int]:
    """
    Resolve a source's pay days for one month and how many payments its
    monthly amount is split across.

    Weekly income is approximated with fixed slots rather than a true
    7-day cadence. A biweekly source always splits in two, even when only
    one pay day is configured.

    Returns: (days_of_month, payment_count)
    """
    if source.frequency == PayFrequency.WEEKLY:
        days = list(settings.weekly_pay_days)
        return days, len(days)
    if source.frequency == PayFrequency.BIWEEKLY:
        return source.pay_days[:2], 2
    if source.frequency == PayFrequency.MONTHLY:
        first = source.pay_days[0] if source.pay_days else settings.monthly_default_pay_day
        return [first], 1
    return list(source.pay_days), len(source.pay_days)


def project_month(
    sources: list[IncomeSource],
    year: int,
    month: int,
    opening_balance: Decimal,
    avg_monthly_expense: Decimal,
    settings: ForecastSettings,
) -> ForecastMonth:
    """Build one month of the projection starting from `opening_balance`."""
    month_length = days_in_month(year, month)
    buckets: dict[int, ForecastDay] = {}
    monthly_income = Decimal("0")

    for source in sources:
        days, count = payment_schedule(source, settings)
        if count == 0:
            continue
        per_payment = source.effective_amount / count

        for day in days:
            actual_day = clamp_day(day, year, month)
            payday = buckets.get(actual_day)
            if payday is None:
                payday = ForecastDay(
                    date=date(year, month, actual_day),
                    day_of_month=actual_day,
                )
                buckets[actual_day] = payday

            payday.income += per_payment
            payday.income_details.append(IncomeDetail(
                name=source.name,
                amount=per_payment,
                type=source.type,
            ))
            monthly_income += per_payment

    paydays = sorted(buckets.values(), key=lambda p: p.day_of_month)

    # Intra-month walk
    daily_expense = avg_monthly_expense / month_length
    day_balance = opening_balance
    previous_day = 0
    for payday in paydays:
        day_balance -= daily_expense * (payday.day_of_month - previous_day)
        day_balance += payday.income
        payday.projected_balance = day_balance
        previous_day = payday.day_of_month

    return ForecastMonth(
        month=calendar.month_name[month],
        month_num=month,
        year=year,
        total_income=monthly_income,
        projected_expenses=avg_monthly_expense,
        projected_balance=opening_balance + monthly_income - avg_monthly_expense,
        paydays=paydays,
    )


def find_next_payday(
    sources: list[IncomeSource],
    today: date,
) -> Optional[NextPayday]:
    """
    Nearest pay day strictly after today's day of month.

    Uses each source's configured pay_days as-is (weekly slots are not
    synthesized here). Sources paying on the same day are merged. When
    nothing is left this month, wraps to the smallest pay day overall.
    """
    candidate: Optional[NextPayday] = None

    for source in sources:
        for day in source.pay_days:
            if day <= today.day:
                continue
            entry = PaydaySource(name=source.name, amount=source.effective_amount)
            if candidate is None or day < candidate.day:
                candidate = NextPayday(
                    day=day,
                    days_until=day - today.day,
                    sources=[entry],
                )
            elif day == candidate.day:
                candidate.sources.append(entry)

    if candidate is not None:
        return candidate

    all_days = [day for source in sources for day in source.pay_days]
    if not all_days:
        return None

    first_day = min(all_days)
    days_left = days_in_month(today.year, today.month) - today.day
    return NextPayday(
        day=first_day,
        days_until=days_left + first_day,
        sources=[
            PaydaySource(name=s.name, amount=s.effective_amount)
            for s in sources
            if first_day in s.pay_days
        ],
    )


class ForecastGenerator:
    """
    Produces a ForecastResult for a personal or shared ledger.

    Storage failures while gathering inputs surface as
    ForecastGenerationError; nothing is returned on failure.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._settings = get_settings().forecast

    async def _average_monthly_expense(
        self,
        user_id: str,
        account_id: Optional[str],
        now: datetime,
    ) -> Decimal:
        window_start = add_months(now, -self._settings.expense_lookback_months)
        total = await self._storage.sum_transactions(
            user_id, account_id, TransactionType.EXPENSE, date_from=window_start
        )
        months = await self._storage.count_active_months(
            user_id, account_id, TransactionType.EXPENSE, date_from=window_start
        )
        if months == 0:
            return Decimal("0")
        return total / months

    async def _current_balance(
        self,
        user_id: str,
        account_id: Optional[str],
        now: datetime,
    ) -> Decimal:
        start, end = month_start(now), month_end(now)
        income = await self._storage.sum_transactions(
            user_id, account_id, TransactionType.INCOME, date_from=start, date_to=end
        )
        expense = await self._storage.sum_transactions(
            user_id, account_id, TransactionType.EXPENSE, date_from=start, date_to=end
        )
        return income - expense

    async def generate_forecast(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        months_ahead: Optional[int] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ForecastResult:
        """
        Generate the forecast for one ledger.

        Args:
            user_id: Requesting user
            account_id: Shared ledger to forecast (None = personal ledger)
            months_ahead: Projection horizon, current month included
            now: Reference instant (defaults to the current time)
            correlation_id: For audit tracking

        Raises:
            InvalidRequestError: If months_ahead is negative
            NotFoundError: If the user isn't a member of the shared ledger
            ForecastGenerationError: If the inputs couldn't be loaded
        """
        now = now or datetime.now()
        months_ahead = months_ahead or self._settings.default_months_ahead
        if months_ahead < 1:
            raise InvalidRequestError("months_ahead must be at least 1")

        await ensure_ledger_access(self._storage, user_id, account_id)

        try:
            sources = await self._storage.list_income_sources(
                user_id=user_id,
                account_id=account_id,
                active_only=True,
                forecast_only=True,
            )
            avg_monthly_expense = await self._average_monthly_expense(
                user_id, account_id, now
            )
            current_balance = await self._current_balance(user_id, account_id, now)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_forecast_failed(
                    user_id=user_id,
                    account_id=account_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise ForecastGenerationError("Could not load forecast inputs") from e

        forecast = []
        running_balance = current_balance
        for year, month in iter_months(now, months_ahead):
            projected = project_month(
                sources,
                year,
                month,
                running_balance,
                avg_monthly_expense,
                self._settings,
            )
            forecast.append(projected)
            running_balance = projected.projected_balance

        next_payday = find_next_payday(sources, now.date())
        days_until_next_pay = (
            next_payday.days_until if next_payday
            else self._settings.fallback_days_until_pay
        )

        result = ForecastResult(
            user_id=user_id,
            account_id=account_id,
            generated_at=now,
            current_balance=current_balance,
            avg_monthly_expense=avg_monthly_expense,
            avg_daily_expense=(
                avg_monthly_expense / self._settings.days_per_month_for_daily_average
            ),
            smart_daily_budget=calculate_daily_budget(
                current_balance, days_until_next_pay
            ),
            days_until_next_pay=days_until_next_pay,
            next_payday=next_payday,
            income_sources=[
                IncomeSourceSummary(
                    id=s.id,
                    name=s.name,
                    type=s.type,
                    amount=s.effective_amount,
                    frequency=s.frequency,
                    pay_days=list(s.pay_days),
                )
                for s in sources
            ],
            forecast=forecast,
        )

        if self._audit_logger:
            await self._audit_logger.log_forecast_generated(
                user_id=user_id,
                account_id=account_id,
                months=months_ahead,
                source_count=len(sources),
                correlation_id=correlation_id,
            )

        return result
