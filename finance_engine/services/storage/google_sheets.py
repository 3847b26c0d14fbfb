"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted storage backend because:
1. Household members can view the ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for a personal ledger)
- No transactions: "insert instance, then advance template" is two writes
- Limited query capabilities (we filter in Python)

One worksheet per entity, one entity per row. List-valued fields
(pay_days) are JSON-serialized. Empty cells mean None.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional, Type
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_engine.config import get_settings
from finance_engine.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finance_engine.models.ledger import (
    CategoryDefinition,
    CommissionRecord,
    Debt,
    IncomeSource,
    Transaction,
    TransactionType,
)
from finance_engine.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


INCOME_SOURCE_COLUMNS = [
    "id",
    "user_id",
    "account_id",
    "name",
    "type",
    "base_amount",
    "frequency",
    "pay_days",
    "min_expected",
    "max_expected",
    "average_last_3_months",
    "is_active",
    "include_in_forecast",
    "created_at",
    "updated_at",
]

COMMISSION_COLUMNS = [
    "id",
    "income_source_id",
    "user_id",
    "amount",
    "period_month",
    "period_year",
    "status",
    "notes",
    "created_at",
    "confirmed_at",
    "paid_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "account_id",
    "amount",
    "title",
    "type",
    "category",
    "date",
    "created_at",
    "is_recurring",
    "recurrence_period",
    "next_occurrence",
    "parent_id",
]

DEBT_COLUMNS = [
    "id",
    "user_id",
    "person_name",
    "amount",
    "description",
    "due_date",
    "is_paid",
    "paid_at",
    "created_at",
]

CATEGORY_COLUMNS = [
    "id",
    "name",
    "label",
    "icon",
    "color",
    "type",
    "user_id",
]

MEMBERSHIP_COLUMNS = [
    "account_id",
    "user_id",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "user_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

JSON_COLUMNS = {"pay_days"}


def model_to_row(model: BaseModel, columns: list[str]) -> list:
    """Convert a model to a spreadsheet row in column order."""
    values = model.model_dump(mode="json")
    row = []
    for column in columns:
        value = values.get(column)
        if column in JSON_COLUMNS:
            row.append(json.dumps(value if value is not None else []))
        elif value is None:
            row.append("")
        else:
            row.append(str(value))
    return row


def row_to_model(row: list, columns: list[str], model_cls: Type[BaseModel]) -> BaseModel:
    """Convert a spreadsheet row back into a model (missing cells -> None)."""
    def safe_get(index: int) -> str:
        try:
            return row[index]
        except IndexError:
            return ""

    data = {}
    for index, column in enumerate(columns):
        cell = safe_get(index)
        if column in JSON_COLUMNS:
            data[column] = json.loads(cell) if cell else []
        elif cell == "":
            continue
        else:
            data[column] = cell
    return model_cls.model_validate(data)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Every read pulls the whole worksheet and filters in Python.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # ------------------------------------------------------------------
    # Generic row helpers
    # ------------------------------------------------------------------

    def _sheet(self, kind: str) -> gspread.Worksheet:
        settings = self._client.settings
        titles = {
            "income_sources": (settings.income_sources_sheet_name, INCOME_SOURCE_COLUMNS),
            "commissions": (settings.commissions_sheet_name, COMMISSION_COLUMNS),
            "transactions": (settings.transactions_sheet_name, TRANSACTION_COLUMNS),
            "debts": (settings.debts_sheet_name, DEBT_COLUMNS),
            "categories": (settings.categories_sheet_name, CATEGORY_COLUMNS),
            "memberships": (settings.memberships_sheet_name, MEMBERSHIP_COLUMNS),
        }
        title, columns = titles[kind]
        return self._client.get_worksheet(title, columns)

    def _load(
        self,
        kind: str,
        columns: list[str],
        model_cls: Type[BaseModel],
    ) -> list:
        try:
            rows = self._sheet(kind).get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to read {kind}: {e}")

        models = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                models.append(row_to_model(row, columns, model_cls))
            except Exception:
                continue  # Skip malformed rows
        return models

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _append(self, kind: str, model: BaseModel, columns: list[str]) -> bool:
        try:
            sheet = self._sheet(kind)
            sheet.append_row(model_to_row(model, columns), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save {kind}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(NotFoundError),
        reraise=True,
    )
    async def _replace(self, kind: str, model_id: UUID, model: BaseModel, columns: list[str]) -> bool:
        try:
            sheet = self._sheet(kind)
            all_rows = sheet.get_all_values()

            # Row 1 is the header
            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == str(model_id):
                    sheet.update(
                        range_name=f"A{idx}",
                        values=[model_to_row(model, columns)],
                        value_input_option="RAW",
                    )
                    return True

            raise NotFoundError(f"{kind} row not found: {model_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {kind}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(NotFoundError),
        reraise=True,
    )
    async def _remove(self, kind: str, model_id: UUID) -> bool:
        try:
            sheet = self._sheet(kind)
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == str(model_id):
                    sheet.delete_rows(idx)
                    return True

            raise NotFoundError(f"{kind} row not found: {model_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {kind}: {e}")

    # ------------------------------------------------------------------
    # Income sources
    # ------------------------------------------------------------------

    async def save_income_source(self, source: IncomeSource) -> bool:
        return await self._append("income_sources", source, INCOME_SOURCE_COLUMNS)

    async def get_income_source(
        self,
        source_id: UUID,
        user_id: str,
    ) -> Optional[IncomeSource]:
        for source in self._load("income_sources", INCOME_SOURCE_COLUMNS, IncomeSource):
            if source.id == source_id and source.user_id == user_id:
                return source
        return None

    async def update_income_source(self, source: IncomeSource) -> bool:
        return await self._replace("income_sources", source.id, source, INCOME_SOURCE_COLUMNS)

    async def list_income_sources(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        active_only: bool = False,
        forecast_only: bool = False,
    ) -> list[IncomeSource]:
        sources = []
        for source in self._load("income_sources", INCOME_SOURCE_COLUMNS, IncomeSource):
            if account_id is None:
                if source.user_id != user_id or source.account_id is not None:
                    continue
            elif source.account_id != account_id:
                continue
            if active_only and not source.is_active:
                continue
            if forecast_only and not source.include_in_forecast:
                continue
            sources.append(source)

        sources.sort(key=lambda s: s.created_at)
        return sources

    # ------------------------------------------------------------------
    # Commission records
    # ------------------------------------------------------------------

    async def save_commission(self, record: CommissionRecord) -> bool:
        return await self._append("commissions", record, COMMISSION_COLUMNS)

    async def get_commission(
        self,
        record_id: UUID,
        user_id: str,
    ) -> Optional[CommissionRecord]:
        for record in self._load("commissions", COMMISSION_COLUMNS, CommissionRecord):
            if record.id == record_id and record.user_id == user_id:
                return record
        return None

    async def update_commission(self, record: CommissionRecord) -> bool:
        return await self._replace("commissions", record.id, record, COMMISSION_COLUMNS)

    async def delete_commission(self, record_id: UUID) -> bool:
        return await self._remove("commissions", record_id)

    async def list_commissions(
        self,
        user_id: str,
        income_source_id: Optional[UUID] = None,
        created_from: Optional[datetime] = None,
    ) -> list[CommissionRecord]:
        records = [
            record
            for record in self._load("commissions", COMMISSION_COLUMNS, CommissionRecord)
            if record.user_id == user_id
            and (income_source_id is None or record.income_source_id == income_source_id)
            and (created_from is None or record.created_at >= created_from)
        ]
        records.sort(key=lambda r: (r.period_year, r.period_month), reverse=True)
        return records

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def save_transaction(self, transaction: Transaction) -> bool:
        return await self._append("transactions", transaction, TRANSACTION_COLUMNS)

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        for tx in self._load("transactions", TRANSACTION_COLUMNS, Transaction):
            if tx.id == transaction_id:
                return tx
        return None

    async def update_transaction(self, transaction: Transaction) -> bool:
        return await self._replace("transactions", transaction.id, transaction, TRANSACTION_COLUMNS)

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        return await self._remove("transactions", transaction_id)

    async def list_transactions(
        self,
        user_id: str,
        account_id: Optional[str] = None,
        transaction_type: Optional[TransactionType] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Transaction]:
        transactions = []
        for tx in self._load("transactions", TRANSACTION_COLUMNS, Transaction):
            if account_id is None:
                if tx.user_id != user_id or tx.account_id is not None:
                    continue
            elif tx.account_id != account_id:
                continue
            if transaction_type and tx.type != transaction_type:
                continue
            if date_from and tx.date < date_from:
                continue
            if date_to and tx.date > date_to:
                continue
            transactions.append(tx)

        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def list_due_recurring(
        self,
        user_id: str,
        as_of: datetime,
    ) -> list[Transaction]:
        return [
            tx
            for tx in self._load("transactions", TRANSACTION_COLUMNS, Transaction)
            if tx.user_id == user_id
            and tx.is_recurring
            and tx.next_occurrence is not None
            and tx.next_occurrence <= as_of
        ]

    async def sum_transactions(
        self,
        user_id: str,
        account_id: Optional[str],
        transaction_type: TransactionType,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Decimal:
        transactions = await self.list_transactions(
            user_id=user_id,
            account_id=account_id,
            transaction_type=transaction_type,
            date_from=date_from,
            date_to=date_to,
        )
        return sum((tx.amount for tx in transactions), Decimal("0"))

    async def count_active_months(
        self,
        user_id: str,
        account_id: Optional[str],
        transaction_type: TransactionType,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> int:
        transactions = await self.list_transactions(
            user_id=user_id,
            account_id=account_id,
            transaction_type=transaction_type,
            date_from=date_from,
            date_to=date_to,
        )
        return len({(tx.date.year, tx.date.month) for tx in transactions})

    # ------------------------------------------------------------------
    # Debts
    # ------------------------------------------------------------------

    async def save_debt(self, debt: Debt) -> bool:
        return await self._append("debts", debt, DEBT_COLUMNS)

    async def get_debt(self, debt_id: UUID, user_id: str) -> Optional[Debt]:
        for debt in self._load("debts", DEBT_COLUMNS, Debt):
            if debt.id == debt_id and debt.user_id == user_id:
                return debt
        return None

    async def update_debt(self, debt: Debt) -> bool:
        return await self._replace("debts", debt.id, debt, DEBT_COLUMNS)

    async def delete_debt(self, debt_id: UUID) -> bool:
        return await self._remove("debts", debt_id)

    async def list_debts(
        self,
        user_id: str,
        include_paid: bool = True,
    ) -> list[Debt]:
        debts = [
            debt
            for debt in self._load("debts", DEBT_COLUMNS, Debt)
            if debt.user_id == user_id and (include_paid or not debt.is_paid)
        ]
        debts.sort(key=lambda d: d.created_at, reverse=True)
        return debts

    # ------------------------------------------------------------------
    # Categories & accounts
    # ------------------------------------------------------------------

    async def list_custom_categories(self, user_id: str) -> list[CategoryDefinition]:
        return [
            category
            for category in self._load("categories", CATEGORY_COLUMNS, CategoryDefinition)
            if category.user_id == user_id
        ]

    async def save_custom_category(self, category: CategoryDefinition) -> bool:
        existing = await self.list_custom_categories(category.user_id)
        if any(c.name == category.name for c in existing):
            raise DuplicateError(f"Category already exists: {category.name}")
        return await self._append("categories", category, CATEGORY_COLUMNS)

    async def is_account_member(self, account_id: str, user_id: str) -> bool:
        try:
            rows = self._sheet("memberships").get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read memberships: {e}")
        return any(
            len(row) >= 2 and row[0] == account_id and row[1] == user_id
            for row in rows
        )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _get_sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            user_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._get_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            all_rows = self._get_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and len(row) > 7 and row[7] == str(correlation_id):
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue

        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            all_rows = self._get_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
