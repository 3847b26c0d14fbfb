"""
Configuration Management for the Finance Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Forecast constants (lookback windows, fallback pay days, horizon) live next
to the storage backend settings so every tunable number is visible in one
place and validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ForecastSettings(BaseSettings):
    """Forecast and budgeting engine tunables."""

    model_config = SettingsConfigDict(
        env_prefix="FORECAST_",
        extra="ignore"
    )

    default_months_ahead: int = Field(
        default=3,
        ge=1,
        le=24,
        description="Projection horizon when the caller does not pass one"
    )
    expense_lookback_months: int = Field(
        default=3,
        ge=1,
        le=24,
        description="Trailing window used for the average monthly expense"
    )
    average_window_months: int = Field(
        default=3,
        ge=1,
        le=24,
        description="Trailing window used for variable income averages"
    )
    fallback_days_until_pay: int = Field(
        default=30,
        ge=1,
        description="Days until next pay when no payday can be found"
    )
    days_per_month_for_daily_average: int = Field(
        default=30,
        ge=28,
        le=31,
        description="Divisor used for the reported average daily expense"
    )
    default_pay_days: list[int] = Field(
        default_factory=lambda: [15, 30],
        description="Pay days assigned to a new income source"
    )
    weekly_pay_days: list[int] = Field(
        default_factory=lambda: [7, 14, 21, 28],
        description="Approximate slots used for weekly income"
    )
    monthly_default_pay_day: int = Field(
        default=30,
        ge=1,
        le=31,
        description="Pay day used for a monthly source without pay days"
    )
    transaction_history_months: int = Field(
        default=6,
        ge=1,
        description="How far back the transaction list reaches"
    )

    @field_validator('default_pay_days', 'weekly_pay_days')
    @classmethod
    def validate_day_numbers(cls, v: list[int]) -> list[int]:
        """Every configured day must be a valid day of month."""
        for day in v:
            if day < 1 or day > 31:
                raise ValueError(f"Pay day out of range (1-31): {day}")
        return v


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    income_sources_sheet_name: str = Field(default="IncomeSources")
    commissions_sheet_name: str = Field(default="Commissions")
    transactions_sheet_name: str = Field(default="Transactions")
    debts_sheet_name: str = Field(default="Debts")
    categories_sheet_name: str = Field(default="Categories")
    memberships_sheet_name: str = Field(default="AccountMembers")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which ledger storage backend to build"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a missing Sheets configuration
    # does not break an in-memory setup.

    @property
    def forecast(self) -> ForecastSettings:
        return ForecastSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.forecast
        results["forecast"] = True
    except Exception as e:
        results["forecast"] = False
        results["forecast_error"] = str(e)

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
