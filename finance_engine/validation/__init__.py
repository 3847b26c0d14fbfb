"""Validation package."""

from finance_engine.validation.validator import (
    IncomeSourceValidationError,
    IncomeSourceValidator,
    InvalidRequestError,
)

__all__ = ["IncomeSourceValidationError", "IncomeSourceValidator", "InvalidRequestError"]
