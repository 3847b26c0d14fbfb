"""
Category Catalog

The built-in categories plus whatever the user has added. User entries
sit next to the defaults and never replace one: when ids collide, the
default is the one that is found.
"""

import re
from typing import Optional
from uuid import UUID

from finance_engine.audit import AuditLogger
from finance_engine.models.ledger import CategoryDefinition, TransactionType
from finance_engine.services.storage import LedgerStorageInterface


def _default(id: str, label: str, icon: str, color: str, type: TransactionType):
    return CategoryDefinition(
        id=id,
        name=id,
        label=label,
        icon=icon,
        color=color,
        type=type,
        is_default=True,
    )


DEFAULT_CATEGORIES: list[CategoryDefinition] = [
    _default("food", "Food", "Utensils", "#F97316", TransactionType.EXPENSE),
    _default("transport", "Transport", "Car", "#3B82F6", TransactionType.EXPENSE),
    _default("entertainment", "Entertainment", "Gamepad2", "#A855F7", TransactionType.EXPENSE),
    _default("health", "Health", "HeartPulse", "#EF4444", TransactionType.EXPENSE),
    _default("shopping", "Shopping", "ShoppingBag", "#EC4899", TransactionType.EXPENSE),
    _default("utilities", "Utilities", "Zap", "#EAB308", TransactionType.EXPENSE),
    _default("housing", "Housing", "Home", "#6366F1", TransactionType.EXPENSE),
    _default("education", "Education", "GraduationCap", "#14B8A6", TransactionType.EXPENSE),
    _default("salary", "Salary", "Banknote", "#22C55E", TransactionType.INCOME),
    _default("freelance", "Freelance", "Laptop", "#06B6D4", TransactionType.INCOME),
    _default("investment", "Investment", "TrendingUp", "#10B981", TransactionType.INCOME),
    _default("other", "Other", "Box", "#64748B", TransactionType.EXPENSE),
]


def slugify_category_name(label: str) -> str:
    """'Pet Care' -> 'pet_care'"""
    return re.sub(r"\s+", "_", label.strip().lower())


def merge_categories(
    defaults: list[CategoryDefinition],
    custom: list[CategoryDefinition],
) -> list[CategoryDefinition]:
    """
    Defaults first, in their own order, then the user's entries in theirs.

    Nothing is dropped: a custom entry sharing an id with a default is
    still listed after it, and find_category returns the default.
    """
    return list(defaults) + list(custom)


def find_category(
    categories: list[CategoryDefinition],
    category_id: str,
) -> Optional[CategoryDefinition]:
    """First entry with this id, so defaults win over custom entries."""
    for category in categories:
        if category.id == category_id:
            return category
    return None


class CategoryService:
    """Lists and creates categories for a user."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def list_categories(
        self,
        user_id: str,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[CategoryDefinition]:
        custom = await self._storage.list_custom_categories(user_id)
        merged = merge_categories(DEFAULT_CATEGORIES, custom)
        if transaction_type is not None:
            merged = [c for c in merged if c.type == transaction_type]
        return merged

    async def create_custom_category(
        self,
        user_id: str,
        label: str,
        icon: str = "Tag",
        color: str = "#94A3B8",
        transaction_type: TransactionType = TransactionType.EXPENSE,
        correlation_id: Optional[UUID] = None,
    ) -> CategoryDefinition:
        """
        Create a user category. Its id and name are the slugified label.

        Raises:
            DuplicateError: If the user already has a category with this name
            pydantic.ValidationError: If the label, icon or color is invalid
        """
        name = slugify_category_name(label)
        category = CategoryDefinition(
            id=name,
            name=name,
            label=label.strip(),
            icon=icon,
            color=color,
            type=transaction_type,
            is_default=False,
            user_id=user_id,
        )
        await self._storage.save_custom_category(category)

        if self._audit_logger:
            await self._audit_logger.log_category_created(
                category_id=category.id,
                user_id=user_id,
                correlation_id=correlation_id,
            )

        return category
