"""Transaction category catalog."""

from finance_engine.categories.catalog import (
    DEFAULT_CATEGORIES,
    CategoryService,
    find_category,
    merge_categories,
    slugify_category_name,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "CategoryService",
    "find_category",
    "merge_categories",
    "slugify_category_name",
]
