"""Debts owed to the user."""

from finance_engine.debts.tracker import DebtTracker

__all__ = ["DebtTracker"]
