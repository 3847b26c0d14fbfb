"""Ledger statistics."""

from finance_engine.stats.service import StatsService

__all__ = ["StatsService"]
