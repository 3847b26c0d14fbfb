"""
Finance Engine

Cash-flow forecasting and budgeting for a personal or shared ledger:
income sources with payday schedules, recurring transactions, variable
income averages, debts and categories.

DESIGN PRINCIPLES:
1. Money is Decimal end to end
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Engine Team"
