"""
Expense Ledger

Record, edit, delete and summarize personal expense entries.

DESIGN PRINCIPLES:
1. Every write is one transaction: all of it commits or none of it does
2. Amounts are exact decimals, never binary floats
3. A caller can only change their own expenses
4. Fail early, fail visibly: bad input never reaches the store
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Ledger Team"
