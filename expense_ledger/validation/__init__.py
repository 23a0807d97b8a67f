"""Request validation package."""

from expense_ledger.validation.validator import ExpenseRequestValidator

__all__ = ["ExpenseRequestValidator"]
