"""Aggregation query package."""

from expense_ledger.queries.window import (
    DateWindow,
    ExpenseFilter,
    parse_calendar_date,
    parse_filter,
    resolve_window,
    subtract_months,
)

__all__ = [
    "DateWindow",
    "ExpenseFilter",
    "parse_calendar_date",
    "parse_filter",
    "resolve_window",
    "subtract_months",
]
