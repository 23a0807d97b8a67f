"""
Data Models Package

This package contains all Pydantic models used by the expense ledger.
All data flowing through the ledger must conform to these schemas.
"""

from expense_ledger.models.money import Money
from expense_ledger.models.expense import (
    AddExpenseRequest,
    Expense,
    ExpenseRequest,
    FilterExpenseResponse,
    MessageResponse,
    RequestContext,
    UpdateExpenseRequest,
    ValidationIssue,
    ValidationResult,
    from_epoch_millis,
    to_epoch_millis,
    utc_now,
)
from expense_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Money
    "Money",
    # Expense models
    "AddExpenseRequest",
    "Expense",
    "ExpenseRequest",
    "FilterExpenseResponse",
    "MessageResponse",
    "RequestContext",
    "UpdateExpenseRequest",
    "ValidationIssue",
    "ValidationResult",
    "from_epoch_millis",
    "to_epoch_millis",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
