"""
Core Data Models for the Expense Ledger

These models define the strict schemas for data flowing through the ledger:
1. The persisted Expense record
2. Inbound request shapes (add / update)
3. Outbound response shapes
4. Validation issues reported by the validation gate
5. The per-call request context carrying caller identity

DESIGN DECISION: Request models are deliberately lenient (every field optional).
Presence and shape checks belong to the validation gate, which reports
every problem at once instead of failing on the first missing field.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from expense_ledger.models.money import Money


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_epoch_millis(moment: datetime) -> int:
    """Integer Unix-epoch milliseconds. Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(millis: int) -> datetime:
    """Aware UTC datetime for integer Unix-epoch milliseconds."""
    return EPOCH + timedelta(milliseconds=millis)


# =============================================================================
# PERSISTED RECORD
# =============================================================================

class Expense(BaseModel):
    """
    A single expense entry.

    ``id`` is assigned by the store on creation and is None before that.
    ``owner_id`` and ``created_at_millis`` never change after creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = Field(
        default=None,
        gt=0,
        description="Store-assigned identity"
    )
    owner_id: int = Field(
        ...,
        description="User who created the expense"
    )
    category_id: int = Field(
        ...,
        description="Reference to an external category"
    )
    description: str = Field(
        ...,
        min_length=1,
        description="Free-form description"
    )
    amount: Money = Field(
        ...,
        description="Exact amount"
    )
    created_at_millis: int = Field(
        ...,
        ge=0,
        description="Creation time, Unix epoch milliseconds"
    )

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return Money.of(v)

    @property
    def created_at(self) -> datetime:
        return from_epoch_millis(self.created_at_millis)


# =============================================================================
# REQUESTS
# =============================================================================

class ExpenseRequest(BaseModel):
    """
    Fields a caller may set on an expense.

    Keys follow the public JSON shape (``categoryId``, ``expense``, ``total``);
    Python attribute names are accepted as well.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    category_id: Optional[int] = Field(
        default=None,
        alias="categoryId",
        description="Category reference"
    )
    description: Optional[str] = Field(
        default=None,
        alias="expense",
        description="What the money was spent on"
    )
    amount: Optional[Decimal] = Field(
        default=None,
        alias="total",
        description="Amount spent"
    )


class AddExpenseRequest(ExpenseRequest):
    """Request to record a new expense."""


class UpdateExpenseRequest(ExpenseRequest):
    """Request to replace the mutable fields of an existing expense."""


# =============================================================================
# RESPONSES
# =============================================================================

class MessageResponse(BaseModel):
    """Confirmation or error message."""

    message: str


class FilterExpenseResponse(BaseModel):
    """Result of a windowed aggregation."""

    filter: str
    total: float


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'too_long')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one request."""

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

class RequestContext(BaseModel):
    """
    Per-call execution context.

    ``user_id`` is the authenticated caller, set by the upstream auth gate.
    ``correlation_id`` ties together every audit event of one call.
    """
    model_config = ConfigDict(frozen=True)

    user_id: Optional[int] = None
    correlation_id: UUID = Field(default_factory=uuid4)
