"""
Request Validation Gate

DESIGN DECISION: Validation happens before any transaction opens.
A request that fails here never reaches the store.

Two steps:

STEP 1 - PARSING:
- Raw mappings are parsed into request models
- Type conformance (an amount must be a number, an id an integer)

STEP 2 - STRUCTURAL CHECKS:
- Required field presence (category, description, amount)
- Non-empty, bounded description
- Finite amount with a bounded number of decimal places

IMPORTANT: Validation NEVER silently fixes issues.
It reports every issue it finds, then raises once.

A validator is an explicit object handed to each service instance;
there is no module-level validator.
"""

from typing import Any, Mapping, Optional, TypeVar, Union

import pydantic

from expense_ledger.config import AppSettings, get_settings
from expense_ledger.errors import ValidationError
from expense_ledger.models.expense import (
    AddExpenseRequest,
    ExpenseRequest,
    UpdateExpenseRequest,
    ValidationIssue,
    ValidationResult,
)


RequestT = TypeVar("RequestT", bound=ExpenseRequest)


class ExpenseRequestValidator:
    """Validates add and update requests."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def parse(
        self,
        payload: Union[Mapping[str, Any], ExpenseRequest],
        model: type[RequestT],
    ) -> RequestT:
        """
        Parse a raw mapping into ``model``.

        Model instances of the right type are passed through.

        Raises:
            ValidationError: On type conformance failures
        """
        if isinstance(payload, model):
            return payload
        if isinstance(payload, ExpenseRequest):
            payload = payload.model_dump()
        try:
            return model.model_validate(payload)
        except pydantic.ValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in err["loc"]) or "body",
                    issue_type=err["type"],
                    message=err["msg"],
                    severity="error",
                )
                for err in e.errors()
            ]
            raise ValidationError(_summarize(issues), issues=issues) from e

    def check(self, request: ExpenseRequest) -> ValidationResult:
        """
        Run the structural checks.

        Returns: ValidationResult listing every issue found
        """
        issues = []

        if request.category_id is None:
            issues.append(ValidationIssue(
                field="categoryId",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))
        elif request.category_id <= 0:
            issues.append(ValidationIssue(
                field="categoryId",
                issue_type="invalid_value",
                message="Category must be a positive id",
                severity="error",
            ))

        if request.description is None or not request.description:
            issues.append(ValidationIssue(
                field="expense",
                issue_type="missing",
                message="Description is required",
                severity="error",
            ))
        elif len(request.description) > self._settings.max_description_length:
            issues.append(ValidationIssue(
                field="expense",
                issue_type="too_long",
                message=(
                    f"Description is longer than "
                    f"{self._settings.max_description_length} characters"
                ),
                severity="error",
            ))

        if request.amount is None:
            issues.append(ValidationIssue(
                field="total",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif not request.amount.is_finite():
            issues.append(ValidationIssue(
                field="total",
                issue_type="invalid_value",
                message="Amount must be a finite number",
                severity="error",
            ))
        else:
            exponent = request.amount.as_tuple().exponent
            if -exponent > self._settings.amount_decimal_places:
                issues.append(ValidationIssue(
                    field="total",
                    issue_type="invalid_precision",
                    message=(
                        f"Amount has more than "
                        f"{self._settings.amount_decimal_places} decimal places"
                    ),
                    severity="error",
                ))
            if request.amount < 0:
                # Negative amounts are stored as given (refunds, corrections)
                issues.append(ValidationIssue(
                    field="total",
                    issue_type="negative_amount",
                    message="Amount is negative",
                    severity="warning",
                ))

        has_errors = any(issue.severity == "error" for issue in issues)
        return ValidationResult(is_valid=not has_errors, issues=issues)

    def validate(
        self,
        payload: Union[Mapping[str, Any], ExpenseRequest],
        model: type[RequestT],
    ) -> RequestT:
        """
        Parse and check a request.

        Raises:
            ValidationError: Carrying every error-level issue found
        """
        request = self.parse(payload, model)
        result = self.check(request)
        if not result.is_valid:
            raise ValidationError(_summarize(result.errors), issues=result.errors)
        return request

    def validate_add(self, payload: Union[Mapping[str, Any], ExpenseRequest]) -> AddExpenseRequest:
        return self.validate(payload, AddExpenseRequest)

    def validate_update(self, payload: Union[Mapping[str, Any], ExpenseRequest]) -> UpdateExpenseRequest:
        return self.validate(payload, UpdateExpenseRequest)


def _summarize(issues: list[ValidationIssue]) -> str:
    return "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
