"""
Ledger Endpoints

The boundary between the ledger and whatever routes requests to it.
Each method returns a status category plus a payload, never raises:

- add            → created      {"message": "successfully add new expense"}
- update         → ok           {"message": "successfully updated expense"}
- delete         → no_content   {"message": "successfully deleted expense"}
- find_by_filter → ok           {"filter": ..., "total": ...}

Failures map to the category their error class carries. Only the error
message crosses the boundary.
"""

from datetime import datetime
from typing import Any, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, Field

from expense_ledger.audit import AuditLogger
from expense_ledger.config import Settings
from expense_ledger.errors import LedgerError, StatusCategory, ValidationError
from expense_ledger.ledger import LedgerService, create_ledger_service
from expense_ledger.models.expense import MessageResponse, RequestContext, utc_now


logger = structlog.get_logger(__name__)


class EndpointResponse(BaseModel):
    """Status category plus JSON-ready body."""

    status: StatusCategory
    body: dict[str, Any] = Field(default_factory=dict)

    @property
    def http_status(self) -> int:
        return self.status.http_status


def _message(status: StatusCategory, message: str) -> EndpointResponse:
    return EndpointResponse(status=status, body=MessageResponse(message=message).model_dump())


def _parse_id(expense_id: Union[int, str]) -> int:
    # bool is an int subclass; floats and signed strings are not ids
    if isinstance(expense_id, int) and not isinstance(expense_id, bool):
        return expense_id
    if isinstance(expense_id, str) and expense_id.isascii() and expense_id.isdigit():
        return int(expense_id)
    raise ValidationError(f"invalid expense id: {expense_id!r}")


class ExpenseEndpoints:
    """Status-and-payload facade over a LedgerService."""

    def __init__(self, service: LedgerService, audit_logger: Optional[AuditLogger] = None):
        self._service = service
        self._audit_logger = audit_logger or service.audit_logger

    async def _failure(self, ctx: RequestContext, operation: str, error: Exception) -> EndpointResponse:
        if isinstance(error, LedgerError):
            logger.info(
                "ledger_request_failed",
                operation=operation,
                error_type=type(error).__name__,
                status=error.status.value,
            )
            return _message(error.status, error.message)
        logger.exception("ledger_request_crashed", operation=operation)
        if self._audit_logger:
            await self._audit_logger.log_error(
                error_type=type(error).__name__,
                error_message=str(error),
                details={"operation": operation},
                actor_id=ctx.user_id,
                correlation_id=ctx.correlation_id,
            )
        return _message(StatusCategory.SERVER_ERROR, str(error))

    async def add(self, ctx: RequestContext, body: Mapping[str, Any]) -> EndpointResponse:
        try:
            await self._service.add(ctx, body)
        except Exception as e:
            return await self._failure(ctx, "add", e)
        return _message(StatusCategory.CREATED, "successfully add new expense")

    async def update(
        self,
        ctx: RequestContext,
        expense_id: Union[int, str],
        body: Mapping[str, Any],
    ) -> EndpointResponse:
        try:
            await self._service.update(ctx, _parse_id(expense_id), body)
        except Exception as e:
            return await self._failure(ctx, "update", e)
        return _message(StatusCategory.OK, "successfully updated expense")

    async def delete(self, ctx: RequestContext, expense_id: Union[int, str]) -> EndpointResponse:
        try:
            await self._service.delete(ctx, _parse_id(expense_id))
        except Exception as e:
            return await self._failure(ctx, "delete", e)
        return _message(StatusCategory.NO_CONTENT, "successfully deleted expense")

    async def find_by_filter(
        self,
        ctx: RequestContext,
        filter_name: Optional[str],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> EndpointResponse:
        """``now`` defaults to the current time, taken once per call."""
        try:
            result = await self._service.find_by_filter(
                ctx,
                now or utc_now(),
                filter_name,
                start_date,
                end_date,
            )
        except Exception as e:
            return await self._failure(ctx, "find_by_filter", e)
        return EndpointResponse(status=StatusCategory.OK, body=result.model_dump())


def create_endpoints(settings: Optional[Settings] = None) -> ExpenseEndpoints:
    """Build endpoints over the production ledger service."""
    return ExpenseEndpoints(create_ledger_service(settings))
