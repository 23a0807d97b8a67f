"""
Ledger Service

This module ties the ledger components together and defines the
four operations the outside world calls:
1. Add     (validate → begin → identity → stamp → insert → commit)
2. Update  (validate → begin → identity → owned lookup → replace → commit)
3. Delete  (begin → identity → owned delete → commit)
4. FindByFilter (resolve window → range read → exact sum)

DESIGN DECISION: The service owns the transaction boundary.
Each write runs in exactly one transaction that commits only if every
step succeeded and rolls back otherwise. Nothing is retried.

Validation and filter errors are raised before a transaction opens,
so they never touch the store.
"""

from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Union

from expense_ledger.audit import AuditLogger, configure_logging
from expense_ledger.config import Settings, get_settings
from expense_ledger.errors import (
    AuthContextError,
    ConsistencyFault,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from expense_ledger.models.expense import (
    AddExpenseRequest,
    Expense,
    ExpenseRequest,
    FilterExpenseResponse,
    RequestContext,
    UpdateExpenseRequest,
    to_epoch_millis,
    utc_now,
)
from expense_ledger.models.money import Money
from expense_ledger.queries import resolve_window
from expense_ledger.services.storage import (
    ExpenseStoreInterface,
    SqlAlchemyAuditStorage,
    SqlAlchemyDatabase,
    SqlAlchemyExpenseStore,
    TransactionGatewayInterface,
)
from expense_ledger.validation import ExpenseRequestValidator


RequestPayload = Union[Mapping[str, Any], ExpenseRequest]


class LedgerService:
    """
    Orchestrates expense writes and windowed aggregation.

    GUARANTEES:
    - A write is either fully committed or fully rolled back
    - Update never changes id, owner or creation time
    - Update and delete only ever touch the caller's own rows
    - Totals are exact decimal sums
    """

    def __init__(
        self,
        database: TransactionGatewayInterface,
        store: ExpenseStoreInterface,
        validator: Optional[ExpenseRequestValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        scope_aggregation_to_owner: Optional[bool] = None,
    ):
        self._database = database
        self._store = store
        self._validator = validator or ExpenseRequestValidator()
        self._audit_logger = audit_logger
        self._clock = clock or utc_now
        if scope_aggregation_to_owner is None:
            scope_aggregation_to_owner = get_settings().app.scope_aggregation_to_owner
        self._scope_aggregation_to_owner = scope_aggregation_to_owner

    @property
    def audit_logger(self) -> Optional[AuditLogger]:
        return self._audit_logger

    @staticmethod
    def _require_user(ctx: RequestContext) -> int:
        if ctx.user_id is None:
            raise AuthContextError("cannot find user id")
        return ctx.user_id

    async def _audit_validation_failure(self, ctx: RequestContext, operation: str, error: ValidationError) -> None:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                operation=operation,
                issues=[issue.model_dump() for issue in error.issues],
                actor_id=ctx.user_id,
                correlation_id=ctx.correlation_id,
            )

    async def _audit_write_failure(
        self,
        ctx: RequestContext,
        operation: str,
        error: Exception,
        expense_id: Optional[int] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_write_failed(
                operation=operation,
                error=error,
                actor_id=ctx.user_id,
                expense_id=expense_id,
                correlation_id=ctx.correlation_id,
            )

    async def add(self, ctx: RequestContext, payload: RequestPayload) -> Expense:
        """
        Record a new expense for the caller.

        The creation time is stamped here, at insertion, and is never
        taken from the request.

        Returns:
            The persisted expense, with its store-assigned id

        Raises:
            ValidationError, AuthContextError, PersistenceError
        """
        try:
            request = self._validator.validate(payload, AddExpenseRequest)
        except ValidationError as e:
            await self._audit_validation_failure(ctx, "add", e)
            raise

        try:
            async with self._database.transaction() as tx:
                owner_id = self._require_user(ctx)
                expense = Expense(
                    owner_id=owner_id,
                    category_id=request.category_id,
                    description=request.description,
                    amount=request.amount,
                    created_at_millis=to_epoch_millis(self._clock()),
                )
                expense_id = await self._store.create(tx, expense)
                expense = expense.model_copy(update={"id": expense_id})
        except LedgerError as e:
            await self._audit_write_failure(ctx, "add", e)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_created(
                expense_id=expense.id,
                owner_id=expense.owner_id,
                amount=str(expense.amount),
                correlation_id=ctx.correlation_id,
            )
        return expense

    async def update(self, ctx: RequestContext, expense_id: int, payload: RequestPayload) -> Expense:
        """
        Replace category, description and amount of one of the caller's expenses.

        The lookup is scoped to (id, caller), so a missing row and a row
        owned by someone else are indistinguishable: both are NotFoundError.

        Returns:
            The updated expense

        Raises:
            ValidationError, AuthContextError, NotFoundError,
            ConsistencyFault, PersistenceError
        """
        try:
            request = self._validator.validate(payload, UpdateExpenseRequest)
        except ValidationError as e:
            await self._audit_validation_failure(ctx, "update", e)
            raise

        try:
            async with self._database.transaction() as tx:
                owner_id = self._require_user(ctx)
                existing = await self._store.find_by_id_and_owner(tx, expense_id, owner_id)
                updated = existing.model_copy(
                    update={
                        "category_id": request.category_id,
                        "description": request.description,
                        "amount": Money.of(request.amount),
                    }
                )
                rows_affected = await self._store.update(tx, updated)
                if rows_affected != 1:
                    raise ConsistencyFault("rows affected not one")
        except LedgerError as e:
            await self._audit_write_failure(ctx, "update", e, expense_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                expense_id=updated.id,
                owner_id=updated.owner_id,
                amount=str(updated.amount),
                correlation_id=ctx.correlation_id,
            )
        return updated

    async def delete(self, ctx: RequestContext, expense_id: int) -> None:
        """
        Remove one of the caller's expenses.

        Raises:
            AuthContextError, NotFoundError (nothing removed),
            ConsistencyFault (more than one row removed), PersistenceError
        """
        try:
            async with self._database.transaction() as tx:
                owner_id = self._require_user(ctx)
                rows_affected = await self._store.delete(tx, expense_id, owner_id)
                if rows_affected == 0:
                    raise NotFoundError(f"Expense not found: {expense_id}")
                if rows_affected != 1:
                    raise ConsistencyFault("rows affected not one")
        except LedgerError as e:
            await self._audit_write_failure(ctx, "delete", e, expense_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                owner_id=owner_id,
                correlation_id=ctx.correlation_id,
            )

    async def total_for_window(
        self,
        ctx: RequestContext,
        now: datetime,
        filter_name: Optional[str],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> tuple[str, Money, int]:
        """
        Exact sum of the expenses created inside the resolved window.

        Returns:
            (filter keyword, exact total, number of expenses summed)
        """
        expense_filter, window = resolve_window(now, filter_name, start_date, end_date)

        owner_id = None
        if self._scope_aggregation_to_owner:
            owner_id = self._require_user(ctx)

        expenses = await self._store.find_by_date_range(
            self._database.get_pool(),
            window.start_millis,
            window.end_millis,
            owner_id=owner_id,
        )
        total = Money.sum(expense.amount for expense in expenses)

        if self._audit_logger:
            await self._audit_logger.log_aggregate_computed(
                filter_name=expense_filter.value,
                window=window.describe(),
                record_count=len(expenses),
                total=str(total),
                actor_id=ctx.user_id,
                correlation_id=ctx.correlation_id,
            )
        return expense_filter.value, total, len(expenses)

    async def find_by_filter(
        self,
        ctx: RequestContext,
        now: datetime,
        filter_name: Optional[str],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> FilterExpenseResponse:
        """
        Sum expenses over the window a filter keyword selects.

        Runs one read-only range query, outside any transaction.

        Raises:
            InvalidFilterError, ValidationError (custom dates),
            AuthContextError (owner-scoped mode), PersistenceError,
            ConversionError
        """
        try:
            filter_value, total, _ = await self.total_for_window(
                ctx, now, filter_name, start_date, end_date
            )
            return FilterExpenseResponse(filter=filter_value, total=total.to_float())
        except LedgerError as e:
            if self._audit_logger:
                await self._audit_logger.log_aggregate_failed(
                    filter_name=str(filter_name),
                    error=e,
                    actor_id=ctx.user_id,
                    correlation_id=ctx.correlation_id,
                )
            raise


def create_ledger_service(
    settings: Optional[Settings] = None,
    database: Optional[SqlAlchemyDatabase] = None,
) -> LedgerService:
    """
    Factory function to create the production ledger service.

    Args:
        settings: Settings to use (defaults to the cached settings)
        database: Pre-built database gateway, e.g. one sharing an engine

    Returns:
        A LedgerService backed by SQLAlchemy, with SQL audit storage
    """
    settings = settings or get_settings()
    configure_logging(settings.app)

    database = database or SqlAlchemyDatabase(settings.database)
    database.connect()

    return LedgerService(
        database=database,
        store=SqlAlchemyExpenseStore(),
        validator=ExpenseRequestValidator(settings.app),
        audit_logger=AuditLogger(SqlAlchemyAuditStorage(database)),
        scope_aggregation_to_owner=settings.app.scope_aggregation_to_owner,
    )
