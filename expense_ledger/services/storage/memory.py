"""
In-Memory Storage Implementation

Used by tests and local experiments. It honours the same contract as the
SQL implementation, including transactions: writes made through a
transaction handle are invisible to everyone else until commit and are
discarded on rollback.

Ids come from a shared counter, so they are strictly increasing and never
reused, even when the transaction that drew one is rolled back.
"""

import itertools
from typing import Optional
from uuid import UUID

from expense_ledger.errors import NotFoundError, PersistenceError
from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.expense import Expense
from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStoreInterface,
    TransactionGatewayInterface,
)


_DELETED = None


class InMemoryTransaction:
    """Pending writes of one transaction, keyed by id (None marks a delete)."""

    def __init__(self, database: "InMemoryDatabase"):
        self.database = database
        self.writes: dict[int, Optional[Expense]] = {}
        self.finalized = False
        self.outcome: Optional[str] = None

    def get(self, expense_id: int) -> Optional[Expense]:
        if expense_id in self.writes:
            return self.writes[expense_id]
        return self.database.rows.get(expense_id)


class InMemoryDatabase(TransactionGatewayInterface):
    """
    Transaction gateway over a dict of committed rows.

    ``fail_on_commit`` / ``fail_on_rollback`` simulate finalization failures.
    """

    def __init__(self):
        self.rows: dict[int, Expense] = {}
        self.fail_on_commit = False
        self.fail_on_rollback = False
        self.transactions: list[InMemoryTransaction] = []
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    async def begin_transaction(self) -> InMemoryTransaction:
        tx = InMemoryTransaction(self)
        self.transactions.append(tx)
        return tx

    async def commit_or_rollback(self, tx: InMemoryTransaction, error: Optional[BaseException]) -> None:
        if tx.finalized:
            raise PersistenceError("transaction already finalized")
        tx.finalized = True

        if error is not None:
            tx.outcome = "rolled_back"
            if self.fail_on_rollback:
                raise PersistenceError("Failed to rollback transaction: simulated failure")
            return

        if self.fail_on_commit:
            tx.outcome = "commit_failed"
            raise PersistenceError("Failed to commit transaction: simulated failure")

        for expense_id, expense in tx.writes.items():
            if expense is _DELETED:
                self.rows.pop(expense_id, None)
            else:
                self.rows[expense_id] = expense
        tx.outcome = "committed"

    def get_pool(self) -> "InMemoryDatabase":
        return self


class InMemoryExpenseStore(ExpenseStoreInterface):
    """In-memory implementation of expense storage."""

    async def create(self, tx: InMemoryTransaction, expense: Expense) -> int:
        expense_id = tx.database.next_id()
        tx.writes[expense_id] = expense.model_copy(update={"id": expense_id})
        return expense_id

    async def find_by_id_and_owner(self, tx: InMemoryTransaction, expense_id: int, owner_id: int) -> Expense:
        expense = tx.get(expense_id)
        if expense is None or expense.owner_id != owner_id:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return expense

    async def update(self, tx: InMemoryTransaction, expense: Expense) -> int:
        current = tx.get(expense.id)
        if current is None or current.owner_id != expense.owner_id:
            return 0
        tx.writes[expense.id] = current.model_copy(
            update={
                "category_id": expense.category_id,
                "description": expense.description,
                "amount": expense.amount,
            }
        )
        return 1

    async def delete(self, tx: InMemoryTransaction, expense_id: int, owner_id: int) -> int:
        current = tx.get(expense_id)
        if current is None or current.owner_id != owner_id:
            return 0
        tx.writes[expense_id] = _DELETED
        return 1

    async def find_by_date_range(
        self,
        pool: InMemoryDatabase,
        start_millis: int,
        end_millis: int,
        owner_id: Optional[int] = None,
    ) -> list[Expense]:
        return [
            expense
            for expense in list(pool.rows.values())
            if start_millis <= expense.created_at_millis <= end_millis
            and (owner_id is None or expense.owner_id == owner_id)
        ]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]
