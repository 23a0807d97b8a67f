"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Run the ledger against any SQL database SQLAlchemy supports
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

Three capabilities are kept separate:
- TransactionGatewayInterface: opens and finalizes transactions, hands out the pool
- ExpenseStoreInterface: expense row operations, run inside a caller-supplied handle
- AuditStorageInterface: append-only audit log

The interface is intentionally simple - we're not building a full ORM.
Just the operations the ledger needs.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from uuid import UUID

from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.expense import Expense


class TransactionGatewayInterface(ABC):
    """
    Abstract interface over the transactional store.

    Each ledger write runs in exactly one transaction, finalized exactly once
    by ``commit_or_rollback``.
    """

    @abstractmethod
    async def begin_transaction(self) -> Any:
        """
        Open a new transaction.

        Returns:
            An opaque transaction handle for the store operations

        Raises:
            PersistenceError: If the transaction cannot be opened
        """
        pass

    @abstractmethod
    async def commit_or_rollback(self, tx: Any, error: Optional[BaseException]) -> None:
        """
        Finalize a transaction.

        Commits when ``error`` is None, rolls back otherwise.

        Raises:
            PersistenceError: Only if the commit or rollback itself fails
        """
        pass

    @abstractmethod
    def get_pool(self) -> Any:
        """Return the pool handle used for non-transactional reads."""
        pass

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        """
        Run a block inside one transaction.

        Any exception raised in the block, cancellation included, rolls
        the transaction back and propagates. If finalizing fails, that
        failure is raised in place of the block's outcome.
        """
        tx = await self.begin_transaction()
        try:
            yield tx
        except BaseException as exc:
            await self.commit_or_rollback(tx, exc)
            raise
        await self.commit_or_rollback(tx, None)


class ExpenseStoreInterface(ABC):
    """
    Abstract interface for expense persistence.

    Single-row operations run inside the transaction handle they are given;
    the range read runs directly against the pool.
    """

    @abstractmethod
    async def create(self, tx: Any, expense: Expense) -> int:
        """
        Insert an expense.

        Returns:
            The store-assigned id

        Raises:
            PersistenceError: On constraint or connectivity failure
        """
        pass

    @abstractmethod
    async def find_by_id_and_owner(self, tx: Any, expense_id: int, owner_id: int) -> Expense:
        """
        Fetch an expense owned by ``owner_id``.

        Raises:
            NotFoundError: If no row matches the (id, owner) pair
            PersistenceError: On connectivity failure
        """
        pass

    @abstractmethod
    async def update(self, tx: Any, expense: Expense) -> int:
        """
        Replace category, description and amount of the row matching
        ``(expense.id, expense.owner_id)``.

        Returns:
            Number of rows changed
        """
        pass

    @abstractmethod
    async def delete(self, tx: Any, expense_id: int, owner_id: int) -> int:
        """
        Remove the row matching ``(expense_id, owner_id)``.

        Returns:
            Number of rows removed
        """
        pass

    @abstractmethod
    async def find_by_date_range(
        self,
        pool: Any,
        start_millis: int,
        end_millis: int,
        owner_id: Optional[int] = None,
    ) -> list[Expense]:
        """
        Inclusive scan on creation time.

        Args:
            pool: Pool handle from the gateway
            start_millis: Window start, epoch millis (inclusive)
            end_millis: Window end, epoch millis (inclusive)
            owner_id: Restrict to one owner; None scans every owner

        Returns:
            Matching expenses in no particular order; empty if none match

        Raises:
            PersistenceError: On scan failure. Partial results are never returned.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for one call, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass
