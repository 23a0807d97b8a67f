"""Services package."""

from expense_ledger.services.storage import (
    AuditStorageInterface,
    ExpenseStoreInterface,
    InMemoryAuditStorage,
    InMemoryDatabase,
    InMemoryExpenseStore,
    SqlAlchemyAuditStorage,
    SqlAlchemyDatabase,
    SqlAlchemyExpenseStore,
    TransactionGatewayInterface,
)

__all__ = [
    "AuditStorageInterface",
    "ExpenseStoreInterface",
    "InMemoryAuditStorage",
    "InMemoryDatabase",
    "InMemoryExpenseStore",
    "SqlAlchemyAuditStorage",
    "SqlAlchemyDatabase",
    "SqlAlchemyExpenseStore",
    "TransactionGatewayInterface",
]
