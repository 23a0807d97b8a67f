"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The production backend is SQLAlchemy Core; an in-memory backend with the
same transactional contract is provided for tests.
"""

from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStoreInterface,
    TransactionGatewayInterface,
)
from expense_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDatabase,
    InMemoryExpenseStore,
)
from expense_ledger.services.storage.sql import (
    SqlAlchemyAuditStorage,
    SqlAlchemyDatabase,
    SqlAlchemyExpenseStore,
    audit_log_table,
    expenses_table,
    metadata,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStoreInterface",
    "TransactionGatewayInterface",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryDatabase",
    "InMemoryExpenseStore",
    # SQL implementation
    "SqlAlchemyAuditStorage",
    "SqlAlchemyDatabase",
    "SqlAlchemyExpenseStore",
    "audit_log_table",
    "expenses_table",
    "metadata",
]
