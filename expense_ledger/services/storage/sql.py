"""
SQL Storage Implementation

DESIGN DECISION: The ledger runs on SQLAlchemy Core rather than the ORM.
Every operation is a single parameterized statement, and the
transaction boundary is owned by the service, not by a session.

Layout (one row per expense):
    id (generated), user_id, category_id, expense (text),
    total (exact decimal), created_at (epoch millis)

TRADEOFFS:
- SQLite has no exact decimal column, so totals are stored as decimal
  text there. Server databases get NUMERIC(18, AMOUNT_SCALE).
- The engine's pool doubles as the "connection pool handle" for the
  non-transactional range read.
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import (
    BigInteger,
    Column,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.types import TypeDecorator
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from expense_ledger.config import AMOUNT_SCALE, DatabaseSettings, get_settings
from expense_ledger.errors import DatabaseConnectionError, NotFoundError, PersistenceError
from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.expense import Expense
from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStoreInterface,
    TransactionGatewayInterface,
)


logger = structlog.get_logger(__name__)


class ExactDecimal(TypeDecorator):
    """Decimal column that never round-trips through a binary float."""

    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(Numeric(18, AMOUNT_SCALE, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))


metadata = MetaData()

expenses_table = Table(
    "expenses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("category_id", Integer, nullable=False),
    Column("expense", Text, nullable=False),
    Column("total", ExactDecimal(), nullable=False),
    Column("created_at", BigInteger, nullable=False, index=True),
    sqlite_autoincrement=True,
)

audit_log_table = Table(
    "audit_log",
    metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("event_id", String(36), nullable=False, unique=True),
    Column("timestamp", String(40), nullable=False),
    Column("event_type", String(40), nullable=False),
    Column("severity", String(10), nullable=False),
    Column("entity_type", String(40)),
    Column("entity_id", String(40)),
    Column("actor_id", Integer),
    Column("correlation_id", String(36), index=True),
    Column("description", String(500), nullable=False),
    Column("details_json", Text),
    Column("error_message", Text),
    sqlite_autoincrement=True,
)


def _row_to_expense(row: Any) -> Expense:
    return Expense(
        id=row.id,
        owner_id=row.user_id,
        category_id=row.category_id,
        description=row.expense,
        amount=row.total,
        created_at_millis=row.created_at,
    )


class SqlAlchemyDatabase(TransactionGatewayInterface):
    """
    Transaction gateway over a SQLAlchemy engine.

    A transaction handle is a ``Connection`` with an open transaction.
    """

    def __init__(
        self,
        settings: Optional[DatabaseSettings] = None,
        engine: Optional[Engine] = None,
    ):
        self._settings = settings or get_settings().database
        self._engine = engine
        self._schema_ready = False

    def _create_engine(self) -> Engine:
        kwargs: dict[str, Any] = {"echo": self._settings.echo}
        if self._settings.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_size"] = self._settings.pool_size
            kwargs["pool_pre_ping"] = True
        return create_engine(self._settings.url, **kwargs)

    @retry(
        retry=retry_if_exception_type(DatabaseConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> Engine:
        """
        Establish the engine and make sure the schema exists.

        Runs once; later calls return the cached engine.
        """
        if self._engine is not None and self._schema_ready:
            return self._engine
        try:
            if self._engine is None:
                self._engine = self._create_engine()
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            if self._settings.create_schema:
                metadata.create_all(self._engine)
            self._schema_ready = True
            logger.info(
                "database_connected",
                dialect=self._engine.dialect.name,
                create_schema=self._settings.create_schema,
            )
        except SQLAlchemyError as e:
            logger.error("database_connect_failed", error=str(e))
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e
        return self._engine

    def get_pool(self) -> Engine:
        return self.connect()

    async def begin_transaction(self) -> Connection:
        engine = self.connect()
        conn = None
        try:
            conn = engine.connect()
            conn.begin()
            return conn
        except SQLAlchemyError as e:
            if conn is not None:
                conn.close()
            raise PersistenceError(f"Failed to begin transaction: {e}") from e

    async def commit_or_rollback(self, tx: Connection, error: Optional[BaseException]) -> None:
        try:
            if error is None:
                tx.commit()
            else:
                tx.rollback()
                logger.info("transaction_rolled_back", reason=type(error).__name__)
        except SQLAlchemyError as e:
            action = "commit" if error is None else "rollback"
            logger.error("transaction_finalize_failed", action=action, error=str(e))
            raise PersistenceError(f"Failed to {action} transaction: {e}") from e
        finally:
            tx.close()

    def dispose(self) -> None:
        """Close every pooled connection."""
        if self._engine is not None:
            self._engine.dispose()


class SqlAlchemyExpenseStore(ExpenseStoreInterface):
    """
    SQL implementation of expense storage.

    Each method issues exactly one statement.
    """

    async def create(self, tx: Connection, expense: Expense) -> int:
        """Insert an expense and return the generated id."""
        try:
            result = tx.execute(
                insert(expenses_table).values(
                    user_id=expense.owner_id,
                    category_id=expense.category_id,
                    expense=expense.description,
                    total=expense.amount.value,
                    created_at=expense.created_at_millis,
                )
            )
            return int(result.inserted_primary_key[0])
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create expense: {e}") from e

    async def find_by_id_and_owner(self, tx: Connection, expense_id: int, owner_id: int) -> Expense:
        try:
            row = tx.execute(
                select(expenses_table).where(
                    expenses_table.c.id == expense_id,
                    expenses_table.c.user_id == owner_id,
                )
            ).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to get expense: {e}") from e

        if row is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return _row_to_expense(row)

    async def update(self, tx: Connection, expense: Expense) -> int:
        try:
            result = tx.execute(
                update(expenses_table)
                .where(
                    expenses_table.c.id == expense.id,
                    expenses_table.c.user_id == expense.owner_id,
                )
                .values(
                    category_id=expense.category_id,
                    expense=expense.description,
                    total=expense.amount.value,
                )
            )
            return result.rowcount
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update expense: {e}") from e

    async def delete(self, tx: Connection, expense_id: int, owner_id: int) -> int:
        try:
            result = tx.execute(
                delete(expenses_table).where(
                    expenses_table.c.id == expense_id,
                    expenses_table.c.user_id == owner_id,
                )
            )
            return result.rowcount
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete expense: {e}") from e

    async def find_by_date_range(
        self,
        pool: Engine,
        start_millis: int,
        end_millis: int,
        owner_id: Optional[int] = None,
    ) -> list[Expense]:
        query = select(expenses_table).where(
            expenses_table.c.created_at >= start_millis,
            expenses_table.c.created_at <= end_millis,
        )
        if owner_id is not None:
            query = query.where(expenses_table.c.user_id == owner_id)

        try:
            with pool.connect() as conn:
                rows = conn.execute(query).all()
            # Decode everything before returning so a bad row fails the whole scan
            return [_row_to_expense(row) for row in rows]
        except (SQLAlchemyError, ValueError) as e:
            raise PersistenceError(f"Failed to scan expenses: {e}") from e


class SqlAlchemyAuditStorage(AuditStorageInterface):
    """
    SQL implementation of audit log storage.

    Audit events are append-only. Each append runs in its own short
    transaction, independent of the ledger write it describes.
    """

    def __init__(self, database: SqlAlchemyDatabase):
        self._database = database

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            with self._database.get_pool().begin() as conn:
                conn.execute(insert(audit_log_table).values(**event.to_row()))
            return True
        except SQLAlchemyError as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            with self._database.get_pool().connect() as conn:
                rows = conn.execute(
                    select(audit_log_table)
                    .where(audit_log_table.c.correlation_id == str(correlation_id))
                    .order_by(audit_log_table.c.seq)
                ).mappings().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to get audit events: {e}") from e
        return [AuditEvent.from_row(dict(row)) for row in rows]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            with self._database.get_pool().connect() as conn:
                rows = conn.execute(
                    select(audit_log_table)
                    .order_by(audit_log_table.c.seq.desc())
                    .limit(limit)
                ).mappings().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to get audit events: {e}") from e
        return [AuditEvent.from_row(dict(row)) for row in rows]
