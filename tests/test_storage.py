"""Tests for the SQL and in-memory storage backends."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

from expense_ledger.config import AMOUNT_SCALE, AppSettings, DatabaseSettings
from expense_ledger.errors import NotFoundError, PersistenceError, ValidationError
from expense_ledger.models.audit import AuditEventBuilder
from expense_ledger.models.expense import Expense
from expense_ledger.models.money import Money
from expense_ledger.services.storage import (
    InMemoryDatabase,
    InMemoryExpenseStore,
    SqlAlchemyAuditStorage,
    SqlAlchemyDatabase,
    SqlAlchemyExpenseStore,
    expenses_table,
)
from expense_ledger.validation import ExpenseRequestValidator


FAR_FUTURE = 10 ** 15


def make_expense(owner_id=1, amount="10.10", created_at_millis=1_000, description="Lunch"):
    return Expense(
        owner_id=owner_id,
        category_id=1,
        description=description,
        amount=Decimal(amount),
        created_at_millis=created_at_millis,
    )


async def insert(database, store, expense):
    async with database.transaction() as tx:
        return await store.create(tx, expense)


class TestSqlAlchemyDatabase:
    """Tests for the SQLAlchemy transaction gateway."""

    def test_connect_creates_tables(self, sql_db):
        """connect() creates the expenses and audit_log tables."""
        tables = set(inspect(sql_db.get_pool()).get_table_names())
        assert {"expenses", "audit_log"} <= tables

    def test_connect_is_idempotent(self, sql_db):
        """Repeated connects return the same engine."""
        assert sql_db.connect() is sql_db.connect()

    def test_server_column_keeps_every_accepted_place(self):
        """The NUMERIC scale matches the largest precision the validator allows."""
        ddl = str(CreateTable(expenses_table).compile(dialect=postgresql.dialect()))
        assert f"NUMERIC(18, {AMOUNT_SCALE})" in ddl

        loosest = ExpenseRequestValidator(AppSettings(_env_file=None, amount_decimal_places=AMOUNT_SCALE))
        too_precise = "1." + "1" * (AMOUNT_SCALE + 1)
        with pytest.raises(ValidationError):
            loosest.validate_add({"categoryId": 1, "expense": "Lunch", "total": too_precise})

    def test_in_memory_url(self):
        """A bare SQLite memory URL works for one-off use."""
        database = SqlAlchemyDatabase(DatabaseSettings(url="sqlite://"))
        try:
            assert database.connect().dialect.name == "sqlite"
        finally:
            database.dispose()


class TestSqlExpenseStore:
    """Tests for SqlAlchemyExpenseStore against SQLite."""

    @pytest.fixture
    def store(self):
        return SqlAlchemyExpenseStore()

    @pytest.mark.asyncio
    async def test_create_returns_increasing_ids(self, sql_db, store):
        """Generated ids increase with each insert."""
        first = await insert(sql_db, store, make_expense())
        second = await insert(sql_db, store, make_expense())
        assert 0 < first < second

    @pytest.mark.asyncio
    async def test_amount_is_stored_exactly(self, sql_db, store):
        """Amounts round-trip as exact decimals."""
        expense_id = await insert(sql_db, store, make_expense(amount="0.10"))
        async with sql_db.transaction() as tx:
            found = await store.find_by_id_and_owner(tx, expense_id, 1)
        assert found.amount == Money.of("0.10")
        assert found.id == expense_id

    @pytest.mark.asyncio
    async def test_find_is_scoped_to_owner(self, sql_db, store):
        """Another owner's row is not found."""
        expense_id = await insert(sql_db, store, make_expense(owner_id=1))
        with pytest.raises(NotFoundError):
            async with sql_db.transaction() as tx:
                await store.find_by_id_and_owner(tx, expense_id, 2)

    @pytest.mark.asyncio
    async def test_update_and_delete_are_scoped_to_owner(self, sql_db, store):
        """Update and delete only touch the owner's own row."""
        expense_id = await insert(sql_db, store, make_expense(owner_id=1))
        intruder = make_expense(owner_id=2, amount="99.00").model_copy(update={"id": expense_id})

        async with sql_db.transaction() as tx:
            assert await store.update(tx, intruder) == 0
            assert await store.delete(tx, expense_id, 2) == 0

        async with sql_db.transaction() as tx:
            owned = intruder.model_copy(update={"owner_id": 1})
            assert await store.update(tx, owned) == 1

        async with sql_db.transaction() as tx:
            assert (await store.find_by_id_and_owner(tx, expense_id, 1)).amount == Money.of("99.00")
            assert await store.delete(tx, expense_id, 1) == 1

    @pytest.mark.asyncio
    async def test_range_is_inclusive(self, sql_db, store):
        """Rows exactly on either bound are included."""
        for millis in (999, 1_000, 2_000, 2_001):
            await insert(sql_db, store, make_expense(created_at_millis=millis))
        rows = await store.find_by_date_range(sql_db.get_pool(), 1_000, 2_000)
        assert sorted(row.created_at_millis for row in rows) == [1_000, 2_000]

    @pytest.mark.asyncio
    async def test_range_filters_by_owner(self, sql_db, store):
        """owner_id restricts the scan; None scans everyone."""
        await insert(sql_db, store, make_expense(owner_id=1))
        await insert(sql_db, store, make_expense(owner_id=2))
        pool = sql_db.get_pool()
        assert len(await store.find_by_date_range(pool, 0, FAR_FUTURE, owner_id=1)) == 1
        assert len(await store.find_by_date_range(pool, 0, FAR_FUTURE)) == 2

    @pytest.mark.asyncio
    async def test_empty_range(self, sql_db, store):
        """No matching rows is an empty list, not an error."""
        assert await store.find_by_date_range(sql_db.get_pool(), 0, FAR_FUTURE) == []

    @pytest.mark.asyncio
    async def test_rollback_discards_insert(self, sql_db, store):
        """A rolled-back insert leaves nothing behind."""
        with pytest.raises(RuntimeError):
            async with sql_db.transaction() as tx:
                await store.create(tx, make_expense())
                raise RuntimeError("abort")
        assert await store.find_by_date_range(sql_db.get_pool(), 0, FAR_FUTURE) == []

    @pytest.mark.asyncio
    async def test_scan_failure_is_persistence_error(self, sql_db, store):
        """Driver errors surface as PersistenceError."""
        with sql_db.get_pool().begin() as conn:
            conn.execute(text("DROP TABLE expenses"))
        with pytest.raises(PersistenceError, match="Failed to scan expenses"):
            await store.find_by_date_range(sql_db.get_pool(), 0, FAR_FUTURE)

    @pytest.mark.asyncio
    async def test_insert_failure_is_persistence_error(self, sql_db, store):
        """Insert errors surface as PersistenceError and roll back."""
        with sql_db.get_pool().begin() as conn:
            conn.execute(text("DROP TABLE expenses"))
        with pytest.raises(PersistenceError, match="Failed to create expense"):
            await insert(sql_db, store, make_expense())


class TestSqlAuditStorage:
    """Tests for SqlAlchemyAuditStorage."""

    @pytest.mark.asyncio
    async def test_events_round_trip(self, sql_db):
        """Appended events are read back by correlation id, in order."""
        storage = SqlAlchemyAuditStorage(sql_db)
        correlation_id = uuid4()
        created = AuditEventBuilder.expense_created(
            expense_id=1, owner_id=1, amount="1.00", correlation_id=correlation_id
        )
        deleted = AuditEventBuilder.expense_deleted(
            expense_id=1, owner_id=1, correlation_id=correlation_id
        )
        assert await storage.append_event(created)
        assert await storage.append_event(deleted)

        events = await storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_id for e in events] == [created.event_id, deleted.event_id]

        recent = await storage.get_recent_events(limit=1)
        assert recent[0].event_id == deleted.event_id

    @pytest.mark.asyncio
    async def test_append_failure_returns_false(self, sql_db):
        """A failed append is reported, not raised."""
        storage = SqlAlchemyAuditStorage(sql_db)
        with sql_db.get_pool().begin() as conn:
            conn.execute(text("DROP TABLE audit_log"))
        event = AuditEventBuilder.expense_deleted(expense_id=1, owner_id=1)
        assert await storage.append_event(event) is False


class TestInMemoryStorage:
    """Tests for the in-memory transactional double."""

    @pytest.mark.asyncio
    async def test_uncommitted_writes_are_invisible(self):
        """Readers only see committed rows."""
        database = InMemoryDatabase()
        store = InMemoryExpenseStore()
        tx = await database.begin_transaction()
        await store.create(tx, make_expense())
        assert await store.find_by_date_range(database.get_pool(), 0, FAR_FUTURE) == []
        await database.commit_or_rollback(tx, None)
        assert len(await store.find_by_date_range(database.get_pool(), 0, FAR_FUTURE)) == 1

    @pytest.mark.asyncio
    async def test_ids_are_never_reused(self):
        """A rolled-back id is not handed out again."""
        database = InMemoryDatabase()
        store = InMemoryExpenseStore()
        tx = await database.begin_transaction()
        first = await store.create(tx, make_expense())
        await database.commit_or_rollback(tx, RuntimeError("abort"))
        second = await insert(database, store, make_expense())
        assert second > first
        assert list(database.rows) == [second]

    @pytest.mark.asyncio
    async def test_commit_failure(self):
        """A failing commit raises PersistenceError and applies nothing."""
        database = InMemoryDatabase()
        database.fail_on_commit = True
        with pytest.raises(PersistenceError, match="commit"):
            await insert(database, InMemoryExpenseStore(), make_expense())
        assert database.rows == {}
        assert database.transactions[-1].outcome == "commit_failed"

    @pytest.mark.asyncio
    async def test_finalize_twice_raises(self):
        """A transaction is finalized exactly once."""
        database = InMemoryDatabase()
        tx = await database.begin_transaction()
        await database.commit_or_rollback(tx, None)
        with pytest.raises(PersistenceError):
            await database.commit_or_rollback(tx, None)

    @pytest.mark.asyncio
    async def test_delete_inside_transaction(self):
        """A delete is visible to its own transaction before commit."""
        database = InMemoryDatabase()
        store = InMemoryExpenseStore()
        expense_id = await insert(database, store, make_expense())
        tx = await database.begin_transaction()
        assert await store.delete(tx, expense_id, 1) == 1
        with pytest.raises(NotFoundError):
            await store.find_by_id_and_owner(tx, expense_id, 1)
        assert expense_id in database.rows
        await database.commit_or_rollback(tx, None)
        assert expense_id not in database.rows
