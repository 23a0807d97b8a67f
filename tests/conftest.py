"""Shared fixtures: an in-memory ledger and a SQLite-backed ledger."""

from datetime import datetime, timezone

import pytest

from expense_ledger.audit import AuditLogger
from expense_ledger.config import AppSettings, DatabaseSettings
from expense_ledger.ledger import LedgerService
from expense_ledger.models.expense import RequestContext
from expense_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryDatabase,
    InMemoryExpenseStore,
    SqlAlchemyAuditStorage,
    SqlAlchemyDatabase,
    SqlAlchemyExpenseStore,
)
from expense_ledger.validation import ExpenseRequestValidator


FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for stamping creation times."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def app_settings():
    return AppSettings(_env_file=None)


@pytest.fixture
def validator(app_settings):
    return ExpenseRequestValidator(app_settings)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def alice():
    return RequestContext(user_id=1)


@pytest.fixture
def bob():
    return RequestContext(user_id=2)


@pytest.fixture
def anonymous():
    return RequestContext()


@pytest.fixture
def memory_db():
    return InMemoryDatabase()


@pytest.fixture
def memory_audit():
    return InMemoryAuditStorage()


@pytest.fixture
def memory_service(memory_db, memory_audit, validator, clock):
    return LedgerService(
        database=memory_db,
        store=InMemoryExpenseStore(),
        validator=validator,
        audit_logger=AuditLogger(memory_audit),
        clock=clock,
        scope_aggregation_to_owner=True,
    )


@pytest.fixture
def sql_db(tmp_path):
    database = SqlAlchemyDatabase(
        DatabaseSettings(url=f"sqlite:///{tmp_path / 'ledger.db'}")
    )
    database.connect()
    yield database
    database.dispose()


@pytest.fixture
def sql_service(sql_db, validator, clock):
    return LedgerService(
        database=sql_db,
        store=SqlAlchemyExpenseStore(),
        validator=validator,
        audit_logger=AuditLogger(SqlAlchemyAuditStorage(sql_db)),
        clock=clock,
        scope_aggregation_to_owner=True,
    )


@pytest.fixture(params=["memory", "sql"])
def service(request):
    """The same service behaviour, checked against both backends."""
    return request.getfixturevalue(f"{request.param}_service")
