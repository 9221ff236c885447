import os
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from types import SimpleNamespace

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from src.database import create_db_engine
from src.services.ledger import PersistenceError, SqlStatsLedger, StatsSnapshot, VisitResult

PgRow = namedtuple("PgRow", ["total_visits", "unique_visitors", "new_visitor"])


class FakeConnection:
    def __init__(self, engine):
        self.engine = engine

    def execute(self, statement, params=None):
        self.engine.statements.append((str(statement), params))
        if self.engine.error is not None:
            raise self.engine.error
        return SimpleNamespace(first=lambda: self.engine.row)


class FakePostgresEngine:
    """Engine mínimo con dialecto postgresql que devuelve una fila fija."""

    dialect = SimpleNamespace(name="postgresql")

    def __init__(self, row=None, error=None):
        self.row = row
        self.error = error
        self.statements = []

    def execution_options(self, **options):
        return self

    @contextmanager
    def begin(self):
        yield FakeConnection(self)


def test_new_visitor_uses_single_statement():
    engine = FakePostgresEngine(PgRow(5, 3, 1))
    ledger = SqlStatsLedger(engine)

    result = ledger.record_visit("abc")

    assert result == VisitResult(5, 3, True)
    assert len(engine.statements) == 1
    sql, params = engine.statements[0]
    assert "WITH ins AS" in sql
    assert "ON CONFLICT DO NOTHING" in sql
    assert params == {"visitor_id": "abc"}


def test_returning_visitor_maps_zero_count_to_not_new():
    ledger = SqlStatsLedger(FakePostgresEngine(PgRow(6, 3, 0)))

    assert ledger.record_visit("abc") == VisitResult(6, 3, False)


def test_missing_stats_row_raises():
    ledger = SqlStatsLedger(FakePostgresEngine(row=None))

    with pytest.raises(PersistenceError):
        ledger.record_visit("abc")


def test_driver_error_becomes_persistence_error():
    error = OperationalError("WITH ins AS ...", {}, Exception("server closed the connection"))
    ledger = SqlStatsLedger(FakePostgresEngine(error=error))

    with pytest.raises(PersistenceError) as exc_info:
        ledger.record_visit("abc")
    assert exc_info.value.__cause__ is error


# Contra un PostgreSQL real solo si TEST_POSTGRES_URL apunta a una base de pruebas
TEST_POSTGRES_URL = os.getenv("TEST_POSTGRES_URL", "").strip()


@pytest.fixture
def pg_ledger():
    ledger = SqlStatsLedger(create_db_engine(TEST_POSTGRES_URL, pool_size=8))
    ledger.init_storage()
    with ledger.engine.begin() as conn:
        conn.execute(text("DELETE FROM visitors"))
        conn.execute(text("UPDATE visit_stats SET total_visits = 0, unique_visitors = 0 WHERE id = 1"))
    yield ledger
    ledger.close()


@pytest.mark.skipif(not TEST_POSTGRES_URL, reason="TEST_POSTGRES_URL no configurada")
def test_postgres_concurrent_visits(pg_ledger):
    distinct = 10
    visits = 80
    visitor_ids = [f"pg-visitor-{i % distinct}" for i in range(visits)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(pg_ledger.record_visit, visitor_ids))

    assert pg_ledger.read_stats() == StatsSnapshot(visits, distinct)
    assert sum(1 for r in results if r.is_new) == distinct
    assert pg_ledger.record_visit("pg-visitor-0").is_new is False
