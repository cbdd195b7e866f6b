"""
Fixtures for sink unit tests.

FakePool mimics the slice of psycopg_pool.AsyncConnectionPool the sinks use:
``connection()`` -> ``transaction()`` -> ``cursor()`` with ``execute``,
``executemany``, ``fetchone`` and ``copy``. Statements are kept as the
psycopg.sql objects the sinks built; work is only recorded as committed
when the transaction block exits cleanly. ``reject`` marks rows the
"database" refuses with a NOT NULL violation, on every attempt.
"""

from contextlib import asynccontextmanager

import psycopg
import pytest


class FakeCopy:
    def __init__(self, statement, conn):
        self.statement = statement
        self.rows = []
        self.types = None
        self._conn = conn

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def set_types(self, types):
        self.types = list(types)

    async def write_row(self, row):
        self._conn.maybe_fail()
        self.rows.append(row)


class FakeCursor:
    def __init__(self, conn):
        self._conn = conn

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def execute(self, statement, params=None):
        self._conn.maybe_fail()
        self._conn.work.append(("execute", statement, params))

    async def executemany(self, statement, params_seq):
        self._conn.maybe_fail()
        rows = [dict(p) for p in params_seq]
        reject = self._conn.pool.reject
        if reject is not None and any(reject(r) for r in rows):
            raise psycopg.errors.NotNullViolation("null value violates not-null constraint")
        self._conn.work.append(("executemany", statement, rows))

    async def fetchone(self):
        return self._conn.pool.fetchone_result

    def copy(self, statement):
        cp = FakeCopy(statement, self._conn)
        self._conn.work.append(("copy", statement, cp))
        return cp


class FakeConnection:
    def __init__(self, pool):
        self.pool = pool
        self.work = []

    def maybe_fail(self):
        if self.pool.fail_next:
            raise self.pool.fail_next.pop(0)

    def cursor(self):
        return FakeCursor(self)

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
        except BaseException:
            self.pool.rollbacks += 1
            raise
        self.pool.committed.extend(self.work)


class FakePool:
    def __init__(self):
        self.committed = []
        self.rollbacks = 0
        self.fail_next: list[Exception] = []
        self.reject = None
        self.fetchone_result = None
        self.opened = 0
        self.closed = 0

    @asynccontextmanager
    async def connection(self):
        yield FakeConnection(self)

    async def open(self):
        self.opened += 1

    async def close(self):
        self.closed += 1

    def executed(self, kind="executemany"):
        return [(stmt, params) for k, stmt, params in self.committed if k == kind]

    def inserted_rows(self):
        return [row for _, rows in self.executed() for row in rows]

    def copies(self):
        return [cp for k, _, cp in self.committed if k == "copy"]


@pytest.fixture
def fake_pool():
    return FakePool()
