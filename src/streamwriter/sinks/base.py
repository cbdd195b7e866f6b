from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, NoReturn, Sequence, Union

import psycopg
from loguru import logger
from psycopg import sql as psql
from psycopg_pool import AsyncConnectionPool

from ..errors import NonRetryableError, RowsRejectedError
from ..metrics import SINK_WRITE_LATENCY, SINK_WRITES_TOTAL

# failures that repeat however often the same rows are re-sent
PERMANENT_ERRORS = (psycopg.DataError, psycopg.IntegrityError, NonRetryableError)


def table_identifier(table: str) -> psql.Identifier:
    """``schema.table`` or ``table`` as a quoted identifier."""
    return psql.Identifier(*table.split("."))


def column_list(cols: Sequence[str]) -> psql.Composed:
    return psql.SQL(", ").join(psql.Identifier(c) for c in cols)


class PostgresSink:
    """Shared plumbing for the PostgreSQL sink adapters.

    ``pool`` is either an AsyncConnectionPool owned by the caller (left open
    on close) or a conninfo string, in which case the sink owns a pool that
    is opened on first use and closed by ``close()``.

    Usable on its own as an async context manager:

        async with InsertSink(dsn, "events") as sink:
            await sink.put(rows)
        # flushed and closed
    """

    name = "postgres"

    def __init__(self, pool: Union[AsyncConnectionPool, str], table: str, *, pool_max: int = 4):
        if not table:
            raise ValueError("table required")
        if isinstance(pool, str):
            self._pool = AsyncConnectionPool(
                conninfo=pool,
                min_size=1,
                max_size=max(1, pool_max),
                kwargs={"autocommit": False},
                open=False,
            )
            self._owns_pool = True
            self._opened = False
        else:
            self._pool = pool
            self._owns_pool = False
            self._opened = True
        self._table = table
        # workers may share one sink; buffers are guarded by this lock
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def table(self) -> str:
        return self._table

    async def __aenter__(self):
        await self._ensure_open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                await self.flush()
        finally:
            await self.close()

    async def put(self, data: Any) -> bool:
        raise NotImplementedError

    async def flush(self) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_pool and self._opened:
            await self._pool.close()
            logger.debug(f"{self.name} sink: closed pool for {self._table}")

    async def _ensure_open(self) -> None:
        if not self._opened:
            await self._pool.open()
            self._opened = True

    @asynccontextmanager
    async def _connection(self, nrows: int) -> AsyncIterator[Any]:
        """Transactional connection; records write metrics for ``nrows`` rows."""
        await self._ensure_open()
        t0 = time.perf_counter()
        try:
            async with self._pool.connection() as conn:
                async with conn.transaction():
                    yield conn
        except Exception:
            SINK_WRITES_TOTAL.labels(self.name, "failure").inc(nrows)
            raise
        else:
            SINK_WRITES_TOTAL.labels(self.name, "success").inc(nrows)
        finally:
            SINK_WRITE_LATENCY.labels(self.name).observe(time.perf_counter() - t0)

    def _count_discarded(self, nrows: int, reason: str) -> None:
        SINK_WRITES_TOTAL.labels(self.name, "discarded").inc(nrows)
        logger.error(f"{self.name} sink: discarded {nrows} rows for {self._table}: {reason}")

    def _discard(self, nrows: int, exc: Exception) -> NoReturn:
        """Count and log rows dropped after a permanent failure, then raise a non-retryable error."""
        self._count_discarded(nrows, f"{type(exc).__name__}: {exc}")
        if isinstance(exc, NonRetryableError):
            raise exc
        raise RowsRejectedError(f"{nrows} row(s) rejected by {self._table}: {exc}") from exc
