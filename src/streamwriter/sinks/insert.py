from __future__ import annotations

from itertools import groupby
from typing import Any, NoReturn, Optional, Sequence, Union

from psycopg import sql as psql
from psycopg_pool import AsyncConnectionPool

from ..config import InsertSinkConfig, sanitize_insert_sink_config
from ..schema import TableSchema
from .base import PERMANENT_ERRORS, PostgresSink, column_list, table_identifier
from .encoding import RowEncoder, records_of


def insert_statement(
    table: str, cols: Sequence[str], *, ignore_conflicts: bool = False
) -> psql.Composed:
    """INSERT ... VALUES with named parameters (%(name)s)."""
    stmt = psql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
        table_identifier(table),
        column_list(cols),
        psql.SQL(", ").join(psql.Placeholder(c) for c in cols),
    )
    if ignore_conflicts:
        stmt = stmt + psql.SQL(" ON CONFLICT DO NOTHING")
    return stmt


class InsertSink(PostgresSink):
    """Streaming-insert sink: buffers rows, writes them with multi-row INSERTs.

    ``put`` buffers; once ``batch_size`` rows are buffered they are written
    and ``put`` returns True. ``flush`` writes whatever is buffered. Rows
    stay buffered when a write fails transiently, and a failed ``put`` takes
    its own rows back out, so retrying the same ``put`` never duplicates
    rows. When the database rejects the rows (constraint or data errors)
    the whole buffer is discarded and RowsRejectedError is raised.
    """

    name = "insert"

    def __init__(
        self,
        pool: Union[AsyncConnectionPool, str],
        table: str,
        config: Optional[InsertSinkConfig] = None,
        *,
        schema: Optional[TableSchema] = None,
        pool_max: int = 4,
    ):
        super().__init__(pool, table, pool_max=pool_max)
        self._cfg = sanitize_insert_sink_config(config)
        self._encoder = RowEncoder(schema, fail_for_unknown_values=self._cfg.fail_for_unknown_values)
        self._rows: list[dict[str, Any]] = []

    @property
    def buffered(self) -> int:
        return len(self._rows)

    async def put(self, data: Any) -> bool:
        rows = self._encoder.encode_many(records_of(data))
        async with self._lock:
            self._rows.extend(rows)
            if len(self._rows) < self._cfg.batch_size:
                return False
            try:
                await self._write_buffered()
            except PERMANENT_ERRORS as exc:
                self._discard_buffer(exc)
            except Exception:
                del self._rows[len(self._rows) - len(rows) :]
                raise
            return True

    async def flush(self) -> None:
        async with self._lock:
            try:
                await self._write_buffered()
            except PERMANENT_ERRORS as exc:
                self._discard_buffer(exc)

    def _discard_buffer(self, exc: Exception) -> NoReturn:
        nrows = len(self._rows)
        self._rows = []
        self._discard(nrows, exc)

    async def _write_buffered(self) -> None:
        rows = self._rows
        if not rows:
            return

        # rows without a schema may carry different key sets: one statement per
        # run of consecutive rows sharing a key set, so insert order is kept
        runs = [(cols, list(run)) for cols, run in groupby(rows, key=tuple)]

        async with self._connection(len(rows)) as conn:
            async with conn.cursor() as cur:
                for cols, group in runs:
                    stmt = insert_statement(
                        self._table, cols, ignore_conflicts=self._cfg.ignore_conflicts
                    )
                    await cur.executemany(stmt, group)

        self._rows = []
