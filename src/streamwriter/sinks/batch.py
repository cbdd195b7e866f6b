from __future__ import annotations

from typing import Any, Optional, Sequence, Union

from loguru import logger
from psycopg import sql as psql
from psycopg_pool import AsyncConnectionPool

from ..config import BatchSinkConfig, sanitize_batch_sink_config
from ..errors import TableNotEmptyError
from .base import PERMANENT_ERRORS, PostgresSink, column_list, table_identifier
from .encoding import RowEncoder, column_order, records_of


def copy_from_stdin(table: str, cols: Sequence[str], source_format: str) -> psql.Composed:
    # source_format is validated against SOURCE_FORMATS when the config is sanitised
    return psql.SQL("COPY {} ({}) FROM STDIN (FORMAT {})").format(
        table_identifier(table), column_list(cols), psql.SQL(source_format.upper())
    )


class BatchSink(PostgresSink):
    """Bulk-load sink: buffers rows, loads them with one COPY job per flush.

    ``put`` only buffers (returns False); the worker's batch timer decides
    when ``flush`` runs the load. The buffer is cleared once a load
    committed, so a retried flush re-sends the same rows. A load the
    database rejects (constraint or data errors, a non-empty table under the
    ``empty`` disposition) discards the buffer. While loads keep failing
    transiently at most ``max_buffered_rows`` are held, the oldest go first.
    """

    name = "batch"

    def __init__(
        self,
        pool: Union[AsyncConnectionPool, str],
        table: str,
        config: Optional[BatchSinkConfig] = None,
        *,
        pool_max: int = 4,
    ):
        cfg = sanitize_batch_sink_config(config or BatchSinkConfig())
        super().__init__(pool, table, pool_max=pool_max)
        self._cfg = cfg
        self._encoder = RowEncoder(cfg.schema, fail_for_unknown_values=cfg.fail_for_unknown_values)
        self._rows: list[dict[str, Any]] = []

    @property
    def buffered(self) -> int:
        return len(self._rows)

    async def put(self, data: Any) -> bool:
        rows = self._encoder.encode_many(records_of(data))
        async with self._lock:
            self._rows.extend(rows)
            excess = len(self._rows) - self._cfg.max_buffered_rows
            if excess > 0:
                del self._rows[:excess]
                self._count_discarded(excess, "buffer full")
        return False

    async def flush(self) -> None:
        async with self._lock:
            if not self._rows:
                return
            try:
                await self._load(self._rows)
            except PERMANENT_ERRORS as exc:
                nrows = len(self._rows)
                self._rows = []
                self._discard(nrows, exc)
            self._rows = []

    async def _load(self, rows: list[dict[str, Any]]) -> None:
        schema = self._cfg.schema
        cols = schema.names if schema is not None else column_order(rows)
        table = table_identifier(self._table)

        async with self._connection(len(rows)) as conn:
            async with conn.cursor() as cur:
                if self._cfg.write_disposition == "truncate":
                    await cur.execute(psql.SQL("TRUNCATE {}").format(table))
                elif self._cfg.write_disposition == "empty":
                    await cur.execute(psql.SQL("SELECT 1 FROM {} LIMIT 1").format(table))
                    if await cur.fetchone() is not None:
                        raise TableNotEmptyError(f"table {self._table} is not empty")

                async with cur.copy(
                    copy_from_stdin(self._table, cols, self._cfg.source_format)
                ) as cp:
                    if self._cfg.source_format == "binary":
                        cp.set_types(schema.types)
                    for row in rows:
                        await cp.write_row(tuple(row.get(c) for c in cols))

        logger.debug(f"batch sink: loaded {len(rows)} rows into {self._table}")
