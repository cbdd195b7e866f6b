from __future__ import annotations

from typing import Any, Union

from psycopg_pool import AsyncConnectionPool

from ..config import StorageSinkConfig, sanitize_storage_sink_config
from ..errors import SchemaRequiredError
from .base import PERMANENT_ERRORS, PostgresSink
from .encoding import RowEncoder, records_of
from .insert import insert_statement


class StorageSink(PostgresSink):
    """Managed-storage sink: validates every record and writes it immediately.

    Each ``put`` is one transaction, so it either lands completely or not at
    all, and always reports that it flushed. Rows the database rejects raise
    RowsRejectedError, which the workers do not retry. ``flush`` has
    nothing to do.
    """

    name = "storage"

    def __init__(
        self,
        pool: Union[AsyncConnectionPool, str],
        table: str,
        config: StorageSinkConfig,
        *,
        pool_max: int = 4,
    ):
        cfg = sanitize_storage_sink_config(config)
        if cfg is None:
            raise SchemaRequiredError("storage sink requires a StorageSinkConfig")
        super().__init__(pool, table, pool_max=pool_max)
        self._cfg = cfg
        self._encoder = RowEncoder(cfg.schema, model=cfg.model)
        self._stmt = insert_statement(table, cfg.schema.names)

    async def put(self, data: Any) -> bool:
        rows = self._encoder.encode_many(records_of(data))
        if not rows:
            return True
        try:
            async with self._connection(len(rows)) as conn:
                async with conn.cursor() as cur:
                    await cur.executemany(self._stmt, rows)
        except PERMANENT_ERRORS as exc:
            self._discard(len(rows), exc)
        return True

    async def flush(self) -> None:
        pass
