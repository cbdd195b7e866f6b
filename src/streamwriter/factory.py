from __future__ import annotations

from typing import Any, Optional, Union

from psycopg_pool import AsyncConnectionPool

from .config import StreamerConfig, sanitize_streamer_config
from .coordinator import Sink, Streamer
from .schema import TableSchema
from .sinks import BatchSink, InsertSink, StorageSink


def build_sink(
    pool: Union[AsyncConnectionPool, str],
    table: str,
    config: Optional[StreamerConfig] = None,
    *,
    schema: Optional[TableSchema] = None,
) -> Sink:
    """Pick the sink the config asks for: storage, then batch, else insert."""
    cfg = sanitize_streamer_config(config)
    if cfg.storage_sink is not None:
        return StorageSink(pool, table, cfg.storage_sink, pool_max=cfg.worker_count)
    if cfg.batch_sink is not None:
        return BatchSink(pool, table, cfg.batch_sink, pool_max=cfg.worker_count)
    return InsertSink(pool, table, cfg.insert_sink, schema=schema, pool_max=cfg.worker_count)


def new_streamer(
    pool: Union[AsyncConnectionPool, str],
    table: str,
    config: Optional[StreamerConfig] = None,
    *,
    schema: Optional[TableSchema] = None,
    streamer_id: Optional[str] = None,
) -> Streamer[Any]:
    """Streamer writing into ``table`` through one shared PostgreSQL sink.

    Not started yet: use ``async with`` or ``await streamer.start()``.
    """
    sink = build_sink(pool, table, config, schema=schema)
    return Streamer(sink, config, streamer_id=streamer_id or table)
