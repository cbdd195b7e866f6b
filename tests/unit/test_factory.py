"""
Unit tests for sink selection and new_streamer wiring.
"""

import pytest
from psycopg_pool import AsyncConnectionPool

from streamwriter import (
    BatchSinkConfig,
    StorageSinkConfig,
    StreamerConfig,
    TableSchema,
    build_sink,
    new_streamer,
)
from streamwriter.sinks import BatchSink, InsertSink, StorageSink


class DummyPool:
    pass


def test_default_is_insert_sink():
    sink = build_sink(DummyPool(), "events")
    assert isinstance(sink, InsertSink)
    assert sink.table == "events"


def test_storage_sink_selected_first():
    cfg = StreamerConfig(
        storage_sink=StorageSinkConfig(schema=TableSchema(columns=["id"])),
        batch_sink=BatchSinkConfig(),
    )
    assert isinstance(build_sink(DummyPool(), "events", cfg), StorageSink)


def test_batch_sink_selected():
    cfg = StreamerConfig(batch_sink=BatchSinkConfig(source_format="text"))
    assert isinstance(build_sink(DummyPool(), "events", cfg), BatchSink)


@pytest.mark.asyncio
async def test_dsn_creates_owned_pool_sized_to_workers(mock_dsn):
    sink = build_sink(mock_dsn, "events", StreamerConfig(worker_count=3))
    assert isinstance(sink._pool, AsyncConnectionPool)
    assert sink._pool.max_size == 3
    # never opened, so nothing to close
    await sink.close()


def test_new_streamer_not_started():
    streamer = new_streamer(DummyPool(), "public.events", StreamerConfig(worker_count=1))
    assert streamer.state is None
    assert streamer.config.worker_count == 1
    assert streamer.health().workers == 0
