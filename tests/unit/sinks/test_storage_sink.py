"""
Unit tests for StorageSink.
"""

from typing import Optional

import pytest
from pydantic import BaseModel

from streamwriter.config import StorageSinkConfig
from streamwriter.errors import RecordEncodingError, RowsRejectedError, SchemaRequiredError
from streamwriter.schema import TableSchema
from streamwriter.sinks import StorageSink
from streamwriter.sinks.insert import insert_statement


class Trade(BaseModel):
    symbol: str
    price: float
    venue: Optional[str] = None


def test_requires_schema_or_model(fake_pool):
    with pytest.raises(SchemaRequiredError):
        StorageSink(fake_pool, "trades", StorageSinkConfig())
    with pytest.raises(SchemaRequiredError):
        StorageSink(fake_pool, "trades", None)


@pytest.mark.asyncio
async def test_put_writes_immediately(fake_pool):
    sink = StorageSink(fake_pool, "trades", StorageSinkConfig(model=Trade))

    assert await sink.put({"symbol": "AAPL", "price": "101.5"}) is True
    assert await sink.put([Trade(symbol="MSFT", price=1.0, venue="X")]) is True

    assert fake_pool.inserted_rows() == [
        {"symbol": "AAPL", "price": 101.5, "venue": None},
        {"symbol": "MSFT", "price": 1.0, "venue": "X"},
    ]
    stmt, _ = fake_pool.executed()[0]
    assert stmt == insert_statement("trades", ["symbol", "price", "venue"])


@pytest.mark.asyncio
async def test_schema_only(fake_pool):
    sink = StorageSink(fake_pool, "trades", StorageSinkConfig(schema=TableSchema(columns=["symbol"])))
    await sink.put('{"symbol": "AAPL", "ignored": 1}')
    assert fake_pool.inserted_rows() == [{"symbol": "AAPL"}]


@pytest.mark.asyncio
async def test_invalid_record_rejected_whole_put(fake_pool):
    sink = StorageSink(fake_pool, "trades", StorageSinkConfig(model=Trade))
    with pytest.raises(RecordEncodingError):
        await sink.put([{"symbol": "AAPL", "price": 1.0}, {"symbol": "BAD"}])
    assert fake_pool.committed == []


@pytest.mark.asyncio
async def test_failed_put_rolls_back(fake_pool):
    sink = StorageSink(fake_pool, "trades", StorageSinkConfig(model=Trade))
    fake_pool.fail_next.append(ConnectionError("reset"))

    with pytest.raises(ConnectionError):
        await sink.put({"symbol": "AAPL", "price": 1.0})
    assert fake_pool.rollbacks == 1

    await sink.put({"symbol": "AAPL", "price": 1.0})
    assert len(fake_pool.inserted_rows()) == 1


@pytest.mark.asyncio
async def test_flush_is_noop(fake_pool):
    sink = StorageSink(fake_pool, "trades", StorageSinkConfig(model=Trade))
    await sink.flush()
    assert fake_pool.committed == []


@pytest.mark.asyncio
async def test_rejected_rows_not_retryable(fake_pool):
    fake_pool.reject = lambda row: row["symbol"] == "NULL"
    sink = StorageSink(fake_pool, "trades", StorageSinkConfig(model=Trade))

    with pytest.raises(RowsRejectedError):
        await sink.put({"symbol": "NULL", "price": 1.0})
    assert fake_pool.rollbacks == 1

    assert await sink.put({"symbol": "AAPL", "price": 1.0}) is True
    assert len(fake_pool.inserted_rows()) == 1
