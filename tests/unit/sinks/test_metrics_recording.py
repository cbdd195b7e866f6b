"""
Unit tests for metrics recording.
"""

import pytest
from prometheus_client import REGISTRY

from streamwriter.errors import RowsRejectedError
from streamwriter.sinks import SINK_WRITE_LATENCY, SINK_WRITES_TOTAL, InsertSink


@pytest.mark.asyncio
async def test_metrics_success_increment(fake_pool):
    """Test that successful writes increment success metrics."""
    sink = InsertSink(fake_pool, "events")

    async with sink:
        await sink.put({"id": 1})

    # Ensure at least one sample recorded
    samples = list(SINK_WRITES_TOTAL.collect())[0].samples
    success_samples = [
        s for s in samples if s.labels.get("sink") == "insert" and s.labels.get("status") == "success"
    ]
    assert len(success_samples) > 0


@pytest.mark.asyncio
async def test_metrics_failure_increment(fake_pool):
    """Test that failed writes increment failure metrics."""
    sink = InsertSink(fake_pool, "events")
    await sink.put({"id": 1})
    fake_pool.fail_next.append(RuntimeError("DB unavailable"))

    with pytest.raises(RuntimeError):
        await sink.flush()

    # Ensure failure metric recorded
    samples = list(SINK_WRITES_TOTAL.collect())[0].samples
    failure_samples = [
        s for s in samples if s.labels.get("sink") == "insert" and s.labels.get("status") == "failure"
    ]
    assert len(failure_samples) > 0


@pytest.mark.asyncio
async def test_metrics_latency_recorded(fake_pool):
    """Test that write latency is recorded."""
    sink = InsertSink(fake_pool, "events")

    async with sink:
        await sink.put({"id": 1})

    # Ensure latency histogram has insert sink samples
    samples = list(SINK_WRITE_LATENCY.collect())[0].samples
    insert_samples = [s for s in samples if s.labels.get("sink") == "insert"]
    assert len(insert_samples) > 0


@pytest.mark.asyncio
async def test_metrics_discarded_rows_counted(fake_pool):
    """Rows dropped after a permanent failure are counted as discarded."""

    def discarded() -> float:
        value = REGISTRY.get_sample_value(
            "streamwriter_sink_writes_total", {"sink": "insert", "status": "discarded"}
        )
        return value or 0.0

    before = discarded()
    fake_pool.reject = lambda row: row["id"] == 2
    sink = InsertSink(fake_pool, "events")
    await sink.put([{"id": 1}, {"id": 2}, {"id": 3}])

    with pytest.raises(RowsRejectedError):
        await sink.flush()

    assert discarded() - before == 3
