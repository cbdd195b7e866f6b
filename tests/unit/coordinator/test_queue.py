"""
Unit tests for RecordQueue: FIFO order, backpressure and hand-off.
"""

import asyncio

import pytest

from streamwriter.coordinator import RecordQueue


def test_negative_capacity_rejected():
    with pytest.raises(ValueError):
        RecordQueue(-1)


@pytest.mark.asyncio
async def test_fifo_order():
    q = RecordQueue[int](capacity=10)
    for i in range(5):
        await q.put(i)
    assert q.size == 5
    assert [await q.get() for _ in range(5)] == [0, 1, 2, 3, 4]
    assert q.empty()


@pytest.mark.asyncio
async def test_put_suspends_when_full():
    """A full queue makes the producer wait until a slot frees up."""
    q = RecordQueue[int](capacity=2)
    await q.put(1)
    await q.put(2)

    blocked = asyncio.create_task(q.put(3))
    await asyncio.sleep(0.05)
    assert not blocked.done()

    assert await q.get() == 1
    await asyncio.wait_for(blocked, timeout=1.0)
    assert q.size == 2


@pytest.mark.asyncio
async def test_zero_capacity_is_hand_off():
    """With capacity 0, put returns only once a consumer took the record."""
    q = RecordQueue[str](capacity=0)
    assert q.capacity == 0

    producer = asyncio.create_task(q.put("hello"))
    await asyncio.sleep(0.05)
    assert not producer.done()

    assert await q.get() == "hello"
    await asyncio.wait_for(producer, timeout=1.0)


@pytest.mark.asyncio
async def test_get_timeout():
    q = RecordQueue[int](capacity=1)
    with pytest.raises(asyncio.TimeoutError):
        await q.get(timeout=0.05)


@pytest.mark.asyncio
async def test_get_nowait_empty_raises():
    q = RecordQueue[int](capacity=1)
    with pytest.raises(asyncio.QueueEmpty):
        q.get_nowait()

    await q.put(7)
    assert q.get_nowait() == 7


@pytest.mark.asyncio
async def test_get_nowait_releases_hand_off_producer():
    q = RecordQueue[int](capacity=0)
    producer = asyncio.create_task(q.put(1))
    await asyncio.sleep(0.01)

    assert q.get_nowait() == 1
    await asyncio.wait_for(producer, timeout=1.0)
