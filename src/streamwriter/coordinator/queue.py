from __future__ import annotations

import asyncio
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class RecordQueue(Generic[T]):
    """Bounded per-worker record buffer.

    ``put`` suspends while the queue is full (backpressure). A capacity of 0
    is a synchronous hand-off: ``put`` returns only once a consumer has
    taken the record.
    """

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")

        self._capacity = capacity
        # hand-off still needs one slot to pass the record through
        self._q: asyncio.Queue[tuple[T, Optional[asyncio.Future[None]]]] = asyncio.Queue(
            maxsize=max(1, capacity)
        )

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return self._q.qsize()

    def empty(self) -> bool:
        return self._q.empty()

    async def put(self, item: T) -> None:
        if self._capacity:
            await self._q.put((item, None))
            return

        taken: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        await self._q.put((item, taken))
        await taken

    async def get(self, timeout: float | None = None) -> T:
        """Get the oldest record, optionally giving up after ``timeout`` seconds."""
        if timeout is None:
            entry = await self._q.get()
        else:
            entry = await asyncio.wait_for(self._q.get(), timeout=timeout)
        return self._release(entry)

    def get_nowait(self) -> T:
        """Raises asyncio.QueueEmpty when nothing is waiting."""
        return self._release(self._q.get_nowait())

    @staticmethod
    def _release(entry: tuple[T, Optional[asyncio.Future[None]]]) -> T:
        item, taken = entry
        if taken is not None and not taken.done():
            taken.set_result(None)
        return item
