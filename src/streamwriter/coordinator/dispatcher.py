from __future__ import annotations

import asyncio
import itertools
from collections.abc import Sized
from typing import Any, Callable, Generic, Optional, Sequence

from ..errors import InvalidRecordError, StreamerClosedError
from .queue import RecordQueue
from .types import EngineState, T


def is_empty_record(record: Any) -> bool:
    """None and zero-length records (``""``, ``b""``, ``[]``, ``{}``) are never admitted."""
    if record is None:
        return True
    return isinstance(record, Sized) and len(record) == 0


class Dispatcher(Generic[T]):
    """Admits records and routes them round-robin to the worker queues.

    Routing is fixed for the lifetime of the pool; records are never
    rebalanced between workers. The dispatcher tracks writes that were
    admitted but are still suspended on a full queue so that shutdown can
    wait for them to land before stopping the workers.
    """

    def __init__(
        self,
        queues: Sequence[RecordQueue[T]],
        state: Callable[[], Optional[EngineState]],
    ):
        if not queues:
            raise ValueError("dispatcher needs at least one queue")
        self._queues = list(queues)
        self._state = state
        self._rr = itertools.cycle(range(len(self._queues)))
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def write(self, record: T) -> int:
        """Enqueue ``record``; returns the index of the worker it was routed to.

        Suspends while the target queue is full.
        """
        if is_empty_record(record):
            raise InvalidRecordError("record must not be None or empty")
        if self._state() is not EngineState.OPEN:
            raise StreamerClosedError("streamer is not open")

        idx = next(self._rr)
        self._in_flight += 1
        self._idle.clear()
        try:
            await self._queues[idx].put(record)
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()
        return idx

    async def wait_idle(self) -> None:
        """Wait until no admitted write is still waiting for queue space."""
        await self._idle.wait()
