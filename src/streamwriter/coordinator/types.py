from __future__ import annotations

from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, TypeVar, Union, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class Sink(Protocol):
    """Bulk-ingestion target the workers write to.

    The streamer is generic over this contract and never special-cases an
    implementation. A sink shared by several workers must tolerate
    concurrent ``put``/``flush`` calls.
    """

    async def put(self, data: Any) -> bool:
        """Accept a list of records (workers always pass a list).

        Returns True when the sink delivered its buffered data as a side
        effect of this call. Raises on failure; calling again with the same
        data after a failure must not duplicate rows.
        """
        ...

    async def flush(self) -> None:
        """Deliver anything buffered internally."""
        ...

    async def close(self) -> None:
        """Release resources. Called once, after every worker stopped."""
        ...


SinkFactory = Callable[[], Union[Sink, Awaitable[Sink]]]


class EngineState(str, Enum):
    """Streamer lifecycle: OPEN -> CLOSING -> CLOSED, never backwards."""

    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class WorkerState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    DRAINING = "draining"
    STOPPED = "stopped"
