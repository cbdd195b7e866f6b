from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Generic, Optional, Union

from ..config import StreamerConfig, sanitize_streamer_config
from ..errors import InvalidRecordError, StreamerClosedError
from ..metrics import STREAMER_RECORDS_TOTAL, STREAMER_SINK_CALLS_TOTAL
from .dispatcher import Dispatcher
from .policy import RetryPolicy
from .queue import RecordQueue
from .types import EngineState, Sink, SinkFactory, T
from .worker import BatchWorker


@dataclass(frozen=True)
class StreamerHealth:
    state: Optional[EngineState]
    workers: int
    workers_alive: int
    queue_sizes: tuple[int, ...]
    queue_capacity: int

    @property
    def queued(self) -> int:
        return sum(self.queue_sizes)


class Streamer(Generic[T]):
    """Buffered, batched writer in front of a bulk-ingestion sink.

    Owns a fixed pool of BatchWorkers (one task each), their queues and the
    dispatcher routing records to them.

    Example:
        async with Streamer(sink, StreamerConfig(worker_count=4)) as streamer:
            for row in rows:
                await streamer.write(row)
        # close() drained every worker and closed the sink

    ``sink`` is either one Sink shared by all workers, or a factory (plain
    or async callable) invoked once per worker.

    Worker tasks need a running event loop, so constructing a Streamer does
    not open it: writes raise StreamerClosedError until ``start()`` ran.
    ``await Streamer.open(...)`` and ``async with Streamer(...)`` construct
    and start in one step.
    """

    def __init__(
        self,
        sink: Union[Sink, SinkFactory],
        config: Optional[StreamerConfig] = None,
        *,
        streamer_id: str = "streamer",
    ):
        self._cfg = sanitize_streamer_config(config)
        self._sink_src = sink
        self._id = streamer_id
        self._log = self._cfg.logger
        self._retry = RetryPolicy.from_config(self._cfg.retry)

        self._state: Optional[EngineState] = None
        self._queues: list[RecordQueue[T]] = [
            RecordQueue(self._cfg.worker_queue_size) for _ in range(self._cfg.worker_count)
        ]
        self._dispatcher: Dispatcher[T] = Dispatcher(self._queues, lambda: self._state)
        self._workers: list[BatchWorker[T]] = []
        self._sinks: list[Sink] = []
        self._closed = asyncio.Event()

    @classmethod
    async def open(
        cls,
        sink: Union[Sink, SinkFactory],
        config: Optional[StreamerConfig] = None,
        *,
        streamer_id: str = "streamer",
    ) -> "Streamer[T]":
        """Construct and start a streamer in one call."""
        streamer: Streamer[T] = cls(sink, config, streamer_id=streamer_id)
        await streamer.start()
        return streamer

    @property
    def config(self) -> StreamerConfig:
        return self._cfg

    @property
    def state(self) -> Optional[EngineState]:
        return self._state

    async def __aenter__(self) -> "Streamer[T]":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------------------- lifecycle

    async def start(self) -> None:
        """Start one worker task per pool slot; the streamer is OPEN afterwards."""
        if self._state is not None:
            return

        for i, queue in enumerate(self._queues):
            sink = await self._build_sink()
            if all(sink is not s for s in self._sinks):
                self._sinks.append(sink)
            self._workers.append(
                BatchWorker(
                    i,
                    queue,
                    sink,
                    batch_size=self._cfg.batch_size,
                    max_batch_delay=self._cfg.max_batch_delay,
                    retry_policy=self._retry,
                    logger=self._log,
                    streamer_id=self._id,
                )
            )
        for w in self._workers:
            w.start()

        self._state = EngineState.OPEN
        self._log.debug(
            "streamer {} open: workers={} queue_size={} batch_size={} max_batch_delay={}s",
            self._id,
            self._cfg.worker_count,
            self._cfg.worker_queue_size,
            self._cfg.batch_size,
            self._cfg.max_batch_delay,
        )

    async def _build_sink(self) -> Sink:
        # a Sink class is a factory, not an instance
        if isinstance(self._sink_src, Sink) and not isinstance(self._sink_src, type):
            return self._sink_src
        sink = self._sink_src()
        if inspect.isawaitable(sink):
            sink = await sink
        return sink

    async def write(self, record: T) -> None:
        """Queue ``record`` for delivery.

        Suspends while the target worker's queue is full. Raises
        InvalidRecordError for None/empty records and StreamerClosedError
        once close() has begun. Delivery failures are never raised here.
        """
        try:
            await self._dispatcher.write(record)
        except InvalidRecordError:
            STREAMER_RECORDS_TOTAL.labels(self._id, "invalid").inc()
            raise
        except StreamerClosedError:
            STREAMER_RECORDS_TOTAL.labels(self._id, "closed").inc()
            raise
        STREAMER_RECORDS_TOTAL.labels(self._id, "accepted").inc()

    async def close(self) -> list[Exception]:
        """Drain every worker, close the sink(s) and stop accepting writes.

        Errors met while draining or closing are logged and returned, never
        raised. Records admitted before close() began are still delivered.
        Calling close() again is a no-op returning an empty list.
        """
        if self._state is EngineState.CLOSING:
            await self._closed.wait()
            return []
        if self._state is EngineState.CLOSED:
            return []
        if self._state is None:
            # never started: nothing to drain, sinks were never built
            self._state = EngineState.CLOSED
            self._closed.set()
            return []

        self._state = EngineState.CLOSING
        self._log.debug("streamer {} closing", self._id)

        # admitted writes still waiting for queue space land before the workers stop
        await self._dispatcher.wait_idle()
        for w in self._workers:
            w.request_stop()
        await asyncio.gather(*(w.wait_stopped() for w in self._workers))

        errors: list[Exception] = [e for w in self._workers for e in w.drain_errors]
        for sink in self._sinks:
            try:
                await sink.close()
                STREAMER_SINK_CALLS_TOTAL.labels(self._id, "close", "success").inc()
            except Exception as exc:
                STREAMER_SINK_CALLS_TOTAL.labels(self._id, "close", "failure").inc()
                errors.append(exc)

        if errors:
            self._log.error(
                "streamer {} closed with {} error(s): {}",
                self._id,
                len(errors),
                "; ".join(f"{type(e).__name__}: {e}" for e in errors),
            )

        self._state = EngineState.CLOSED
        self._closed.set()
        self._log.debug("streamer {} closed", self._id)
        return errors

    # --------------------------- introspection

    def health(self) -> StreamerHealth:
        return StreamerHealth(
            state=self._state,
            workers=len(self._workers),
            workers_alive=sum(1 for w in self._workers if w.is_alive()),
            queue_sizes=tuple(q.size for q in self._queues),
            queue_capacity=self._cfg.worker_queue_size,
        )
