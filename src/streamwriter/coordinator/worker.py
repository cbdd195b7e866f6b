from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Generic, Optional

from ..log import Logger, StdLogger
from ..metrics import (
    STREAMER_QUEUE_DEPTH,
    STREAMER_RECORDS_DROPPED_TOTAL,
    STREAMER_SINK_CALL_LATENCY,
    STREAMER_SINK_CALLS_TOTAL,
)
from .policy import RetryPolicy
from .queue import RecordQueue
from .types import Sink, T, WorkerState


class BatchWorker(Generic[T]):
    """Consumes one RecordQueue, batches records and hands them to the sink.

    The worker is the only writer of its batch. While accumulating it waits
    on whichever comes first: the next record, the batch timer or the stop
    signal. The batch timer runs ``max_batch_delay`` from the last flush, so
    a trickle of records is still delivered within that delay, and sinks
    that buffer internally are flushed on the same cadence.
    """

    def __init__(
        self,
        worker_id: int,
        queue: RecordQueue[T],
        sink: Sink,
        *,
        batch_size: int = 1,
        max_batch_delay: float = 5.0,
        retry_policy: Optional[RetryPolicy] = None,
        logger: Optional[Logger] = None,
        streamer_id: str = "streamer",
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_batch_delay <= 0:
            raise ValueError("max_batch_delay must be > 0")

        self.worker_id = worker_id
        self._queue = queue
        self._sink = sink
        self._batch_size = batch_size
        self._delay = max_batch_delay
        self._retry = retry_policy or RetryPolicy()
        self._log = logger or StdLogger()
        self._sid = streamer_id

        self._batch: list[T] = []
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self.state = WorkerState.IDLE
        self.drain_errors: list[Exception] = []

    @property
    def sink(self) -> Sink:
        return self._sink

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(
                self._run(), name=f"streamwriter-{self._sid}-worker-{self.worker_id}"
            )

    def request_stop(self) -> None:
        self._stop.set()

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        """Signal the worker to drain and wait until it stopped."""
        self.request_stop()
        await self.wait_stopped()

    def is_alive(self) -> bool:
        return self._task is not None and not self._task.done()

    # --------------------------- main loop

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._delay
        getter: Optional[asyncio.Task[T]] = None
        stopper = asyncio.create_task(self._stop.wait())
        self._log.debug("worker {} started", self.worker_id)
        try:
            while True:
                if getter is None:
                    getter = asyncio.create_task(self._queue.get())
                timeout = max(0.0, deadline - loop.time())
                done, _ = await asyncio.wait(
                    {getter, stopper}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
                )

                if getter in done:
                    record = getter.result()
                    getter = None
                    self._append(record)
                    if len(self._batch) >= self._batch_size:
                        if await self._flush(explicit=False):
                            deadline = loop.time() + self._delay
                    continue

                if stopper in done:
                    break

                # batch timer elapsed
                await self._flush(explicit=True)
                deadline = loop.time() + self._delay
        finally:
            stopper.cancel()
            leftover = self._release_getter(getter)

        self.state = WorkerState.DRAINING
        if leftover is not None:
            self._append(leftover)
        await self._drain()
        self.state = WorkerState.STOPPED
        self._log.debug("worker {} stopped", self.worker_id)

    def _append(self, record: T) -> None:
        self._batch.append(record)
        if self.state is not WorkerState.DRAINING:
            self.state = WorkerState.ACCUMULATING
        STREAMER_QUEUE_DEPTH.labels(self._sid, str(self.worker_id)).set(self._queue.size)

    @staticmethod
    def _release_getter(getter: Optional[asyncio.Task[T]]) -> Optional[T]:
        """Cancel a pending get; return its record if it already completed."""
        if getter is None:
            return None
        if getter.done() and not getter.cancelled() and getter.exception() is None:
            return getter.result()
        getter.cancel()
        return None

    async def _drain(self) -> None:
        # the dispatcher stopped admitting before stop was signalled,
        # so whatever is queued now is all that is left
        while True:
            try:
                record = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._append(record)
            if len(self._batch) >= self._batch_size:
                await self._flush(explicit=False, draining=True)
        await self._flush(explicit=True, draining=True)

    # --------------------------- flushing

    async def _flush(self, *, explicit: bool, draining: bool = False) -> bool:
        """Put the current batch; on ``explicit`` also flush the sink unless it just did.

        Returns True when the sink's buffered data was delivered. The batch is
        cleared whatever the outcome: a batch that exhausted its retry budget
        is dropped and logged.
        """
        if not draining:
            self.state = WorkerState.FLUSHING
        flushed = False
        try:
            if self._batch:
                batch, self._batch = self._batch, []
                try:
                    flushed = await self._call("put", lambda: self._sink.put(batch))
                except Exception as exc:
                    self._on_failure("put", exc, len(batch), draining)
                    return False

            if explicit and not flushed:
                try:
                    await self._call("flush", self._sink.flush)
                except Exception as exc:
                    self._on_failure("flush", exc, 0, draining)
                    return False
                flushed = True
            return flushed
        finally:
            if not draining:
                self.state = WorkerState.IDLE

    async def _call(self, op: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        def on_retry(exc: BaseException, attempt: int, delay: float) -> None:
            STREAMER_SINK_CALLS_TOTAL.labels(self._sid, op, "retry").inc()
            self._log.debug(
                "worker {} sink {} attempt {} failed ({}), retrying in {:.3f}s",
                self.worker_id,
                op,
                attempt,
                exc,
                delay,
            )

        t0 = time.perf_counter()
        try:
            result = await self._retry.run(fn, on_retry=on_retry)
        except Exception:
            STREAMER_SINK_CALLS_TOTAL.labels(self._sid, op, "failure").inc()
            raise
        finally:
            STREAMER_SINK_CALL_LATENCY.labels(self._sid, op).observe(time.perf_counter() - t0)
        STREAMER_SINK_CALLS_TOTAL.labels(self._sid, op, "success").inc()
        return result

    def _on_failure(self, op: str, exc: Exception, dropped: int, draining: bool) -> None:
        if dropped:
            STREAMER_RECORDS_DROPPED_TOTAL.labels(self._sid, str(self.worker_id)).inc(dropped)
            self._log.error(
                "worker {} dropped batch of {} record(s), sink {} failed: {}: {}",
                self.worker_id,
                dropped,
                op,
                type(exc).__name__,
                exc,
            )
        else:
            self._log.error(
                "worker {} sink {} failed: {}: {}", self.worker_id, op, type(exc).__name__, exc
            )
        if draining:
            self.drain_errors.append(exc)
