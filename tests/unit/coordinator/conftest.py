"""
Fixtures for coordinator unit tests.
"""

import asyncio

import pytest


class StubSink:
    """In-memory sink recording every call.

    ``next_errors`` are raised, one per call, by the next put/flush
    calls; ``close_error`` is raised by close. ``put_signal`` receives one
    item per put attempt.
    """

    def __init__(self):
        self.rows = []
        self.puts = []
        self.flush_count = 0
        self.close_count = 0
        self.next_errors: list[Exception] = []
        self.flush_next_put = False
        self.close_error: Exception | None = None
        self.put_signal: asyncio.Queue = asyncio.Queue()

    def _maybe_fail(self) -> None:
        if self.next_errors:
            raise self.next_errors.pop(0)

    async def put(self, data) -> bool:
        try:
            self._maybe_fail()
            self.puts.append(data)
            if isinstance(data, list):
                self.rows.extend(data)
            else:
                self.rows.append(data)
            if self.flush_next_put:
                self.flush_next_put = False
                self.flush_count += 1
                return True
            return False
        finally:
            self.put_signal.put_nowait(data)

    async def flush(self) -> None:
        self._maybe_fail()
        self.flush_count += 1

    async def close(self) -> None:
        self.close_count += 1
        if self.close_error is not None:
            raise self.close_error

    async def wait_puts(self, n: int, timeout: float = 1.0) -> None:
        for _ in range(n):
            await asyncio.wait_for(self.put_signal.get(), timeout=timeout)


@pytest.fixture
def stub_sink():
    return StubSink()


@pytest.fixture
def stub_sink_cls():
    return StubSink
