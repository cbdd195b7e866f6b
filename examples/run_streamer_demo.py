"""
Demo script for the Streamer.

Shows batching, a flaky sink being retried, and graceful shutdown.
"""

import asyncio
import random
from dataclasses import dataclass

from loguru import logger

from streamwriter import RetryConfig, Streamer, StreamerConfig


@dataclass
class Item:
    value: int


class PrintSink:
    """Simple sink that logs batches and fails now and then."""

    def __init__(self, failure_rate: float = 0.1):
        self.failure_rate = failure_rate
        self.written = 0

    async def put(self, data) -> bool:
        # Simulate I/O latency
        await asyncio.sleep(0.01)
        if random.random() < self.failure_rate:
            raise ConnectionError("simulated transient failure")
        self.written += len(data)
        logger.info(f"PrintSink wrote batch of {len(data)} (first={data[0].value})")
        return True

    async def flush(self) -> None:
        pass

    async def close(self) -> None:
        logger.info(f"PrintSink closed after {self.written} items")


async def main():
    sink = PrintSink()
    cfg = StreamerConfig(
        worker_count=2,
        worker_queue_size=100,
        batch_size=50,
        max_batch_delay=0.1,
        logger=logger,
        retry=RetryConfig(max_retries=5, initial_retry_delay=0.02, retry_delay_multiplier=2.0),
    )

    async with Streamer(sink, cfg, streamer_id="demo") as streamer:
        logger.info("🚀 Starting streamer demo - producing 5,000 items")

        for i in range(5_000):
            await streamer.write(Item(value=i))
            if i % 1000 == 0:
                health = streamer.health()
                logger.info(
                    f"Progress: {i}/5000 | "
                    f"Queued: {health.queued} ({health.queue_capacity}/worker) | "
                    f"Workers: {health.workers_alive}"
                )

        logger.info("⏳ Closing, workers drain what is left...")

    logger.info(f"✅ Streamer demo complete: state={streamer.state.value}")


if __name__ == "__main__":
    asyncio.run(main())
