"""Write engine

Caller -> Dispatcher -> per-worker RecordQueue -> BatchWorker -> Sink:
- RecordQueue (bounded, backpressure, zero-capacity hand-off)
- BatchWorker with size/time-triggered flushing and draining on stop
- RetryPolicy bounded by an elapsed-time deadline
- Dispatcher with round-robin routing and admission checks
- Streamer orchestration, graceful shutdown and health
"""

from .types import Sink, SinkFactory, EngineState, WorkerState, T
from .policy import RetryPolicy, RetryBudget, default_retry_classifier
from .queue import RecordQueue
from .worker import BatchWorker
from .dispatcher import Dispatcher, is_empty_record
from .streamer import Streamer, StreamerHealth

__all__ = [
    # types
    "Sink",
    "SinkFactory",
    "EngineState",
    "WorkerState",
    "T",
    "StreamerHealth",
    # policies
    "RetryPolicy",
    "RetryBudget",
    "default_retry_classifier",
    # runtime
    "RecordQueue",
    "BatchWorker",
    "Dispatcher",
    "is_empty_record",
    "Streamer",
]
