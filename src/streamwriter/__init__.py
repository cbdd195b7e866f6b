"""
streamwriter

Buffered, batched, retrying writes into a bulk-ingestion sink.

Usage:
    from streamwriter import Streamer, StreamerConfig, new_streamer

    # any object implementing the Sink protocol
    async with Streamer(my_sink, StreamerConfig(worker_count=4)) as streamer:
        await streamer.write({"id": 1})

    # PostgreSQL table through the default (INSERT) sink
    async with new_streamer("postgresql://...", "events") as streamer:
        await streamer.write({"id": 1, "payload": {"k": "v"}})
"""

from .config import (
    BatchSinkConfig,
    InsertSinkConfig,
    RetryConfig,
    StorageSinkConfig,
    StreamerConfig,
    sanitize_streamer_config,
)
from .coordinator import EngineState, RetryPolicy, Sink, Streamer, StreamerHealth
from .errors import (
    ConfigError,
    InvalidRecordError,
    NonRetryableError,
    RecordEncodingError,
    RowsRejectedError,
    SchemaRequiredError,
    StreamerClosedError,
    StreamwriterError,
    TableNotEmptyError,
)
from .factory import build_sink, new_streamer
from .log import Logger, StdLogger
from .schema import Column, TableSchema

__version__ = "0.1.0"
__all__ = [
    "Streamer",
    "StreamerHealth",
    "EngineState",
    "Sink",
    "RetryPolicy",
    "StreamerConfig",
    "RetryConfig",
    "InsertSinkConfig",
    "StorageSinkConfig",
    "BatchSinkConfig",
    "sanitize_streamer_config",
    "new_streamer",
    "build_sink",
    "Logger",
    "StdLogger",
    "Column",
    "TableSchema",
    "StreamwriterError",
    "StreamerClosedError",
    "InvalidRecordError",
    "ConfigError",
    "SchemaRequiredError",
    "NonRetryableError",
    "RecordEncodingError",
    "RowsRejectedError",
    "TableNotEmptyError",
]
