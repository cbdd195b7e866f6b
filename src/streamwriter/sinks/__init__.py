"""
PostgreSQL sink adapters for the streamer.

- InsertSink: buffered multi-row INSERTs (default)
- StorageSink: immediate, schema-validated transactional writes
- BatchSink: buffered COPY ... FROM STDIN load jobs
"""

from ..metrics import SINK_WRITE_LATENCY, SINK_WRITES_TOTAL
from .base import PostgresSink
from .batch import BatchSink
from .encoding import RowEncoder
from .insert import InsertSink
from .storage import StorageSink

__all__ = [
    "PostgresSink",
    "InsertSink",
    "StorageSink",
    "BatchSink",
    "RowEncoder",
    "SINK_WRITES_TOTAL",
    "SINK_WRITE_LATENCY",
]
