"""
Streamer configuration and its sanitising (defaulting) rules.

Every setting is optional; zero values mean "use the default". The
``sanitize_*`` functions never mutate their input, they return a new
config with all defaults filled in.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal, Optional

from pydantic import BaseModel

from .errors import ConfigError, SchemaRequiredError
from .log import Logger, StdLogger
from .schema import TableSchema

DEFAULT_WORKER_COUNT = 2
DEFAULT_WORKER_QUEUE_SIZE = 100
DEFAULT_MAX_BATCH_DELAY = 5.0  # seconds

DEFAULT_BATCH_SIZE = 200  # insert sink rows per INSERT round-trip
DEFAULT_MAX_BUFFERED_ROWS = 100_000  # batch sink rows held while loads keep failing

DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DEADLINE_OFFSET = 15.0  # seconds
DEFAULT_RETRY_DELAY_MULTIPLIER = 1.1

SourceFormat = Literal["csv", "text", "binary"]
WriteDisposition = Literal["append", "truncate", "empty"]

SOURCE_FORMATS: tuple[str, ...] = ("csv", "text", "binary")
WRITE_DISPOSITIONS: tuple[str, ...] = ("append", "truncate", "empty")
DEFAULT_SOURCE_FORMAT: SourceFormat = "csv"
DEFAULT_WRITE_DISPOSITION: WriteDisposition = "append"


@dataclass
class RetryConfig:
    """Retry budget applied by the workers around every sink call."""

    # 0 (or None) retries until the deadline, negative disables retrying,
    # a positive value also caps the number of retries
    max_retries: Optional[int] = 0
    initial_retry_delay: float = 0.0
    # ceiling measured from the first attempt; may be overstepped by one in-flight attempt
    max_retry_deadline_offset: float = 0.0
    # values <= 1 are replaced by DEFAULT_RETRY_DELAY_MULTIPLIER
    retry_delay_multiplier: float = 0.0


@dataclass
class InsertSinkConfig:
    """Buffered multi-row INSERT sink (the default sink)."""

    # rows buffered before an INSERT round-trip; negative (or 1) writes every row directly
    batch_size: int = 0
    ignore_conflicts: bool = False
    fail_for_unknown_values: bool = False


@dataclass
class StorageSinkConfig:
    """Immediate, schema-validated transactional writes.

    Either ``model`` (a pydantic model validating every record, recommended)
    or ``schema`` is required.
    """

    schema: Optional[TableSchema] = None
    model: Optional[type[BaseModel]] = None


@dataclass
class BatchSinkConfig:
    """Buffered COPY ... FROM STDIN load jobs, one per flush."""

    schema: Optional[TableSchema] = None
    source_format: str = ""
    write_disposition: str = ""
    fail_for_unknown_values: bool = False
    # oldest rows are discarded beyond this many; <= 0 means DEFAULT_MAX_BUFFERED_ROWS
    max_buffered_rows: int = 0


@dataclass
class StreamerConfig:
    # negative means a single worker
    worker_count: int = 0
    # negative means no buffer at all (synchronous hand-off to the worker)
    worker_queue_size: int = 0
    max_batch_delay: float = 0.0
    # records a worker accumulates per Sink.put; 1 (default) passes records one by one
    batch_size: int = 0
    logger: Optional[Logger] = None
    retry: Optional[RetryConfig] = None
    insert_sink: Optional[InsertSinkConfig] = None
    storage_sink: Optional[StorageSinkConfig] = None
    batch_sink: Optional[BatchSinkConfig] = None


def sanitize_streamer_config(cfg: StreamerConfig | None) -> StreamerConfig:
    """Return a new StreamerConfig with every default filled in."""
    src = cfg if cfg is not None else StreamerConfig()

    if src.worker_count < 0:
        worker_count = 1
    elif src.worker_count == 0:
        worker_count = DEFAULT_WORKER_COUNT
    else:
        worker_count = src.worker_count

    insert_sink = sanitize_insert_sink_config(src.insert_sink)
    storage_sink = sanitize_storage_sink_config(src.storage_sink)
    batch_sink = sanitize_batch_sink_config(src.batch_sink)

    if src.worker_queue_size < 0:
        worker_queue_size = 0
    elif src.worker_queue_size == 0:
        if storage_sink is None:
            # half a sink batch of slack per worker
            worker_queue_size = (insert_sink.batch_size + 1) // 2
        else:
            # storage writes stream straight through, fixed buffer instead
            worker_queue_size = DEFAULT_WORKER_QUEUE_SIZE
    else:
        worker_queue_size = src.worker_queue_size

    max_batch_delay = src.max_batch_delay if src.max_batch_delay else DEFAULT_MAX_BATCH_DELAY
    if max_batch_delay < 0:
        raise ConfigError(f"max_batch_delay must be positive, got {max_batch_delay}")

    return StreamerConfig(
        worker_count=worker_count,
        worker_queue_size=worker_queue_size,
        max_batch_delay=max_batch_delay,
        batch_size=max(1, src.batch_size),
        logger=src.logger if src.logger is not None else StdLogger(),
        retry=sanitize_retry_config(src.retry),
        insert_sink=insert_sink,
        storage_sink=storage_sink,
        batch_sink=batch_sink,
    )


def sanitize_retry_config(cfg: RetryConfig | None) -> RetryConfig:
    src = cfg if cfg is not None else RetryConfig()

    max_retries: Optional[int]
    if not src.max_retries:
        # bounded by max_retry_deadline_offset only
        max_retries = None
    elif src.max_retries < 0:
        max_retries = 0
    else:
        max_retries = src.max_retries

    # a multiplier <= 1 would shrink (or never grow) the delay, so it is not accepted
    multiplier = src.retry_delay_multiplier
    if multiplier <= 1:
        multiplier = DEFAULT_RETRY_DELAY_MULTIPLIER

    return RetryConfig(
        max_retries=max_retries,
        initial_retry_delay=src.initial_retry_delay or DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_deadline_offset=src.max_retry_deadline_offset
        or DEFAULT_MAX_RETRY_DEADLINE_OFFSET,
        retry_delay_multiplier=multiplier,
    )


def sanitize_insert_sink_config(cfg: InsertSinkConfig | None) -> InsertSinkConfig:
    src = cfg if cfg is not None else InsertSinkConfig()

    if src.batch_size < 0:
        batch_size = 1
    elif src.batch_size == 0:
        batch_size = DEFAULT_BATCH_SIZE
    else:
        batch_size = src.batch_size

    return replace(src, batch_size=batch_size)


def sanitize_storage_sink_config(cfg: StorageSinkConfig | None) -> StorageSinkConfig | None:
    if cfg is None:
        # not configured: the streamer uses another sink
        return None
    if cfg.model is None and cfg.schema is None:
        raise SchemaRequiredError("storage sink requires a pydantic model or a table schema")
    schema = cfg.schema if cfg.schema is not None else TableSchema.from_model(cfg.model)
    return StorageSinkConfig(schema=schema, model=cfg.model)


def sanitize_batch_sink_config(cfg: BatchSinkConfig | None) -> BatchSinkConfig | None:
    if cfg is None:
        return None

    source_format = (cfg.source_format or DEFAULT_SOURCE_FORMAT).lower()
    if source_format not in SOURCE_FORMATS:
        raise ConfigError(f"unknown source_format {cfg.source_format!r}, use one of {SOURCE_FORMATS}")

    write_disposition = (cfg.write_disposition or DEFAULT_WRITE_DISPOSITION).lower()
    if write_disposition not in WRITE_DISPOSITIONS:
        raise ConfigError(
            f"unknown write_disposition {cfg.write_disposition!r}, use one of {WRITE_DISPOSITIONS}"
        )

    # binary COPY needs the column types up front, text formats can infer columns from the rows
    if cfg.schema is None and source_format == "binary":
        raise SchemaRequiredError("binary source_format requires a table schema")

    max_buffered_rows = cfg.max_buffered_rows
    if max_buffered_rows <= 0:
        max_buffered_rows = DEFAULT_MAX_BUFFERED_ROWS

    return BatchSinkConfig(
        schema=cfg.schema,
        source_format=source_format,
        write_disposition=write_disposition,
        fail_for_unknown_values=cfg.fail_for_unknown_values,
        max_buffered_rows=max_buffered_rows,
    )
