from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import BatchSinkConfig, InsertSinkConfig, RetryConfig, StreamerConfig
from .errors import ConfigError


class StreamerSettings(BaseSettings):
    """Environment-driven streamer settings (``STREAMWRITER_*``, ``.env``).

    Zero values keep the library defaults, exactly like StreamerConfig.
    """

    model_config = SettingsConfigDict(
        env_prefix="STREAMWRITER_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    dsn: Optional[str] = None
    table: Optional[str] = None

    worker_count: int = 0
    worker_queue_size: int = 0
    max_batch_delay: float = 0.0
    batch_size: int = 0

    max_retries: int = 0
    initial_retry_delay: float = 0.0
    max_retry_deadline_offset: float = 0.0
    retry_delay_multiplier: float = 0.0

    # insert | batch (storage needs a schema or model, so it is code-only)
    mode: str = "insert"
    insert_batch_size: int = 0
    ignore_conflicts: bool = False
    fail_for_unknown_values: bool = False
    source_format: str = ""
    write_disposition: str = ""

    metrics_port: Optional[int] = None

    def to_config(self) -> StreamerConfig:
        mode = self.mode.lower()
        if mode not in ("insert", "batch"):
            raise ConfigError(f"unknown mode {self.mode!r}, use 'insert' or 'batch'")
        cfg = StreamerConfig(
            worker_count=self.worker_count,
            worker_queue_size=self.worker_queue_size,
            max_batch_delay=self.max_batch_delay,
            batch_size=self.batch_size,
            retry=RetryConfig(
                max_retries=self.max_retries,
                initial_retry_delay=self.initial_retry_delay,
                max_retry_deadline_offset=self.max_retry_deadline_offset,
                retry_delay_multiplier=self.retry_delay_multiplier,
            ),
            insert_sink=InsertSinkConfig(
                batch_size=self.insert_batch_size,
                ignore_conflicts=self.ignore_conflicts,
                fail_for_unknown_values=self.fail_for_unknown_values,
            ),
        )
        if mode == "batch":
            cfg.batch_sink = BatchSinkConfig(
                source_format=self.source_format,
                write_disposition=self.write_disposition,
                fail_for_unknown_values=self.fail_for_unknown_values,
            )
        return cfg


@lru_cache()
def get_settings() -> StreamerSettings:
    return StreamerSettings()
