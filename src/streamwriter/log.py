"""
Pluggable logger used by the streamer and its workers.

Any object with ``debug`` and ``error`` methods accepting a ``{}``-style
message plus arguments works, ``loguru.logger`` included. Implementations
must be safe to call from every worker concurrently.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from loguru import logger


@runtime_checkable
class Logger(Protocol):
    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a debug message, formatting args into the ``{}`` placeholders."""
        ...

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log an error message, formatting args into the ``{}`` placeholders."""
        ...


class StdLogger:
    """Default logger: debug messages are ignored, errors go to loguru (stderr)."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        pass

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        logger.opt(depth=1).error(message, *args, **kwargs)
