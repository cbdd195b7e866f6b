"""
Exceptions raised by streamwriter.

Admission errors come back synchronously from ``Streamer.write``. Sink errors
never reach the writer; they are retried inside the worker and logged.
"""


class StreamwriterError(Exception):
    """Base error for streamwriter."""

    pass


class StreamerClosedError(StreamwriterError):
    """Write attempted while the streamer is not open."""

    pass


class InvalidRecordError(StreamwriterError, ValueError):
    """Record is None or empty."""

    pass


class ConfigError(StreamwriterError, ValueError):
    """Invalid configuration supplied at construction time."""

    pass


class SchemaRequiredError(ConfigError):
    """A sink needs a schema (or model) it was not given."""

    pass


class NonRetryableError(StreamwriterError):
    """Sink failure that no amount of retrying will fix."""

    pass


class RecordEncodingError(NonRetryableError):
    """Record could not be turned into a table row."""

    pass


class TableNotEmptyError(NonRetryableError):
    """Bulk load with the 'empty' write disposition hit a non-empty table."""

    pass


class RowsRejectedError(NonRetryableError):
    """The database refused the rows outright; the sink discarded them."""

    pass
