"""
Prometheus metrics for the streamer, its workers and the sink adapters.
Registered in the global prometheus_client REGISTRY on import.
"""

from prometheus_client import Counter, Gauge, Histogram

# --- Streamer / worker metrics ---

STREAMER_RECORDS_TOTAL = Counter(
    "streamwriter_records_total",
    "Records offered to Streamer.write",
    ["streamer", "outcome"],  # accepted | closed | invalid
)

STREAMER_RECORDS_DROPPED_TOTAL = Counter(
    "streamwriter_records_dropped_total",
    "Records dropped after the retry budget was exhausted",
    ["streamer", "worker"],
)

STREAMER_SINK_CALLS_TOTAL = Counter(
    "streamwriter_sink_calls_total",
    "Sink calls made by workers (retries counted individually)",
    ["streamer", "op", "outcome"],  # op: put | flush | close
)

STREAMER_SINK_CALL_LATENCY = Histogram(
    "streamwriter_sink_call_seconds",
    "Sink call latency in seconds, including retries",
    ["streamer", "op"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

STREAMER_QUEUE_DEPTH = Gauge(
    "streamwriter_queue_depth",
    "Records waiting in a worker queue",
    ["streamer", "worker"],
)

# --- Sink adapter metrics ---

SINK_WRITES_TOTAL = Counter(
    "streamwriter_sink_writes_total",
    "Rows written by sink adapters",
    ["sink", "status"],  # success | failure | discarded
)

SINK_WRITE_LATENCY = Histogram(
    "streamwriter_sink_write_seconds",
    "Database round-trip latency per sink write",
    ["sink"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)


class MetricsRegistry:
    """Structured access to all streamwriter metrics."""

    records_total = STREAMER_RECORDS_TOTAL
    records_dropped_total = STREAMER_RECORDS_DROPPED_TOTAL
    sink_calls_total = STREAMER_SINK_CALLS_TOTAL
    sink_call_latency = STREAMER_SINK_CALL_LATENCY
    queue_depth = STREAMER_QUEUE_DEPTH
    sink_writes_total = SINK_WRITES_TOTAL
    sink_write_latency = SINK_WRITE_LATENCY


# Singleton instance
metrics_registry = MetricsRegistry()
