"""
Prometheus metrics for the intake and the batch engine.
Registered in the global REGISTRY at import.
"""

from prometheus_client import Counter, Gauge, Histogram

SAMPLES_RECEIVED_TOTAL = Counter(
    "gsheet_remote_write_samples_received_total",
    "Total number of samples handed to the intake",
)

SAMPLES_DROPPED_TOTAL = Counter(
    "gsheet_remote_write_samples_dropped_total",
    "Samples dropped before buffering",
    ["reason"],
)

FLUSH_ATTEMPTS_TOTAL = Counter(
    "gsheet_remote_write_flush_attempts_total",
    "Batch write attempts against the sink",
    ["outcome"],
)

FLUSH_BATCH_SIZE = Histogram(
    "gsheet_remote_write_flush_batch_size",
    "Number of samples per successful flush",
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000],
)

RETRY_ATTEMPTS_TOTAL = Counter(
    "gsheet_remote_write_retry_attempts_total",
    "Retries scheduled after a failed operation",
)

ROWS_EVICTED_TOTAL = Counter(
    "gsheet_remote_write_rows_evicted_total",
    "Rows deleted from the sink by eviction",
)

POLICY_REFRESH_TOTAL = Counter(
    "gsheet_remote_write_policy_refresh_total",
    "Policy fetches from the sink",
    ["outcome"],
)

SINK_AT_CAPACITY = Gauge(
    "gsheet_remote_write_sink_at_capacity",
    "1 once the sink has reported its cell ceiling",
)


class MetricsRegistry:
    """Centralized access to the engine metrics."""

    samples_received_total = SAMPLES_RECEIVED_TOTAL
    samples_dropped_total = SAMPLES_DROPPED_TOTAL
    flush_attempts_total = FLUSH_ATTEMPTS_TOTAL
    flush_batch_size = FLUSH_BATCH_SIZE
    retry_attempts_total = RETRY_ATTEMPTS_TOTAL
    rows_evicted_total = ROWS_EVICTED_TOTAL
    policy_refresh_total = POLICY_REFRESH_TOTAL
    sink_at_capacity = SINK_AT_CAPACITY


# Singleton instance
metrics_registry = MetricsRegistry()
