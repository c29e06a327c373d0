"""Prometheus metrics for the content store."""

from prometheus_client import Counter, Gauge

CONTENT_CREATED = Counter(
    "vault_content_created_total",
    "Total number of records created",
    labelnames=["kind"],
)

CONTENT_READS = Counter(
    "vault_content_reads_total",
    "Read attempts by outcome",
    labelnames=["outcome"],
)

CONTENT_DELETED = Counter(
    "vault_content_deleted_total",
    "Records removed by reason",
    labelnames=["reason"],
)

BLOB_DELETE_FAILURES = Counter(
    "vault_blob_delete_failures_total",
    "Best-effort blob deletions that failed",
)

SWEEP_RUNS = Counter(
    "vault_sweep_runs_total",
    "Completed expiry sweeps",
)

LAST_SWEEP_REMOVED = Gauge(
    "vault_last_sweep_removed",
    "Records removed by the most recent expiry sweep",
)
