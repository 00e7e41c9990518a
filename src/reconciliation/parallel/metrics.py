"""
Prometheus metrics for the parallel table runner.
"""

from prometheus_client import Counter, Gauge, Histogram

from utils.metrics import get_or_create_metric

TABLES_FINISHED = get_or_create_metric(
    lambda: Counter(
        "reconcile_parallel_tables_processed_total",
        "Tables processed by the parallel runner",
        ["status"],  # success, failed, timeout
    ),
    "reconcile_parallel_tables_processed",
)

RUN_SECONDS = get_or_create_metric(
    lambda: Histogram(
        "reconcile_parallel_run_seconds",
        "Total time for a parallel compare-all run",
        ["worker_count"],
        buckets=[1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600],
    ),
    "reconcile_parallel_run_seconds",
)

TABLE_SECONDS = get_or_create_metric(
    lambda: Histogram(
        "reconcile_parallel_table_seconds",
        "Time to reconcile one table within a parallel run",
        ["table"],
        buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 120, 300, 600],
    ),
    "reconcile_parallel_table_seconds",
)

ACTIVE_TABLES = get_or_create_metric(
    lambda: Gauge(
        "reconcile_parallel_active_workers",
        "Worker threads currently reconciling a table",
    ),
    "reconcile_parallel_active_workers",
)

PENDING_TABLES = get_or_create_metric(
    lambda: Gauge(
        "reconcile_parallel_queue_size",
        "Tables not yet finished in the current parallel run",
    ),
    "reconcile_parallel_queue_size",
)
