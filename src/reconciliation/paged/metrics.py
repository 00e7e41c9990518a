"""
Prometheus metrics for paged table reconciliation.
"""

from prometheus_client import Counter, Histogram

from utils.metrics import get_or_create_metric

PAGES_COMPARED = get_or_create_metric(
    lambda: Counter(
        "reconcile_pages_compared_total",
        "Pages compared across both sides",
        ["table"],
    ),
    "reconcile_pages_compared",
)

ROWS_FETCHED = get_or_create_metric(
    lambda: Counter(
        "reconcile_rows_fetched_total",
        "Rows fetched per side",
        ["table", "side"],
    ),
    "reconcile_rows_fetched",
)

DIFFERENCES_FOUND = get_or_create_metric(
    lambda: Counter(
        "reconcile_differences_total",
        "Differences emitted to the report sink",
        ["table", "kind"],
    ),
    "reconcile_differences",
)

TABLE_RUNS = get_or_create_metric(
    lambda: Counter(
        "reconcile_table_runs_total",
        "Completed table runs by terminal state",
        ["status"],  # DONE, ABORTED
    ),
    "reconcile_table_runs",
)

PAGE_FETCH_TIME = get_or_create_metric(
    lambda: Histogram(
        "reconcile_page_fetch_seconds",
        "Time to fetch one page from one side",
        ["side"],
        buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
    ),
    "reconcile_page_fetch_seconds",
)

FETCH_RETRIES = get_or_create_metric(
    lambda: Counter(
        "reconcile_fetch_retries_total",
        "Page fetch retries after transient errors",
        ["side"],
    ),
    "reconcile_fetch_retries",
)
