"""
Runs several tables' compare runs at once.

Each table runs on a bounded ThreadPoolExecutor with its own cancellation
token. A per-table timer and ``cancel_all`` both set the token; the
table's page loop notices it at the next page boundary and aborts.
"""

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

from utils.tracing import trace_operation

from ..errors import CancellationError
from .metrics import (
    ACTIVE_TABLES,
    PENDING_TABLES,
    RUN_SECONDS,
    TABLE_SECONDS,
    TABLES_FINISHED,
)

logger = logging.getLogger(__name__)

TableFunc = Callable[[str, threading.Event], Any]


class ParallelReconciler:
    """
    Bounded parallel runner for per-table compare functions.

    A table that raises is recorded under ``errors`` and never stops the
    others, unless ``fail_fast`` is set, in which case every remaining
    table is cancelled.
    """

    def __init__(
        self,
        max_workers: int = 4,
        timeout_per_table: float = 3600,
        fail_fast: bool = False,
    ):
        """
        Args:
            max_workers: Tables compared at the same time
            timeout_per_table: Seconds a table may run before its token is set
            fail_fast: Cancel the rest of the run after the first failure or timeout
        """
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self.timeout_per_table = timeout_per_table
        self.fail_fast = fail_fast
        self._gauge_lock = threading.Lock()
        self._tokens_lock = threading.Lock()
        self._tokens: dict[str, threading.Event] = {}
        self._running = 0

        logger.info(
            f"Parallel runner ready: {max_workers} workers, "
            f"{timeout_per_table}s per table, fail_fast={fail_fast}"
        )

    def cancel_all(self) -> None:
        """Set the token of every table in the current run."""
        with self._tokens_lock:
            tokens = list(self._tokens.items())
        for table, token in tokens:
            token.set()
            logger.debug(f"Cancellation token set for {table}")
        if tokens:
            logger.warning(f"Cancelling {len(tokens)} table(s)")

    def reconcile_tables(
        self,
        tables: Sequence[str],
        reconcile_func: TableFunc,
    ) -> dict[str, Any]:
        """
        Run ``reconcile_func(table, token)`` for every table.

        A table whose timer fires still contributes its return value to
        ``results`` (typically an aborted run result) and is counted under
        ``timeout`` with a ``TimeoutError`` entry in ``errors``.

        Returns:
            Summary dictionary with keys total_tables, successful, failed,
            timeout, results, errors (each ``{table, error, type}``),
            duration_seconds, timestamp and max_workers.
        """
        summary: dict[str, Any] = {
            "total_tables": len(tables),
            "successful": 0,
            "failed": 0,
            "timeout": 0,
            "results": [],
            "errors": [],
            "max_workers": self.max_workers,
        }
        if not tables:
            logger.warning("reconcile_tables called with no tables")
            summary["duration_seconds"] = 0.0
            summary["timestamp"] = datetime.now(UTC).isoformat()
            return summary

        with trace_operation(
            "reconcile_tables_parallel",
            kind=trace.SpanKind.INTERNAL,
            table_count=len(tables),
            max_workers=self.max_workers,
        ), RUN_SECONDS.labels(worker_count=self.max_workers).time():
            started = datetime.now(UTC)
            logger.info(f"Comparing {len(tables)} tables on {self.max_workers} workers")

            with self._tokens_lock:
                self._tokens = {table: threading.Event() for table in tables}
                tokens = dict(self._tokens)
            PENDING_TABLES.set(len(tables))

            with ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="reconcile"
            ) as executor:
                futures = {
                    executor.submit(self._run_one, table, reconcile_func, tokens[table]): table
                    for table in tables
                }
                for done, future in enumerate(as_completed(futures), start=1):
                    PENDING_TABLES.set(len(tables) - done)
                    progress = f"{done}/{len(tables)}"
                    self._record_outcome(futures[future], future, summary, progress)

            with self._tokens_lock:
                self._tokens.clear()
            ACTIVE_TABLES.set(0)
            PENDING_TABLES.set(0)

            finished = datetime.now(UTC)
            summary["duration_seconds"] = (finished - started).total_seconds()
            summary["timestamp"] = finished.isoformat()

        logger.info(
            f"Parallel run finished in {summary['duration_seconds']:.2f}s: "
            f"{summary['successful']}/{summary['total_tables']} ok, "
            f"{summary['failed']} failed, {summary['timeout']} timed out"
        )
        return summary

    def _record_outcome(self, table, future, summary, progress) -> None:
        try:
            result, timed_out = future.result()
        except Exception as e:
            summary["failed"] += 1
            summary["errors"].append({"table": table, "error": str(e), "type": type(e).__name__})
            TABLES_FINISHED.labels(status="failed").inc()
            logger.error(
                f"Table {table} failed [{progress}]: {e}",
                exc_info=not isinstance(e, CancellationError),
            )
            self._maybe_fail_fast()
            return

        summary["results"].append(result)
        if not timed_out:
            summary["successful"] += 1
            TABLES_FINISHED.labels(status="success").inc()
            logger.info(f"Table {table} finished [{progress}]")
            return

        summary["timeout"] += 1
        summary["errors"].append(
            {
                "table": table,
                "error": f"Timeout after {self.timeout_per_table}s",
                "type": "TimeoutError",
            }
        )
        TABLES_FINISHED.labels(status="timeout").inc()
        logger.error(f"Table {table} timed out after {self.timeout_per_table}s [{progress}]")
        self._maybe_fail_fast()

    def _maybe_fail_fast(self) -> None:
        if self.fail_fast:
            logger.warning("fail_fast is set, cancelling the remaining tables")
            self.cancel_all()

    def _set_running(self, delta: int) -> None:
        with self._gauge_lock:
            self._running += delta
            ACTIVE_TABLES.set(self._running)

    def _run_one(
        self,
        table: str,
        reconcile_func: TableFunc,
        token: threading.Event,
    ) -> tuple[Any, bool]:
        """Call ``reconcile_func`` with a timer armed on the table's token; returns (value, timed_out)."""
        with trace_operation("reconcile_table_worker", kind=trace.SpanKind.INTERNAL, table=table):
            if token.is_set():
                raise CancellationError(f"Table {table} was cancelled before it started")

            timed_out = threading.Event()

            def expire() -> None:
                timed_out.set()
                token.set()
                logger.debug(f"Table {table} hit its {self.timeout_per_table}s limit")

            timer = threading.Timer(self.timeout_per_table, expire)
            timer.daemon = True

            self._set_running(1)
            started = datetime.now(UTC)
            timer.start()
            try:
                value = reconcile_func(table, token)
            finally:
                timer.cancel()
                self._set_running(-1)

            elapsed = (datetime.now(UTC) - started).total_seconds()
            TABLE_SECONDS.labels(table=table).observe(elapsed)
            logger.debug(f"Table {table} returned after {elapsed:.2f}s")
            return value, timed_out.is_set()
