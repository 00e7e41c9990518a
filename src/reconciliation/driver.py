"""
Table Driver: runs the paged reconciler for one table or every configured table.
"""

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from .checkpoint import CheckpointStore
from .config import ReconcileConfig
from .models import RunState, TableRunResult
from .paged import DialectResolver, PageFetcher, RetryingPageFetcher, TableReconciler
from .paged.fetcher import ConnectionProvider
from .parallel import ParallelReconciler
from .report.sinks import (
    CollectingReportSink,
    CompositeReportSink,
    LoggingReportSink,
    ReportSink,
)
from .sources import PooledConnectionProvider

logger = logging.getLogger(__name__)


class TableDriver:
    """
    Entry point for "compare one table" and "compare all tables".

    Args:
        config: Loaded run configuration
        provider: Connection provider for both sides
        sink: Receives every difference record
        checkpoints: Where finished pages are recorded; None disables checkpoints
        resume: Start each table after its last checkpointed page
        parallel: Runner for compare_all (built from config when omitted)
    """

    def __init__(
        self,
        config: ReconcileConfig,
        provider: ConnectionProvider,
        sink: ReportSink,
        checkpoints: CheckpointStore | None = None,
        resume: bool = False,
        parallel: ParallelReconciler | None = None,
    ):
        self.config = config
        self.checkpoints = checkpoints
        self.resume = resume

        fetcher = PageFetcher(provider)
        if config.fetch_retries:
            fetcher = RetryingPageFetcher(fetcher, max_retries=config.fetch_retries)

        self.reconciler = TableReconciler(
            provider,
            sink,
            resolver=DialectResolver(config.dialects),
            fetcher=fetcher,
            page_size=config.page_size,
        )
        self.parallel = parallel or ParallelReconciler(
            max_workers=config.max_workers,
            timeout_per_table=config.timeout_per_table,
        )

    def _record_page(self, table: str, page_index: int) -> None:
        self.checkpoints.save(table, page_index, self.config.page_size)

    def compare_table(
        self, name: str, cancel_event: threading.Event | None = None
    ) -> TableRunResult:
        """
        Compare a single table.

        Raises:
            ConfigurationError: If the table is not configured
        """
        spec = self.config.get_table_spec(name)

        start_page = 0
        if self.checkpoints is not None and self.resume:
            start_page = self.checkpoints.resume_page(name, self.config.page_size)

        result = self.reconciler.run(
            spec,
            cancel_event=cancel_event,
            start_page=start_page,
            on_page_complete=self._record_page if self.checkpoints is not None else None,
        )

        if result.succeeded and self.checkpoints is not None:
            self.checkpoints.clear(name)
        return result

    def compare_all(self, tables: Iterable[str] | None = None) -> list[TableRunResult]:
        """
        Compare every configured table (or the given subset) in parallel.

        A failing table never stops the others; it comes back as an
        ABORTED result carrying the error.
        """
        names = list(dict.fromkeys(
            self.config.list_configured_tables() if tables is None else tables
        ))
        logger.info(f"Comparing {len(names)} table(s): {', '.join(names)}")

        outcome = self.parallel.reconcile_tables(
            names, lambda table, token: self.compare_table(table, cancel_event=token)
        )

        by_table: dict[str, TableRunResult] = {
            result.table: result for result in outcome["results"]
        }
        for error in outcome["errors"]:
            table = error["table"]
            result = by_table.get(table)
            if result is None:
                failed = TableRunResult(
                    table=table,
                    state=RunState.ABORTED,
                    error_type=error["type"],
                    error_message=error["error"],
                )
                by_table[table] = failed
            elif error["type"] == "TimeoutError" and result.state is RunState.ABORTED:
                result.error_type = "TimeoutError"
                result.error_message = f"{error['error']}: {result.error_message}"

        return [by_table[name] for name in names]


@contextmanager
def open_driver(
    config: ReconcileConfig,
    extra_sinks: Iterable[ReportSink] = (),
    checkpoints: CheckpointStore | None = None,
    resume: bool = False,
) -> Iterator[tuple[TableDriver, CollectingReportSink]]:
    """
    TableDriver wired to pooled connections for both configured sources.

    Differences are logged and passed to any extra sinks. The collector
    keeps at most ``config.max_report_differences`` records per table for
    the report; counts come from the run results. Pools and sinks are
    closed on exit.
    """
    collector = CollectingReportSink(max_per_table=config.max_report_differences)
    sink = CompositeReportSink([collector, LoggingReportSink(), *extra_sinks])
    try:
        with PooledConnectionProvider.from_config(config) as provider:
            yield TableDriver(config, provider, sink, checkpoints, resume), collector
    finally:
        sink.close()
