"""
Reconciliation Orchestrator: drives the page loop for one table.

State machine: INIT -> PAGING -> DONE, or ABORTED from INIT/PAGING.

Each iteration fetches page ``p`` from both sides concurrently, waits for
both (join point), indexes, diffs and emits every record before moving
to ``p + 1``. The loop ends only when both sides return an empty page in
the same iteration, so rows that exist on one side past the other's end
are still reported.
"""

import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from utils.logging import ContextLogger
from utils.tracing import add_span_attributes, trace_operation

from ..errors import CancellationError, FetchError, ReconciliationError, UnsupportedDialect
from ..models import PRIMARY, SECONDARY, SIDES, RunState, TableRunResult, TableSpec
from ..report.sinks import ReportSink
from .dialect import DialectResolver, DialectTemplate
from .diff import diff
from .fetcher import ConnectionProvider, PageFetcher, RetryingPageFetcher
from .indexer import index_page
from .metrics import DIFFERENCES_FOUND, PAGES_COMPARED, TABLE_RUNS

PageCallback = Callable[[str, int], None]


class TableReconciler:
    """
    Runs paged compare runs against one pair of sources.

    Collaborators are passed in: the connection provider, a dialect
    resolver, the report sink and optionally a pre-built fetcher (e.g. a
    RetryingPageFetcher). Holds no per-run state, so one instance can
    serve several tables concurrently.
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        sink: ReportSink,
        resolver: DialectResolver | None = None,
        fetcher: PageFetcher | RetryingPageFetcher | None = None,
        page_size: int = 1000,
    ):
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.provider = provider
        self.sink = sink
        self.resolver = resolver or DialectResolver()
        self.fetcher = fetcher or PageFetcher(provider)
        self.page_size = page_size

    def _resolve_dialects(self, spec: TableSpec) -> dict[str, DialectTemplate]:
        dialects = {}
        for side in SIDES:
            try:
                product = self.provider.get_product_identifier(side)
            except ReconciliationError:
                raise
            except Exception as e:
                raise FetchError(side, spec.name, e) from e
            dialects[side] = self.resolver.resolve(product, source=side)
        return dialects

    def run(
        self,
        spec: TableSpec,
        cancel_event: threading.Event | None = None,
        start_page: int = 0,
        on_page_complete: PageCallback | None = None,
    ) -> TableRunResult:
        """
        Compare one table page by page.

        Args:
            spec: Table to compare
            cancel_event: Checked before every page; once set the run aborts
            start_page: First page to fetch (resume point)
            on_page_complete: Called with ``(table, page_index)`` after every
                record of that page has been emitted

        Returns:
            TableRunResult in state DONE or ABORTED. Dialect, fetch and
            cancellation failures end in ABORTED; other exceptions (a
            failing sink, for instance) propagate.
        """
        if start_page < 0:
            raise ValueError("start_page must be >= 0")

        run_id = uuid.uuid4().hex[:8]
        log = ContextLogger(__name__, table_name=spec.name, run_id=run_id)
        result = TableRunResult(
            table=spec.name,
            start_page=start_page,
            started_at=datetime.now(UTC).isoformat(),
        )
        started = time.monotonic()
        page_index = start_page

        with trace_operation(
            "reconcile_table",
            table=spec.name,
            run_id=run_id,
            page_size=self.page_size,
            start_page=start_page,
        ):
            log.info(
                f"Starting reconciliation of {spec.name} "
                f"({len(spec.compared_fields)} fields, page size {self.page_size}, "
                f"from page {start_page})"
            )
            try:
                dialects = self._resolve_dialects(spec)
                result.state = RunState.PAGING

                with ThreadPoolExecutor(
                    max_workers=2, thread_name_prefix=f"fetch-{spec.name}"
                ) as executor:
                    while True:
                        if cancel_event is not None and cancel_event.is_set():
                            raise CancellationError(
                                f"Reconciliation of {spec.name} cancelled before page {page_index}"
                            )

                        if self._compare_page(
                            spec, dialects, page_index, executor, result, log
                        ):
                            result.state = RunState.DONE
                            break

                        if on_page_complete is not None:
                            on_page_complete(spec.name, page_index)
                        page_index += 1

            except (UnsupportedDialect, FetchError, CancellationError) as e:
                result.state = RunState.ABORTED
                result.error_type = type(e).__name__
                result.error_message = str(e)
                if not isinstance(e, UnsupportedDialect):
                    result.failed_page = page_index
                log.error(
                    f"Reconciliation of {spec.name} aborted at page {page_index}: {e}",
                    error_type=result.error_type,
                    failed_page=result.failed_page,
                )
            finally:
                result.finished_at = datetime.now(UTC).isoformat()
                result.duration_seconds = time.monotonic() - started

            add_span_attributes(
                state=result.state.value,
                pages=result.pages_compared,
                differences=result.difference_count,
            )

        TABLE_RUNS.labels(status=result.state.value).inc()
        if result.succeeded:
            log.info(
                f"Reconciliation of {spec.name} done: {result.pages_compared} pages, "
                f"{result.rows_primary} primary rows, {result.rows_secondary} secondary rows, "
                f"{result.difference_count} differences in {result.duration_seconds:.2f}s",
                differences=dict(result.differences),
            )
        return result

    def _compare_page(
        self,
        spec: TableSpec,
        dialects: dict[str, DialectTemplate],
        page_index: int,
        executor: ThreadPoolExecutor,
        result: TableRunResult,
        log: ContextLogger,
    ) -> bool:
        """Fetch, index, diff and emit one page. Returns True when both sides are exhausted."""
        futures = {
            side: executor.submit(
                self.fetcher.fetch,
                side,
                spec.name,
                spec.compared_fields,
                spec.identity_field,
                page_index,
                self.page_size,
                dialects[side],
            )
            for side in SIDES
        }
        # Join both fetches; the first failure is raised after both settle
        for future in futures.values():
            future.exception()
        primary_rows = futures[PRIMARY].result()
        secondary_rows = futures[SECONDARY].result()

        if not primary_rows and not secondary_rows:
            log.debug(f"Both sides exhausted at page {page_index}")
            return True

        primary_page = index_page(primary_rows, spec.identity_field, PRIMARY)
        secondary_page = index_page(secondary_rows, spec.identity_field, SECONDARY)
        records = diff(spec.name, spec.compared_fields, primary_page, secondary_page)

        for record in records:
            self.sink.emit(record)
            DIFFERENCES_FOUND.labels(table=spec.name, kind=record.kind.value).inc()

        result.pages_compared += 1
        result.rows_primary += len(primary_rows)
        result.rows_secondary += len(secondary_rows)
        result.count(records)
        PAGES_COMPARED.labels(table=spec.name).inc()

        log.debug(
            f"Page {page_index}: {len(primary_rows)} primary rows, "
            f"{len(secondary_rows)} secondary rows, {len(records)} differences",
            page=page_index,
            differences=len(records),
        )
        return False
