"""
Page Fetcher: one bounded, identity-ordered query per (side, table, page).

Each call borrows a query interface from the connection provider for
the duration of the query only.
"""

import logging
from collections.abc import Sequence
from contextlib import AbstractContextManager
from typing import Any, Protocol

from opentelemetry import trace

from utils.retry import is_retryable_db_exception, retry_with_backoff
from utils.sql_safety import quote_identifier, quote_qualified_name
from utils.tracing import trace_operation

from ..errors import FetchError
from .dialect import DialectTemplate
from .metrics import FETCH_RETRIES, PAGE_FETCH_TIME, ROWS_FETCHED
from .normalize import canonical_identity

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class ConnectionProvider(Protocol):
    """What the engine needs from whoever owns the source connections."""

    def get_query_interface(self, side: str) -> AbstractContextManager[Any]:
        """Context manager yielding a DB-API cursor for one page query."""

    def get_product_identifier(self, side: str) -> str:
        """Database product name used to pick the pagination dialect."""

    def get_schema(self, side: str) -> str | None:
        """Schema to qualify unqualified table names with, if any."""


def build_page_query(
    table: str,
    fields: Sequence[str],
    identity_field: str,
    dialect: DialectTemplate,
    page_index: int,
    page_size: int,
    schema: str | None = None,
) -> str:
    """
    Render ``SELECT identity, fields FROM table ORDER BY identity <pagination>``.

    Raises:
        ValueError: If a name is not a plain identifier or paging values are invalid
    """
    quote = dialect.quote_style
    qualified = table if schema is None or "." in table else f"{schema}.{table}"
    columns = ", ".join(quote_identifier(name, quote) for name in (identity_field, *fields))
    identity = quote_identifier(identity_field, quote)
    pagination = dialect.render(offset=page_index * page_size, limit=page_size)
    return (
        f"SELECT {columns} FROM {quote_qualified_name(qualified, quote)} "
        f"ORDER BY {identity} ASC {pagination}"
    )


class PageFetcher:
    """Fetches pages of rows as field -> value mappings."""

    def __init__(self, provider: ConnectionProvider):
        self.provider = provider

    def fetch(
        self,
        source: str,
        table: str,
        fields: Sequence[str],
        identity_field: str,
        page_index: int,
        page_size: int,
        dialect: DialectTemplate,
    ) -> list[Row]:
        """
        Fetch one page; an empty list means no rows remain at that offset.

        Identity values are canonicalized before the rows are returned.

        Raises:
            FetchError: On any connectivity or query failure
        """
        try:
            query = build_page_query(
                table,
                fields,
                identity_field,
                dialect,
                page_index,
                page_size,
                schema=self.provider.get_schema(source),
            )
        except ValueError as e:
            raise FetchError(source, table, e) from e
        columns = (identity_field, *fields)

        with trace_operation(
            "fetch_page",
            kind=trace.SpanKind.CLIENT,
            side=source,
            table=table,
            page=page_index,
        ) as span:
            with PAGE_FETCH_TIME.labels(side=source).time():
                try:
                    with self.provider.get_query_interface(source) as cursor:
                        cursor.execute(query)
                        raw_rows = cursor.fetchall()
                except Exception as e:
                    raise FetchError(source, table, e) from e

            rows = []
            for raw in raw_rows:
                if len(raw) != len(columns):
                    raise FetchError(
                        source,
                        table,
                        ValueError(
                            f"expected {len(columns)} columns including identity "
                            f"{identity_field!r}, got {len(raw)}"
                        ),
                    )
                row = dict(zip(columns, raw))
                row[identity_field] = canonical_identity(row[identity_field])
                rows.append(row)

            span.set_attribute("rows", len(rows))

        ROWS_FETCHED.labels(table=table, side=source).inc(len(rows))
        logger.debug(f"Fetched {len(rows)} rows from {source} for {table} page {page_index}")
        return rows


def _is_transient_fetch_error(exc: Exception) -> bool:
    return isinstance(exc, FetchError) and is_retryable_db_exception(exc.cause)


class RetryingPageFetcher:
    """
    PageFetcher wrapper that retries transient failures with backoff.

    Only FetchErrors whose cause looks transient (connection drops,
    timeouts, deadlocks, pool exhaustion) are retried.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        max_retries: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
    ):
        self.fetcher = fetcher
        self.max_retries = max_retries
        self._fetch = retry_with_backoff(
            max_retries=max_retries,
            base_delay=base_delay,
            max_delay=max_delay,
            should_retry=_is_transient_fetch_error,
            on_retry=self._record_retry,
        )(fetcher.fetch)

    @property
    def provider(self) -> ConnectionProvider:
        return self.fetcher.provider

    @staticmethod
    def _record_retry(attempt: int, exc: Exception, delay: float) -> None:
        FETCH_RETRIES.labels(side=getattr(exc, "source", "unknown")).inc()

    def fetch(self, *args: Any, **kwargs: Any) -> list[Row]:
        return self._fetch(*args, **kwargs)
