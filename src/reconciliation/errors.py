"""
Exception hierarchy for the reconciliation engine.

Configuration problems are raised before any I/O. Dialect, fetch and
cancellation failures end a single table's run; the orchestrator turns
them into an aborted run result instead of letting them escape.
"""


class ReconciliationError(Exception):
    """Base class for reconciliation engine errors."""


class ConfigurationError(ReconciliationError):
    """Invalid or incomplete configuration (unknown table, empty field list, bad source)."""


class UnsupportedDialect(ReconciliationError):
    """No pagination template is registered for a database product."""

    def __init__(self, product_identifier: str, source: str | None = None):
        self.product_identifier = product_identifier
        self.source = source
        where = f" (source: {source})" if source else ""
        super().__init__(
            f"No pagination dialect registered for product {product_identifier!r}{where}"
        )


class FetchError(ReconciliationError):
    """A page query against one side failed."""

    def __init__(self, source: str, table: str, cause: BaseException):
        self.source = source
        self.table = table
        self.cause = cause
        super().__init__(
            f"Failed to fetch {table!r} from {source}: {type(cause).__name__}: {cause}"
        )


class CancellationError(ReconciliationError):
    """A run was cancelled between page iterations."""
