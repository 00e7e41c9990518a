"""
Paginated two-source table reconciliation.

Components, leaves first:
- dialect: product identifier -> pagination clause template
- fetcher: one ordered, bounded query per side and page
- indexer: page rows -> IndexedPage keyed by identity
- diff: IndexedPage pair -> DifferenceRecords
- orchestrator: the page loop for one table (TableReconciler)
"""

from .dialect import BUILTIN_DIALECTS, DialectResolver, DialectTemplate, make_template
from .diff import compare_field, diff
from .fetcher import ConnectionProvider, PageFetcher, RetryingPageFetcher, build_page_query
from .indexer import index_page
from .normalize import canonical_identity, normalize_value, values_equal
from .orchestrator import TableReconciler

__all__ = [
    "BUILTIN_DIALECTS",
    "DialectResolver",
    "DialectTemplate",
    "make_template",
    "diff",
    "compare_field",
    "ConnectionProvider",
    "PageFetcher",
    "RetryingPageFetcher",
    "build_page_query",
    "index_page",
    "canonical_identity",
    "normalize_value",
    "values_equal",
    "TableReconciler",
]
