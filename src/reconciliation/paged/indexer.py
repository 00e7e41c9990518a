"""Row Indexer: one fetched page -> IndexedPage keyed by identity value."""

from collections.abc import Iterable, Mapping
from typing import Any

from ..models import IndexedPage


def index_page(
    rows: Iterable[Mapping[str, Any]],
    identity_field: str,
    side: str,
) -> IndexedPage:
    """
    Key a page's rows by identity value.

    The first row for an id is kept. Any repeat marks the id as a
    duplicate (once, however many repeats) instead of raising.
    """
    page = IndexedPage(side=side)
    seen_duplicates = set()

    for row in rows:
        identity = row[identity_field]
        if identity in page.rows:
            if identity not in seen_duplicates:
                seen_duplicates.add(identity)
                page.duplicate_ids.append(identity)
            continue
        page.rows[identity] = dict(row)

    return page
