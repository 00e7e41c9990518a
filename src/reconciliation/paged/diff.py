"""
Diff Engine: compare two indexed pages of the same page number.

Pure computation; never performs I/O and never raises on data.
"""

from collections.abc import Sequence
from typing import Any

from ..models import DifferenceRecord, IndexedPage
from .normalize import stringify, values_equal


def compare_field(
    table: str, identity: Any, field_name: str, primary_value: Any, secondary_value: Any
) -> DifferenceRecord | None:
    """
    Compare one field of a matched row pair.

    Returns a ``field-mismatch`` record carrying the raw values when they
    differ, or carrying stringified values when the two cannot be compared.
    """
    try:
        if values_equal(primary_value, secondary_value):
            return None
    except (TypeError, ValueError, ArithmeticError):
        return DifferenceRecord.field_mismatch(
            table, identity, field_name, stringify(primary_value), stringify(secondary_value)
        )
    return DifferenceRecord.field_mismatch(
        table, identity, field_name, primary_value, secondary_value
    )


def diff(
    table: str,
    compared_fields: Sequence[str],
    primary_page: IndexedPage,
    secondary_page: IndexedPage,
) -> list[DifferenceRecord]:
    """
    Compute every difference between two pages.

    Ids present on one side only become ``missing-on-*`` records; ids on
    both sides are compared field by field; duplicate ids recorded while
    indexing become ``duplicate-key`` records, one per side and id.
    """
    records: list[DifferenceRecord] = []

    for identity, primary_row in primary_page.rows.items():
        if identity not in secondary_page.rows:
            records.append(DifferenceRecord.missing_on_secondary(table, identity))
            continue
        secondary_row = secondary_page.rows[identity]
        for field_name in compared_fields:
            mismatch = compare_field(
                table,
                identity,
                field_name,
                primary_row.get(field_name),
                secondary_row.get(field_name),
            )
            if mismatch is not None:
                records.append(mismatch)

    for identity in secondary_page.rows:
        if identity not in primary_page.rows:
            records.append(DifferenceRecord.missing_on_primary(table, identity))

    for page in (primary_page, secondary_page):
        for identity in page.duplicate_ids:
            records.append(DifferenceRecord.duplicate_key(table, identity, page.side))

    return records
