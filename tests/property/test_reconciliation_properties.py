"""
Property-based tests for paged reconciliation using Hypothesis.

Tests invariants that should hold for all inputs:
- Identical sides produce no differences
- One-sided rows produce one missing record each
- Field mismatches are reported once per differing field
- Duplicate ids are reported once per side
- The page loop covers every row of both sides
"""

import math

from hypothesis import given, settings, strategies as st

from reconciliation.models import PRIMARY, SECONDARY, DifferenceKind, RunState, TableSpec
from reconciliation.paged import TableReconciler, diff, index_page
from reconciliation.report import CollectingReportSink

FIELDS = ("level", "gold")

ids = st.integers(min_value=-10_000, max_value=10_000)
field_values = st.one_of(
    st.none(),
    st.integers(min_value=-1_000_000, max_value=1_000_000),
    st.text(max_size=10),
)


def make_rows(identities, values=None):
    return [
        {"id": identity, "level": (values or {}).get(identity, 1), "gold": 0}
        for identity in identities
    ]


class ListProvider:
    """Provider reporting two known products; ListFetcher never asks it for a cursor."""

    def get_product_identifier(self, side):
        return "PostgreSQL" if side == PRIMARY else "SQLite"

    def get_schema(self, side):
        return None


class ListFetcher:
    """Pages sorted in-memory rows the way ORDER BY identity with OFFSET/LIMIT would."""

    def __init__(self, rows_by_side):
        self.rows_by_side = {
            side: sorted(rows, key=lambda row: row["id"]) for side, rows in rows_by_side.items()
        }

    def fetch(self, source, table, fields, identity_field, page_index, page_size, dialect):
        offset = page_index * page_size
        return [dict(row) for row in self.rows_by_side[source][offset:offset + page_size]]


def run_table(primary_rows, secondary_rows, page_size):
    sink = CollectingReportSink()
    reconciler = TableReconciler(
        ListProvider(),
        sink,
        fetcher=ListFetcher({PRIMARY: primary_rows, SECONDARY: secondary_rows}),
        page_size=page_size,
    )
    result = reconciler.run(TableSpec("player", "id", FIELDS))
    return result, sink.records


# Property: A page compared with itself has no differences
@given(identities=st.lists(ids, unique=True, max_size=50), level=field_values)
def test_identical_pages_have_no_differences(identities, level):
    rows = make_rows(identities, {identity: level for identity in identities})

    records = diff(
        "player",
        FIELDS,
        index_page(rows, "id", PRIMARY),
        index_page(rows, "id", SECONDARY),
    )

    assert records == []


# Property: Rows on one side only become exactly one missing record each
@given(
    shared=st.sets(ids, max_size=30),
    primary_only=st.sets(ids, max_size=30),
    secondary_only=st.sets(ids, max_size=30),
)
def test_one_sided_rows_reported_once(shared, primary_only, secondary_only):
    primary_only -= shared
    secondary_only -= shared | primary_only

    records = diff(
        "player",
        FIELDS,
        index_page(make_rows(shared | primary_only), "id", PRIMARY),
        index_page(make_rows(shared | secondary_only), "id", SECONDARY),
    )

    missing_secondary = [r.id for r in records if r.kind is DifferenceKind.MISSING_ON_SECONDARY]
    missing_primary = [r.id for r in records if r.kind is DifferenceKind.MISSING_ON_PRIMARY]
    assert sorted(missing_secondary) == sorted(primary_only)
    assert sorted(missing_primary) == sorted(secondary_only)
    assert len(records) == len(primary_only) + len(secondary_only)


# Property: Swapping the sides swaps the missing kinds
@given(primary_ids=st.sets(ids, max_size=30), secondary_ids=st.sets(ids, max_size=30))
def test_missing_records_are_symmetric(primary_ids, secondary_ids):
    forward = diff(
        "player",
        FIELDS,
        index_page(make_rows(primary_ids), "id", PRIMARY),
        index_page(make_rows(secondary_ids), "id", SECONDARY),
    )
    backward = diff(
        "player",
        FIELDS,
        index_page(make_rows(secondary_ids), "id", PRIMARY),
        index_page(make_rows(primary_ids), "id", SECONDARY),
    )

    def ids_of(records, kind):
        return {r.id for r in records if r.kind is kind}

    assert ids_of(forward, DifferenceKind.MISSING_ON_SECONDARY) == ids_of(
        backward, DifferenceKind.MISSING_ON_PRIMARY
    )
    assert ids_of(forward, DifferenceKind.MISSING_ON_PRIMARY) == ids_of(
        backward, DifferenceKind.MISSING_ON_SECONDARY
    )


# Property: Each differing field of a matched row is reported exactly once
@given(identity=ids, primary_values=st.tuples(field_values, field_values),
       secondary_values=st.tuples(field_values, field_values))
def test_one_mismatch_per_differing_field(identity, primary_values, secondary_values):
    primary = [{"id": identity, **dict(zip(FIELDS, primary_values))}]
    secondary = [{"id": identity, **dict(zip(FIELDS, secondary_values))}]

    records = diff(
        "player",
        FIELDS,
        index_page(primary, "id", PRIMARY),
        index_page(secondary, "id", SECONDARY),
    )

    expected = {
        name
        for name, p, s in zip(FIELDS, primary_values, secondary_values)
        if not (p == s and type(p) is type(s))
    }
    assert all(r.kind is DifferenceKind.FIELD_MISMATCH for r in records)
    assert {r.field for r in records} == expected
    assert len(records) == len(expected)


# Property: Diffing is deterministic
@given(primary_ids=st.lists(ids, max_size=30), secondary_ids=st.lists(ids, max_size=30))
def test_diff_is_deterministic(primary_ids, secondary_ids):
    primary_page = index_page(make_rows(primary_ids), "id", PRIMARY)
    secondary_page = index_page(make_rows(secondary_ids), "id", SECONDARY)

    first = diff("player", FIELDS, primary_page, secondary_page)
    second = diff("player", FIELDS, primary_page, secondary_page)

    assert first == second


# Property: Every id repeated on a side yields one duplicate record for that side
@given(identities=st.lists(ids, max_size=40))
def test_duplicates_reported_once_per_side(identities):
    page = index_page(make_rows(identities), "id", PRIMARY)

    repeated = {identity for identity in identities if identities.count(identity) > 1}
    assert sorted(page.duplicate_ids) == sorted(repeated)
    assert set(page.rows) == set(identities)

    records = diff("player", FIELDS, page, index_page(make_rows(set(identities)), "id", SECONDARY))
    duplicates = [r for r in records if r.kind is DifferenceKind.DUPLICATE_KEY]
    assert {(r.id, r.side) for r in duplicates} == {(i, PRIMARY) for i in repeated}
    assert len(duplicates) == len(repeated)


# Property: The page loop reads every row on both sides, whatever the page size
@settings(max_examples=50, deadline=None)
@given(
    primary_ids=st.sets(ids, max_size=40),
    secondary_ids=st.sets(ids, max_size=40),
    page_size=st.integers(min_value=1, max_value=15),
)
def test_page_loop_covers_both_sides(primary_ids, secondary_ids, page_size):
    result, _ = run_table(make_rows(primary_ids), make_rows(secondary_ids), page_size)

    assert result.state is RunState.DONE
    assert result.rows_primary == len(primary_ids)
    assert result.rows_secondary == len(secondary_ids)
    longest = max(len(primary_ids), len(secondary_ids))
    assert result.pages_compared == math.ceil(longest / page_size)


# Property: Identical sides never report differences, whatever the page size
@settings(max_examples=50, deadline=None)
@given(identities=st.sets(ids, max_size=40), page_size=st.integers(min_value=1, max_value=15))
def test_identical_tables_reconcile_clean(identities, page_size):
    rows = make_rows(identities)

    result, records = run_table(rows, rows, page_size)

    assert result.succeeded
    assert records == []
    assert result.difference_count == 0


# Property: Rows past the end of the shorter side are all reported missing
@settings(max_examples=50, deadline=None)
@given(
    identities=st.lists(ids, unique=True, max_size=40),
    cut=st.integers(min_value=0, max_value=40),
    page_size=st.integers(min_value=1, max_value=15),
)
def test_tail_rows_reported_missing(identities, cut, page_size):
    ordered = sorted(identities)
    tail = ordered[cut:]

    result, records = run_table(make_rows(ordered), make_rows(ordered[:cut]), page_size)

    assert result.succeeded
    assert sorted(r.id for r in records) == tail
    assert {r.kind for r in records} <= {DifferenceKind.MISSING_ON_SECONDARY}
