"""
Unit tests for reconciliation.paged.orchestrator
"""

import threading
from unittest.mock import Mock

import pytest

from reconciliation.errors import FetchError
from reconciliation.models import (
    PRIMARY,
    SECONDARY,
    DifferenceKind,
    DifferenceRecord,
    RunState,
    TableSpec,
)
from reconciliation.paged.normalize import canonical_identity
from reconciliation.paged.orchestrator import TableReconciler
from reconciliation.report.sinks import CollectingReportSink


def player(identity, level=1, gold=100):
    return {"id": identity, "level": level, "gold": gold}


@pytest.fixture
def sink():
    return CollectingReportSink()


@pytest.fixture
def make_reconciler(in_memory_provider, in_memory_fetcher, sink):
    def build(primary_rows, secondary_rows, page_size=2, fail_on=None, provider=None):
        fetcher = in_memory_fetcher(
            {PRIMARY: primary_rows, SECONDARY: secondary_rows}, fail_on=fail_on
        )
        reconciler = TableReconciler(
            provider or in_memory_provider, sink, fetcher=fetcher, page_size=page_size
        )
        return reconciler, fetcher

    return build


class TestTableReconcilerInit:
    """Test constructor validation"""

    def test_rejects_zero_page_size(self, in_memory_provider, sink):
        with pytest.raises(ValueError, match="page_size"):
            TableReconciler(in_memory_provider, sink, page_size=0)

    def test_rejects_negative_start_page(self, make_reconciler, player_spec):
        reconciler, _ = make_reconciler([], [])

        with pytest.raises(ValueError, match="start_page"):
            reconciler.run(player_spec, start_page=-1)


class TestTableReconcilerRun:
    """Test the page loop end to end over in-memory sources"""

    def test_identical_tables(self, make_reconciler, player_spec, sink):
        rows = [player(i) for i in range(1, 6)]
        reconciler, _ = make_reconciler(rows, list(rows))

        result = reconciler.run(player_spec)

        assert result.state is RunState.DONE
        assert result.succeeded
        assert sink.records == []
        assert result.pages_compared == 3
        assert result.rows_primary == 5
        assert result.rows_secondary == 5
        assert result.error_type is None

    def test_empty_tables(self, make_reconciler, player_spec, sink):
        reconciler, fetcher = make_reconciler([], [])

        result = reconciler.run(player_spec)

        assert result.state is RunState.DONE
        assert result.pages_compared == 0
        assert sorted(fetcher.calls) == [(PRIMARY, 0), (SECONDARY, 0)]

    def test_tail_rows_past_other_side_are_reported(self, make_reconciler, player_spec, sink):
        reconciler, fetcher = make_reconciler(
            [player(i) for i in range(1, 6)],
            [player(i) for i in range(1, 4)],
        )

        result = reconciler.run(player_spec)

        assert result.state is RunState.DONE
        assert set(sink.records) == {
            DifferenceRecord.missing_on_secondary("player", 4),
            DifferenceRecord.missing_on_secondary("player", 5),
        }
        # Stops only once both sides return an empty page
        assert (SECONDARY, 3) in fetcher.calls
        assert max(page for _, page in fetcher.calls) == 3

    def test_secondary_longer_than_primary(self, make_reconciler, player_spec, sink):
        reconciler, _ = make_reconciler([player(1)], [player(1), player(2), player(42)])

        result = reconciler.run(player_spec)

        assert set(sink.records) == {
            DifferenceRecord.missing_on_primary("player", 2),
            DifferenceRecord.missing_on_primary("player", 42),
        }
        assert result.differences == {"missing-on-primary": 2}

    def test_field_mismatch_reported_once(self, make_reconciler, player_spec, sink):
        reconciler, _ = make_reconciler(
            [player(7, level=10, gold=500)],
            [player(7, level=10, gold=450)],
        )

        result = reconciler.run(player_spec)

        assert sink.records == [DifferenceRecord.field_mismatch("player", 7, "gold", 500, 450)]
        assert result.difference_count == 1

    def test_duplicate_key_does_not_abort(self, make_reconciler, player_spec, sink):
        reconciler, _ = make_reconciler([player(1), player(1)], [player(1)])

        result = reconciler.run(player_spec)

        assert result.state is RunState.DONE
        assert sink.records == [DifferenceRecord.duplicate_key("player", 1, PRIMARY)]

    def test_every_record_emitted_to_sink(self, make_reconciler, sink):
        spec = TableSpec("player", "id", ("gold",))
        reconciler, _ = make_reconciler(
            [player(i, gold=i) for i in range(10)],
            [player(i, gold=i + 1) for i in range(10)],
            page_size=3,
        )

        result = reconciler.run(spec)

        assert len(sink.records) == 10
        assert all(r.kind is DifferenceKind.FIELD_MISMATCH for r in sink.records)
        assert result.differences == {"field-mismatch": 10}
        assert result.pages_compared == 4

    def test_sink_failure_propagates(self, make_reconciler, player_spec, in_memory_provider):
        failing_sink = Mock()
        failing_sink.emit.side_effect = RuntimeError("disk full")
        reconciler = TableReconciler(
            in_memory_provider,
            failing_sink,
            fetcher=make_reconciler([player(1)], [])[1],
            page_size=2,
        )

        with pytest.raises(RuntimeError, match="disk full"):
            reconciler.run(player_spec)

    def test_text_keys_ordered_as_text_misalign_pages(
        self, in_memory_provider, in_memory_fetcher, player_spec, sink
    ):
        # A text identity column sorts "10" before "9"; after folding to int
        # the pages no longer line up with an integer-keyed primary.
        fetcher = in_memory_fetcher(
            {PRIMARY: [player(9), player(10)], SECONDARY: [player("9"), player("10")]}
        )
        inner_fetch = fetcher.fetch

        def fetch_canonical(*args):
            rows = inner_fetch(*args)
            for row in rows:
                row["id"] = canonical_identity(row["id"])
            return rows

        fetcher.fetch = fetch_canonical
        reconciler = TableReconciler(in_memory_provider, sink, fetcher=fetcher, page_size=1)

        result = reconciler.run(player_spec)

        assert result.state is RunState.DONE
        assert set(sink.records) == {
            DifferenceRecord.missing_on_secondary("player", 9),
            DifferenceRecord.missing_on_primary("player", 10),
            DifferenceRecord.missing_on_secondary("player", 10),
            DifferenceRecord.missing_on_primary("player", 9),
        }


class TestTableReconcilerResume:
    """Test start page and page completion callback"""

    def test_start_page_skips_earlier_pages(self, make_reconciler, player_spec, sink):
        reconciler, fetcher = make_reconciler(
            [player(1, gold=1), player(2), player(3), player(4)],
            [player(1, gold=2), player(2), player(3), player(4)],
        )

        result = reconciler.run(player_spec, start_page=1)

        assert result.state is RunState.DONE
        assert result.start_page == 1
        assert sink.records == []
        assert min(page for _, page in fetcher.calls) == 1

    def test_callback_after_each_compared_page(self, make_reconciler, player_spec):
        reconciler, _ = make_reconciler(
            [player(i) for i in range(1, 6)],
            [player(i) for i in range(1, 6)],
        )
        completed = []

        reconciler.run(player_spec, on_page_complete=lambda table, page: completed.append((table, page)))

        assert completed == [("player", 0), ("player", 1), ("player", 2)]

    def test_callback_runs_after_page_records_emitted(self, make_reconciler, player_spec, sink):
        reconciler, _ = make_reconciler([player(1)], [])
        seen = []

        reconciler.run(player_spec, on_page_complete=lambda table, page: seen.append(len(sink.records)))

        assert seen == [1]


class TestTableReconcilerAbort:
    """Test the ABORTED outcomes"""

    def test_cancelled_before_first_page(self, make_reconciler, player_spec, sink):
        reconciler, fetcher = make_reconciler([player(1)], [player(1)])
        event = threading.Event()
        event.set()

        result = reconciler.run(player_spec, cancel_event=event)

        assert result.state is RunState.ABORTED
        assert result.error_type == "CancellationError"
        assert result.failed_page == 0
        assert fetcher.calls == []

    def test_cancelled_between_pages(self, make_reconciler, player_spec, sink):
        reconciler, fetcher = make_reconciler(
            [player(i) for i in range(1, 6)],
            [player(i, gold=0) for i in range(1, 6)],
        )
        event = threading.Event()

        result = reconciler.run(
            player_spec, cancel_event=event, on_page_complete=lambda table, page: event.set()
        )

        assert result.state is RunState.ABORTED
        assert result.failed_page == 1
        assert result.pages_compared == 1
        # Page 0 was fully emitted before the cancellation took effect
        assert {r.id for r in sink.records} == {1, 2}
        assert max(page for _, page in fetcher.calls) == 0

    def test_fetch_failure_aborts_at_page(self, make_reconciler, player_spec, sink):
        cause = RuntimeError("connection reset by peer")
        reconciler, _ = make_reconciler(
            [player(i) for i in range(1, 6)],
            [player(i, gold=0) for i in range(1, 6)],
            fail_on={(SECONDARY, 1): FetchError(SECONDARY, "player", cause)},
        )

        result = reconciler.run(player_spec)

        assert result.state is RunState.ABORTED
        assert result.error_type == "FetchError"
        assert result.failed_page == 1
        assert "connection reset" in result.error_message
        # Page 1 emitted nothing; page 0 records stand
        assert {r.id for r in sink.records} == {1, 2}

    def test_failure_on_both_sides_still_aborts_once(self, make_reconciler, player_spec, sink):
        reconciler, _ = make_reconciler(
            [player(1)],
            [player(1)],
            fail_on={
                (PRIMARY, 0): FetchError(PRIMARY, "player", OSError("down")),
                (SECONDARY, 0): FetchError(SECONDARY, "player", OSError("down")),
            },
        )

        result = reconciler.run(player_spec)

        assert result.state is RunState.ABORTED
        assert result.failed_page == 0
        assert sink.records == []

    def test_unsupported_dialect_aborts_before_fetching(
        self, make_reconciler, player_spec, in_memory_provider, sink
    ):
        in_memory_provider.products[SECONDARY] = "Informix"
        reconciler, fetcher = make_reconciler([player(1)], [player(1)])

        result = reconciler.run(player_spec)

        assert result.state is RunState.ABORTED
        assert result.error_type == "UnsupportedDialect"
        assert "Informix" in result.error_message
        assert result.failed_page is None
        assert fetcher.calls == []

    def test_product_lookup_failure_becomes_fetch_error(
        self, make_reconciler, player_spec, in_memory_provider
    ):
        in_memory_provider.products[PRIMARY] = ConnectionError("no route to host")
        reconciler, _ = make_reconciler([player(1)], [player(1)])

        result = reconciler.run(player_spec)

        assert result.state is RunState.ABORTED
        assert result.error_type == "FetchError"

    def test_timestamps_recorded_on_abort(self, make_reconciler, player_spec):
        event = threading.Event()
        event.set()
        reconciler, _ = make_reconciler([], [])

        result = reconciler.run(player_spec, cancel_event=event)

        assert result.started_at is not None
        assert result.finished_at is not None
        assert result.duration_seconds >= 0

    def test_invalid_schema_from_provider_aborts(self, in_memory_provider, fake_cursor, sink):
        in_memory_provider.schemas = {SECONDARY: "game; DROP TABLE player"}
        in_memory_provider.cursors = {PRIMARY: fake_cursor(), SECONDARY: fake_cursor()}
        reconciler = TableReconciler(in_memory_provider, sink, page_size=2)

        result = reconciler.run(TableSpec("player", "id", ("gold",)))

        assert result.state is RunState.ABORTED
        assert result.error_type == "FetchError"
        assert "Invalid table name" in result.error_message
        assert result.failed_page == 0
