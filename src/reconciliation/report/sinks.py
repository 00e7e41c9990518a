"""
Report sinks: where emitted DifferenceRecords go.

The orchestrator calls ``emit`` once per difference, possibly from
several table runs at once, so every sink here is thread-safe.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Iterable
from pathlib import Path

from ..models import DifferenceRecord

logger = logging.getLogger(__name__)


class ReportSink(ABC):
    """Receives difference records."""

    @abstractmethod
    def emit(self, record: DifferenceRecord) -> None:
        """Handle one difference."""

    def close(self) -> None:
        """Release any resources held by the sink."""

    def __enter__(self) -> "ReportSink":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class LoggingReportSink(ReportSink):
    """Logs each difference at WARNING with the record as structured context."""

    def __init__(self, logger_name: str = "reconciliation.differences"):
        self.logger = logging.getLogger(logger_name)

    def emit(self, record: DifferenceRecord) -> None:
        data = record.to_dict()
        if record.field is not None:
            message = (
                f"{record.kind.value} {record.table} id={record.id} field={record.field}: "
                f"{record.primary_value!r} != {record.secondary_value!r}"
            )
        elif record.side is not None:
            message = f"{record.kind.value} {record.table} id={record.id} on {record.side}"
        else:
            message = f"{record.kind.value} {record.table} id={record.id}"
        self.logger.warning(
            message,
            extra={
                "difference_kind": data["kind"],
                "table_name": data["table"],
                "row_id": data["id"],
            },
        )


class CollectingReportSink(ReportSink):
    """
    Keeps records in memory, grouped by table.

    With ``max_per_table`` set, only the first that many records of each
    table are kept; later ones are counted in ``omitted`` and dropped.
    """

    def __init__(self, max_per_table: int | None = None):
        self.max_per_table = max_per_table
        self._lock = threading.Lock()
        self._records: dict[str, list[DifferenceRecord]] = defaultdict(list)
        self._omitted: dict[str, int] = defaultdict(int)

    def emit(self, record: DifferenceRecord) -> None:
        with self._lock:
            kept = self._records[record.table]
            if self.max_per_table is not None and len(kept) >= self.max_per_table:
                self._omitted[record.table] += 1
                return
            kept.append(record)

    @property
    def records(self) -> list[DifferenceRecord]:
        with self._lock:
            return [record for records in self._records.values() for record in records]

    @property
    def omitted(self) -> dict[str, int]:
        """Records dropped per table once the cap was reached."""
        with self._lock:
            return {table: count for table, count in self._omitted.items() if count}

    def for_table(self, table: str) -> list[DifferenceRecord]:
        with self._lock:
            return list(self._records.get(table, []))

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._omitted.clear()


class JsonLinesReportSink(ReportSink):
    """Appends one JSON object per difference to a file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._file = open(self.path, "a", encoding="utf-8")
        logger.info(f"Writing differences to {self.path}")

    def emit(self, record: DifferenceRecord) -> None:
        line = json.dumps(record.to_dict(), sort_keys=True)
        with self._lock:
            self._file.write(line + "\n")
            self._file.flush()

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()


class CompositeReportSink(ReportSink):
    """Fans each record out to several sinks, in order."""

    def __init__(self, sinks: Iterable[ReportSink]):
        self.sinks = list(sinks)

    def emit(self, record: DifferenceRecord) -> None:
        for sink in self.sinks:
            sink.emit(record)

    def close(self) -> None:
        for sink in self.sinks:
            try:
                sink.close()
            except Exception as e:
                logger.error(f"Error closing {type(sink).__name__}: {e}")
