"""
Data model shared by the paged reconciliation engine.

TableSpec and DialectTemplate are read once per run and never change.
Rows, IndexedPages and DifferenceRecords live for one page iteration.
"""

import base64
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from utils.sql_safety import validate_identifier, validate_qualified_name

from .errors import ConfigurationError

PRIMARY = "primary"
SECONDARY = "secondary"
SIDES = (PRIMARY, SECONDARY)


class DifferenceKind(str, Enum):
    """Kinds of difference the diff engine reports."""

    MISSING_ON_SECONDARY = "missing-on-secondary"
    MISSING_ON_PRIMARY = "missing-on-primary"
    FIELD_MISMATCH = "field-mismatch"
    DUPLICATE_KEY = "duplicate-key"


class RunState(str, Enum):
    """States of one table's compare run."""

    INIT = "INIT"
    PAGING = "PAGING"
    DONE = "DONE"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class TableSpec:
    """
    Per-table comparison settings.

    Attributes:
        name: Table name, optionally ``schema.table``
        identity_field: Scalar column used as the comparison key
        compared_fields: Ordered non-identity columns whose values are diffed
    """

    name: str
    identity_field: str
    compared_fields: tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "compared_fields", tuple(self.compared_fields))
        if not self.compared_fields:
            raise ConfigurationError(f"Table {self.name!r} has no compared fields")
        if self.identity_field in self.compared_fields:
            raise ConfigurationError(
                f"Table {self.name!r} lists its identity field "
                f"{self.identity_field!r} among the compared fields"
            )
        if len(set(self.compared_fields)) != len(self.compared_fields):
            raise ConfigurationError(f"Table {self.name!r} lists a compared field twice")
        try:
            validate_qualified_name(self.name)
            validate_identifier(self.identity_field)
            for field_name in self.compared_fields:
                validate_identifier(field_name)
        except ValueError as e:
            raise ConfigurationError(f"Table {self.name!r}: {e}") from e

    @property
    def selected_fields(self) -> tuple[str, ...]:
        """Identity first, then compared fields, in query order."""
        return (self.identity_field, *self.compared_fields)


@dataclass
class IndexedPage:
    """
    One side's page keyed by identity value.

    ``rows`` keeps the first row seen for each id in fetch order;
    ``duplicate_ids`` lists every id that appeared more than once, each once.
    """

    side: str
    rows: dict[Any, dict[str, Any]] = field(default_factory=dict)
    duplicate_ids: list[Any] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def __contains__(self, identity: Any) -> bool:
        return identity in self.rows


def to_jsonable(value: Any) -> Any:
    """Render a column value so ``json.dumps`` accepts it."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, UUID):
        return str(value)
    return str(value)


@dataclass(frozen=True)
class DifferenceRecord:
    """One detected difference between the two sides."""

    kind: DifferenceKind
    table: str
    id: Any
    field: str | None = None
    primary_value: Any = None
    secondary_value: Any = None
    side: str | None = None

    @classmethod
    def missing_on_secondary(cls, table: str, identity: Any) -> "DifferenceRecord":
        return cls(DifferenceKind.MISSING_ON_SECONDARY, table, identity)

    @classmethod
    def missing_on_primary(cls, table: str, identity: Any) -> "DifferenceRecord":
        return cls(DifferenceKind.MISSING_ON_PRIMARY, table, identity)

    @classmethod
    def field_mismatch(
        cls, table: str, identity: Any, field_name: str, primary_value: Any, secondary_value: Any
    ) -> "DifferenceRecord":
        return cls(
            DifferenceKind.FIELD_MISMATCH,
            table,
            identity,
            field=field_name,
            primary_value=primary_value,
            secondary_value=secondary_value,
        )

    @classmethod
    def duplicate_key(cls, table: str, identity: Any, side: str) -> "DifferenceRecord":
        return cls(DifferenceKind.DUPLICATE_KEY, table, identity, side=side)

    def to_dict(self) -> dict[str, Any]:
        """Dictionary form for JSON export; only the fields the kind uses."""
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "table": self.table,
            "id": to_jsonable(self.id),
        }
        if self.kind is DifferenceKind.FIELD_MISMATCH:
            data["field"] = self.field
            data["primary_value"] = to_jsonable(self.primary_value)
            data["secondary_value"] = to_jsonable(self.secondary_value)
        elif self.kind is DifferenceKind.DUPLICATE_KEY:
            data["side"] = self.side
        return data


@dataclass
class TableRunResult:
    """Outcome of one table's compare run."""

    table: str
    state: RunState = RunState.INIT
    start_page: int = 0
    pages_compared: int = 0
    rows_primary: int = 0
    rows_secondary: int = 0
    differences: dict[str, int] = field(default_factory=dict)
    error_type: str | None = None
    error_message: str | None = None
    failed_page: int | None = None
    started_at: str | None = None
    finished_at: str | None = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.DONE

    @property
    def difference_count(self) -> int:
        return sum(self.differences.values())

    def count(self, records: Iterable[DifferenceRecord]) -> None:
        """Add a batch of emitted records to the per-kind tallies."""
        for record in records:
            key = record.kind.value
            self.differences[key] = self.differences.get(key, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "state": self.state.value,
            "start_page": self.start_page,
            "pages_compared": self.pages_compared,
            "rows_primary": self.rows_primary,
            "rows_secondary": self.rows_secondary,
            "differences": dict(self.differences),
            "difference_count": self.difference_count,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "failed_page": self.failed_page,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_seconds": self.duration_seconds,
        }
