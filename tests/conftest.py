"""
Pytest configuration and shared fixtures for reconciliation tests.

Database-backed tests use real SQLite files created under tmp_path and
read through the ``sqlite`` source type; nothing needs a server.
"""

import sqlite3
from collections.abc import Callable, Iterable, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pytest
import yaml

from reconciliation.models import PRIMARY, SECONDARY, TableSpec
from reconciliation.paged.dialect import BUILTIN_DIALECTS


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: test reads real SQLite database files")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def create_sqlite_table(
    path: Path,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
) -> Path:
    """Create (or replace) a table in a SQLite file and insert rows."""
    conn = sqlite3.connect(path)
    try:
        conn.execute(f'DROP TABLE IF EXISTS "{table}"')
        conn.execute(f'CREATE TABLE "{table}" ({", ".join(columns)})')
        placeholders = ", ".join("?" for _ in columns)
        conn.executemany(f'INSERT INTO "{table}" VALUES ({placeholders})', list(rows))
        conn.commit()
    finally:
        conn.close()
    return path


class FakeCursor:
    """Minimal DB-API cursor returning canned rows."""

    def __init__(self, rows=None, error: Exception | None = None):
        self.rows = rows or []
        self.error = error
        self.executed: list[str] = []
        self.closed = False

    def execute(self, query: str) -> None:
        self.executed.append(query)
        if self.error is not None:
            raise self.error

    def fetchall(self):
        return list(self.rows)

    def close(self) -> None:
        self.closed = True


class InMemoryProvider:
    """Connection provider handing out canned cursors and product names."""

    def __init__(self, products=None, schemas=None, cursors=None):
        self.products = products or {PRIMARY: "PostgreSQL", SECONDARY: "Microsoft SQL Server"}
        self.schemas = schemas or {}
        self.cursors = cursors or {}

    @contextmanager
    def get_query_interface(self, side):
        yield self.cursors[side]

    def get_product_identifier(self, side):
        product = self.products[side]
        if isinstance(product, Exception):
            raise product
        return product

    def get_schema(self, side):
        return self.schemas.get(side)


class InMemoryFetcher:
    """
    Page fetcher over in-memory rows, paging by sorted identity like the SQL does.

    ``fail_on`` maps (side, page) to an exception raised for that fetch.
    """

    def __init__(self, rows_by_side: dict[str, list[dict]], fail_on=None):
        self.rows_by_side = rows_by_side
        self.fail_on = fail_on or {}
        self.calls: list[tuple[str, int]] = []

    def fetch(self, source, table, fields, identity_field, page_index, page_size, dialect):
        self.calls.append((source, page_index))
        if (source, page_index) in self.fail_on:
            raise self.fail_on[(source, page_index)]
        rows = sorted(self.rows_by_side[source], key=lambda row: row[identity_field])
        offset = page_index * page_size
        return [dict(row) for row in rows[offset:offset + page_size]]


@pytest.fixture
def player_spec() -> TableSpec:
    return TableSpec(name="player", identity_field="id", compared_fields=("level", "gold"))


@pytest.fixture
def postgres_dialect():
    return BUILTIN_DIALECTS["postgresql"]


@pytest.fixture
def fake_cursor() -> type[FakeCursor]:
    return FakeCursor


@pytest.fixture
def in_memory_provider() -> InMemoryProvider:
    return InMemoryProvider()


@pytest.fixture
def in_memory_fetcher() -> type[InMemoryFetcher]:
    return InMemoryFetcher


@pytest.fixture
def sqlite_pair(tmp_path: Path) -> Callable[..., tuple[Path, Path]]:
    """
    Factory building primary/secondary SQLite files holding one table each.

    Usage: primary, secondary = sqlite_pair("player", ["id", "level", "gold"], rows_p, rows_s)
    """
    def build(table, columns, primary_rows, secondary_rows):
        primary = create_sqlite_table(tmp_path / "primary.db", table, columns, primary_rows)
        secondary = create_sqlite_table(tmp_path / "secondary.db", table, columns, secondary_rows)
        return primary, secondary

    return build


@pytest.fixture
def sqlite_table() -> Callable[..., Path]:
    return create_sqlite_table


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a YAML config for two SQLite sources."""
    def write(primary: Path, secondary: Path, tables: dict, **settings) -> Path:
        data = {
            "page_size": 2,
            "max_workers": 2,
            "sources": {
                PRIMARY: {"type": "sqlite", "path": str(primary)},
                SECONDARY: {"type": "sqlite", "path": str(secondary)},
            },
            "tables": tables,
        }
        data.update(settings)
        path = tmp_path / "reconcile.yaml"
        path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path

    return write
