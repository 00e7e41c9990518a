"""SQLite connection pool implementation (local files, tests, fixtures)."""

import sqlite3
from typing import Any

from utils.database_types import DatabaseType

from .base import BaseConnectionPool


class SqliteConnectionPool(BaseConnectionPool):
    """Connection pool over a SQLite database file."""

    database_type = DatabaseType.SQLITE

    def __init__(self, path: str, timeout: float = 5.0, **kwargs: Any):
        if path == ":memory:":
            # Each connection would see its own empty database
            raise ValueError("SqliteConnectionPool needs a database file, not ':memory:'")
        self.path = path
        self.timeout = timeout

        super().__init__(**kwargs)

    def _create_connection(self) -> sqlite3.Connection:
        # Connections move between worker threads; the pool lends each to one borrower at a time
        uri = f"file:{self.path}?mode=ro"
        return sqlite3.connect(uri, uri=True, timeout=self.timeout, check_same_thread=False)

    def _is_connection_healthy(self, conn: sqlite3.Connection) -> bool:
        try:
            conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    def _close_connection(self, conn: sqlite3.Connection) -> None:
        conn.close()
