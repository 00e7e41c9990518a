"""
Database connection pooling for reconciliation sources.

Each side (primary, secondary) gets its own pool. The ODBC pool lives in
``utils.db_pool.odbc`` and is imported only when an ODBC source is
configured, because pyodbc needs the system unixODBC library at import time.
"""

from .base import (
    BaseConnectionPool,
    ConnectionPoolError,
    PoolClosedError,
    PooledConnection,
    PoolExhaustedError,
)
from .postgres import PostgresConnectionPool
from .sqlite import SqliteConnectionPool

__all__ = [
    "BaseConnectionPool",
    "PostgresConnectionPool",
    "SqliteConnectionPool",
    "PooledConnection",
    "ConnectionPoolError",
    "PoolExhaustedError",
    "PoolClosedError",
]
