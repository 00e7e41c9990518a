"""
Connection Provider backed by one connection pool per side.
"""

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from utils.database_types import DatabaseType
from utils.db_pool import BaseConnectionPool, PostgresConnectionPool, SqliteConnectionPool

from .config import ReconcileConfig, SourceConfig
from .errors import ConfigurationError
from .models import SIDES

logger = logging.getLogger(__name__)


def create_pool(source: SourceConfig) -> BaseConnectionPool:
    """Build the pool matching a source's type."""
    pool_kwargs = {
        "min_size": source.pool_min_size,
        "max_size": source.pool_max_size,
        "acquire_timeout": source.acquire_timeout,
        "pool_name": source.side,
    }

    if source.type is DatabaseType.POSTGRESQL:
        return PostgresConnectionPool(
            host=source.host,
            port=source.port or 5432,
            database=source.database,
            user=source.user,
            password=source.password,
            connect_timeout=source.connect_timeout,
            **pool_kwargs,
        )

    if source.type is DatabaseType.SQLITE:
        return SqliteConnectionPool(path=source.path, **pool_kwargs)

    # pyodbc needs unixODBC at import time; only load it when asked for
    from utils.db_pool.odbc import OdbcConnectionPool

    return OdbcConnectionPool(
        connection_string=source.connection_string,
        host=source.host,
        port=source.port,
        database=source.database,
        user=source.user,
        password=source.password,
        driver=source.driver,
        connect_timeout=source.connect_timeout,
        **pool_kwargs,
    )


class PooledConnectionProvider:
    """
    Supplies query interfaces for the ``primary`` and ``secondary`` sides.

    A cursor handed out by ``get_query_interface`` is backed by a pooled
    connection that goes back to the pool when the ``with`` block ends.
    """

    def __init__(
        self,
        pools: Mapping[str, BaseConnectionPool],
        products: Mapping[str, str | None] | None = None,
        schemas: Mapping[str, str | None] | None = None,
    ):
        missing = [side for side in SIDES if side not in pools]
        if missing:
            raise ConfigurationError(f"No connection pool for side(s): {', '.join(missing)}")
        self.pools = dict(pools)
        self.products = dict(products or {})
        self.schemas = dict(schemas or {})

    @classmethod
    def from_config(cls, config: ReconcileConfig) -> "PooledConnectionProvider":
        pools: dict[str, BaseConnectionPool] = {}
        try:
            for side in SIDES:
                pools[side] = create_pool(config.source(side))
        except Exception:
            for pool in pools.values():
                pool.close()
            raise
        return cls(
            pools,
            products={side: config.source(side).product for side in SIDES},
            schemas={side: config.source(side).schema for side in SIDES},
        )

    def _pool(self, side: str) -> BaseConnectionPool:
        try:
            return self.pools[side]
        except KeyError:
            raise ConfigurationError(f"Unknown side {side!r}; expected one of {SIDES}") from None

    @contextmanager
    def get_query_interface(self, side: str) -> Iterator[Any]:
        """Borrow a connection for one query and yield a cursor on it."""
        with self._pool(side).acquire() as conn:
            cursor = conn.cursor()
            try:
                yield cursor
            finally:
                cursor.close()

    def get_product_identifier(self, side: str) -> str:
        """Configured product override, else what the driver reports."""
        pool = self._pool(side)
        configured = self.products.get(side)
        if configured:
            return configured
        return pool.product_identifier()

    def get_schema(self, side: str) -> str | None:
        self._pool(side)
        return self.schemas.get(side)

    def get_stats(self) -> dict[str, dict[str, Any]]:
        return {side: pool.get_stats() for side, pool in self.pools.items()}

    def close(self) -> None:
        for side, pool in self.pools.items():
            try:
                pool.close()
            except Exception as e:
                logger.error(f"Error closing {side} connection pool: {e}")

    def __enter__(self) -> "PooledConnectionProvider":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
