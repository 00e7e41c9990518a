"""
Base class for per-side database connection pools.

A pool hands out one DB-API connection at a time through ``acquire()``;
the reconciler borrows a connection for exactly one page fetch and
returns it straight after. Connections are created lazily up to
``max_size``, health-checked when borrowed and recycled once they
exceed their idle time or lifetime.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from queue import Empty, Queue
from typing import Any

from prometheus_client import Counter, Gauge, Histogram

from utils.database_types import DatabaseType
from utils.metrics import get_or_create_metric

logger = logging.getLogger(__name__)


# Metrics
CONNECTION_POOL_SIZE = get_or_create_metric(
    lambda: Gauge(
        "db_connection_pool_size",
        "Current number of connections owned by the pool",
        ["database_type", "pool_name"],
    ),
    "db_connection_pool_size",
)

CONNECTION_POOL_IDLE = get_or_create_metric(
    lambda: Gauge(
        "db_connection_pool_idle",
        "Number of idle connections in the pool",
        ["database_type", "pool_name"],
    ),
    "db_connection_pool_idle",
)

CONNECTION_POOL_ERRORS = get_or_create_metric(
    lambda: Counter(
        "db_connection_pool_errors_total",
        "Number of connection pool errors",
        ["database_type", "pool_name", "error_type"],
    ),
    "db_connection_pool_errors",
)

CONNECTION_ACQUIRE_TIME = get_or_create_metric(
    lambda: Histogram(
        "db_connection_acquire_seconds",
        "Time to acquire a connection from the pool",
        ["database_type", "pool_name"],
        buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
    ),
    "db_connection_acquire_seconds",
)


@dataclass
class PooledConnection:
    """A pooled connection with bookkeeping timestamps (monotonic seconds)."""

    connection: Any
    created_at: float = field(default_factory=time.monotonic)
    last_used: float = field(default_factory=time.monotonic)
    use_count: int = 0

    def mark_used(self) -> None:
        self.last_used = time.monotonic()
        self.use_count += 1


class ConnectionPoolError(Exception):
    """Base exception for connection pool errors."""


class PoolExhaustedError(ConnectionPoolError):
    """Raised when no connection becomes available within the acquire timeout."""


class PoolClosedError(ConnectionPoolError):
    """Raised when attempting to use a closed pool."""


class BaseConnectionPool(ABC):
    """
    Thread-safe pool of DB-API connections for one source.

    Subclasses provide connection creation, a health probe, closing and
    the product identifier lookup.
    """

    database_type: DatabaseType

    def __init__(
        self,
        min_size: int = 0,
        max_size: int = 4,
        max_idle_time: int = 300,
        max_lifetime: int = 3600,
        acquire_timeout: float = 30.0,
        pool_name: str = "default",
    ):
        """
        Args:
            min_size: Connections opened eagerly at construction
            max_size: Maximum number of connections allowed
            max_idle_time: Seconds a connection may sit idle before recycling
            max_lifetime: Seconds a connection may live before recycling
            acquire_timeout: Seconds to wait for a free connection
            pool_name: Name used in metrics and logs (usually the side)
        """
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if min_size > max_size:
            raise ValueError("min_size cannot exceed max_size")

        self.min_size = min_size
        self.max_size = max_size
        self.max_idle_time = max_idle_time
        self.max_lifetime = max_lifetime
        self.acquire_timeout = acquire_timeout
        self.pool_name = pool_name

        self._idle: Queue[PooledConnection] = Queue(maxsize=max_size)
        self._all_connections: list[PooledConnection] = []
        self._lock = threading.RLock()
        self._closed = False
        self._product: str | None = None

        for _ in range(min_size):
            self._idle.put_nowait(self._open())

        self._update_metrics()
        logger.info(
            f"Initialized {self.__class__.__name__} '{pool_name}' "
            f"(min={min_size}, max={max_size})"
        )

    @abstractmethod
    def _create_connection(self) -> Any:
        """Open a new DB-API connection."""

    @abstractmethod
    def _is_connection_healthy(self, conn: Any) -> bool:
        """Cheap liveness probe."""

    @abstractmethod
    def _close_connection(self, conn: Any) -> None:
        """Close a DB-API connection."""

    def _read_product(self, conn: Any) -> str:
        """Ask the driver which database product it is connected to."""
        raise NotImplementedError(
            f"{self.__class__.__name__} cannot report its database product"
        )

    def _metric_labels(self) -> dict[str, str]:
        return {"database_type": self.database_type.value, "pool_name": self.pool_name}

    def _open(self) -> PooledConnection:
        try:
            conn = self._create_connection()
        except Exception:
            CONNECTION_POOL_ERRORS.labels(**self._metric_labels(), error_type="creation").inc()
            raise
        pooled_conn = PooledConnection(connection=conn)
        with self._lock:
            self._all_connections.append(pooled_conn)
        return pooled_conn

    def _is_usable(self, pooled_conn: PooledConnection) -> bool:
        now = time.monotonic()
        if now - pooled_conn.created_at > self.max_lifetime:
            logger.debug("Connection exceeded max lifetime, recycling")
            return False
        if now - pooled_conn.last_used > self.max_idle_time:
            logger.debug("Connection exceeded max idle time, recycling")
            return False
        try:
            return self._is_connection_healthy(pooled_conn.connection)
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            CONNECTION_POOL_ERRORS.labels(**self._metric_labels(), error_type="health_check").inc()
            return False

    def _recycle(self, pooled_conn: PooledConnection) -> None:
        try:
            self._close_connection(pooled_conn.connection)
        except Exception as e:
            logger.warning(f"Error closing connection: {e}")
        finally:
            with self._lock:
                if pooled_conn in self._all_connections:
                    self._all_connections.remove(pooled_conn)

    def _checkout(self) -> PooledConnection:
        deadline = time.monotonic() + self.acquire_timeout

        while True:
            pooled_conn: PooledConnection | None = None
            try:
                pooled_conn = self._idle.get_nowait()
            except Empty:
                with self._lock:
                    has_room = len(self._all_connections) < self.max_size
                if has_room:
                    pooled_conn = self._open()
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise PoolExhaustedError(
                            f"No connection available in pool '{self.pool_name}' "
                            f"within {self.acquire_timeout}s"
                        )
                    try:
                        pooled_conn = self._idle.get(timeout=remaining)
                    except Empty:
                        continue

            if self._is_usable(pooled_conn):
                return pooled_conn

            self._recycle(pooled_conn)

    @contextmanager
    def acquire(self) -> Iterator[Any]:
        """
        Borrow a connection for the duration of the ``with`` block.

        Raises:
            PoolClosedError: If the pool is closed
            PoolExhaustedError: If no connection frees up within the timeout
        """
        if self._closed:
            raise PoolClosedError(f"Connection pool '{self.pool_name}' is closed")

        with CONNECTION_ACQUIRE_TIME.labels(**self._metric_labels()).time():
            pooled_conn = self._checkout()
        pooled_conn.mark_used()
        self._update_metrics()

        try:
            yield pooled_conn.connection
        finally:
            if self._closed:
                self._recycle(pooled_conn)
            else:
                self._idle.put_nowait(pooled_conn)
            self._update_metrics()

    def product_identifier(self) -> str:
        """
        Database product name as reported by the driver, cached after first use.
        """
        if self._product is None:
            default = self.database_type.default_product
            if default is not None:
                self._product = default
            else:
                with self.acquire() as conn:
                    self._product = self._read_product(conn)
        return self._product

    def _update_metrics(self) -> None:
        with self._lock:
            total_size = len(self._all_connections)
        CONNECTION_POOL_SIZE.labels(**self._metric_labels()).set(total_size)
        CONNECTION_POOL_IDLE.labels(**self._metric_labels()).set(self._idle.qsize())

    def close(self) -> None:
        """Close all idle connections; borrowed ones close when returned."""
        if self._closed:
            return

        logger.info(f"Closing connection pool '{self.pool_name}'")
        self._closed = True

        while True:
            try:
                pooled_conn = self._idle.get_nowait()
            except Empty:
                break
            self._recycle(pooled_conn)

        self._update_metrics()

    def get_stats(self) -> dict[str, Any]:
        """Snapshot of pool occupancy."""
        with self._lock:
            total_size = len(self._all_connections)
        idle_size = self._idle.qsize()
        return {
            "pool_name": self.pool_name,
            "database_type": self.database_type.value,
            "total_connections": total_size,
            "idle_connections": idle_size,
            "active_connections": total_size - idle_size,
            "min_size": self.min_size,
            "max_size": self.max_size,
            "closed": self._closed,
        }
