"""
Unit tests for utils.db_pool
"""

import sqlite3
import threading
from unittest.mock import MagicMock, Mock, patch

import pytest

from utils.database_types import DatabaseType
from utils.db_pool import (
    BaseConnectionPool,
    PoolClosedError,
    PoolExhaustedError,
    PostgresConnectionPool,
    SqliteConnectionPool,
)


class MockConnectionPool(BaseConnectionPool):
    """Pool over Mock connections with a switchable health probe."""

    database_type = DatabaseType.ODBC

    def __init__(self, **kwargs):
        self.created = []
        self.closed_connections = []
        self.healthy = True
        self.product = "Microsoft SQL Server"
        super().__init__(**kwargs)

    def _create_connection(self):
        conn = Mock(name=f"conn{len(self.created)}")
        self.created.append(conn)
        return conn

    def _is_connection_healthy(self, conn):
        return self.healthy

    def _close_connection(self, conn):
        self.closed_connections.append(conn)

    def _read_product(self, conn):
        return self.product


class TestBaseConnectionPool:
    """Test pooling behaviour shared by every source type"""

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            MockConnectionPool(max_size=0)
        with pytest.raises(ValueError):
            MockConnectionPool(min_size=3, max_size=2)

    def test_min_size_opens_eagerly(self):
        pool = MockConnectionPool(min_size=2, max_size=4)

        assert len(pool.created) == 2
        assert pool.get_stats()["idle_connections"] == 2

    def test_connections_are_reused(self):
        pool = MockConnectionPool(max_size=2)

        with pool.acquire() as first:
            pass
        with pool.acquire() as second:
            pass

        assert first is second
        assert len(pool.created) == 1

    def test_connections_created_up_to_max(self):
        pool = MockConnectionPool(max_size=2)

        with pool.acquire() as first, pool.acquire() as second:
            assert first is not second
            stats = pool.get_stats()

        assert stats["total_connections"] == 2
        assert stats["active_connections"] == 2

    def test_exhausted_pool_times_out(self):
        pool = MockConnectionPool(max_size=1, acquire_timeout=0.05)

        with pool.acquire():
            with pytest.raises(PoolExhaustedError):
                with pool.acquire():
                    pass

    def test_waiter_gets_returned_connection(self):
        pool = MockConnectionPool(max_size=1, acquire_timeout=2.0)
        borrowed = threading.Event()
        release = threading.Event()

        def hold():
            with pool.acquire():
                borrowed.set()
                release.wait(2)

        holder = threading.Thread(target=hold)
        holder.start()
        borrowed.wait(2)
        threading.Timer(0.05, release.set).start()

        with pool.acquire() as conn:
            assert conn is pool.created[0]
        holder.join()

    def test_connection_returned_after_exception(self):
        pool = MockConnectionPool(max_size=1)

        with pytest.raises(RuntimeError):
            with pool.acquire():
                raise RuntimeError("query failed")

        assert pool.get_stats()["idle_connections"] == 1

    def test_unhealthy_connection_recycled(self):
        pool = MockConnectionPool(max_size=1)
        with pool.acquire():
            pass

        pool.healthy = False
        # Health probe fails for the idle one, then again for the fresh one;
        # flip it back once a replacement has been opened
        original_create = pool._create_connection

        def create_and_heal():
            pool.healthy = True
            return original_create()

        pool._create_connection = create_and_heal

        with pool.acquire() as conn:
            assert conn is pool.created[1]
        assert pool.closed_connections == [pool.created[0]]

    def test_expired_connection_recycled(self):
        pool = MockConnectionPool(max_size=1, max_lifetime=60)
        with pool.acquire():
            pass
        pool._all_connections[0].created_at -= 120

        with pool.acquire() as conn:
            assert conn is pool.created[1]

    def test_closed_pool_rejects_acquire(self):
        pool = MockConnectionPool(min_size=1)

        pool.close()

        with pytest.raises(PoolClosedError):
            with pool.acquire():
                pass
        assert pool.closed_connections == [pool.created[0]]
        assert pool.get_stats()["closed"] is True

    def test_connection_borrowed_during_close_is_closed_on_return(self):
        pool = MockConnectionPool(max_size=1)

        with pool.acquire() as conn:
            pool.close()
            assert pool.closed_connections == []

        assert pool.closed_connections == [conn]

    def test_close_is_idempotent(self):
        pool = MockConnectionPool(min_size=1)

        pool.close()
        pool.close()

        assert len(pool.closed_connections) == 1

    def test_product_read_from_driver_once(self):
        pool = MockConnectionPool()
        pool._read_product = Mock(return_value="Microsoft SQL Server")

        assert pool.product_identifier() == "Microsoft SQL Server"
        assert pool.product_identifier() == "Microsoft SQL Server"
        pool._read_product.assert_called_once()

    def test_creation_failure_propagates(self):
        pool = MockConnectionPool()
        pool._create_connection = Mock(side_effect=ConnectionError("refused"))

        with pytest.raises(ConnectionError):
            with pool.acquire():
                pass
        assert pool.get_stats()["total_connections"] == 0


class TestSqliteConnectionPool:
    """Test the SQLite pool against a real file"""

    def test_rejects_memory_database(self):
        with pytest.raises(ValueError, match="memory"):
            SqliteConnectionPool(":memory:")

    def test_reads_file(self, tmp_path, sqlite_table):
        path = sqlite_table(tmp_path / "a.db", "player", ["id", "gold"], [(1, 10)])
        pool = SqliteConnectionPool(str(path), pool_name="primary")

        with pool.acquire() as conn:
            assert conn.execute("SELECT gold FROM player").fetchall() == [(10,)]

        assert pool.product_identifier() == "SQLite"
        assert pool.get_stats()["database_type"] == "sqlite"
        pool.close()

    def test_connections_are_read_only(self, tmp_path, sqlite_table):
        path = sqlite_table(tmp_path / "a.db", "player", ["id", "gold"], [])
        pool = SqliteConnectionPool(str(path))

        with pool.acquire() as conn:
            with pytest.raises(sqlite3.OperationalError):
                conn.execute("INSERT INTO player VALUES (1, 1)")
        pool.close()

    def test_usable_from_another_thread(self, tmp_path, sqlite_table):
        path = sqlite_table(tmp_path / "a.db", "player", ["id"], [(1,)])
        pool = SqliteConnectionPool(str(path), min_size=1)
        results = []

        def read():
            with pool.acquire() as conn:
                results.append(conn.execute("SELECT COUNT(*) FROM player").fetchone()[0])

        thread = threading.Thread(target=read)
        thread.start()
        thread.join()

        assert results == [1]
        pool.close()


class TestPostgresConnectionPool:
    """Test the PostgreSQL pool with psycopg2 mocked out"""

    @patch("utils.db_pool.postgres.psycopg2.connect")
    def test_connect_parameters(self, mock_connect):
        conn = MagicMock(closed=0)
        mock_connect.return_value = conn

        pool = PostgresConnectionPool(
            host="db", database="game", user="reconcile", password="pw", port=5433, min_size=1
        )

        mock_connect.assert_called_once_with(
            host="db",
            port=5433,
            dbname="game",
            user="reconcile",
            password="pw",
            connect_timeout=10,
        )
        conn.set_session.assert_called_once_with(readonly=True, autocommit=True)
        assert pool.product_identifier() == "PostgreSQL"

    @patch("utils.db_pool.postgres.psycopg2.connect")
    def test_health_check(self, mock_connect):
        conn = MagicMock(closed=0)
        mock_connect.return_value = conn
        pool = PostgresConnectionPool(host="db", database="game", user="u")

        assert pool._is_connection_healthy(conn) is True
        conn.closed = 1
        assert pool._is_connection_healthy(conn) is False
        assert pool._is_connection_healthy(None) is False

    @patch("utils.db_pool.postgres.psycopg2.connect")
    def test_close_skips_closed_connection(self, mock_connect):
        pool = PostgresConnectionPool(host="db", database="game", user="u")
        conn = MagicMock(closed=1)

        pool._close_connection(conn)

        conn.close.assert_not_called()


class TestOdbcConnectionPool:
    """Test the ODBC pool; skipped where pyodbc cannot be imported"""

    @pytest.fixture
    def odbc(self):
        pytest.importorskip("pyodbc")
        from utils.db_pool import odbc

        return odbc

    def test_requires_connection_details(self, odbc):
        with pytest.raises(ValueError, match="connection_string"):
            odbc.OdbcConnectionPool(host="db")

    def test_builds_connection_string(self, odbc):
        pool = odbc.OdbcConnectionPool(
            host="db", port=1433, database="game", user="sa", password="pw"
        )

        assert "SERVER=db,1433;" in pool.connection_string
        assert "DRIVER={ODBC Driver 18 for SQL Server};" in pool.connection_string

    def test_reads_product_from_driver(self, odbc):
        conn = Mock()
        conn.getinfo.return_value = "Microsoft SQL Server"

        with patch.object(odbc.pyodbc, "connect", return_value=conn):
            pool = odbc.OdbcConnectionPool(connection_string="DSN=replica")
            assert pool.product_identifier() == "Microsoft SQL Server"

        assert conn.autocommit is True
