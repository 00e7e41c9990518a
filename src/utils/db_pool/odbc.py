"""ODBC connection pool implementation (SQL Server and any ODBC source)."""

from typing import Any

import pyodbc

from utils.database_types import DatabaseType

from .base import BaseConnectionPool


class OdbcConnectionPool(BaseConnectionPool):
    """Connection pool for ODBC data sources via pyodbc."""

    database_type = DatabaseType.ODBC

    def __init__(
        self,
        connection_string: str | None = None,
        host: str | None = None,
        port: int | None = None,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        driver: str = "ODBC Driver 18 for SQL Server",
        connect_timeout: int = 10,
        **kwargs: Any,
    ):
        """
        Args:
            connection_string: Complete ODBC connection string; when given the
                individual parameters are ignored
            host, port, database, user, password: SQL Server style parameters
                used to build a connection string
            driver: ODBC driver name
        """
        if connection_string:
            self.connection_string = connection_string
        else:
            if not all([host, database, user]):
                raise ValueError(
                    "Either connection_string or host, database and user must be provided"
                )
            server = f"{host},{port}" if port else host
            self.connection_string = (
                f"DRIVER={{{driver}}};"
                f"SERVER={server};"
                f"DATABASE={database};"
                f"UID={user};"
                f"PWD={password or ''};"
                f"TrustServerCertificate=yes;"
                f"Encrypt=yes;"
            )
        self.connect_timeout = connect_timeout

        super().__init__(**kwargs)

    def _create_connection(self) -> pyodbc.Connection:
        conn = pyodbc.connect(self.connection_string, timeout=self.connect_timeout)
        conn.autocommit = True
        return conn

    def _is_connection_healthy(self, conn: pyodbc.Connection) -> bool:
        if conn is None:
            return False

        try:
            cursor = conn.cursor()
            try:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            finally:
                cursor.close()
            return True
        except pyodbc.Error:
            return False

    def _close_connection(self, conn: pyodbc.Connection) -> None:
        if conn is not None:
            conn.close()

    def _read_product(self, conn: pyodbc.Connection) -> str:
        return conn.getinfo(pyodbc.SQL_DBMS_NAME)
