"""
Database type enumeration for configured sources.
"""

from enum import Enum


class DatabaseType(str, Enum):
    """
    Kinds of source connection the reconciler knows how to open.

    Inherits from str so config values compare directly.
    """

    POSTGRESQL = "postgresql"
    ODBC = "odbc"
    SQLITE = "sqlite"

    @classmethod
    def parse(cls, value: str) -> "DatabaseType":
        """
        Parse a configured source type, accepting common aliases.

        Raises:
            ValueError: If the value names no supported type
        """
        normalized = (value or "").strip().lower()
        aliases = {
            "postgres": cls.POSTGRESQL,
            "pg": cls.POSTGRESQL,
            "sqlserver": cls.ODBC,
            "mssql": cls.ODBC,
            "sqlite3": cls.SQLITE,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            supported = ", ".join(member.value for member in cls)
            raise ValueError(
                f"Unsupported source type {value!r}; expected one of: {supported}"
            ) from None

    @property
    def default_product(self) -> str | None:
        """Product identifier the driver reports, when it is fixed."""
        if self == DatabaseType.POSTGRESQL:
            return "PostgreSQL"
        if self == DatabaseType.SQLITE:
            return "SQLite"
        # ODBC asks the driver (SQL_DBMS_NAME)
        return None
