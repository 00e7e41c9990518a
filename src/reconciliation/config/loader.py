"""
YAML configuration loading and validation.

The file is read once per process into an immutable ReconcileConfig that
is passed explicitly to every table run. All validation happens here, so
a bad table or source definition fails before any database is touched.

Example:

    page_size: 1000
    max_workers: 4
    max_report_differences: 1000
    sources:
      primary:
        type: postgresql
        host: db-primary
        database: game
        user: reconcile
        password_env: PRIMARY_DB_PASSWORD
      secondary:
        type: odbc
        connection_string_env: REPLICA_ODBC_DSN
        product: Microsoft SQL Server
    dialects:
      cockroachdb:
        clause: "LIMIT {limit} OFFSET {offset}"
    tables:
      player:
        identity: id
        fields: [level, gold]
"""

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import requests
import yaml

from utils.database_types import DatabaseType
from utils.sql_safety import validate_identifier
from utils.vault_client import VaultClient

from ..errors import ConfigurationError
from ..models import SIDES, TableSpec
from ..paged.dialect import DialectTemplate, make_template

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_WORKERS = 4
DEFAULT_TIMEOUT_PER_TABLE = 3600
DEFAULT_MAX_REPORT_DIFFERENCES = 1000
DEFAULT_IDENTITY = "id"


@dataclass(frozen=True)
class SourceConfig:
    """Connection settings for one side. Secrets are already resolved."""

    side: str
    type: DatabaseType
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    password: str | None = field(default=None, repr=False)
    path: str | None = None
    connection_string: str | None = field(default=None, repr=False)
    driver: str = "ODBC Driver 18 for SQL Server"
    schema: str | None = None
    product: str | None = None
    pool_min_size: int = 0
    pool_max_size: int = DEFAULT_MAX_WORKERS
    acquire_timeout: float = 30.0
    connect_timeout: int = 10


@dataclass(frozen=True)
class ReconcileConfig:
    """Immutable run configuration."""

    sources: Mapping[str, SourceConfig]
    tables: Mapping[str, TableSpec]
    dialects: Mapping[str, DialectTemplate] = field(default_factory=lambda: MappingProxyType({}))
    page_size: int = DEFAULT_PAGE_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    timeout_per_table: float = DEFAULT_TIMEOUT_PER_TABLE
    fetch_retries: int = 0
    max_report_differences: int = DEFAULT_MAX_REPORT_DIFFERENCES

    def get_table_spec(self, name: str) -> TableSpec:
        """
        Raises:
            ConfigurationError: If the table is not configured
        """
        try:
            return self.tables[name]
        except KeyError:
            raise ConfigurationError(
                f"Table {name!r} is not configured "
                f"(configured: {', '.join(self.list_configured_tables()) or 'none'})"
            ) from None

    def list_configured_tables(self) -> list[str]:
        return list(self.tables)

    def source(self, side: str) -> SourceConfig:
        try:
            return self.sources[side]
        except KeyError:
            raise ConfigurationError(f"Unknown side {side!r}; expected one of {SIDES}") from None


def _positive_int(data: Mapping[str, Any], key: str, default: int, minimum: int = 1) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigurationError(f"'{key}' must be an integer >= {minimum}, got {value!r}")
    return value


def _parse_table(name: str, entry: Any) -> TableSpec:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Table {name!r} must be a mapping with 'fields'")

    identity = entry.get("identity", DEFAULT_IDENTITY)
    fields = entry.get("fields")
    if isinstance(fields, str) or not isinstance(fields, list) or not fields:
        raise ConfigurationError(f"Table {name!r} needs a non-empty 'fields' list")

    return TableSpec(name=name, identity_field=identity, compared_fields=tuple(fields))


class SecretResolver:
    """Resolves source secrets from Vault, environment variables or literals."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        vault_client_factory: Callable[[], VaultClient] = VaultClient,
    ):
        self.environ = os.environ if environ is None else environ
        self._vault_client_factory = vault_client_factory
        self._vault_client: VaultClient | None = None

    def _vault(self) -> VaultClient:
        if self._vault_client is None:
            self._vault_client = self._vault_client_factory()
        return self._vault_client

    def _env(self, side: str, variable: str) -> str:
        try:
            return self.environ[variable]
        except KeyError:
            raise ConfigurationError(
                f"Source {side!r}: environment variable {variable!r} is not set"
            ) from None

    def resolve(self, side: str, entry: Mapping[str, Any]) -> dict[str, Any]:
        """Return ``user``, ``password`` and ``connection_string`` for a source entry."""
        resolved = {
            "user": entry.get("user"),
            "password": None,
            "connection_string": entry.get("connection_string"),
        }

        if entry.get("vault_path"):
            try:
                secret = self._vault().get_source_credentials(entry["vault_path"])
            except (ValueError, requests.RequestException) as e:
                raise ConfigurationError(
                    f"Source {side!r}: cannot read credentials from Vault: {e}"
                ) from e
            resolved["password"] = secret["password"]
            resolved["user"] = secret.get("user") or secret.get("username") or resolved["user"]
            logger.info(f"Loaded {side} credentials from Vault")
        elif entry.get("password_env"):
            resolved["password"] = self._env(side, entry["password_env"])
        else:
            resolved["password"] = entry.get("password")

        if entry.get("connection_string_env"):
            resolved["connection_string"] = self._env(side, entry["connection_string_env"])

        return resolved


def _parse_source(
    side: str, entry: Any, secrets: SecretResolver, default_pool_size: int
) -> SourceConfig:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Source {side!r} must be a mapping")

    try:
        source_type = DatabaseType.parse(entry.get("type", ""))
    except ValueError as e:
        raise ConfigurationError(f"Source {side!r}: {e}") from e

    credentials = secrets.resolve(side, entry)

    if source_type is DatabaseType.SQLITE:
        if not entry.get("path"):
            raise ConfigurationError(f"Source {side!r}: sqlite sources need 'path'")
    elif source_type is DatabaseType.POSTGRESQL:
        missing = [key for key in ("host", "database") if not entry.get(key)]
        if not credentials["user"]:
            missing.append("user")
        if missing:
            raise ConfigurationError(f"Source {side!r}: missing {', '.join(missing)}")
    elif not credentials["connection_string"] and not (
        entry.get("host") and entry.get("database") and credentials["user"]
    ):
        raise ConfigurationError(
            f"Source {side!r}: odbc sources need a connection string "
            "or host, database and user"
        )

    schema = entry.get("schema")
    if schema is not None:
        try:
            validate_identifier(schema)
        except ValueError as e:
            raise ConfigurationError(f"Source {side!r}: {e}") from e

    pool = entry.get("pool", {}) or {}
    try:
        return SourceConfig(
            side=side,
            type=source_type,
            host=entry.get("host"),
            port=int(entry["port"]) if entry.get("port") is not None else None,
            database=entry.get("database"),
            user=credentials["user"],
            password=credentials["password"],
            path=entry.get("path"),
            connection_string=credentials["connection_string"],
            driver=entry.get("driver", SourceConfig.driver),
            schema=schema,
            product=entry.get("product"),
            pool_min_size=int(pool.get("min_size", 0)),
            pool_max_size=int(pool.get("max_size", default_pool_size)),
            acquire_timeout=float(pool.get("acquire_timeout", 30.0)),
            connect_timeout=int(entry.get("connect_timeout", 10)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Source {side!r}: {e}") from e


def parse_config(
    data: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
    vault_client_factory: Callable[[], VaultClient] = VaultClient,
) -> ReconcileConfig:
    """
    Validate a configuration mapping and freeze it.

    Raises:
        ConfigurationError: On any missing or invalid setting
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError("Configuration must be a mapping")

    page_size = _positive_int(data, "page_size", DEFAULT_PAGE_SIZE)
    max_workers = _positive_int(data, "max_workers", DEFAULT_MAX_WORKERS)
    fetch_retries = _positive_int(data, "fetch_retries", 0, minimum=0)
    max_report_differences = _positive_int(
        data, "max_report_differences", DEFAULT_MAX_REPORT_DIFFERENCES, minimum=0
    )
    timeout_per_table = data.get("timeout_per_table", DEFAULT_TIMEOUT_PER_TABLE)
    if isinstance(timeout_per_table, bool) or not isinstance(timeout_per_table, (int, float)) \
            or timeout_per_table <= 0:
        raise ConfigurationError(
            f"'timeout_per_table' must be a positive number, got {timeout_per_table!r}"
        )

    raw_sources = data.get("sources") or {}
    missing_sides = [side for side in SIDES if side not in raw_sources]
    if missing_sides:
        raise ConfigurationError(f"Missing source(s): {', '.join(missing_sides)}")
    secrets = SecretResolver(environ, vault_client_factory)
    sources = {
        side: _parse_source(side, raw_sources[side], secrets, max_workers) for side in SIDES
    }

    dialects = {}
    for product, entry in (data.get("dialects") or {}).items():
        if not isinstance(entry, Mapping) or "clause" not in entry:
            raise ConfigurationError(f"Dialect {product!r} needs a 'clause'")
        dialects[str(product)] = make_template(
            str(product), entry["clause"], entry.get("quote_style", "double")
        )

    raw_tables = data.get("tables") or {}
    if not isinstance(raw_tables, Mapping):
        raise ConfigurationError("'tables' must be a mapping of table name to settings")
    tables = {str(name): _parse_table(str(name), entry) for name, entry in raw_tables.items()}

    return ReconcileConfig(
        sources=MappingProxyType(sources),
        tables=MappingProxyType(tables),
        dialects=MappingProxyType(dialects),
        page_size=page_size,
        max_workers=max_workers,
        timeout_per_table=timeout_per_table,
        fetch_retries=fetch_retries,
        max_report_differences=max_report_differences,
    )


def load_config(
    path: str | Path,
    environ: Mapping[str, str] | None = None,
    vault_client_factory: Callable[[], VaultClient] = VaultClient,
) -> ReconcileConfig:
    """
    Load and validate a YAML configuration file.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    config = parse_config(data or {}, environ, vault_client_factory)
    logger.info(
        f"Loaded configuration from {path}: {len(config.tables)} tables, "
        f"page size {config.page_size}"
    )
    return config
