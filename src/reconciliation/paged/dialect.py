"""
Dialect resolution: database product identifier -> pagination template.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from utils.sql_safety import QUOTE_CHARS, validate_integer_param

from ..errors import ConfigurationError, UnsupportedDialect

logger = logging.getLogger(__name__)

LIMIT_OFFSET = "LIMIT {limit} OFFSET {offset}"
OFFSET_FETCH_NEXT = "OFFSET {offset} ROWS FETCH NEXT {limit} ROWS ONLY"
OFFSET_FETCH_FIRST = "OFFSET {offset} ROWS FETCH FIRST {limit} ROWS ONLY"


@dataclass(frozen=True)
class DialectTemplate:
    """
    Pagination clause for one database product.

    ``clause`` is a ``str.format`` template with ``{offset}`` and ``{limit}``
    placeholders; ``quote_style`` selects how identifiers are quoted.
    """

    product: str
    clause: str
    quote_style: str = "double"

    def render(self, offset: int, limit: int) -> str:
        validate_integer_param(offset, "offset")
        validate_integer_param(limit, "limit", min_value=1)
        return self.clause.format(offset=offset, limit=limit)


def make_template(product: str, clause: str, quote_style: str = "double") -> DialectTemplate:
    """
    Build a validated template.

    Raises:
        ConfigurationError: If the clause lacks a placeholder, carries unknown
            placeholders or the quote style is unknown
    """
    if "{offset}" not in clause or "{limit}" not in clause:
        raise ConfigurationError(
            f"Dialect {product!r}: clause must contain {{offset}} and {{limit}}, got {clause!r}"
        )
    try:
        clause.format(offset=0, limit=1)
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigurationError(f"Dialect {product!r}: invalid clause {clause!r}: {e}") from e
    if quote_style not in QUOTE_CHARS:
        raise ConfigurationError(
            f"Dialect {product!r}: unknown quote style {quote_style!r} "
            f"(expected one of {', '.join(sorted(QUOTE_CHARS))})"
        )
    return DialectTemplate(product=product, clause=clause, quote_style=quote_style)


BUILTIN_DIALECTS: dict[str, DialectTemplate] = {
    "postgresql": make_template("postgresql", LIMIT_OFFSET),
    "postgres": make_template("postgresql", LIMIT_OFFSET),
    "mysql": make_template("mysql", LIMIT_OFFSET, "backtick"),
    "mariadb": make_template("mariadb", LIMIT_OFFSET, "backtick"),
    "sqlite": make_template("sqlite", LIMIT_OFFSET),
    "h2": make_template("h2", LIMIT_OFFSET),
    "microsoft sql server": make_template("microsoft sql server", OFFSET_FETCH_NEXT, "brackets"),
    "sqlserver": make_template("microsoft sql server", OFFSET_FETCH_NEXT, "brackets"),
    "mssql": make_template("microsoft sql server", OFFSET_FETCH_NEXT, "brackets"),
    "oracle": make_template("oracle", OFFSET_FETCH_NEXT),
    "db2": make_template("db2", OFFSET_FETCH_FIRST),
}


class DialectResolver:
    """
    Case-insensitive lookup over the built-in catalog plus configured entries.

    Configured entries win over built-ins with the same key.
    """

    def __init__(self, overrides: Mapping[str, DialectTemplate] | None = None):
        catalog = dict(BUILTIN_DIALECTS)
        for product, template in (overrides or {}).items():
            catalog[product.strip().lower()] = template
        self._catalog = catalog

    def resolve(self, product_identifier: str, source: str | None = None) -> DialectTemplate:
        """
        Raises:
            UnsupportedDialect: If no entry matches the product
        """
        key = (product_identifier or "").strip().lower()
        try:
            template = self._catalog[key]
        except KeyError:
            raise UnsupportedDialect(product_identifier, source) from None
        logger.debug(f"Resolved dialect for {product_identifier!r}: {template.clause}")
        return template

    def products(self) -> list[str]:
        return sorted(self._catalog)
