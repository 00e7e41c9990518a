"""
SQL safety utilities for building paged queries.

Identifiers are validated against a strict ASCII pattern before being
quoted; paging values are validated as non-negative integers before
being rendered into a dialect's pagination clause.
"""

import re

VALID_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_$]*$")
VALID_QUALIFIED_NAME = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_$]*(\.[a-zA-Z_][a-zA-Z0-9_$]*)?$"
)

# opening, closing quote character per quote style
QUOTE_CHARS = {
    "double": ('"', '"'),
    "brackets": ("[", "]"),
    "backtick": ("`", "`"),
}


def validate_identifier(identifier: str) -> None:
    """
    Validate a SQL identifier (column name).

    Raises:
        ValueError: If the identifier is empty or contains invalid characters
    """
    if not identifier:
        raise ValueError("SQL identifier cannot be empty")

    if not VALID_IDENTIFIER.match(identifier):
        raise ValueError(
            f"Invalid SQL identifier: {identifier!r}. "
            "Only ASCII letters, digits, underscores and '$' are allowed, "
            "and it must start with a letter or underscore."
        )


def validate_qualified_name(name: str) -> None:
    """
    Validate a table name, optionally schema-qualified (``schema.table``).

    Raises:
        ValueError: If the name format is invalid
    """
    if not name:
        raise ValueError("Table name cannot be empty")

    if not VALID_QUALIFIED_NAME.match(name):
        raise ValueError(
            f"Invalid table name: {name!r}. "
            "Expected 'table' or 'schema.table' made of ASCII letters, digits and underscores."
        )


def quote_identifier(identifier: str, quote_style: str = "double") -> str:
    """
    Validate and quote a single identifier.

    Args:
        identifier: Column or table name without schema
        quote_style: One of ``double``, ``brackets``, ``backtick``
    """
    validate_identifier(identifier)
    try:
        opening, closing = QUOTE_CHARS[quote_style]
    except KeyError:
        raise ValueError(f"Unknown quote style: {quote_style!r}") from None
    return f"{opening}{identifier}{closing}"


def quote_qualified_name(name: str, quote_style: str = "double") -> str:
    """Validate and quote ``table`` or ``schema.table``."""
    validate_qualified_name(name)
    return ".".join(quote_identifier(part, quote_style) for part in name.split("."))


def validate_integer_param(value: int, param_name: str, min_value: int = 0) -> None:
    """
    Validate an integer rendered into SQL text (offsets, limits).

    Raises:
        ValueError: If the value is not an int (bools rejected) or below minimum
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Invalid {param_name}: {value!r}. Must be an integer.")

    if value < min_value:
        raise ValueError(f"Invalid {param_name}: {value}. Must be >= {min_value}.")
