"""
Scalar normalization for identity values and compared field values.

Drivers hand back different Python types for the same SQL value
(``Decimal`` vs ``int``, naive vs aware ``datetime``, ``memoryview`` vs
``bytes``). Identity values are canonicalized before indexing so that
both sides key their pages the same way; field values are widened to a
shared representation before comparison.
"""

import re
from datetime import UTC, date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

INTEGER_TEXT = re.compile(r"^-?[0-9]+$")

NULL = "null"
NUMBER = "number"
TEXT = "text"
TEMPORAL = "temporal"
TIME = "time"
BINARY = "binary"
OTHER = "other"


def canonical_identity(value: Any) -> Any:
    """
    Coerce an identity value to the form both sides index by.

    Integral numbers become ``int``. A string becomes ``int`` only when it is
    exactly the decimal text of that int, so "42" folds but "042", "+42" and
    " 42" stay text and remain distinct keys. UUIDs become their lowercase
    text, byte buffers become ``bytes``. Anything else is returned unchanged.
    """
    if value is None or isinstance(value, (bool, int)):
        return value
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, str):
        if INTEGER_TEXT.match(value) and str(int(value)) == value:
            return int(value)
        return value
    if isinstance(value, UUID):
        return str(value).lower()
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return value


def normalize_value(value: Any) -> tuple[str, Any]:
    """
    Widen a field value to its comparable form.

    Returns:
        ``(category, normalized)``. Values are only comparable within the
        same category.

    Raises:
        ValueError, ArithmeticError: For numbers ``Decimal`` cannot represent
    """
    if value is None:
        return NULL, None
    if isinstance(value, bool):
        return NUMBER, Decimal(int(value))
    if isinstance(value, int):
        return NUMBER, Decimal(value)
    if isinstance(value, float):
        return NUMBER, Decimal(str(value))
    if isinstance(value, Decimal):
        return NUMBER, value
    if isinstance(value, str):
        return TEXT, value
    # datetime is a date subclass, check it first
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return TEMPORAL, value.replace(tzinfo=UTC)
        return TEMPORAL, value.astimezone(UTC)
    if isinstance(value, date):
        return TEMPORAL, datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, time):
        return TIME, value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BINARY, bytes(value)
    if isinstance(value, UUID):
        return TEXT, str(value).lower()
    return OTHER, value


def values_equal(primary_value: Any, secondary_value: Any) -> bool:
    """
    Compare two field values after normalization.

    Two nulls are equal; null against anything else is not. Two NaNs are
    equal.

    Raises:
        TypeError: If the values fall into different categories
        ValueError, ArithmeticError: From normalization or comparison
    """
    primary_category, primary_norm = normalize_value(primary_value)
    secondary_category, secondary_norm = normalize_value(secondary_value)

    if primary_category == NULL or secondary_category == NULL:
        return primary_category == secondary_category

    if primary_category != secondary_category:
        raise TypeError(
            f"Cannot compare {type(primary_value).__name__} with "
            f"{type(secondary_value).__name__}"
        )

    if primary_category == NUMBER and primary_norm.is_nan() and secondary_norm.is_nan():
        return True

    return primary_norm == secondary_norm


def stringify(value: Any) -> str | None:
    """Best-effort text form used when two values cannot be compared."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    return str(value)
