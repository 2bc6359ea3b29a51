"""
Wire formatting of canonical values, and the reverse.

Every core value is written as text in one canonical form per value type,
so that reading a document back yields exactly the text that was written.
"""

import json
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from mismo_conformance.utils.numbers import to_decimal

CENT = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")


def format_currency(value: Any) -> str:
    return format(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP), "f")


def format_percent(value: Any) -> str:
    return format(to_decimal(value).quantize(RATE_PLACES, rounding=ROUND_HALF_UP), "f")


def format_decimal(value: Any) -> str:
    return format(to_decimal(value), "f")


def format_integer(value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    number = to_decimal(value)
    if number != number.to_integral_value():
        raise ValueError(f"'{value}' is not a whole number")
    return str(int(number))


def format_date(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(str(value).strip()).isoformat()


def format_boolean(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "y"):
        return "true"
    if text in ("false", "0", "no", "n"):
        return "false"
    raise ValueError(f"Cannot read '{value}' as boolean")


def format_text(value: Any) -> str:
    return (value if isinstance(value, str) else str(value)).strip()


FORMATTERS = {
    "currency": format_currency,
    "percent": format_percent,
    "decimal": format_decimal,
    "integer": format_integer,
    "date": format_date,
    "boolean": format_boolean,
    "text": format_text,
}


def format_wire(value: Any, value_type: str) -> str:
    """
    Format a value for the wire.

    Raises:
        ValueError: If the value cannot be read as value_type
    """
    return FORMATTERS[value_type](value)


def parse_wire(text: str, value_type: str) -> Any:
    """Read wire text back into a canonical value; unreadable text is returned as is."""
    try:
        if value_type in ("currency", "percent", "decimal"):
            return to_decimal(text)
        if value_type == "integer":
            return int(text)
        if value_type == "date":
            return date.fromisoformat(text)
        if value_type == "boolean":
            return format_boolean(text) == "true"
    except ValueError:
        return text
    return text


def is_structured(value: Any) -> bool:
    return isinstance(value, (dict, list, tuple))


def format_structured(value: Any) -> str:
    """Deterministic JSON for dict/list extension values."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
