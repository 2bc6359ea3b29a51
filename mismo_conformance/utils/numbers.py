"""Numeric coercion shared by the preflight rules and the field mapper."""

from decimal import Decimal, InvalidOperation
from typing import Any


def to_decimal(value: Any) -> Decimal:
    """
    Read a numeric value exactly (floats via their shortest repr).

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"'{value}' is not a number")
    if not number.is_finite():
        raise ValueError(f"'{value}' is not a finite number")
    return number
