"""
TypeValidator - validates that a field can be read as the expected datatype.
"""

from datetime import date
from typing import Any

from mismo_conformance.core.models import FindingCategory
from mismo_conformance.utils.numbers import to_decimal

from .base_validator import BaseValidator, ValidationError


class TypeValidator(BaseValidator):
    """
    Validates that a field matches the expected datatype.

    Strings are accepted when they can be read as the expected type
    (e.g., "350000.00" for decimal), since that is how the mapper treats them.

    Supported types:
    - decimal (aliases: float, number)
    - integer (alias: int)
    - date (ISO 8601 calendar date)
    - boolean (alias: bool; also "true"/"false", "yes"/"no", "1"/"0")
    - string (alias: str)
    """

    TYPE_ALIASES = {
        "decimal": "decimal",
        "float": "decimal",
        "number": "decimal",
        "integer": "integer",
        "int": "integer",
        "date": "date",
        "boolean": "boolean",
        "bool": "boolean",
        "string": "string",
        "str": "string",
    }

    BOOLEAN_TEXT = {"true": True, "yes": True, "y": True, "1": True, "false": False, "no": False, "n": False, "0": False}

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        expected_type = self.parameters.get("expected_type")
        if not expected_type:
            raise ValueError("TypeValidator requires 'expected_type' parameter")

        self.expected_type = self.TYPE_ALIASES.get(str(expected_type).lower())
        if not self.expected_type:
            raise ValueError(f"Unsupported type: {expected_type}")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the value can be read as the expected type.

        Raises:
            ValidationError: If the value cannot be read
        """
        # Skip validation for None (handled by required_field validator)
        if value is None:
            return

        try:
            self._read(value)
        except (ValueError, TypeError) as e:
            raise ValidationError(
                rule_name="datatype",
                field_name=self.field_name,
                message=f"Expected {self.expected_type}, got {type(value).__name__}: {e}"
            )

    def _read(self, value: Any) -> Any:
        if self.expected_type == "decimal":
            return to_decimal(value)

        if self.expected_type == "integer":
            if isinstance(value, bool):
                raise ValueError("boolean is not an integer")
            if isinstance(value, int):
                return value
            number = to_decimal(value)
            if number != number.to_integral_value():
                raise ValueError(f"'{value}' is not a whole number")
            return int(number)

        if self.expected_type == "date":
            if isinstance(value, date):
                return value
            return date.fromisoformat(str(value).strip())

        if self.expected_type == "boolean":
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text not in self.BOOLEAN_TEXT:
                raise ValueError(f"'{value}' is not a boolean")
            return self.BOOLEAN_TEXT[text]

        if not isinstance(value, str):
            raise TypeError(f"expected text, got {type(value).__name__}")
        return value

    @property
    def rule_type(self) -> str:
        return "datatype"

    @property
    def category(self) -> FindingCategory:
        return FindingCategory.DATATYPE
