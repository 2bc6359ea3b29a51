"""
RangeValidator - validates numeric values are within a specified range.
"""

from decimal import Decimal
from typing import Any

from mismo_conformance.core.models import FindingCategory
from mismo_conformance.utils.numbers import to_decimal

from .base_validator import BaseValidator, ValidationError


class RangeValidator(BaseValidator):
    """
    Validates that a numeric field is within a specified range.

    Parameters:
    - min: Minimum value (inclusive)
    - max: Maximum value (inclusive)
    - min_exclusive: Minimum value (exclusive); 0 means "must be positive"
    - max_exclusive: Maximum value (exclusive)

    Values that are not numbers at all are left to the datatype rule.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        self.min_value = self._bound("min")
        self.max_value = self._bound("max")
        self.min_exclusive = self._bound("min_exclusive")
        self.max_exclusive = self._bound("max_exclusive")

        if all(v is None for v in [self.min_value, self.max_value, self.min_exclusive, self.max_exclusive]):
            raise ValueError("RangeValidator requires at least one of: min, max, min_exclusive, max_exclusive")

    def _bound(self, key: str) -> Decimal | None:
        raw = self.parameters.get(key)
        return None if raw is None else to_decimal(raw)

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the value is within the specified range.

        Raises:
            ValidationError: If value is outside the range
        """
        # Skip validation for None (handled by required_field validator)
        if value is None:
            return

        try:
            number = to_decimal(value)
        except ValueError:
            return

        if self.min_value is not None and number < self.min_value:
            raise ValidationError(
                rule_name="range",
                field_name=self.field_name,
                message=f"Value {value} is less than minimum {self.min_value}"
            )

        if self.min_exclusive is not None and number <= self.min_exclusive:
            raise ValidationError(
                rule_name="range",
                field_name=self.field_name,
                message=f"Value {value} must be greater than {self.min_exclusive}"
            )

        if self.max_value is not None and number > self.max_value:
            raise ValidationError(
                rule_name="range",
                field_name=self.field_name,
                message=f"Value {value} exceeds maximum {self.max_value}"
            )

        if self.max_exclusive is not None and number >= self.max_exclusive:
            raise ValidationError(
                rule_name="range",
                field_name=self.field_name,
                message=f"Value {value} must be less than {self.max_exclusive}"
            )

    @property
    def rule_type(self) -> str:
        return "range"

    @property
    def category(self) -> FindingCategory:
        return FindingCategory.DATATYPE
