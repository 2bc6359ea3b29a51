"""
EnumValidator - validates field values against a closed allow-list.
"""

from typing import Any

from mismo_conformance.core.models import FindingCategory
from mismo_conformance.core.schema.grammar import LDD_ENUMS

from .base_validator import BaseValidator, ValidationError


class EnumValidator(BaseValidator):
    """
    Validates that a field value is one of a closed set of values.

    Parameters:
    - values: Explicit list of allowed values
    - ldd_enum: Name of a logical data dictionary enumeration (e.g., "LoanPurposeType")
    - case_sensitive: Compare exactly (default True)

    Exactly one of ``values`` or ``ldd_enum`` must be given.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        values = self.parameters.get("values")
        ldd_enum = self.parameters.get("ldd_enum")
        if (values is None) == (ldd_enum is None):
            raise ValueError("EnumValidator requires exactly one of 'values' or 'ldd_enum'")

        if ldd_enum is not None:
            if ldd_enum not in LDD_ENUMS:
                raise ValueError(f"Unknown LDD enumeration: {ldd_enum}")
            values = LDD_ENUMS[ldd_enum]

        self.allowed: tuple[str, ...] = tuple(str(v) for v in values)
        self.case_sensitive = self.parameters.get("case_sensitive", True)

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the value is in the allow-list.

        Raises:
            ValidationError: If value is not an allowed value
        """
        # Skip validation for None (handled by required_field validator)
        if value is None:
            return

        candidate = str(value)
        if self.case_sensitive:
            ok = candidate in self.allowed
        else:
            ok = candidate.lower() in {v.lower() for v in self.allowed}

        if not ok:
            raise ValidationError(
                rule_name="enum",
                field_name=self.field_name,
                message=f"Value '{candidate}' is not one of: {', '.join(self.allowed)}"
            )

    @property
    def rule_type(self) -> str:
        return "enum"

    @property
    def category(self) -> FindingCategory:
        return FindingCategory.ENUM_VIOLATION
