"""
RequiredFieldValidator - ensures a field is present and not null/empty.
"""

from typing import Any

from mismo_conformance.core.models import FindingCategory

from .base_validator import BaseValidator, ValidationError


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a required field is present and not null/empty.

    Fails if:
    - Field value is None (missing from the deal)
    - Field value is an empty string (configurable)
    - Field value is a list with fewer than ``min_items`` entries
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.allow_empty_string = self.parameters.get("allow_empty_string", False)
        self.min_items = int(self.parameters.get("min_items", 1))

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the field is present and not null/empty.

        Raises:
            ValidationError: If field is missing, empty string or an undersized list
        """
        if value is None:
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message="Required field is missing"
            )

        if not self.allow_empty_string and isinstance(value, str) and value.strip() == "":
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message="Required field is empty"
            )

        if isinstance(value, list) and len(value) < self.min_items:
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message=f"At least {self.min_items} entr{'y' if self.min_items == 1 else 'ies'} required, found {len(value)}"
            )

    @property
    def rule_type(self) -> str:
        return "required_field"

    @property
    def category(self) -> FindingCategory:
        return FindingCategory.MISSING_REQUIRED
