"""
ConditionalValidator - requires a field only when another field has a given value.
"""

from typing import Any

from mismo_conformance.core.models import FindingCategory
from mismo_conformance.utils.field_paths import get_value

from .base_validator import BaseValidator, ValidationError


class ConditionalValidator(BaseValidator):
    """
    Cross-field rule: when ``when.field`` matches, this field must be present.

    Parameters:
    - when: mapping with ``field`` (absolute dotted path) and one of
            ``equals`` (single value) or ``in`` (list of values)
    - message: Optional message used when the rule fails

    Example (cash-out refinance should carry a cash-out amount):
        when: {field: loan.loan_purpose, equals: CashOutRefinance}
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        when = self.parameters.get("when")
        if not isinstance(when, dict) or "field" not in when:
            raise ValueError("ConditionalValidator requires 'when' with a 'field' key")
        if ("equals" in when) == ("in" in when):
            raise ValueError("ConditionalValidator 'when' needs exactly one of 'equals' or 'in'")

        self.when_field: str = when["field"]
        self.when_values = {str(when["equals"])} if "equals" in when else {str(v) for v in when["in"]}
        self.message = self.parameters.get("message")

    def applies(self, record: dict[str, Any]) -> bool:
        trigger = get_value(record, self.when_field)
        return trigger is not None and str(trigger) in self.when_values

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate the field when the condition holds.

        Raises:
            ValidationError: If the condition holds and the field is missing or empty
        """
        if not self.applies(record):
            return

        if value is None or (isinstance(value, str) and value.strip() == ""):
            trigger = get_value(record, self.when_field)
            raise ValidationError(
                rule_name="conditional",
                field_name=self.field_name,
                message=self.message or f"{self.field_name} should be provided when {self.when_field} is {trigger}"
            )

    @property
    def rule_type(self) -> str:
        return "conditional"

    @property
    def category(self) -> FindingCategory:
        return FindingCategory.CONDITIONAL_LOGIC
