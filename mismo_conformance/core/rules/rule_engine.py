"""
Rule engine for applying preflight rules to a canonical deal.

The rule engine builds validators from rule configurations, applies them
to a deal in category order, and produces validation findings.
"""

from typing import Any

from mismo_conformance.core.models import FindingCategory, Severity, ValidationFinding
from mismo_conformance.core.validators import (
    BaseValidator,
    ConditionalValidator,
    EnumValidator,
    RangeValidator,
    RegexValidator,
    RequiredFieldValidator,
    TypeValidator,
    ValidationError,
)
from mismo_conformance.errors import ConfigurationError
from mismo_conformance.utils.field_paths import expand

# required -> enum -> datatype -> conditional
CATEGORY_ORDER = {
    FindingCategory.MISSING_REQUIRED: 0,
    FindingCategory.ENUM_VIOLATION: 1,
    FindingCategory.DATATYPE: 2,
    FindingCategory.CONDITIONAL_LOGIC: 3,
}


class RuleEngine:
    """
    Orchestrates preflight rules on a deal.

    Validators run grouped by category (required, enum, datatype,
    conditional) and, within a category, in configuration order.
    Every failure becomes a finding; nothing is raised to the caller.
    """

    VALIDATOR_REGISTRY = {
        "required_field": RequiredFieldValidator,
        "enum": EnumValidator,
        "datatype": TypeValidator,
        "range": RangeValidator,
        "regex": RegexValidator,
        "conditional": ConditionalValidator,
    }

    def __init__(self, rules: list[dict[str, Any]]):
        """
        Initialize the rule engine with preflight rules.

        Args:
            rules: List of rule configurations, each containing:
                   - rule_name: str
                   - rule_type: str (required_field, enum, datatype, range, regex, conditional)
                   - field_name: str (dotted path, may contain [*])
                   - parameters: Dict[str, Any] (optional)
                   - severity: str (error or warning)
                   - enabled: bool (default True)
                   - packs: list of pack ids the rule is limited to (optional)
        """
        self.rules = rules
        self.validators: list[tuple[str, Severity, BaseValidator, frozenset[str] | None]] = []
        self._build_validators()

    def _build_validators(self) -> None:
        """Build validator instances from rule configurations."""
        built = []
        for rule in self.rules:
            if not rule.get("enabled", True):
                continue

            rule_name = rule["rule_name"]
            rule_type = rule["rule_type"]

            validator_class = self.VALIDATOR_REGISTRY.get(rule_type)
            if not validator_class:
                raise ConfigurationError(f"Unknown rule type: {rule_type}")

            try:
                validator = validator_class(rule["field_name"], rule.get("parameters", {}))
            except ValueError as e:
                raise ConfigurationError(f"Failed to create validator for rule '{rule_name}': {e}") from e

            packs = rule.get("packs")
            built.append((
                rule_name,
                Severity(rule.get("severity", "error")),
                validator,
                frozenset(packs) if packs else None,
            ))

        # sorted() is stable, so configuration order survives within a category
        self.validators = sorted(built, key=lambda entry: CATEGORY_ORDER.get(entry[2].category, len(CATEGORY_ORDER)))

    def validate_record(self, record: dict[str, Any], pack_id: str | None = None) -> list[ValidationFinding]:
        """
        Validate a deal against all rules that apply to the pack.

        Args:
            record: The deal as a nested dict
            pack_id: Target schema pack; pack-limited rules only run for their packs

        Returns:
            Ordered list of findings
        """
        findings: list[ValidationFinding] = []

        for rule_name, severity, validator, packs in self.validators:
            if packs is not None and pack_id not in packs:
                continue

            for concrete_field, value in expand(record, validator.field_name):
                try:
                    validator.validate(value, record)
                except ValidationError as e:
                    findings.append(
                        ValidationFinding(
                            field=concrete_field,
                            message=e.message,
                            severity=severity,
                            category=validator.category,
                            rule=rule_name,
                        )
                    )

        return findings

    def get_rule_summary(self) -> dict[str, Any]:
        """
        Get summary of loaded rules.

        Returns:
            Dictionary with rule counts by type and severity
        """
        return {
            "total_rules": len(self.validators),
            "rules_by_type": self._count_by_type(),
            "rules_by_severity": self._count_by_severity(),
        }

    def _count_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for _, _, validator, _ in self.validators:
            counts[validator.rule_type] = counts.get(validator.rule_type, 0) + 1
        return counts

    def _count_by_severity(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for _, severity, _, _ in self.validators:
            counts[severity.value] = counts.get(severity.value, 0) + 1
        return counts
