"""
Rule configuration management.

Loads preflight rules from YAML files and provides utilities
for building rule configurations programmatically.
"""

from pathlib import Path
from typing import Any

import yaml

from mismo_conformance.errors import ConfigurationError

DEFAULT_RULES_PATH = Path(__file__).resolve().parents[2] / "config" / "preflight_rules.yaml"


class RuleConfigLoader:
    """
    Loads preflight rules from YAML configuration files.

    Expected YAML format:
    ```yaml
    rules:
      loan.loan_amount:
        - type: required_field
        - type: datatype
          params:
            expected_type: decimal
        - type: range
          name: loan_amount_positive
          params:
            min_exclusive: 0

      loan.cash_out_amount:
        - type: conditional
          severity: warning
          params:
            when: {field: loan.loan_purpose, equals: CashOutRefinance}

      loan.mortgage_type:
        - type: required_field
          packs: [PACK_B_DU_ULAD_STRICT_34_B324]
    ```

    Field names are dotted paths into the canonical deal; ``[*]`` applies a
    rule to every entry of a list (e.g., ``borrowers[*].email``). A rule with
    ``packs`` only runs when the target pack is one of them.
    """

    def __init__(self, config_path: str | Path | None = None):
        """
        Initialize the rule config loader.

        Args:
            config_path: Path to the YAML configuration file (defaults to the bundled rules)
        """
        self.config_path = Path(config_path) if config_path else DEFAULT_RULES_PATH
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {self.config_path}")

    def load_rules(self) -> list[dict[str, Any]]:
        """
        Load and parse preflight rules from the YAML file.

        Returns:
            List of rule dictionaries suitable for RuleEngine

        Raises:
            ConfigurationError: If YAML is invalid or missing required fields
        """
        try:
            with open(self.config_path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not config or "rules" not in config:
            raise ConfigurationError("Configuration file must contain 'rules' section")

        rules = []
        for field_name, field_rule_list in config["rules"].items():
            if not isinstance(field_rule_list, list):
                raise ConfigurationError(f"Rules for field '{field_name}' must be a list")

            for idx, rule_def in enumerate(field_rule_list):
                rules.append(self._parse_rule(field_name, rule_def, idx))

        return rules

    def _parse_rule(self, field_name: str, rule_def: dict[str, Any], idx: int) -> dict[str, Any]:
        """
        Parse a single rule definition.

        Args:
            field_name: The field path this rule applies to
            rule_def: The rule definition from YAML
            idx: Index of this rule for the field (for naming)

        Returns:
            Parsed rule dictionary

        Raises:
            ConfigurationError: If rule definition is invalid
        """
        if not isinstance(rule_def, dict) or "type" not in rule_def:
            raise ConfigurationError(f"Rule for field '{field_name}' is missing 'type'")

        rule_type = rule_def["type"]
        default_name = f"{field_name.replace('[*]', '').replace('.', '_')}_{rule_type}_{idx}"
        rule_name = rule_def.get("name", default_name)
        parameters = rule_def.get("params", rule_def.get("parameters", {})) or {}

        severity = rule_def.get("severity", "error")
        if severity not in ("error", "warning"):
            raise ConfigurationError(
                f"Invalid severity '{severity}' for rule '{rule_name}'. Must be 'error' or 'warning'"
            )

        packs = rule_def.get("packs")
        if packs is not None and not isinstance(packs, list):
            raise ConfigurationError(f"'packs' for rule '{rule_name}' must be a list")

        return {
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters,
            "severity": severity,
            "enabled": rule_def.get("enabled", True),
            "packs": packs,
        }


class RuleConfigBuilder:
    """
    Programmatically build rule configurations (for testing or dynamic rules).
    """

    def __init__(self):
        self.rules: list[dict[str, Any]] = []

    def _add(
        self,
        rule_name: str,
        rule_type: str,
        field_name: str,
        parameters: dict[str, Any],
        severity: str = "error",
    ) -> "RuleConfigBuilder":
        self.rules.append({
            "rule_name": rule_name,
            "rule_type": rule_type,
            "field_name": field_name,
            "parameters": parameters,
            "severity": severity,
            "enabled": True,
            "packs": None,
        })
        return self

    def add_required_field(self, field_name: str, min_items: int = 1) -> "RuleConfigBuilder":
        """Add a required field rule."""
        return self._add(f"{field_name}_required", "required_field", field_name, {"min_items": min_items})

    def add_enum(self, field_name: str, values: list[str] | None = None, ldd_enum: str | None = None) -> "RuleConfigBuilder":
        """Add an enumerated-value rule, from explicit values or an LDD enumeration."""
        params: dict[str, Any] = {"values": values} if values is not None else {"ldd_enum": ldd_enum}
        return self._add(f"{field_name}_enum", "enum", field_name, params)

    def add_datatype(self, field_name: str, expected_type: str) -> "RuleConfigBuilder":
        """Add a datatype rule."""
        return self._add(f"{field_name}_datatype", "datatype", field_name, {"expected_type": expected_type})

    def add_positive(self, field_name: str) -> "RuleConfigBuilder":
        """Add a strictly-positive range rule."""
        return self._add(f"{field_name}_positive", "range", field_name, {"min_exclusive": 0})

    def add_regex(self, field_name: str, pattern: str) -> "RuleConfigBuilder":
        """Add a regex validation rule."""
        return self._add(f"{field_name}_regex", "regex", field_name, {"pattern": pattern})

    def add_conditional(
        self,
        field_name: str,
        when_field: str,
        equals: str,
        severity: str = "warning",
    ) -> "RuleConfigBuilder":
        """Add a conditional rule: field expected when when_field equals a value."""
        params = {"when": {"field": when_field, "equals": equals}}
        return self._add(f"{field_name}_conditional", "conditional", field_name, params, severity)

    def build(self) -> list[dict[str, Any]]:
        """Build and return the rule configuration."""
        return self.rules
