"""
Preflight validation of a canonical deal before XML generation.
"""

from pathlib import Path

from mismo_conformance.core.models import (
    CanonicalDeal,
    FindingCategory,
    SchemaPack,
    Severity,
    ValidationFinding,
    ValidationReport,
)
from mismo_conformance.observability.logger import get_logger

from .rule_config import RuleConfigLoader
from .rule_engine import RuleEngine

logger = get_logger(__name__)


class PreflightValidator:
    """
    Runs the preflight rule set against a deal for a target pack.

    Always returns a ValidationReport. The deal is never mutated.
    """

    def __init__(self, rule_engine: RuleEngine):
        self.rule_engine = rule_engine

    @classmethod
    def from_yaml(cls, config_path: str | Path | None = None) -> "PreflightValidator":
        """Build a validator from a rules file (the bundled rules by default)."""
        rules = RuleConfigLoader(config_path).load_rules()
        return cls(RuleEngine(rules))

    def validate(self, deal: CanonicalDeal, pack: SchemaPack) -> ValidationReport:
        """
        Validate a deal.

        Args:
            deal: Deal to validate
            pack: Target schema pack (selects pack-limited rules)

        Returns:
            ValidationReport; FAIL iff any error finding
        """
        record = deal.model_dump(mode="python")

        try:
            findings = self.rule_engine.validate_record(record, pack_id=pack.pack_id)
        except Exception as e:
            logger.exception(
                "Preflight rule evaluation failed",
                extra={"deal_reference": deal.deal_reference, "pack_id": pack.pack_id},
            )
            findings = [
                ValidationFinding(
                    field="*",
                    message=f"Preflight rule evaluation failed: {type(e).__name__}: {e}",
                    severity=Severity.ERROR,
                    category=FindingCategory.SYSTEM,
                    rule="PREFLIGHT_INTERNAL_ERROR",
                )
            ]

        report = ValidationReport(findings=tuple(findings))
        logger.info(
            "Preflight complete",
            extra={
                "deal_reference": deal.deal_reference,
                "pack_id": pack.pack_id,
                "status": report.status.value,
                **report.summary,
            },
        )
        return report
