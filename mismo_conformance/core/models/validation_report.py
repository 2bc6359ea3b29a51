"""
ValidationReport model: ordered findings plus a status derived from them.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .validation_finding import FindingCategory, Severity, ValidationFinding


class ValidationStatus(str, Enum):
    PASS = "PASS"
    PASS_WITH_WARNINGS = "PASS_WITH_WARNINGS"
    FAIL = "FAIL"


class ValidationReport(BaseModel):
    """
    Outcome of one or more validation stages.

    The status is never supplied by the caller: it is FAIL iff any finding has
    severity ``error``, PASS_WITH_WARNINGS iff there are only warnings, and
    PASS otherwise.

    Attributes:
        findings: Findings in the order the stages produced them
    """

    model_config = ConfigDict(frozen=True)

    findings: tuple[ValidationFinding, ...] = Field(default_factory=tuple)

    @computed_field
    @property
    def status(self) -> ValidationStatus:
        if any(f.severity == Severity.ERROR for f in self.findings):
            return ValidationStatus.FAIL
        if self.findings:
            return ValidationStatus.PASS_WITH_WARNINGS
        return ValidationStatus.PASS

    @computed_field
    @property
    def summary(self) -> dict[str, int]:
        errors = sum(1 for f in self.findings if f.severity == Severity.ERROR)
        return {
            "total": len(self.findings),
            "errors": errors,
            "warnings": len(self.findings) - errors,
        }

    @property
    def errors(self) -> list[ValidationFinding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationFinding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def failed(self) -> bool:
        return self.status == ValidationStatus.FAIL

    def count_by_category(self) -> dict[str, int]:
        """Count findings per category, in taxonomy order, omitting empty categories."""
        counts: dict[str, int] = {}
        for category in FindingCategory:
            n = sum(1 for f in self.findings if f.category == category)
            if n:
                counts[category.value] = n
        return counts

    @classmethod
    def merge(cls, *reports: "ValidationReport") -> "ValidationReport":
        """Concatenate findings of several reports, preserving stage order."""
        findings: list[ValidationFinding] = []
        for report in reports:
            findings.extend(report.findings)
        return cls(findings=tuple(findings))
