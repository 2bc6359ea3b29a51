"""
ValidationFinding model: one itemized problem found by a validation stage.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class FindingCategory(str, Enum):
    """Closed taxonomy of findings across preflight, schema-pack and system stages."""

    MISSING_REQUIRED = "missing_required"
    ENUM_VIOLATION = "enum_violation"
    DATATYPE = "datatype"
    CONDITIONAL_LOGIC = "conditional_logic"
    STRUCTURAL = "structural"
    VERSION = "version"
    SYSTEM = "system"


class ValidationFinding(BaseModel):
    """
    A single validation finding.

    Attributes:
        field: Canonical field name or XML element path the finding is about
        message: Human readable description
        severity: error or warning; only errors can block or fail a run
        category: Finding category
        rule: Rule name or check code that produced the finding
        xpath: Location in the XML document, for schema-pack findings
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "field": "loan.loan_amount",
                "message": "Value 0 must be greater than 0",
                "severity": "error",
                "category": "datatype",
                "rule": "loan_amount_positive",
                "xpath": None,
            }
        },
    )

    field: str
    message: str = Field(..., min_length=1)
    severity: Severity
    category: FindingCategory
    rule: str | None = None
    xpath: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR
