"""
Conformance report assembly, PII redaction and summaries.

Everything here is a pure function of its inputs: the report echoes the
status of the validation it wraps and never re-judges it.
"""

import re
from typing import Any, Iterable

from mismo_conformance.core.models import (
    ConformanceReport,
    MappingResult,
    RunDirection,
    SchemaPack,
    UnmappedNode,
    ValidationFinding,
    ValidationReport,
)

TOP_ERRORS = 5

# Canonical fields whose values must never appear in a report
PII_FIELDS = frozenset({"ssn", "birth_date", "entity_ein", "phone", "email"})

_PATTERNS: list[tuple[re.Pattern, Any]] = [
    (re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "[SSN]"),
    (re.compile(r"\b\d{2}-\d{7}\b"), "[EIN]"),
    (re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"), "[CARD]"),
    (re.compile(r"\b\d{10,17}\b"), "[ACCOUNT]"),
    (re.compile(r"\b\d{9}\b"), "[SSN]"),
    (
        re.compile(r"\b([A-Za-z0-9._%+-]{1,2})[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b"),
        r"\1***@\2",
    ),
]
_QUOTED = re.compile(r"'[^']*'")
_ISO_DATE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")


def redact_pii(text: str) -> str:
    """Mask SSN, EIN, card and account numbers and email local parts."""
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _field_name(field: str) -> str:
    """Last path segment without list indices (``borrowers[0].ssn`` -> ``ssn``)."""
    last = field.rsplit(".", 1)[-1].rsplit("/", 1)[-1]
    return last.split("[", 1)[0]


def redact_finding(finding: ValidationFinding) -> ValidationFinding:
    """Return the finding with its message scrubbed of personal data."""
    message = redact_pii(finding.message)
    if _field_name(finding.field) in PII_FIELDS:
        message = _ISO_DATE.sub("[DATE]", _QUOTED.sub("'[REDACTED]'", message))
        message = re.sub(r"^Value \S+ ", "Value [REDACTED] ", message)

    if message == finding.message:
        return finding
    return finding.model_copy(update={"message": message})


def build_report(
    run_id: str,
    context: RunDirection,
    pack: SchemaPack,
    validation: ValidationReport,
    mapping: MappingResult | None = None,
    unmapped_nodes: Iterable[UnmappedNode] = (),
    content_hash: str | None = None,
    redact: bool = True,
) -> ConformanceReport:
    """
    Wrap the findings of a run in a ConformanceReport.

    Args:
        run_id: Run the report belongs to
        context: export or import
        pack: Schema pack in use
        validation: Findings of every stage that ran, in stage order
        mapping: Mapping result, when the run reached mapping
        unmapped_nodes: Inbound nodes without a canonical field
        content_hash: Hash of the XML artifact, when one exists
        redact: Scrub personal data from finding messages

    Returns:
        ConformanceReport whose status equals validation.status
    """
    if redact:
        validation = ValidationReport(findings=tuple(redact_finding(f) for f in validation.findings))

    return ConformanceReport(
        run_id=run_id,
        context=context,
        schema_pack=pack,
        validation=validation,
        mapping=mapping,
        unmapped_nodes=tuple(unmapped_nodes),
        content_hash=content_hash,
    )


def verdict(report: ConformanceReport) -> str:
    """One line describing the outcome, e.g. ``FAIL: 2 errors, 1 warning (PACK_A, standard)``."""
    summary = report.validation.summary
    errors, warnings = summary["errors"], summary["warnings"]
    counts = f"{errors} error{'s' if errors != 1 else ''}, {warnings} warning{'s' if warnings != 1 else ''}"
    return f"{report.status.value}: {counts} ({report.schema_pack.pack_id}, {report.schema_pack.profile.value})"


def summarize(report: ConformanceReport, top: int = TOP_ERRORS) -> dict[str, Any]:
    """
    Condensed view of a report for operators and CLI output.

    Returns:
        Dict with verdict, status, per-category counts, the first ``top``
        errors, and the number of unmapped nodes
    """
    return {
        "report_id": report.report_id,
        "run_id": report.run_id,
        "context": report.context.value,
        "pack_id": report.schema_pack.pack_id,
        "status": report.status.value,
        "verdict": verdict(report),
        "by_category": report.validation.count_by_category(),
        "top_errors": [
            {"field": f.field, "rule": f.rule, "message": f.message}
            for f in report.validation.errors[:top]
        ],
        "unmapped_count": len(report.unmapped_nodes),
        "content_hash": report.content_hash,
    }


def to_json(report: ConformanceReport) -> dict[str, Any]:
    """JSON-ready dict of the full report."""
    return report.model_dump(mode="json")
