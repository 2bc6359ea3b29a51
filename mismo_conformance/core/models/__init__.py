"""
Core data models for the MISMO conformance pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .audit_log import AuditLog
from .canonical_deal import Borrower, CanonicalDeal, Fee, LoanTerms, Property
from .conformance_report import REPORT_VERSION, ConformanceReport, RunDirection
from .mapping_result import MappingResult, UnmappedNode
from .pipeline_io import ExportRequest, ExportResult, ImportRequest, ImportResult
from .pipeline_run import ExportRun, ImportRun, PipelineRun, RunStatus
from .schema_pack import SchemaPack, StrictnessProfile
from .validation_finding import FindingCategory, Severity, ValidationFinding
from .validation_report import ValidationReport, ValidationStatus

__all__ = [
    "AuditLog",
    "Borrower",
    "CanonicalDeal",
    "Fee",
    "LoanTerms",
    "Property",
    "REPORT_VERSION",
    "ConformanceReport",
    "RunDirection",
    "MappingResult",
    "UnmappedNode",
    "ExportRequest",
    "ExportResult",
    "ImportRequest",
    "ImportResult",
    "ExportRun",
    "ImportRun",
    "PipelineRun",
    "RunStatus",
    "SchemaPack",
    "StrictnessProfile",
    "FindingCategory",
    "Severity",
    "ValidationFinding",
    "ValidationReport",
    "ValidationStatus",
]
