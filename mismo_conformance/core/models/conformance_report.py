"""
ConformanceReport model: the persisted record of one conversion attempt.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .mapping_result import MappingResult, UnmappedNode
from .schema_pack import SchemaPack
from .validation_report import ValidationReport, ValidationStatus

REPORT_VERSION = "1.0"


class RunDirection(str, Enum):
    EXPORT = "export"
    IMPORT = "import"


class ConformanceReport(BaseModel):
    """
    Versioned, immutable wrapper around the findings of one run.

    Attributes:
        report_version: Format version of this report
        report_id: Unique report identifier
        run_id: Run that produced the report
        context: export or import
        schema_pack: The pack the document was built or validated against
        validation: Preflight and schema-pack findings in stage order
        mapping: Mapping result, when the run reached the mapping stage
        unmapped_nodes: Imported nodes with no canonical field
        content_hash: Hash of the XML artifact, when one exists
        generated_at: When the report was assembled
    """

    model_config = ConfigDict(frozen=True)

    report_version: str = REPORT_VERSION
    report_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    context: RunDirection
    schema_pack: SchemaPack
    validation: ValidationReport
    mapping: MappingResult | None = None
    unmapped_nodes: tuple[UnmappedNode, ...] = ()
    content_hash: str | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def status(self) -> ValidationStatus:
        return self.validation.status
