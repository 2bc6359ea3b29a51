"""
Request and result types of the export and import pipelines.
"""

from pydantic import BaseModel, Field, model_validator

from .conformance_report import ConformanceReport
from .pipeline_run import SUBMITTABLE, RunStatus


class ExportRequest(BaseModel):
    deal_reference: str = Field(..., min_length=1)
    pack_id: str | None = None
    skip_preflight: bool = False


class ExportResult(BaseModel):
    """
    Outcome of an export run.

    ``xml_bytes`` and ``content_hash`` are only present for completed runs;
    a blocked or failed run never hands a document to the caller.
    """

    run_id: str
    status: RunStatus
    xml_bytes: bytes | None = None
    content_hash: str | None = None
    conformance_report: ConformanceReport

    @model_validator(mode="after")
    def check_artifact_withheld(self):
        if self.status not in SUBMITTABLE and (self.xml_bytes is not None or self.content_hash is not None):
            raise ValueError(f"An export with status '{self.status.value}' must not carry an artifact")
        return self


class ImportRequest(BaseModel):
    xml_bytes: bytes
    pack_id: str | None = None
    raw_only_mode: bool = False


class ImportResult(BaseModel):
    run_id: str
    status: RunStatus
    created_deal_reference: str | None = None
    content_hash: str | None = None
    conformance_report: ConformanceReport
