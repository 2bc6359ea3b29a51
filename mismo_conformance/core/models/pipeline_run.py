"""
ExportRun / ImportRun models: append-only records of one pipeline invocation.

A run is created in the ``running`` status and moves exactly once to a
terminal status. Retries create a new run.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field

from mismo_conformance.errors import RunStateError


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    BLOCKED = "blocked"
    FAILED = "failed"
    IMPORTED = "imported"
    IMPORTED_RAW_ONLY = "imported_raw_only"


EXPORT_TERMINAL = frozenset(
    {RunStatus.COMPLETED, RunStatus.COMPLETED_WITH_WARNINGS, RunStatus.BLOCKED, RunStatus.FAILED}
)
IMPORT_TERMINAL = frozenset(
    {RunStatus.IMPORTED, RunStatus.IMPORTED_RAW_ONLY, RunStatus.BLOCKED, RunStatus.FAILED}
)
SUBMITTABLE = frozenset({RunStatus.COMPLETED, RunStatus.COMPLETED_WITH_WARNINGS})


def _new_run_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineRun(BaseModel):
    """
    Common run record.

    Attributes:
        run_id: Unique run identifier
        direction: export or import
        deal_reference: Deal the run is about (import: the created deal, if any)
        pack_id: Schema pack used
        status: running, then one terminal status
        content_hash: Hash of the XML artifact
        byte_size: Size of the XML artifact in bytes
        created_at: When the run started
        completed_at: When the run reached its terminal status
        conformance_report_ref: report_id of the run's ConformanceReport
    """

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(default_factory=_new_run_id)
    direction: Literal["export", "import"]
    deal_reference: str | None = None
    pack_id: str | None = None
    status: RunStatus = RunStatus.RUNNING
    content_hash: str | None = None
    byte_size: int | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    conformance_report_ref: str | None = None

    TERMINAL_STATUSES: ClassVar[frozenset[RunStatus]] = frozenset()

    @property
    def is_terminal(self) -> bool:
        return self.status != RunStatus.RUNNING

    def finalize(self, status: RunStatus, **fields: Any) -> "PipelineRun":
        """
        Return a copy of this run moved to a terminal status.

        Raises:
            RunStateError: If the run is already terminal
            ValueError: If status is not terminal for this direction
        """
        if self.is_terminal:
            raise RunStateError(self.run_id, self.status.value)
        if status not in self.TERMINAL_STATUSES:
            raise ValueError(f"'{status.value}' is not a terminal status for an {self.direction} run")

        updates = {**fields, "status": status, "completed_at": _utcnow()}
        return self.model_copy(update=updates)


class ExportRun(PipelineRun):
    direction: Literal["export"] = "export"

    TERMINAL_STATUSES: ClassVar[frozenset[RunStatus]] = EXPORT_TERMINAL


class ImportRun(PipelineRun):
    """
    Import run record.

    Attributes:
        raw_only_mode: Whether the caller asked for quarantine mode
        detected_ldd: LDD identifier declared by the inbound document
    """

    direction: Literal["import"] = "import"
    raw_only_mode: bool = False
    detected_ldd: str | None = None

    TERMINAL_STATUSES: ClassVar[frozenset[RunStatus]] = IMPORT_TERMINAL

    @property
    def created_deal_reference(self) -> str | None:
        return self.deal_reference if self.status == RunStatus.IMPORTED else None
