"""
Guard between a finished export and the counterparty that receives it.

A document is handed over only when its run completed and the bytes still
hash to the value recorded by the run.
"""

from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from mismo_conformance.core.models import ExportResult, RunStatus
from mismo_conformance.core.models.pipeline_run import SUBMITTABLE
from mismo_conformance.errors import SubmissionRefusedError
from mismo_conformance.observability.logger import get_logger
from mismo_conformance.storage.run_store import RunStore
from mismo_conformance.utils.hashing import verify

logger = get_logger(__name__)

Transport = Callable[[bytes, str], Any]


class SubmissionReceipt(BaseModel):
    """
    Record of one hand-over.

    Attributes:
        run_id: Export run whose artifact was sent
        content_hash: Hash of the bytes that were sent
        byte_size: Size of the bytes that were sent
        duplicate_of: Earlier runs that produced the same bytes
        transport_response: Whatever the transport returned
        submitted_at: When the transport accepted the document
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    run_id: str
    content_hash: str
    byte_size: int
    duplicate_of: tuple[str, ...] = ()
    transport_response: Any = None
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_duplicate(self) -> bool:
        return bool(self.duplicate_of)


class SubmissionGate:
    """
    Refuses anything but an intact, completed export.

    Usage:
        gate = SubmissionGate(run_store)
        receipt = gate.submit(result, transport=lambda xml, digest: client.post(xml))
    """

    def __init__(self, run_store: RunStore | None = None):
        self.run_store = run_store

    def check(self, result: ExportResult) -> None:
        """
        Raises:
            SubmissionRefusedError: If the result must not leave the pipeline
        """
        if result.status not in SUBMITTABLE:
            raise SubmissionRefusedError(result.run_id, f"run status is '{result.status.value}'")
        if result.xml_bytes is None or result.content_hash is None:
            raise SubmissionRefusedError(result.run_id, "no artifact attached")
        if not verify(result.xml_bytes, result.content_hash):
            raise SubmissionRefusedError(result.run_id, "artifact does not match its content hash")

        if self.run_store is not None:
            run = self.run_store.get_run(result.run_id)
            if run is None:
                raise SubmissionRefusedError(result.run_id, "run is not recorded")
            if run.status != result.status or run.content_hash != result.content_hash:
                raise SubmissionRefusedError(result.run_id, "result differs from the recorded run")

    def submit(self, result: ExportResult, transport: Transport) -> SubmissionReceipt:
        """
        Hand the artifact of a completed export to a transport.

        Args:
            result: Export result to send
            transport: Called with (xml_bytes, content_hash)

        Returns:
            SubmissionReceipt

        Raises:
            SubmissionRefusedError: If the run is not completed or the artifact was altered
        """
        try:
            self.check(result)
        except SubmissionRefusedError as e:
            logger.warning("Submission refused", extra={"run_id": result.run_id, "reason": e.reason})
            raise

        duplicates: tuple[str, ...] = ()
        if self.run_store is not None:
            duplicates = tuple(
                run.run_id
                for run in self.run_store.find_runs_by_hash(result.content_hash)
                if run.run_id != result.run_id and run.status in SUBMITTABLE
            )
            if duplicates:
                logger.info(
                    "Identical document already produced by earlier runs",
                    extra={"run_id": result.run_id, "duplicate_of": list(duplicates)},
                )

        response = transport(result.xml_bytes, result.content_hash)
        logger.info(
            "Document submitted",
            extra={"run_id": result.run_id, "content_hash": result.content_hash,
                   "warnings": result.status == RunStatus.COMPLETED_WITH_WARNINGS},
        )
        return SubmissionReceipt(
            run_id=result.run_id,
            content_hash=result.content_hash,
            byte_size=len(result.xml_bytes),
            duplicate_of=duplicates,
            transport_response=response,
        )
