"""
Stage-level audit trail for pipeline runs.

This module provides a PipelineAuditTrail class that records each stage
transition of a run and writes the entries through the run store.
"""

from typing import TYPE_CHECKING

from mismo_conformance.core.models import AuditLog, ValidationReport
from mismo_conformance.observability.logger import get_logger

if TYPE_CHECKING:
    from mismo_conformance.storage.run_store import RunStore

logger = get_logger(__name__)


class PipelineAuditTrail:
    """
    Buffers audit entries of one run and flushes them to the run store.

    Usage:
        with PipelineAuditTrail(store, run.run_id, "export") as trail:
            trail.track_stage("preflight", report)
            trail.track_terminal("completed")
    """

    def __init__(self, store: "RunStore | None", run_id: str, direction: str, batch_size: int = 20):
        """
        Args:
            store: Run store (optional for testing)
            run_id: Run the entries belong to
            direction: export or import
            batch_size: Number of entries to buffer before auto-flush
        """
        self.store = store
        self.run_id = run_id
        self.direction = direction
        self.batch_size = batch_size
        self._pending: list[AuditLog] = []
        self.entries: list[AuditLog] = []

    def track(self, stage: str, outcome: str, detail: str | None = None) -> AuditLog:
        entry = AuditLog(
            run_id=self.run_id,
            direction=self.direction,
            stage=stage,
            outcome=outcome,
            detail=detail,
        )
        self._pending.append(entry)
        self.entries.append(entry)

        logger.debug(
            f"Tracked stage {stage}: {outcome}",
            extra={"run_id": self.run_id, "stage": stage, "outcome": outcome},
        )

        if len(self._pending) >= self.batch_size:
            self.flush()
        return entry

    def track_stage(self, stage: str, report: ValidationReport) -> AuditLog:
        """Record the outcome of a validating stage with its finding counts."""
        summary = report.summary
        return self.track(stage, report.status.value, f"errors={summary['errors']} warnings={summary['warnings']}")

    def track_failure(self, stage: str, error: BaseException) -> AuditLog:
        return self.track(stage, "error", f"{type(error).__name__}: {error}")

    def track_terminal(self, status: str, detail: str | None = None) -> AuditLog:
        return self.track("terminal", status, detail)

    def flush(self) -> int:
        """
        Write pending entries to the run store.

        Returns:
            Number of entries written
        """
        if not self._pending:
            return 0

        if self.store is None:
            count = len(self._pending)
            self._pending.clear()
            return count

        count = 0
        while self._pending:
            self.store.append_audit(self._pending[0])
            self._pending.pop(0)
            count += 1
        return count

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Auto-flush pending entries; a failing flush is logged and never masks the run outcome."""
        try:
            self.flush()
        except Exception as e:
            logger.error(f"Error flushing audit entries on exit: {e}", extra={"run_id": self.run_id})
        return False
