"""
Shared run machinery of the export and import pipelines.

A run is created in ``running`` status, walks its stages, and is finalized
exactly once. Stage outcomes accumulate on a RunOutcome so that a failure at
any point still produces a full ConformanceReport with the findings gathered
so far.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable

from mismo_conformance.settings import PipelineSettings
from mismo_conformance.core.models import (
    ConformanceReport,
    FindingCategory,
    MappingResult,
    PipelineRun,
    RunDirection,
    RunStatus,
    SchemaPack,
    Severity,
    UnmappedNode,
    ValidationFinding,
    ValidationReport,
)
from mismo_conformance.core.schema import SchemaPackRegistry, SchemaPackValidator
from mismo_conformance.errors import EntityStoreError, EntityStoreTimeout, PipelineCancelled
from mismo_conformance.observability.lineage import PipelineAuditTrail
from mismo_conformance.observability.logger import get_logger, log_operation
from mismo_conformance.observability.metrics import (
    entity_store_retries_total,
    increment_counter,
    record_run,
    stage_duration_seconds,
    track_duration,
)
from mismo_conformance.reporting.conformance import build_report, verdict
from mismo_conformance.storage.entity_store import EntityStore
from mismo_conformance.storage.run_store import RunStore

logger = get_logger(__name__)


@dataclass
class RunOutcome:
    """Mutable state of one run while its stages execute."""

    pack: SchemaPack | None = None
    stage: str = "start"
    status: RunStatus | None = None
    reports: list[ValidationReport] = field(default_factory=list)
    mapping: MappingResult | None = None
    unmapped_nodes: list[UnmappedNode] = field(default_factory=list)
    xml_bytes: bytes | None = None
    content_hash: str | None = None
    byte_size: int | None = None
    run_fields: dict[str, Any] = field(default_factory=dict)

    @property
    def validation(self) -> ValidationReport:
        return ValidationReport.merge(*self.reports)


def system_finding(rule: str, message: str, stage: str) -> ValidationFinding:
    return ValidationFinding(
        field=stage,
        message=message,
        severity=Severity.ERROR,
        category=FindingCategory.SYSTEM,
        rule=rule,
    )


class BasePipeline:
    """
    Base class of the export and import orchestrators.

    Holds the shared collaborators and implements stage bookkeeping,
    bounded entity store calls and the single terminal write.
    """

    direction: RunDirection

    def __init__(
        self,
        registry: SchemaPackRegistry,
        run_store: RunStore,
        entity_store: EntityStore,
        settings: PipelineSettings | None = None,
        validator: SchemaPackValidator | None = None,
    ):
        """
        Args:
            registry: Schema pack registry
            run_store: Where runs, reports, artifacts and audit entries go
            entity_store: System of record for canonical deals
            settings: Timeouts and retry policy (read from env by default)
            validator: Schema-pack validator
        """
        self.registry = registry
        self.run_store = run_store
        self.entity_store = entity_store
        self.settings = settings or PipelineSettings.from_env()
        self.validator = validator or SchemaPackValidator()
        self._executor_lock = threading.Lock()
        self._executor = self._new_executor()

    @staticmethod
    def _new_executor() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=4, thread_name_prefix="entity-store")

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _abandon_executor(self, stuck: ThreadPoolExecutor) -> None:
        """Replace an executor whose worker is stuck; its running calls finish on their own."""
        with self._executor_lock:
            if self._executor is not stuck:
                return
            self._executor = self._new_executor()
            stuck.shutdown(wait=False)
        logger.warning("Entity store worker hung, executor replaced", extra={"max_workers": 4})

    # ---- stages -----------------------------------------------------------

    @contextmanager
    def stage(self, name: str, run: PipelineRun, outcome: RunOutcome, cancel_event: threading.Event | None):
        """Enter a stage: honour cancellation, then log and time the work."""
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelled(f"Run {run.run_id} cancelled before stage {name}")

        outcome.stage = name
        pack_id = outcome.pack.pack_id if outcome.pack else run.pack_id
        with log_operation(name, logger=logger, run_id=run.run_id, pack_id=pack_id, stage=name):
            with track_duration(stage_duration_seconds, direction=self.direction.value, stage=name):
                yield

    def fail(self, outcome: RunOutcome, trail: PipelineAuditTrail, rule: str, message: str,
             error: BaseException | None = None) -> None:
        """End the run in failed status with a system finding for the current stage."""
        outcome.reports.append(ValidationReport(findings=(system_finding(rule, message, outcome.stage),)))
        outcome.status = RunStatus.FAILED
        if error is not None:
            trail.track_failure(outcome.stage, error)
        else:
            trail.track(outcome.stage, "error", message)

    # ---- entity store -----------------------------------------------------

    def call_entity_store(
        self,
        operation: str,
        func: Callable[..., Any],
        *args: Any,
        cancel_event: threading.Event | None = None,
        **kwargs: Any,
    ) -> Any:
        """
        Call the entity store with a timeout, retrying transient failures.

        Raises:
            EntityStoreError: When every attempt failed or timed out
            EntityNotFoundError: Passed through without retry
            PipelineCancelled: If cancelled while waiting to retry
        """
        attempts = self.settings.fetch_retries
        timeout = self.settings.fetch_timeout

        for attempt in range(1, attempts + 1):
            with self._executor_lock:
                executor = self._executor
                future = executor.submit(func, *args, **kwargs)
            try:
                return future.result(timeout=timeout)
            except FutureTimeout:
                if not future.cancel():
                    self._abandon_executor(executor)
                error: EntityStoreError = EntityStoreTimeout(f"{operation} timed out after {timeout}s")
            except EntityStoreError as e:
                error = e

            if attempt == attempts:
                increment_counter(entity_store_retries_total, 1, operation=operation, status="exhausted")
                raise error

            increment_counter(entity_store_retries_total, 1, operation=operation, status="retry")
            logger.warning(
                "Entity store call failed, retrying",
                extra={"operation": operation, "attempt": attempt, "max_attempts": attempts, "error_message": str(error)},
            )
            if cancel_event is not None:
                if cancel_event.wait(self.settings.retry_delay):
                    raise PipelineCancelled(f"Cancelled while retrying {operation}")
            else:
                time.sleep(self.settings.retry_delay)

    # ---- terminal write ---------------------------------------------------

    def execute(
        self,
        run: PipelineRun,
        outcome: RunOutcome,
        body: Callable[[PipelineRun, RunOutcome, PipelineAuditTrail, threading.Event | None], None],
        cancel_event: threading.Event | None,
    ) -> tuple[PipelineRun, ConformanceReport]:
        """
        Run the stages and finalize the run exactly once.

        Unexpected exceptions become a system finding and a failed run.
        KeyboardInterrupt finalizes the run as failed and is re-raised.
        A failing terminal write is re-raised once the run is marked failed.
        """
        with PipelineAuditTrail(self.run_store, run.run_id, self.direction.value) as trail:
            trail.track("start", "running")
            try:
                body(run, outcome, trail, cancel_event)
            except KeyboardInterrupt as e:
                self.fail(outcome, trail, "RUN_INTERRUPTED", f"Run interrupted during {outcome.stage}", e)
                self.finish(run, outcome, trail)
                raise
            except PipelineCancelled as e:
                logger.warning("Run cancelled", extra={"run_id": run.run_id, "stage": outcome.stage})
                self.fail(outcome, trail, "RUN_CANCELLED", str(e), e)
            except Exception as e:
                logger.exception(
                    "Unexpected error in pipeline run",
                    extra={"run_id": run.run_id, "stage": outcome.stage},
                )
                self.fail(
                    outcome, trail, "PIPELINE_INTERNAL_ERROR",
                    f"Unexpected error during {outcome.stage}: {type(e).__name__}: {e}", e,
                )

            return self.finish(run, outcome, trail)

    def finish(self, run: PipelineRun, outcome: RunOutcome, trail: PipelineAuditTrail) -> tuple[PipelineRun, ConformanceReport]:
        """
        Write the report and the terminal run state.

        Raises:
            Exception: Whatever the run store raised while writing; the run is
                then finalized as failed on a best-effort basis
        """
        pack = outcome.pack or self.registry.resolve_or_default(run.pack_id)
        status = outcome.status or RunStatus.FAILED

        report = build_report(
            run_id=run.run_id,
            context=self.direction,
            pack=pack,
            validation=outcome.validation,
            mapping=outcome.mapping,
            unmapped_nodes=outcome.unmapped_nodes,
            content_hash=outcome.content_hash,
        )
        try:
            self.run_store.save_report(report)
            final = run.finalize(
                status,
                pack_id=pack.pack_id,
                content_hash=outcome.content_hash,
                byte_size=outcome.byte_size,
                conformance_report_ref=report.report_id,
                **outcome.run_fields,
            )
            self.run_store.finalize_run(final)
        except Exception as e:
            logger.exception("Terminal write failed", extra={"run_id": run.run_id, "status": status.value})
            self._finalize_failed(run, pack, trail, e)
            raise

        trail.track_terminal(status.value, verdict(report))

        record_run(self.direction.value, pack.pack_id, status.value, report, outcome.byte_size)
        logger.info(
            "Run finished",
            extra={
                "run_id": run.run_id,
                "direction": self.direction.value,
                "pack_id": pack.pack_id,
                "status": status.value,
                "report_id": report.report_id,
            },
        )
        return final, report

    def _finalize_failed(self, run: PipelineRun, pack: SchemaPack, trail: PipelineAuditTrail, error: Exception) -> None:
        """Move a run whose terminal write failed to failed, without its report."""
        try:
            self.run_store.finalize_run(run.finalize(RunStatus.FAILED, pack_id=pack.pack_id))
        except Exception:
            logger.exception("Fallback terminal write failed", extra={"run_id": run.run_id})
            return
        trail.track_terminal(RunStatus.FAILED.value, f"terminal write failed: {type(error).__name__}: {error}")
        record_run(self.direction.value, pack.pack_id, RunStatus.FAILED.value)
