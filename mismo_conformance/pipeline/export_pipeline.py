"""
Export pipeline orchestration.

Coordinates the flow: fetch → preflight → mapping → generation →
structural validation → hashing → reporting
"""

import threading

from mismo_conformance.codec.generator import MismoXmlGenerator
from mismo_conformance.core.mapping import to_wire_fields
from mismo_conformance.core.models import (
    ExportRequest,
    ExportResult,
    ExportRun,
    RunDirection,
    RunStatus,
    ValidationStatus,
)
from mismo_conformance.core.models.pipeline_run import SUBMITTABLE
from mismo_conformance.core.rules import PreflightValidator
from mismo_conformance.errors import EntityNotFoundError, EntityStoreError
from mismo_conformance.observability.lineage import PipelineAuditTrail
from mismo_conformance.observability.logger import get_logger
from mismo_conformance.utils.hashing import content_hash

from .base import BasePipeline, RunOutcome

logger = get_logger(__name__)


class ExportPipeline(BasePipeline):
    """
    Converts a canonical deal into a validated MISMO document.

    Flow:
    1. Fetch the deal from the entity store
    2. Preflight the deal (a FAIL blocks the run unless skip_preflight)
    3. Map to wire fields and generate XML for the pack
    4. Validate the XML against the pack (a FAIL fails the run; XML withheld)
    5. Hash the artifact, assemble and persist the conformance report
    """

    direction = RunDirection.EXPORT

    def __init__(self, *args, preflight: PreflightValidator | None = None,
                 generator: MismoXmlGenerator | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.preflight = preflight or PreflightValidator.from_yaml(self.settings.preflight_rules_path)
        self.generator = generator or MismoXmlGenerator()

    def run(self, request: ExportRequest, cancel_event: threading.Event | None = None) -> ExportResult:
        """
        Export one deal.

        Args:
            request: Deal reference, optional pack id and skip_preflight flag
            cancel_event: Set by the caller to abort the run

        Returns:
            ExportResult; xml_bytes and content_hash only for completed runs

        Raises:
            UnknownPackError: If request.pack_id is not registered (no run is created)
        """
        pack = self.registry.resolve_or_default(request.pack_id)
        run = self.run_store.create_run(ExportRun(deal_reference=request.deal_reference, pack_id=pack.pack_id))
        outcome = RunOutcome(pack=pack)

        logger.info(
            "Export started",
            extra={"run_id": run.run_id, "deal_reference": request.deal_reference, "pack_id": pack.pack_id},
        )

        def body(run, outcome, trail, cancel_event):
            self._export(run, request, outcome, trail, cancel_event)

        final, report = self.execute(run, outcome, body, cancel_event)

        submittable = final.status in SUBMITTABLE
        return ExportResult(
            run_id=final.run_id,
            status=final.status,
            xml_bytes=outcome.xml_bytes if submittable else None,
            content_hash=outcome.content_hash if submittable else None,
            conformance_report=report,
        )

    def _export(
        self,
        run: ExportRun,
        request: ExportRequest,
        outcome: RunOutcome,
        trail: PipelineAuditTrail,
        cancel_event: threading.Event | None,
    ) -> None:
        pack = outcome.pack

        with self.stage("fetch", run, outcome, cancel_event):
            try:
                deal = self.call_entity_store(
                    "fetch_deal",
                    self.entity_store.fetch_deal,
                    request.deal_reference,
                    timeout=self.settings.fetch_timeout,
                    cancel_event=cancel_event,
                )
            except EntityNotFoundError as e:
                self.fail(outcome, trail, "DEAL_NOT_FOUND", str(e))
                return
            except EntityStoreError as e:
                self.fail(outcome, trail, "ENTITY_STORE_UNAVAILABLE", f"Entity store unavailable: {e}", e)
                return
            trail.track("fetch", "ok")

        if request.skip_preflight:
            trail.track("preflight", "skipped")
        else:
            with self.stage("preflight", run, outcome, cancel_event):
                preflight_report = self.preflight.validate(deal, pack)
                outcome.reports.append(preflight_report)
                trail.track_stage("preflight", preflight_report)
            if preflight_report.failed:
                outcome.status = RunStatus.BLOCKED
                return

        with self.stage("mapping", run, outcome, cancel_event):
            outcome.mapping = to_wire_fields(deal)
            trail.track(
                "mapping", "ok",
                f"core_fields={len(outcome.mapping.core_fields)} extension_fields={len(outcome.mapping.extension_fields)}",
            )

        with self.stage("generation", run, outcome, cancel_event):
            xml_bytes = self.generator.generate(outcome.mapping, pack, deal.deal_reference)
            outcome.byte_size = len(xml_bytes)
            trail.track("generation", "ok", f"bytes={len(xml_bytes)}")

        with self.stage("structural_validation", run, outcome, cancel_event):
            structural = self.validator.validate(xml_bytes, pack)
            outcome.reports.append(structural)
            trail.track_stage("structural_validation", structural)

        with self.stage("hashing", run, outcome, cancel_event):
            outcome.content_hash = content_hash(xml_bytes)

        with self.stage("persistence", run, outcome, cancel_event):
            withheld = structural.failed
            self.run_store.save_artifact(run.run_id, xml_bytes, outcome.content_hash, withheld=withheld)

        if structural.failed:
            outcome.status = RunStatus.FAILED
            return

        outcome.xml_bytes = xml_bytes
        if outcome.validation.status == ValidationStatus.PASS_WITH_WARNINGS:
            outcome.status = RunStatus.COMPLETED_WITH_WARNINGS
        else:
            outcome.status = RunStatus.COMPLETED
