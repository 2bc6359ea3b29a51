"""
Import pipeline orchestration.

Coordinates the flow: hashing → pack detection → structural validation →
mapping → persistence
"""

import threading

from mismo_conformance.codec.parser import parse_document
from mismo_conformance.core.mapping import from_wire_fields, to_canonical
from mismo_conformance.core.models import (
    CanonicalDeal,
    ImportRequest,
    ImportResult,
    ImportRun,
    RunDirection,
    RunStatus,
)
from mismo_conformance.core.schema import read_declared_ldd
from mismo_conformance.errors import DealExistsError, EntityStoreError
from mismo_conformance.observability.lineage import PipelineAuditTrail
from mismo_conformance.observability.logger import get_logger
from mismo_conformance.utils.hashing import content_hash

from .base import BasePipeline, RunOutcome

logger = get_logger(__name__)


class ImportPipeline(BasePipeline):
    """
    Turns an inbound MISMO document into a canonical deal.

    Flow:
    1. Hash the raw document and detect its schema pack
    2. Validate the document against the pack (a FAIL blocks the run)
    3. In raw-only mode, keep the raw document and stop without mapping
    4. Otherwise map the document, create the deal in the entity store
       and keep every unmapped node alongside it
    """

    direction = RunDirection.IMPORT

    def run(self, request: ImportRequest, cancel_event: threading.Event | None = None) -> ImportResult:
        """
        Import one document.

        Args:
            request: Document bytes, optional pack id and raw_only_mode flag
            cancel_event: Set by the caller to abort the run

        Returns:
            ImportResult; created_deal_reference only for imported runs

        Raises:
            UnknownPackError: If request.pack_id is not registered (no run is created)
        """
        requested_pack = self.registry.resolve(request.pack_id) if request.pack_id else None
        run = self.run_store.create_run(ImportRun(pack_id=request.pack_id, raw_only_mode=request.raw_only_mode))
        outcome = RunOutcome(pack=requested_pack)

        logger.info(
            "Import started",
            extra={"run_id": run.run_id, "pack_id": request.pack_id, "raw_only_mode": request.raw_only_mode},
        )

        def body(run, outcome, trail, cancel_event):
            self._import(run, request, outcome, trail, cancel_event)

        final, report = self.execute(run, outcome, body, cancel_event)

        return ImportResult(
            run_id=final.run_id,
            status=final.status,
            created_deal_reference=final.created_deal_reference,
            content_hash=final.content_hash,
            conformance_report=report,
        )

    def _import(
        self,
        run: ImportRun,
        request: ImportRequest,
        outcome: RunOutcome,
        trail: PipelineAuditTrail,
        cancel_event: threading.Event | None,
    ) -> None:
        xml_bytes = request.xml_bytes

        with self.stage("hashing", run, outcome, cancel_event):
            outcome.content_hash = content_hash(xml_bytes)
            outcome.byte_size = len(xml_bytes)
            previous = [r for r in self.run_store.find_runs_by_hash(outcome.content_hash) if r.run_id != run.run_id]
            if previous:
                logger.info(
                    "Document was received before",
                    extra={"run_id": run.run_id, "previous_run_id": previous[0].run_id},
                )
            trail.track("hashing", "ok", f"duplicates={len(previous)}")

        with self.stage("detect_pack", run, outcome, cancel_event):
            outcome.run_fields["detected_ldd"] = read_declared_ldd(xml_bytes)
            if outcome.pack is None:
                outcome.pack = self.registry.resolve(self.registry.detect(xml_bytes))
            trail.track("detect_pack", outcome.pack.pack_id, f"ldd={outcome.run_fields['detected_ldd']}")

        with self.stage("structural_validation", run, outcome, cancel_event):
            structural = self.validator.validate(xml_bytes, outcome.pack)
            outcome.reports.append(structural)
            trail.track_stage("structural_validation", structural)

        if request.raw_only_mode:
            with self.stage("persistence", run, outcome, cancel_event):
                self.run_store.save_artifact(run.run_id, xml_bytes, outcome.content_hash)
                trail.track("persistence", "raw_only")
            outcome.status = RunStatus.IMPORTED_RAW_ONLY
            return

        if structural.failed:
            with self.stage("persistence", run, outcome, cancel_event):
                self.run_store.save_artifact(run.run_id, xml_bytes, outcome.content_hash, withheld=True)
            outcome.status = RunStatus.BLOCKED
            return

        with self.stage("mapping", run, outcome, cancel_event):
            mapping = from_wire_fields(parse_document(xml_bytes), outcome.pack)
            outcome.unmapped_nodes = list(mapping.unmapped_nodes)
            outcome.mapping = mapping
            deal = to_canonical(mapping, fallback_reference=f"IMPORT-{run.run_id[:8]}")
            trail.track(
                "mapping", "ok",
                f"core_fields={len(mapping.core_fields)} unmapped_nodes={len(mapping.unmapped_nodes)}",
            )

        with self.stage("persistence", run, outcome, cancel_event):
            self.run_store.save_artifact(run.run_id, xml_bytes, outcome.content_hash)
            try:
                deal_reference = self._create_deal(run, deal, trail, cancel_event)
                self.call_entity_store(
                    "save_unmapped_nodes",
                    self.entity_store.save_unmapped_nodes,
                    deal_reference,
                    run.run_id,
                    outcome.unmapped_nodes,
                    cancel_event=cancel_event,
                )
            except DealExistsError as e:
                self.fail(outcome, trail, "DEAL_REFERENCE_CONFLICT", str(e), e)
                return
            except EntityStoreError as e:
                self.fail(outcome, trail, "ENTITY_STORE_UNAVAILABLE", f"Entity store unavailable: {e}", e)
                return
            trail.track("persistence", "ok", f"deal_reference={deal_reference}")

        outcome.run_fields["deal_reference"] = deal_reference
        outcome.status = RunStatus.IMPORTED

    def _create_deal(
        self,
        run: ImportRun,
        deal: CanonicalDeal,
        trail: PipelineAuditTrail,
        cancel_event: threading.Event | None,
    ) -> str:
        """
        Create the imported deal, never replacing one already in the store.

        A document carrying a loan identifier the store already holds gets a
        run-scoped reference; the inbound identifier is kept in extensions.

        Raises:
            DealExistsError: If the run-scoped reference is taken too
        """
        try:
            return self.call_entity_store("create_deal", self.entity_store.create_deal, deal, cancel_event=cancel_event)
        except DealExistsError:
            source_reference = deal.deal_reference

        renamed = deal.model_copy(update={
            "deal_reference": f"{source_reference}-{run.run_id[:8]}",
            "extensions": {**deal.extensions, "source_loan_identifier": source_reference},
        })
        logger.warning(
            "Deal reference already in use, importing under a new reference",
            extra={"run_id": run.run_id, "source_reference": source_reference, "deal_reference": renamed.deal_reference},
        )
        trail.track("persistence", "reference_reassigned", f"{source_reference} -> {renamed.deal_reference}")
        return self.call_entity_store("create_deal", self.entity_store.create_deal, renamed, cancel_event=cancel_event)
