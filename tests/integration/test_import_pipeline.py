"""
Integration tests for the import pipeline.

Covers pack detection, structural gating, raw-only quarantine, mapping of
unknown content into unmapped nodes, and persistence through the entity store.
"""

from decimal import Decimal

import pytest
from lxml import etree

from mismo_conformance.core.mapping import to_wire_fields
from mismo_conformance.core.models import (
    ExportRequest,
    FindingCategory,
    ImportRequest,
    RunStatus,
    ValidationStatus,
)
from mismo_conformance.errors import EntityStoreError, UnknownPackError
from mismo_conformance.pipeline import ExportPipeline, ImportPipeline
from mismo_conformance.storage.entity_store import InMemoryEntityStore
from mismo_conformance.utils.hashing import content_hash

STANDARD_PACK_ID = "PACK_A_GENERIC_MISMO_34_B324"
STRICT_PACK_ID = "PACK_B_DU_ULAD_STRICT_34_B324"
NS = {"m": "http://www.mismo.org/residential/2009/schemas"}


class UnavailableEntityStore(InMemoryEntityStore):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def create_deal(self, deal):
        self.calls += 1
        raise EntityStoreError("write refused")


@pytest.fixture
def target_store():
    """Empty entity store receiving imported deals"""
    return InMemoryEntityStore()


@pytest.fixture
def importer(registry, run_store, target_store, settings):
    pipeline = ImportPipeline(registry, run_store, target_store, settings=settings)
    yield pipeline
    pipeline.close()


@pytest.fixture
def export_document(registry, run_store, entity_store, settings, preflight):
    """Export the sample deal and return its document bytes"""
    pipelines = []

    def export(pack_id=None):
        pipeline = ExportPipeline(registry, run_store, entity_store, settings=settings, preflight=preflight)
        pipelines.append(pipeline)
        return pipeline.run(ExportRequest(deal_reference="DEAL-2024-0001", pack_id=pack_id)).xml_bytes

    yield export
    for pipeline in pipelines:
        pipeline.close()


@pytest.mark.integration
class TestImportRoundTrip:
    """Tests for importing documents this pipeline generated"""

    def test_round_trip_standard(self, importer, export_document, run_store, target_store, sample_deal):
        """Test that an exported deal imports with the same core fields"""
        xml = export_document()

        result = importer.run(ImportRequest(xml_bytes=xml))

        assert result.status == RunStatus.IMPORTED
        assert result.created_deal_reference == "DEAL-2024-0001"
        assert result.conformance_report.status == ValidationStatus.PASS

        imported = target_store.fetch_deal("DEAL-2024-0001")
        assert to_wire_fields(imported).core_fields == to_wire_fields(sample_deal).core_fields
        assert imported.extensions == {"dscr_ratio": Decimal("1.25")}
        assert target_store.unmapped[result.run_id] == []

        run = run_store.get_run(result.run_id)
        assert run.pack_id == STANDARD_PACK_ID
        assert run.detected_ldd == "urn:fdc:mismo.org:ldd:3.4.324"
        assert run.deal_reference == "DEAL-2024-0001"
        assert run_store.get_artifact(result.run_id) == xml

    def test_strict_pack_detected(self, importer, export_document, run_store):
        """Test that the declared LDD selects the strict pack"""
        result = importer.run(ImportRequest(xml_bytes=export_document(STRICT_PACK_ID)))

        assert result.status == RunStatus.IMPORTED
        assert run_store.get_run(result.run_id).pack_id == STRICT_PACK_ID

    def test_explicit_pack_overrides_detection(self, importer, export_document, run_store):
        """Test validating a standard document against the strict pack"""
        result = importer.run(ImportRequest(xml_bytes=export_document(), pack_id=STRICT_PACK_ID))

        assert result.status == RunStatus.IMPORTED
        assert [f.rule for f in result.conformance_report.validation.findings] == ["LDD_MISMATCH"]
        assert run_store.get_run(result.run_id).pack_id == STRICT_PACK_ID

    def test_repeated_import(self, importer, export_document, run_store, target_store):
        """Test that receiving the same bytes twice creates two runs, one hash and two deals"""
        xml = export_document()

        first = importer.run(ImportRequest(xml_bytes=xml))
        second = importer.run(ImportRequest(xml_bytes=xml))

        assert first.content_hash == second.content_hash == content_hash(xml)
        imports = [r.run_id for r in run_store.find_runs_by_hash(first.content_hash) if r.direction == "import"]
        assert imports == [first.run_id, second.run_id]
        assert first.created_deal_reference == "DEAL-2024-0001"
        assert second.created_deal_reference == f"DEAL-2024-0001-{second.run_id[:8]}"
        assert second.created_deal_reference in target_store

    def test_existing_deal_never_overwritten(self, registry, run_store, settings, export_document, sample_deal):
        """Test that importing a known loan identifier leaves the stored deal intact"""
        stored = sample_deal.model_copy(update={"extensions": {"note": "lender-only data"}})
        store = InMemoryEntityStore([stored])
        pipeline = ImportPipeline(registry, run_store, store, settings=settings)
        try:
            result = pipeline.run(ImportRequest(xml_bytes=export_document()))
        finally:
            pipeline.close()

        assert result.status == RunStatus.IMPORTED
        assert result.created_deal_reference == f"DEAL-2024-0001-{result.run_id[:8]}"
        assert store.fetch_deal("DEAL-2024-0001") == stored

        imported = store.fetch_deal(result.created_deal_reference)
        assert imported.extensions == {"dscr_ratio": Decimal("1.25"), "source_loan_identifier": "DEAL-2024-0001"}
        assert run_store.get_run(result.run_id).deal_reference == result.created_deal_reference
        assert "reference_reassigned" in [e.outcome for e in run_store.get_audit(result.run_id)]

    def test_audit_trail(self, importer, export_document, run_store):
        """Test that every import stage is recorded"""
        result = importer.run(ImportRequest(xml_bytes=export_document()))

        assert [e.stage for e in run_store.get_audit(result.run_id)] == [
            "start", "hashing", "detect_pack", "structural_validation", "mapping", "persistence", "terminal",
        ]

    def test_missing_loan_identifier_gets_fallback_reference(self, importer, export_document, target_store):
        """Test that a document without a loan identifier still creates a deal"""
        root = etree.fromstring(export_document())
        identifiers = root.xpath("//m:LOAN_IDENTIFIERS", namespaces=NS)[0]
        identifiers.getparent().remove(identifiers)

        result = importer.run(ImportRequest(xml_bytes=etree.tostring(root)))

        assert result.status == RunStatus.IMPORTED
        assert result.created_deal_reference == f"IMPORT-{result.run_id[:8]}"
        assert result.created_deal_reference in target_store


@pytest.mark.integration
class TestImportCounterpartyDocument:
    """Tests for documents carrying content outside the path table"""

    def test_unmapped_nodes_kept(self, importer, foreign_document, target_store):
        """Test that unknown content is retained next to the created deal"""
        result = importer.run(ImportRequest(xml_bytes=foreign_document))

        assert result.status == RunStatus.IMPORTED
        assert result.conformance_report.status == ValidationStatus.PASS_WITH_WARNINGS
        assert [f.rule for f in result.conformance_report.validation.warnings] == ["UNDECLARED_EXTENSION_NAMESPACE"]

        xpaths = [node.xpath for node in result.conformance_report.unmapped_nodes]
        assert len(xpaths) == 4
        assert any(x.endswith("/HMDARateSpreadPercent") for x in xpaths)
        assert any(x.endswith("/EXTENSION/OTHER/ULAD:HousingExpense") for x in xpaths)
        assert target_store.unmapped[result.run_id] == list(result.conformance_report.unmapped_nodes)

    def test_canonical_deal_created(self, importer, foreign_document, target_store):
        """Test the mapped deal, its extensions and preserved leading zeros"""
        result = importer.run(ImportRequest(xml_bytes=foreign_document))

        deal = target_store.fetch_deal(result.created_deal_reference)
        assert deal.deal_reference == "CP-88812"
        assert deal.borrowers[0].first_name == "Grace"
        assert deal.properties[0].postal_code == "04101"
        assert deal.extensions == {"dscr_ratio": Decimal("1.4"), "broker_code": "BRK-7"}


@pytest.mark.integration
class TestImportGating:
    """Tests for blocked, quarantined and failed imports"""

    def test_malformed_document_blocked(self, importer, run_store, target_store):
        """Test that a structural FAIL blocks mapping and withholds the document"""
        xml = b"<MESSAGE><DEAL_SETS></MESSAGE>"

        result = importer.run(ImportRequest(xml_bytes=xml))

        assert result.status == RunStatus.BLOCKED
        assert result.created_deal_reference is None
        assert [f.rule for f in result.conformance_report.validation.errors] == ["XML_MALFORMED"]
        assert run_store.is_withheld(result.run_id)
        assert target_store.unmapped == {}

    def test_version_mismatch_blocked(self, importer, export_document):
        """Test that a document of another MISMO version line is blocked"""
        xml = export_document().replace(b'MISMOVersionID="3.4.0"', b'MISMOVersionID="3.3.1"')

        result = importer.run(ImportRequest(xml_bytes=xml))

        assert result.status == RunStatus.BLOCKED
        assert "VERSION_MISMATCH" in [f.rule for f in result.conformance_report.validation.errors]

    def test_build_mismatch_imported_with_warning(self, importer, export_document, target_store):
        """Test that another build of the same version line imports with a version warning"""
        root = etree.fromstring(export_document())
        root.xpath("//m:ABOUT_VERSION/m:DataVersionIdentifier", namespaces=NS)[0].text = "201"

        result = importer.run(ImportRequest(xml_bytes=etree.tostring(root)))

        assert result.status == RunStatus.IMPORTED
        assert result.conformance_report.status == ValidationStatus.PASS_WITH_WARNINGS
        warnings = result.conformance_report.validation.warnings
        assert [(f.rule, f.category) for f in warnings] == [("BUILD_MISMATCH", FindingCategory.VERSION)]
        assert result.created_deal_reference in target_store

    def test_raw_only_never_maps(self, importer, export_document, run_store, target_store):
        """Test that quarantine mode keeps the raw document only"""
        xml = export_document()

        result = importer.run(ImportRequest(xml_bytes=xml, raw_only_mode=True))

        assert result.status == RunStatus.IMPORTED_RAW_ONLY
        assert result.created_deal_reference is None
        assert "DEAL-2024-0001" not in target_store
        assert run_store.get_artifact(result.run_id) == xml
        assert run_store.get_run(result.run_id).raw_only_mode is True
        assert result.conformance_report.mapping is None

    def test_raw_only_keeps_invalid_document(self, importer, run_store):
        """Test that quarantine mode retains a document that failed validation"""
        xml = b"<MESSAGE><DEAL_SETS></MESSAGE>"

        result = importer.run(ImportRequest(xml_bytes=xml, raw_only_mode=True))

        assert result.status == RunStatus.IMPORTED_RAW_ONLY
        assert result.conformance_report.status == ValidationStatus.FAIL
        assert run_store.get_artifact(result.run_id) == xml

    def test_unknown_pack_creates_no_run(self, importer, run_store, foreign_document):
        """Test that an unregistered pack id is rejected up front"""
        with pytest.raises(UnknownPackError):
            importer.run(ImportRequest(xml_bytes=foreign_document, pack_id="PACK_Z"))

        assert run_store.list_runs() == []

    def test_entity_store_unavailable(self, registry, run_store, settings, foreign_document):
        """Test that a failing entity store fails the run after retries"""
        store = UnavailableEntityStore()
        pipeline = ImportPipeline(registry, run_store, store, settings=settings)
        try:
            result = pipeline.run(ImportRequest(xml_bytes=foreign_document))
        finally:
            pipeline.close()

        assert result.status == RunStatus.FAILED
        assert result.created_deal_reference is None
        assert result.conformance_report.validation.errors[0].rule == "ENTITY_STORE_UNAVAILABLE"
        assert store.calls == settings.fetch_retries
