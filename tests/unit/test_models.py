"""
Unit tests for Pydantic models.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from mismo_conformance.core.models import (
    AuditLog,
    CanonicalDeal,
    ConformanceReport,
    ExportResult,
    ExportRun,
    FindingCategory,
    ImportRun,
    RunDirection,
    RunStatus,
    SchemaPack,
    Severity,
    StrictnessProfile,
    ValidationFinding,
    ValidationReport,
    ValidationStatus,
)
from mismo_conformance.errors import RunStateError


def make_finding(severity=Severity.ERROR, category=FindingCategory.DATATYPE, field="loan.loan_amount"):
    return ValidationFinding(
        field=field,
        message="Value 0 must be greater than 0",
        severity=severity,
        category=category,
        rule="loan_amount_positive",
    )


class TestCanonicalDeal:
    """Tests for CanonicalDeal model"""

    def test_valid_deal(self, sample_deal_data):
        """Test creating a complete deal"""
        deal = CanonicalDeal(**sample_deal_data)

        assert deal.deal_reference == "DEAL-2024-0001"
        assert deal.loan.loan_amount == "350000"
        assert deal.borrowers[0].first_name == "Ada"
        assert deal.properties[0].state == "TX"
        assert deal.fees[0].fee_type == "AppraisalFee"

    def test_empty_deal_reference_rejected(self):
        """Test that deal_reference must not be empty"""
        with pytest.raises(ValidationError):
            CanonicalDeal(deal_reference="")

    def test_unknown_top_level_keys_become_extensions(self):
        """Test that keys without a model field are routed to extensions"""
        deal = CanonicalDeal(deal_reference="D-1", dscr_ratio="1.30", rehab_budget=25000)

        assert deal.extensions == {"dscr_ratio": "1.30", "rehab_budget": 25000}
        assert not hasattr(deal, "dscr_ratio")

    def test_explicit_extension_wins_over_stray_key(self):
        """Test that an explicit extensions entry is not overwritten by a top-level key"""
        deal = CanonicalDeal(deal_reference="D-1", extensions={"dscr_ratio": "1.1"}, dscr_ratio="9.9")

        assert deal.extensions["dscr_ratio"] == "1.1"

    def test_record_extras_are_kept(self):
        """Test that nested records keep unknown keys as extra fields"""
        deal = CanonicalDeal(
            deal_reference="D-1",
            loan={"loan_amount": 100, "investor_code": "INV-9"},
            borrowers=[{"first_name": "Ada", "credit_tier": "A"}],
        )

        assert deal.loan.extra_fields == {"investor_code": "INV-9"}
        assert deal.borrowers[0].extra_fields == {"credit_tier": "A"}

    def test_bad_values_still_construct(self):
        """Test that a deal with bad data can be built (preflight reports it later)"""
        deal = CanonicalDeal(deal_reference="D-1", loan={"loan_amount": "lots", "loan_term_months": "abc"})

        assert deal.loan.loan_amount == "lots"
        assert deal.loan.loan_term_months == "abc"

    def test_decimal_values_survive_in_extensions(self):
        """Test that extension values keep their type"""
        deal = CanonicalDeal(deal_reference="D-1", extensions={"dscr_ratio": Decimal("1.25")})

        assert deal.extensions["dscr_ratio"] == Decimal("1.25")


class TestValidationReport:
    """Tests for ValidationReport status derivation"""

    def test_empty_report_passes(self):
        """Test that a report without findings is PASS"""
        report = ValidationReport()

        assert report.status == ValidationStatus.PASS
        assert report.summary == {"total": 0, "errors": 0, "warnings": 0}
        assert not report.failed

    def test_warnings_only(self):
        """Test that warnings alone give PASS_WITH_WARNINGS"""
        report = ValidationReport(findings=(make_finding(Severity.WARNING),))

        assert report.status == ValidationStatus.PASS_WITH_WARNINGS
        assert report.warnings and not report.errors

    def test_any_error_fails(self):
        """Test that one error makes the report FAIL"""
        report = ValidationReport(findings=(make_finding(Severity.WARNING), make_finding(Severity.ERROR)))

        assert report.status == ValidationStatus.FAIL
        assert report.failed
        assert report.summary == {"total": 2, "errors": 1, "warnings": 1}

    def test_status_serialized(self):
        """Test that status and summary appear in the dump"""
        dumped = ValidationReport(findings=(make_finding(),)).model_dump(mode="json")

        assert dumped["status"] == "FAIL"
        assert dumped["summary"]["errors"] == 1

    def test_merge_preserves_order(self):
        """Test that merge concatenates findings in stage order"""
        first = ValidationReport(findings=(make_finding(field="a"),))
        second = ValidationReport(findings=(make_finding(Severity.WARNING, field="b"),))

        merged = ValidationReport.merge(first, second)

        assert [f.field for f in merged.findings] == ["a", "b"]
        assert merged.status == ValidationStatus.FAIL

    def test_count_by_category(self):
        """Test per-category counts in taxonomy order"""
        report = ValidationReport(findings=(
            make_finding(category=FindingCategory.STRUCTURAL),
            make_finding(category=FindingCategory.MISSING_REQUIRED),
            make_finding(category=FindingCategory.STRUCTURAL),
        ))

        counts = report.count_by_category()

        assert counts == {"missing_required": 1, "structural": 2}
        assert list(counts) == ["missing_required", "structural"]

    def test_report_is_immutable(self):
        """Test that findings cannot be reassigned"""
        report = ValidationReport()

        with pytest.raises(ValidationError):
            report.findings = (make_finding(),)


class TestSchemaPack:
    """Tests for SchemaPack model"""

    def pack_kwargs(self, **overrides):
        kwargs = {
            "pack_id": "TEST_PACK",
            "name": "Test",
            "mismo_version": "3.4",
            "version_id": "3.4.0",
            "build": "324",
            "namespace": "http://www.mismo.org/residential/2009/schemas",
            "required_namespaces": ("http://www.mismo.org/residential/2009/schemas",),
            "vendor_namespace": "https://example.com/ext",
            "ldd_identifier": "urn:test",
        }
        kwargs.update(overrides)
        return kwargs

    def test_incompatible_version_id_rejected(self):
        """Test that version_id must extend mismo_version"""
        with pytest.raises(ValidationError, match="not compatible"):
            SchemaPack(**self.pack_kwargs(version_id="3.3.0"))

    def test_version_prefix_is_not_a_string_prefix(self):
        """Test that 3.40 does not count as part of the 3.4 line"""
        with pytest.raises(ValidationError):
            SchemaPack(**self.pack_kwargs(version_id="3.40"))

    def test_vendor_namespace_listed_first(self):
        """Test allowed extension namespaces put the vendor namespace first"""
        pack = SchemaPack(**self.pack_kwargs(extension_namespaces=("urn:other", "https://example.com/ext")))

        assert pack.allowed_extension_namespaces == ("https://example.com/ext", "urn:other")

    def test_profile_defaults_to_standard(self):
        """Test default strictness profile"""
        pack = SchemaPack(**self.pack_kwargs())

        assert pack.profile == StrictnessProfile.STANDARD
        assert not pack.is_strict


class TestPipelineRun:
    """Tests for run lifecycle"""

    def test_new_run_is_running(self):
        """Test that runs start in running status"""
        run = ExportRun(deal_reference="D-1")

        assert run.status == RunStatus.RUNNING
        assert not run.is_terminal
        assert run.direction == "export"

    def test_finalize_sets_terminal_status(self):
        """Test that finalize returns a terminal copy"""
        run = ExportRun(deal_reference="D-1")

        final = run.finalize(RunStatus.COMPLETED, content_hash="sha256:abc")

        assert final.status == RunStatus.COMPLETED
        assert final.completed_at is not None
        assert final.content_hash == "sha256:abc"
        assert run.status == RunStatus.RUNNING

    def test_finalize_twice_raises(self):
        """Test that a terminal run cannot move again"""
        final = ExportRun(deal_reference="D-1").finalize(RunStatus.BLOCKED)

        with pytest.raises(RunStateError):
            final.finalize(RunStatus.COMPLETED)

    def test_import_status_rejected_for_export(self):
        """Test that export runs cannot end as imported"""
        with pytest.raises(ValueError, match="not a terminal status"):
            ExportRun(deal_reference="D-1").finalize(RunStatus.IMPORTED)

    def test_running_is_not_terminal(self):
        """Test that running is never a terminal status"""
        with pytest.raises(ValueError):
            ImportRun().finalize(RunStatus.RUNNING)

    def test_created_deal_reference_only_when_imported(self):
        """Test created_deal_reference is exposed for imported runs only"""
        imported = ImportRun().finalize(RunStatus.IMPORTED, deal_reference="D-9")
        raw_only = ImportRun(raw_only_mode=True).finalize(RunStatus.IMPORTED_RAW_ONLY, deal_reference="D-9")

        assert imported.created_deal_reference == "D-9"
        assert raw_only.created_deal_reference is None

    def test_run_ids_unique(self):
        """Test that each run gets its own id"""
        assert ExportRun().run_id != ExportRun().run_id


class TestExportResult:
    """Tests for the artifact-withholding rule on ExportResult"""

    def make_report(self, standard_pack):
        return ConformanceReport(
            run_id="run-1",
            context=RunDirection.EXPORT,
            schema_pack=standard_pack,
            validation=ValidationReport(),
        )

    def test_completed_result_carries_artifact(self, standard_pack):
        """Test that a completed export may carry XML"""
        result = ExportResult(
            run_id="run-1",
            status=RunStatus.COMPLETED,
            xml_bytes=b"<MESSAGE/>",
            content_hash="sha256:abc",
            conformance_report=self.make_report(standard_pack),
        )

        assert result.xml_bytes == b"<MESSAGE/>"

    @pytest.mark.parametrize("status", [RunStatus.BLOCKED, RunStatus.FAILED])
    def test_unsuccessful_result_cannot_carry_artifact(self, standard_pack, status):
        """Test that blocked and failed exports never carry XML"""
        with pytest.raises(ValidationError, match="must not carry an artifact"):
            ExportResult(
                run_id="run-1",
                status=status,
                xml_bytes=b"<MESSAGE/>",
                conformance_report=self.make_report(standard_pack),
            )


class TestAuditLog:
    """Tests for AuditLog model"""

    def test_defaults(self):
        """Test audit entry defaults"""
        entry = AuditLog(run_id="run-1", direction="export", stage="preflight", outcome="PASS")

        assert entry.log_id is None
        assert entry.detail is None
        assert entry.created_at is not None

