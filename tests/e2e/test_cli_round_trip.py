"""
End-to-end tests for the command-line interface.

Tests the complete flow: deal JSON → export → MISMO document → import →
deal JSON, plus the validate, packs and hash commands.
"""

import json
import os

import pytest

from mismo_conformance.cli.conformance_cli import main
from mismo_conformance.observability.logger import reconfigure_loggers
from mismo_conformance.storage.entity_store import JsonFileEntityStore
from mismo_conformance.utils.hashing import content_hash

STRICT_PACK_ID = "PACK_B_DU_ULAD_STRICT_34_B324"


@pytest.fixture(autouse=True)
def restore_loggers():
    """Point package loggers back at the real stderr once capture ends"""
    yield
    reconfigure_loggers("mismo_conformance")


@pytest.fixture
def deals_dir(tmp_path, sample_deal):
    """Deals directory holding the sample deal as JSON"""
    directory = tmp_path / "deals"
    JsonFileEntityStore(directory).create_deal(sample_deal)
    return directory


def run_cli(argv, capsys):
    """Run the CLI and return (exit code, stdout, stderr)"""
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    captured = capsys.readouterr()
    return exc_info.value.code, captured.out, captured.err


@pytest.mark.e2e
class TestExportImportRoundTrip:
    """Tests for exporting a deal and importing the document again"""

    def test_export_writes_document_and_report(self, deals_dir, tmp_path, capsys):
        """Test a completed export through the CLI"""
        output = tmp_path / "DEAL-2024-0001.xml"
        report = tmp_path / "report.json"

        code, out, _ = run_cli([
            "export", "--deals-dir", str(deals_dir), "--deal-reference", "DEAL-2024-0001",
            "--output", str(output), "--report", str(report),
        ], capsys)

        assert code == 0
        result = json.loads(out)
        assert result["run_status"] == "completed"
        assert result["status"] == "PASS"
        assert result["output"] == str(output)
        assert result["content_hash"] == content_hash(output.read_bytes())

        full_report = json.loads(report.read_text())
        assert full_report["context"] == "export"
        assert full_report["schema_pack"]["pack_id"] == "PACK_A_GENERIC_MISMO_34_B324"

    def test_round_trip(self, deals_dir, tmp_path, capsys):
        """Test that an exported document imports into a new deals directory"""
        output = tmp_path / "out.xml"
        imported_dir = tmp_path / "imported"

        code, _, _ = run_cli([
            "export", "--deals-dir", str(deals_dir), "--deal-reference", "DEAL-2024-0001",
            "--pack", STRICT_PACK_ID, "--output", str(output),
        ], capsys)
        assert code == 0

        code, out, _ = run_cli(["import", "--deals-dir", str(imported_dir), "--input", str(output)], capsys)

        assert code == 0
        result = json.loads(out)
        assert result["run_status"] == "imported"
        assert result["pack_id"] == STRICT_PACK_ID
        assert result["created_deal_reference"] == "DEAL-2024-0001"

        deal = JsonFileEntityStore(imported_dir).fetch_deal("DEAL-2024-0001")
        assert deal.borrowers[0].last_name == "Byron"
        assert json.loads((imported_dir / "unmapped" / f"{result['run_id']}.json").read_text())["nodes"] == []

    def test_blocked_export(self, tmp_path, sample_deal_data, capsys):
        """Test that a deal failing preflight writes no document"""
        sample_deal_data["borrowers"] = []
        directory = tmp_path / "deals"
        directory.mkdir()
        (directory / "DEAL-2024-0001.json").write_text(json.dumps(sample_deal_data))
        output = tmp_path / "out.xml"

        code, out, _ = run_cli([
            "export", "--deals-dir", str(directory), "--deal-reference", "DEAL-2024-0001",
            "--output", str(output),
        ], capsys)

        assert code == 1
        result = json.loads(out)
        assert result["run_status"] == "blocked"
        assert result["output"] is None
        assert [e["rule"] for e in result["top_errors"]] == ["borrower_required"]
        assert not output.exists()

    def test_unknown_pack(self, deals_dir, capsys):
        """Test that an unregistered pack is reported on stderr"""
        code, _, err = run_cli([
            "export", "--deals-dir", str(deals_dir), "--deal-reference", "DEAL-2024-0001", "--pack", "PACK_Z",
        ], capsys)

        assert code == 1
        assert "Unknown schema pack: PACK_Z" in err

    def test_raw_only_import(self, foreign_document, tmp_path, capsys):
        """Test that quarantine mode creates no deal"""
        path = tmp_path / "inbound.xml"
        path.write_bytes(foreign_document)
        deals = tmp_path / "deals"

        code, out, _ = run_cli(["import", "--deals-dir", str(deals), "--input", str(path), "--raw-only"], capsys)

        assert code == 0
        result = json.loads(out)
        assert result["run_status"] == "imported_raw_only"
        assert result["created_deal_reference"] is None
        assert not deals.exists() or not any(deals.glob("*.json"))

    def test_missing_input(self, tmp_path, capsys):
        """Test that a missing input file is an error"""
        code, _, err = run_cli(["import", "--input", str(tmp_path / "missing.xml")], capsys)

        assert code == 1
        assert "Input file not found" in err


@pytest.mark.e2e
class TestUtilityCommands:
    """Tests for validate, packs and hash"""

    def test_validate_detects_pack(self, foreign_document, tmp_path, capsys):
        """Test validating a counterparty document"""
        path = tmp_path / "inbound.xml"
        path.write_bytes(foreign_document)

        code, out, _ = run_cli(["validate", "--input", str(path)], capsys)

        assert code == 0
        result = json.loads(out)
        assert result["pack_id"] == "PACK_A_GENERIC_MISMO_34_B324"
        assert result["status"] == "PASS_WITH_WARNINGS"
        assert result["summary"] == {"total": 1, "errors": 0, "warnings": 1}

    def test_validate_malformed(self, tmp_path, capsys):
        """Test that a failing document exits with status 1"""
        path = tmp_path / "broken.xml"
        path.write_bytes(b"<MESSAGE>")

        code, out, _ = run_cli(["validate", "--input", str(path), "--pack", STRICT_PACK_ID], capsys)

        assert code == 1
        assert json.loads(out)["findings"][0]["rule"] == "XML_MALFORMED"

    def test_packs(self, capsys):
        """Test the pack listing"""
        code, out, _ = run_cli(["packs"], capsys)

        assert code == 0
        assert "PACK_A_GENERIC_MISMO_34_B324" in out
        assert STRICT_PACK_ID in out

    def test_hash(self, tmp_path, capsys):
        """Test printing and checking a content hash"""
        path = tmp_path / "doc.xml"
        path.write_bytes(b"<MESSAGE/>")
        digest = content_hash(b"<MESSAGE/>")

        code, out, _ = run_cli(["hash", "--input", str(path)], capsys)
        assert code == 0
        assert out.strip() == digest

        code, out, _ = run_cli(["hash", "--input", str(path), "--expected", digest], capsys)
        assert code == 0
        assert out.strip() == "match"

        code, out, _ = run_cli(["hash", "--input", str(path), "--expected", "sha256:00"], capsys)
        assert code == 1
        assert out.strip().startswith("mismatch")

    def test_env_file(self, test_env_vars, test_data_dir, capsys):
        """Test loading settings from an env file"""
        code, _, _ = run_cli(["--env-file", os.path.join(test_data_dir, "test.env"), "packs"], capsys)

        assert code == 0

    def test_no_command(self, capsys):
        """Test that running without a command prints help"""
        code, out, _ = run_cli([], capsys)

        assert code == 1
        assert "usage" in out
