"""
Unit tests for the submission gate.
"""

from unittest.mock import MagicMock

import pytest

from mismo_conformance.core.models import (
    ExportResult,
    ExportRun,
    RunDirection,
    RunStatus,
    ValidationReport,
)
from mismo_conformance.errors import SubmissionRefusedError
from mismo_conformance.reporting.conformance import build_report
from mismo_conformance.submission.gate import SubmissionGate
from mismo_conformance.utils.hashing import content_hash

XML = b"<?xml version='1.0' encoding='UTF-8'?>\n<MESSAGE/>\n"


@pytest.fixture
def make_result(standard_pack):
    def make(run_id="run-1", status=RunStatus.COMPLETED, xml=XML, digest=None):
        report = build_report(run_id, RunDirection.EXPORT, standard_pack, ValidationReport())
        if xml is not None and digest is None:
            digest = content_hash(xml)
        return ExportResult(
            run_id=run_id, status=status, xml_bytes=xml, content_hash=digest, conformance_report=report,
        )
    return make


def record(run_store, status=RunStatus.COMPLETED, digest=None):
    """Store a finished export run the way the pipeline does"""
    run = run_store.create_run(ExportRun(deal_reference="DEAL-1"))
    return run_store.finalize_run(run.finalize(status, content_hash=digest or content_hash(XML)))


class TestChecks:
    """Tests for the refusal reasons"""

    def test_not_completed(self, make_result):
        """Test that only completed runs may be sent"""
        result = make_result(status=RunStatus.BLOCKED, xml=None)

        with pytest.raises(SubmissionRefusedError, match="run status is 'blocked'"):
            SubmissionGate().check(result)

    def test_no_artifact(self, make_result):
        """Test a completed result without bytes"""
        with pytest.raises(SubmissionRefusedError, match="no artifact attached"):
            SubmissionGate().check(make_result(xml=None))

    def test_tampered_artifact(self, make_result):
        """Test that altered bytes no longer match the recorded hash"""
        result = make_result(xml=XML + b"<!-- edited -->", digest=content_hash(XML))

        with pytest.raises(SubmissionRefusedError) as exc_info:
            SubmissionGate().check(result)

        assert exc_info.value.reason == "artifact does not match its content hash"
        assert exc_info.value.run_id == "run-1"

    def test_run_not_recorded(self, make_result, run_store):
        """Test that the gate cross-checks the run store"""
        with pytest.raises(SubmissionRefusedError, match="not recorded"):
            SubmissionGate(run_store).check(make_result(run_id="run-unknown"))

    def test_result_differs_from_recorded_run(self, make_result, run_store):
        """Test a result whose status disagrees with its stored run"""
        run = record(run_store, status=RunStatus.FAILED)

        with pytest.raises(SubmissionRefusedError, match="differs from the recorded run"):
            SubmissionGate(run_store).check(make_result(run_id=run.run_id))


class TestSubmit:
    """Tests for handing a document to a transport"""

    def test_submit(self, make_result, run_store):
        """Test the transport call and the receipt"""
        run = record(run_store)
        transport = MagicMock(return_value={"accepted": True})

        receipt = SubmissionGate(run_store).submit(make_result(run_id=run.run_id), transport)

        transport.assert_called_once_with(XML, content_hash(XML))
        assert receipt.run_id == run.run_id
        assert receipt.content_hash == content_hash(XML)
        assert receipt.byte_size == len(XML)
        assert receipt.transport_response == {"accepted": True}
        assert not receipt.is_duplicate

    def test_submit_with_warnings(self, make_result):
        """Test that completed_with_warnings is submittable"""
        transport = MagicMock()

        SubmissionGate().submit(make_result(status=RunStatus.COMPLETED_WITH_WARNINGS), transport)

        transport.assert_called_once()

    def test_refused_submission_never_reaches_transport(self, make_result):
        """Test that the transport is not called on refusal"""
        transport = MagicMock()

        with pytest.raises(SubmissionRefusedError):
            SubmissionGate().submit(make_result(xml=None), transport)

        transport.assert_not_called()

    def test_duplicates_reported(self, make_result, run_store):
        """Test that earlier completed runs with the same bytes are listed"""
        earlier = record(run_store)
        record(run_store, status=RunStatus.FAILED)
        current = record(run_store)

        receipt = SubmissionGate(run_store).submit(make_result(run_id=current.run_id), MagicMock())

        assert receipt.duplicate_of == (earlier.run_id,)
        assert receipt.is_duplicate
