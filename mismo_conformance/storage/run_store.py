"""
Run store: append-only persistence of runs, reports, artifacts and audit entries.

Two implementations share one contract: an in-memory store for tests and
single-process use, and a PostgreSQL store built on the connection pool.
A run row is inserted once in ``running`` status and updated exactly once,
guarded on that status, when it reaches its terminal status.
"""

import threading
from abc import ABC, abstractmethod

import psycopg
from psycopg.types.json import Jsonb

from mismo_conformance.core.models import (
    AuditLog,
    ConformanceReport,
    ExportRun,
    ImportRun,
    PipelineRun,
    RunStatus,
)
from mismo_conformance.errors import RunStateError
from mismo_conformance.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)


class RunStore(ABC):
    """Persistence contract used by the export and import pipelines."""

    @abstractmethod
    def create_run(self, run: PipelineRun) -> PipelineRun:
        """Insert a new run in running status."""

    @abstractmethod
    def finalize_run(self, run: PipelineRun) -> PipelineRun:
        """
        Persist the terminal state of a run.

        Raises:
            RunStateError: If the stored run is no longer running
        """

    @abstractmethod
    def get_run(self, run_id: str) -> PipelineRun | None:
        pass

    @abstractmethod
    def list_runs(self, direction: str | None = None, limit: int = 50) -> list[PipelineRun]:
        """Most recent runs first."""

    @abstractmethod
    def find_runs_by_hash(self, content_hash: str) -> list[PipelineRun]:
        """Runs whose artifact has the given content hash, oldest first."""

    @abstractmethod
    def save_report(self, report: ConformanceReport) -> None:
        pass

    @abstractmethod
    def get_report(self, report_id: str) -> ConformanceReport | None:
        pass

    @abstractmethod
    def save_artifact(self, run_id: str, xml_bytes: bytes, content_hash: str, withheld: bool = False) -> None:
        """Store the document of a run; withheld artifacts are kept for diagnosis only."""

    @abstractmethod
    def get_artifact(self, run_id: str) -> bytes | None:
        pass

    @abstractmethod
    def append_audit(self, entry: AuditLog) -> AuditLog:
        pass

    @abstractmethod
    def get_audit(self, run_id: str) -> list[AuditLog]:
        """Audit entries of a run in the order they were written."""


class InMemoryRunStore(RunStore):
    """Thread-safe dict-backed run store."""

    def __init__(self):
        self._lock = threading.Lock()
        self._runs: dict[str, PipelineRun] = {}
        self._reports: dict[str, ConformanceReport] = {}
        self._artifacts: dict[str, tuple[bytes, str, bool]] = {}
        self._audit: list[AuditLog] = []

    def create_run(self, run: PipelineRun) -> PipelineRun:
        with self._lock:
            if run.run_id in self._runs:
                raise RunStateError(run.run_id, self._runs[run.run_id].status.value)
            self._runs[run.run_id] = run
        return run

    def finalize_run(self, run: PipelineRun) -> PipelineRun:
        with self._lock:
            stored = self._runs.get(run.run_id)
            if stored is None or stored.status != RunStatus.RUNNING:
                raise RunStateError(run.run_id, stored.status.value if stored else "unknown")
            self._runs[run.run_id] = run
        return run

    def get_run(self, run_id: str) -> PipelineRun | None:
        return self._runs.get(run_id)

    def list_runs(self, direction: str | None = None, limit: int = 50) -> list[PipelineRun]:
        runs = [r for r in self._runs.values() if direction is None or r.direction == direction]
        runs.sort(key=lambda r: r.created_at, reverse=True)
        return runs[:limit]

    def find_runs_by_hash(self, content_hash: str) -> list[PipelineRun]:
        runs = [r for r in self._runs.values() if r.content_hash == content_hash]
        return sorted(runs, key=lambda r: r.created_at)

    def save_report(self, report: ConformanceReport) -> None:
        with self._lock:
            self._reports[report.report_id] = report

    def get_report(self, report_id: str) -> ConformanceReport | None:
        return self._reports.get(report_id)

    def save_artifact(self, run_id: str, xml_bytes: bytes, content_hash: str, withheld: bool = False) -> None:
        with self._lock:
            self._artifacts[run_id] = (bytes(xml_bytes), content_hash, withheld)

    def get_artifact(self, run_id: str) -> bytes | None:
        stored = self._artifacts.get(run_id)
        return stored[0] if stored else None

    def is_withheld(self, run_id: str) -> bool:
        stored = self._artifacts.get(run_id)
        return bool(stored and stored[2])

    def append_audit(self, entry: AuditLog) -> AuditLog:
        with self._lock:
            entry = entry.model_copy(update={"log_id": len(self._audit) + 1})
            self._audit.append(entry)
        return entry

    def get_audit(self, run_id: str) -> list[AuditLog]:
        return [e for e in self._audit if e.run_id == run_id]


def _row_to_run(row: dict) -> PipelineRun:
    model = ExportRun if row["direction"] == "export" else ImportRun
    fields = {key: value for key, value in row.items() if value is not None}
    return model(**fields)


class PostgresRunStore(RunStore):
    """
    Run store backed by the tables in docker/init-db.sql.

    Every method commits its own transaction; database errors are logged
    and re-raised.
    """

    RUN_COLUMNS = (
        "run_id, direction, deal_reference, pack_id, status, content_hash, byte_size, "
        "raw_only_mode, detected_ldd, created_at, completed_at, conformance_report_ref"
    )

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def _run_params(self, run: PipelineRun) -> dict:
        return {
            "run_id": run.run_id,
            "direction": run.direction,
            "deal_reference": run.deal_reference,
            "pack_id": run.pack_id,
            "status": run.status.value,
            "content_hash": run.content_hash,
            "byte_size": run.byte_size,
            "raw_only_mode": getattr(run, "raw_only_mode", None),
            "detected_ldd": getattr(run, "detected_ldd", None),
            "created_at": run.created_at,
            "completed_at": run.completed_at,
            "conformance_report_ref": run.conformance_report_ref,
        }

    def create_run(self, run: PipelineRun) -> PipelineRun:
        insert_sql = """
            INSERT INTO mismo_run (
                run_id, direction, deal_reference, pack_id, status, content_hash, byte_size,
                raw_only_mode, detected_ldd, created_at, completed_at, conformance_report_ref
            ) VALUES (
                %(run_id)s, %(direction)s, %(deal_reference)s, %(pack_id)s, %(status)s,
                %(content_hash)s, %(byte_size)s, %(raw_only_mode)s, %(detected_ldd)s,
                %(created_at)s, %(completed_at)s, %(conformance_report_ref)s
            )
        """
        try:
            self.pool.execute_command(insert_sql, self._run_params(run))
        except psycopg.DatabaseError as e:
            logger.error("Failed to insert run", extra={"run_id": run.run_id, "error_message": str(e)})
            raise
        return run

    def finalize_run(self, run: PipelineRun) -> PipelineRun:
        update_sql = """
            UPDATE mismo_run SET
                deal_reference = %(deal_reference)s,
                pack_id = %(pack_id)s,
                status = %(status)s,
                content_hash = %(content_hash)s,
                byte_size = %(byte_size)s,
                detected_ldd = %(detected_ldd)s,
                completed_at = %(completed_at)s,
                conformance_report_ref = %(conformance_report_ref)s
            WHERE run_id = %(run_id)s AND status = 'running'
        """
        try:
            updated = self.pool.execute_command(update_sql, self._run_params(run))
        except psycopg.DatabaseError as e:
            logger.error("Failed to finalize run", extra={"run_id": run.run_id, "error_message": str(e)})
            raise

        if updated == 0:
            stored = self.get_run(run.run_id)
            raise RunStateError(run.run_id, stored.status.value if stored else "unknown")
        return run

    def get_run(self, run_id: str) -> PipelineRun | None:
        rows = self.pool.execute_query(
            f"SELECT {self.RUN_COLUMNS} FROM mismo_run WHERE run_id = %(run_id)s",
            {"run_id": run_id},
        )
        return _row_to_run(rows[0]) if rows else None

    def list_runs(self, direction: str | None = None, limit: int = 50) -> list[PipelineRun]:
        query = f"""
            SELECT {self.RUN_COLUMNS} FROM mismo_run
            WHERE %(direction)s::text IS NULL OR direction = %(direction)s
            ORDER BY created_at DESC
            LIMIT %(limit)s
        """
        rows = self.pool.execute_query(query, {"direction": direction, "limit": limit})
        return [_row_to_run(row) for row in rows]

    def find_runs_by_hash(self, content_hash: str) -> list[PipelineRun]:
        rows = self.pool.execute_query(
            f"SELECT {self.RUN_COLUMNS} FROM mismo_run WHERE content_hash = %(content_hash)s ORDER BY created_at",
            {"content_hash": content_hash},
        )
        return [_row_to_run(row) for row in rows]

    def save_report(self, report: ConformanceReport) -> None:
        insert_sql = """
            INSERT INTO conformance_report (report_id, run_id, report_version, status, report, generated_at)
            VALUES (%(report_id)s, %(run_id)s, %(report_version)s, %(status)s, %(report)s, %(generated_at)s)
        """
        try:
            self.pool.execute_command(insert_sql, {
                "report_id": report.report_id,
                "run_id": report.run_id,
                "report_version": report.report_version,
                "status": report.status.value,
                "report": Jsonb(report.model_dump(mode="json")),
                "generated_at": report.generated_at,
            })
        except psycopg.DatabaseError as e:
            logger.error("Failed to insert conformance report", extra={"run_id": report.run_id, "error_message": str(e)})
            raise

    def get_report(self, report_id: str) -> ConformanceReport | None:
        rows = self.pool.execute_query(
            "SELECT report FROM conformance_report WHERE report_id = %(report_id)s",
            {"report_id": report_id},
        )
        return ConformanceReport.model_validate(rows[0]["report"]) if rows else None

    def save_artifact(self, run_id: str, xml_bytes: bytes, content_hash: str, withheld: bool = False) -> None:
        insert_sql = """
            INSERT INTO run_artifact (run_id, content_hash, byte_size, xml, withheld)
            VALUES (%(run_id)s, %(content_hash)s, %(byte_size)s, %(xml)s, %(withheld)s)
        """
        try:
            self.pool.execute_command(insert_sql, {
                "run_id": run_id,
                "content_hash": content_hash,
                "byte_size": len(xml_bytes),
                "xml": bytes(xml_bytes),
                "withheld": withheld,
            })
        except psycopg.DatabaseError as e:
            logger.error("Failed to insert artifact", extra={"run_id": run_id, "error_message": str(e)})
            raise

    def get_artifact(self, run_id: str) -> bytes | None:
        rows = self.pool.execute_query(
            "SELECT xml FROM run_artifact WHERE run_id = %(run_id)s",
            {"run_id": run_id},
        )
        return bytes(rows[0]["xml"]) if rows else None

    def append_audit(self, entry: AuditLog) -> AuditLog:
        insert_sql = """
            INSERT INTO pipeline_audit_log (run_id, direction, stage, outcome, detail, created_at)
            VALUES (%(run_id)s, %(direction)s, %(stage)s, %(outcome)s, %(detail)s, %(created_at)s)
            RETURNING log_id
        """
        try:
            rows = self.pool.execute_returning(insert_sql, entry.model_dump(exclude={"log_id"}))
        except psycopg.DatabaseError as e:
            logger.error("Failed to insert audit entry", extra={"run_id": entry.run_id, "error_message": str(e)})
            raise
        return entry.model_copy(update={"log_id": rows[0]["log_id"]})

    def get_audit(self, run_id: str) -> list[AuditLog]:
        rows = self.pool.execute_query(
            """
            SELECT log_id, run_id, direction, stage, outcome, detail, created_at
            FROM pipeline_audit_log WHERE run_id = %(run_id)s ORDER BY log_id
            """,
            {"run_id": run_id},
        )
        return [AuditLog(**row) for row in rows]
