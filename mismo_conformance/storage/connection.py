"""
psycopg3 connection pool backing the PostgreSQL run store.

Connection parameters fall back to the DB_* environment variables so the CLI
and the test containers can share one code path.
"""
import os
import time
from contextlib import contextmanager

from psycopg import OperationalError
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from mismo_conformance.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseConnectionPool:
    """
    Pool of dict-row connections to the run database.

    Usage:
        with DatabaseConnectionPool(password="...") as pool:
            store = PostgresRunStore(pool)
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        min_size: int = 1,
        max_size: int = 5,
        timeout: float = 30.0,
    ) -> None:
        password = password or os.getenv("DB_PASSWORD")
        if not password:
            raise ValueError("No database password: pass one or set DB_PASSWORD")

        self.host = host or os.getenv("DB_HOST", "localhost")
        self.database = database or os.getenv("DB_NAME", "mismo_conformance")
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self.conninfo = make_conninfo(
            host=self.host,
            port=port or int(os.getenv("DB_PORT", "5432")),
            dbname=self.database,
            user=user or os.getenv("DB_USER", "pipeline"),
            password=password,
            connect_timeout=int(timeout),
            application_name="mismo-conformance",
        )
        self._pool: ConnectionPool | None = None

    def open(self, attempts: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the pool, waiting for the minimum number of connections.

        Raises:
            OperationalError: If the database is unreachable on every attempt
        """
        if self._pool is not None:
            return

        pool = ConnectionPool(
            conninfo=self.conninfo,
            min_size=self.min_size,
            max_size=self.max_size,
            timeout=self.timeout,
            kwargs={"row_factory": dict_row},
            open=False,
        )
        for attempt in range(1, attempts + 1):
            try:
                pool.open(wait=True, timeout=self.timeout)
            except OperationalError as e:
                if attempt == attempts:
                    raise OperationalError(
                        f"Run database {self.database}@{self.host} unreachable after {attempts} attempts: {e}"
                    ) from e
                logger.warning(
                    "Run database not reachable yet",
                    extra={"attempt": attempt, "attempts": attempts, "db_host": self.host},
                )
                time.sleep(retry_delay)
            else:
                self._pool = pool
                logger.info("Run database pool opened", extra={"db_host": self.host, "database": self.database})
                return

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def cursor(self, commit: bool = False):
        """Yield a cursor on a pooled connection, committing on success if asked"""
        if self._pool is None:
            raise RuntimeError("Run database pool is not open")

        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                yield cur
            if commit:
                conn.commit()

    def execute_query(self, query: str, params: dict | tuple | None = None) -> list[dict]:
        with self.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def execute_command(self, command: str, params: dict | tuple | None = None) -> int:
        """Run a write statement and return the affected row count"""
        with self.cursor(commit=True) as cur:
            cur.execute(command, params)
            return cur.rowcount

    def execute_returning(self, command: str, params: dict | tuple | None = None) -> list[dict]:
        """Run a write statement with a RETURNING clause"""
        with self.cursor(commit=True) as cur:
            cur.execute(command, params)
            return cur.fetchall()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
