"""Centralized storage manager for DuckDB + Ibis operations.

One DuckDB database instance is opened per manager. Every thread gets its own
cursor on that instance (DuckDB connections are not safe to share across
threads), so request handlers and vote workers can run concurrently while
still seeing each other's committed writes, including for ``:memory:``
databases.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Self

import duckdb
import ibis

from deskrank.database.exceptions import NestedTransactionError, TableNotFoundError
from deskrank.database.schemas import quote_identifier

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from ibis.expr.types import Table

logger = logging.getLogger(__name__)


class DuckDBStorageManager:
    """Centralized DuckDB connection + Ibis helpers.

    Manages database cursors on a per-thread basis to ensure thread safety.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        """Initialize storage manager."""
        self.db_path = db_path
        if db_path is not None:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self._root = duckdb.connect(str(db_path) if db_path else ":memory:")
        self._thread_local = threading.local()
        self._cursor_lock = threading.Lock()
        self._cursors: list[duckdb.DuckDBPyConnection] = []

        logger.info("DuckDBStorageManager initialized (db=%s)", "memory" if db_path is None else db_path)

    def _get_thread_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the cursor for the current thread."""
        conn = getattr(self._thread_local, "conn", None)
        if conn is None:
            with self._cursor_lock:
                conn = self._root.cursor()
                self._cursors.append(conn)
            self._thread_local.conn = conn
            self._thread_local.ibis_conn = None
            self._thread_local.in_transaction = False
        return conn

    @property
    def _conn(self) -> duckdb.DuckDBPyConnection:
        """Property to access the thread-local cursor."""
        return self._get_thread_connection()

    @property
    def ibis_conn(self) -> ibis.BaseBackend:
        """Property to access the thread-local Ibis backend."""
        conn = self._get_thread_connection()
        if self._thread_local.ibis_conn is None:
            self._thread_local.ibis_conn = ibis.duckdb.from_connection(conn)
        return self._thread_local.ibis_conn

    @property
    def in_transaction(self) -> bool:
        """Whether the current thread has an open transaction."""
        self._get_thread_connection()
        return self._thread_local.in_transaction

    @contextlib.contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run the enclosed statements as one transaction on this thread's cursor.

        Commits on normal exit and rolls back if the body or the commit raises.
        """
        conn = self._conn
        if self._thread_local.in_transaction:
            raise NestedTransactionError

        conn.execute("BEGIN TRANSACTION")
        self._thread_local.in_transaction = True
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException as exc:
            logger.debug("Transaction failed (%s), rolling back", type(exc).__name__)
            try:
                conn.execute("ROLLBACK")
            except duckdb.Error:
                # A failed COMMIT has already discarded the transaction.
                logger.debug("Rollback skipped; no transaction is active")
            raise
        finally:
            self._thread_local.in_transaction = False

    def execute(self, sql: str, params: Sequence | None = None) -> duckdb.DuckDBPyConnection:
        """Execute a raw SQL statement via the managed cursor."""
        return self._conn.execute(sql, list(params or []))

    def execute_query(self, sql: str, params: Sequence | None = None) -> list[tuple]:
        """Execute a raw SQL query and return all results."""
        return self.execute(sql, params).fetchall()

    def execute_query_single(self, sql: str, params: Sequence | None = None) -> tuple | None:
        """Execute a raw SQL query and return a single result row."""
        return self.execute(sql, params).fetchone()

    def read_table(self, name: str) -> Table:
        """Read table as Ibis expression."""
        if not self.table_exists(name):
            raise TableNotFoundError(name)
        return self.ibis_conn.table(name)

    def list_tables(self) -> list[str]:
        """List all tables in database."""
        tables = self.execute_query(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'main'
            ORDER BY table_name
            """
        )
        return [t[0] for t in tables]

    def table_exists(self, name: str) -> bool:
        """Check if table exists in database."""
        tables = self.execute_query(
            "SELECT table_name FROM information_schema.tables WHERE table_name = ?",
            [name],
        )
        return len(tables) > 0

    def row_count(self, name: str) -> int:
        """Return the number of rows in ``name``."""
        row = self.execute_query_single(f"SELECT COUNT(*) FROM {quote_identifier(name)}")
        return int(row[0]) if row else 0

    def close(self) -> None:
        """Close every cursor and the underlying database."""
        with self._cursor_lock:
            for cursor in self._cursors:
                with contextlib.suppress(duckdb.Error):
                    cursor.close()
            self._cursors.clear()
            self._root.close()
        self._thread_local = threading.local()
        logger.info("DuckDB connection closed (db=%s)", "memory" if self.db_path is None else self.db_path)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, _exc_type: object, _exc_val: object, _exc_tb: object) -> None:
        self.close()


def temp_storage() -> DuckDBStorageManager:
    """Create temporary in-memory storage manager."""
    return DuckDBStorageManager(db_path=None)


__all__ = [
    "DuckDBStorageManager",
    "temp_storage",
]
