"""
SQLite implementation of the relational binding.

Lean stack implementation using SQLAlchemy over the stdlib sqlite3 driver.
The adapter relays query text and positional parameters untouched; it owns
no schema and does not validate queries.
"""
import asyncio
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.pool import QueuePool

from yomitan_local.core.errors import QueryError
from yomitan_local.ports.relational import PreparedStatement, QueryResult, RelationalBinding, Row

logger = logging.getLogger(__name__)

Meta = Dict[str, Any]


def _set_wal_mode(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _driver_message(error: Exception) -> str:
    if isinstance(error, DBAPIError) and error.orig is not None:
        return str(error.orig)
    return str(error)


def _query_error(error: Exception) -> QueryError:
    return QueryError(f"Database query failed: {_driver_message(error)}")


class SQLiteRelationalAdapter:
    """
    Owns the SQLite store handle for the lifetime of the process.

    The file is opened in SQLite URI mode=rw, so a missing database is an
    error rather than a new empty file.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path).resolve()
        uri = f"{self.db_path.as_uri()}?mode=rw"

        self.engine = create_engine(
            "sqlite://",
            creator=lambda: sqlite3.connect(uri, uri=True, check_same_thread=False),
            poolclass=QueuePool,
        )
        event.listen(self.engine, "connect", _set_wal_mode)
        self._closed = False

    def query(self, text: str, params: Sequence[Any] = ()) -> List[Row]:
        """
        Run a query and return its rows.

        Args:
            text: Query text with positional (?) placeholders
            params: Values for the placeholders, in order

        Returns:
            List of row dicts (empty for statements without rows)

        Raises:
            QueryError: If the driver rejects or fails the query
        """
        rows, _ = self.execute(text, params)
        return rows

    def execute(self, text: str, params: Sequence[Any] = ()) -> Tuple[List[Row], Meta]:
        """Run one statement in its own transaction. Returns (rows, meta)."""
        try:
            with self.engine.begin() as conn:
                return self._run(conn, text, params)
        except (SQLAlchemyError, sqlite3.Error, ValueError, TypeError, OverflowError) as e:
            raise _query_error(e) from e

    def execute_many(self, statements: Sequence[Tuple[str, Sequence[Any]]]) -> List[Tuple[List[Row], Meta]]:
        """Run statements in order inside a single transaction."""
        try:
            with self.engine.begin() as conn:
                return [self._run(conn, text, params) for text, params in statements]
        except (SQLAlchemyError, sqlite3.Error, ValueError, TypeError, OverflowError) as e:
            raise _query_error(e) from e

    def execute_script(self, script: str) -> Meta:
        """Run raw SQL that may contain several statements."""
        start = time.perf_counter()
        raw = self.engine.raw_connection()
        try:
            raw.driver_connection.executescript(script)
            raw.commit()
        except (SQLAlchemyError, sqlite3.Error, ValueError, OverflowError) as e:
            raise _query_error(e) from e
        finally:
            raw.close()
        return {"duration": (time.perf_counter() - start) * 1000}

    def _run(self, conn: Connection, text: str, params: Sequence[Any]) -> Tuple[List[Row], Meta]:
        start = time.perf_counter()
        result = conn.exec_driver_sql(text, tuple(params))

        if result.returns_rows:
            rows = [dict(row) for row in result.mappings().all()]
            changes = 0
            last_row_id = None
        else:
            rows = []
            changes = max(result.rowcount, 0)
            last_row_id = result.lastrowid

        meta = {
            "duration": (time.perf_counter() - start) * 1000,
            "changes": changes,
            "last_row_id": last_row_id,
            "rows_read": len(rows),
        }
        return rows, meta

    def close(self) -> None:
        """Release every pooled connection."""
        if self._closed:
            return
        self.engine.dispose()
        self._closed = True
        logger.info(f"Closed database {self.db_path}")


class SQLitePreparedStatement(PreparedStatement):
    """Statement handed out by SQLiteRelationalBinding.prepare()."""

    def __init__(self, adapter: SQLiteRelationalAdapter, query: str, params: Sequence[Any] = ()):
        self.adapter = adapter
        self.query = query
        self.params = tuple(params)

    def bind(self, *params: Any) -> "SQLitePreparedStatement":
        return SQLitePreparedStatement(self.adapter, self.query, params)

    async def _execute(self) -> Tuple[List[Row], Meta]:
        return await asyncio.to_thread(self.adapter.execute, self.query, self.params)

    async def all(self) -> QueryResult:
        try:
            rows, meta = await self._execute()
        except QueryError as e:
            return QueryResult(success=False, results=[], meta={}, error=e.message)
        return QueryResult(success=True, results=rows, meta=meta)

    async def first(self, column: Optional[str] = None) -> Any:
        rows, _ = await self._execute()
        if not rows:
            return None

        row = rows[0]
        if column is None:
            return row
        if column not in row:
            raise QueryError(f"Database query failed: no such column: {column}")
        return row[column]

    async def run(self) -> QueryResult:
        return await self.all()

    def __repr__(self) -> str:
        return f"SQLitePreparedStatement({self.query!r}, params={self.params!r})"


class SQLiteRelationalBinding(RelationalBinding):
    """Edge database binding emulated over SQLiteRelationalAdapter."""

    def __init__(self, adapter: SQLiteRelationalAdapter):
        self.adapter = adapter

    def prepare(self, query: str) -> SQLitePreparedStatement:
        return SQLitePreparedStatement(self.adapter, query)

    async def batch(self, statements: Sequence[PreparedStatement]) -> List[QueryResult]:
        pairs = [(s.query, s.params) for s in statements]
        outcomes = await asyncio.to_thread(self.adapter.execute_many, pairs)
        return [QueryResult(success=True, results=rows, meta=meta) for rows, meta in outcomes]

    async def exec(self, query: str) -> QueryResult:
        try:
            meta = await asyncio.to_thread(self.adapter.execute_script, query)
        except QueryError as e:
            return QueryResult(success=False, results=[], meta={}, error=e.message)
        return QueryResult(success=True, results=[], meta=meta)
