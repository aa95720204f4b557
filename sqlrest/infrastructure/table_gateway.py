"""Table Gateway — executes table/column/value operations on the pooled engine.

Invariants:
    - Every operation acquires one pooled connection and releases it before
      returning, raising, or (for streams) producing the terminal event
    - Write operations run inside engine.begin(): commit on success, rollback on error
    - All SQLAlchemy exceptions mapped to DatabaseError (core/errors.py)
    - Streams yield RowEvent per row, then exactly one EndEvent or ErrorEvent
    - update() re-selects by the NEW body values, not by the original filter
    - Values compared or written are bound with the column's reflected type

Design Decisions:
    - Constructor-injected engine: the app lifespan (or a test) owns the pool
      and calls close() on shutdown
    - Server-side cursor via AsyncConnection.stream(): the generator is
      suspended while each row is written out, which pauses the cursor and
      keeps memory bounded for large tables
    - Schema introspection through the SQLAlchemy inspector, so listing,
      describing, primary-key lookup and column typing work on any dialect
    - Insert is an explicit sequence on one connection: INSERT, then describe
      primary key, then re-select by that key
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Iterable, Mapping

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, NoSuchTableError, OperationalError,
    SQLAlchemyError, TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql.expression import Executable

from sqlrest.core.domain_types import FilterPair, Row
from sqlrest.core.errors import DatabaseError, ErrorContext
from sqlrest.core.sql_builders import (
    ColumnTypes,
    build_delete,
    build_insert,
    build_reselect_by_values,
    build_select_all,
    build_select_by_filters,
    build_select_column,
    build_update,
)
from sqlrest.core.stream_events import EndEvent, ErrorEvent, EventStream, RowEvent

logger = logging.getLogger(__name__)


def map_database_error(
    exc: SQLAlchemyError, operation: str, table: str | None = None,
) -> DatabaseError:
    """Translate a SQLAlchemy exception into a DatabaseError with driver details."""
    match exc:
        case NoSuchTableError():
            kind = "no such table"
        case PoolTimeoutError():
            kind = "connection pool exhausted"
        case IntegrityError():
            kind = "integrity constraint violated"
        case OperationalError():
            kind = "connection or operational error"
        case DBAPIError():
            kind = "database driver error"
        case _:
            kind = "database operation failed"
    orig = getattr(exc, "orig", None)
    driver = orig if orig is not None else exc
    args = getattr(driver, "args", ())
    code = args[0] if args and isinstance(args[0], int) else None
    return DatabaseError(
        kind, operation,
        detail=str(driver),
        driver_error=type(driver).__name__,
        driver_code=code,
        context=ErrorContext(table=table, operation=operation),
    )


def _table_info(sync_conn: Connection, table: str) -> dict:
    inspector = inspect(sync_conn)
    if not inspector.has_table(table):
        raise NoSuchTableError(table)
    comment = None
    if sync_conn.dialect.supports_comments:
        comment = inspector.get_table_comment(table).get("text")
    return {
        "name": table,
        "schema": inspector.default_schema_name,
        "primary_key": inspector.get_pk_constraint(table).get(
            "constrained_columns", [],
        ),
        "comment": comment,
    }


def _column_info(sync_conn: Connection, table: str) -> list[dict]:
    columns = []
    for col in inspect(sync_conn).get_columns(table):
        columns.append({
            "name": col["name"],
            "type": col["type"].compile(dialect=sync_conn.dialect),
            "nullable": col.get("nullable"),
            "default": col.get("default"),
            "autoincrement": col.get("autoincrement"),
            "comment": col.get("comment"),
        })
    return columns


def _primary_key_columns(sync_conn: Connection, table: str) -> list[str]:
    constraint = inspect(sync_conn).get_pk_constraint(table)
    return constraint.get("constrained_columns") or []


def _column_types(sync_conn: Connection, table: str) -> dict:
    return {col["name"]: col["type"] for col in inspect(sync_conn).get_columns(table)}


class TableGateway:
    """Data access over one pooled engine."""

    def __init__(self, engine: AsyncEngine, database_name: str | None = None):
        self.engine = engine
        self.database_name = database_name or engine.url.database or ""

    async def close(self) -> None:
        """Dispose the connection pool."""
        await self.engine.dispose()
        logger.info("Connection pool disposed")

    @asynccontextmanager
    async def _connection(
        self, operation: str, table: str | None = None, write: bool = False,
    ) -> AsyncGenerator[AsyncConnection, None]:
        """Pooled connection, released on exit; driver errors become DatabaseError."""
        try:
            scope = self.engine.begin() if write else self.engine.connect()
            async with scope as conn:
                yield conn
        except SQLAlchemyError as e:
            error = map_database_error(e, operation, table)
            logger.error(
                f"{error.message}: {error.detail}",
                extra={
                    "table": table, "operation": operation,
                    "error_code": error.code,
                },
            )
            raise error from e

    @staticmethod
    async def _fetch_all(conn: AsyncConnection, statement: Executable) -> list[Row]:
        result = await conn.execute(statement)
        return [dict(row._mapping) for row in result]

    async def _stream(
        self, operation: str, table: str,
        build: Callable[[ColumnTypes], Executable], typed: bool = False,
    ) -> EventStream:
        had_rows = False
        try:
            async with self._connection(operation, table) as conn:
                types = await self._column_types(conn, table) if typed else {}
                result = await conn.stream(build(types))
                async for row in result:
                    had_rows = True
                    yield RowEvent(dict(row._mapping))
        except DatabaseError as e:
            yield ErrorEvent(e)
            return
        logger.debug(
            f"{operation} finished (rows={had_rows})",
            extra={"table": table, "operation": operation},
        )
        yield EndEvent(had_rows)

    # ─── Schema ──────────────────────────────────────────────────

    async def list_tables(self) -> list[str]:
        async with self._connection("list_tables") as conn:
            return await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_table_names(),
            )

    async def describe_table(self, table: str) -> dict:
        """Table-level info, then the full column listing, on one connection."""
        async with self._connection("describe_table", table) as conn:
            table_info = await conn.run_sync(_table_info, table)
            columns = await conn.run_sync(_column_info, table)
        return {"table": table_info, "columns": columns}

    async def primary_key(self, table: str) -> str | None:
        """Name of the table's single primary-key column, else None."""
        async with self._connection("describe_primary_key", table) as conn:
            return await self._primary_key(conn, table)

    @staticmethod
    async def _primary_key(conn: AsyncConnection, table: str) -> str | None:
        columns = await conn.run_sync(_primary_key_columns, table)
        return columns[0] if len(columns) == 1 else None

    @staticmethod
    async def _column_types(conn: AsyncConnection, table: str) -> ColumnTypes:
        """Reflected column types, so path values bind with the column's type."""
        return await conn.run_sync(_column_types, table)

    # ─── Streaming reads ─────────────────────────────────────────

    def select_all(self, table: str) -> EventStream:
        return self._stream(
            "select_all", table, lambda types: build_select_all(table),
        )

    def select_column(self, table: str, column: str) -> EventStream:
        return self._stream(
            "select_column", table,
            lambda types: build_select_column(table, column),
        )

    def select_by_filters(
        self, table: str, filters: Iterable[FilterPair],
    ) -> EventStream:
        filters = tuple(filters)
        return self._stream(
            "select_by_filters", table,
            lambda types: build_select_by_filters(table, filters, types),
            typed=True,
        )

    # ─── Writes ──────────────────────────────────────────────────

    async def delete_by_filter(self, table: str, column: str, value: Any) -> dict:
        async with self._connection("delete", table, write=True) as conn:
            types = await self._column_types(conn, table)
            result = await conn.execute(build_delete(table, column, value, types))
            return {"affectedRows": result.rowcount}

    async def insert(self, table: str, body: Mapping[str, Any]) -> list[Row] | dict:
        """Insert one row and return it as stored.

        Falls back to the raw acknowledgment when the table has no single
        primary key or the key value cannot be determined.
        """
        async with self._connection("insert", table, write=True) as conn:
            types = await self._column_types(conn, table)
            result = await conn.execute(build_insert(table, body, types))
            ack = {"affectedRows": result.rowcount, "insertId": result.lastrowid}

            key = await self._primary_key(conn, table)
            if key is None:
                return ack
            if body.get(key) is not None:
                key_value = body[key]
            else:
                key_value = result.lastrowid or None
            if key_value is None:
                return ack

            return await self._fetch_all(
                conn, build_select_by_filters(table, [(key, key_value)], types),
            )

    async def update(
        self, table: str, filters: Iterable[FilterPair], body: Mapping[str, Any],
    ) -> list[Row]:
        """Update matching rows, then re-select rows holding the new values."""
        async with self._connection("update", table, write=True) as conn:
            types = await self._column_types(conn, table)
            await conn.execute(build_update(table, filters, body, types))
            return await self._fetch_all(
                conn, build_reselect_by_values(table, body, types),
            )

    # ─── Probes ──────────────────────────────────────────────────

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self._connection("health_check") as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except DatabaseError as e:
            logger.error(f"DB health check failed: {e.detail}")
            return False
