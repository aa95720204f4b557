"""Table Gateway — integration tests against a real SQLite database.

Tests:
    - Schema: list, describe, primary key lookup
    - Streams: rows then one terminal event; empty result → EndEvent(False)
    - Filters bind values (injection strings match nothing)
    - Insert returns the stored row, or the acknowledgment without a single key
    - Update re-selects by the new values
    - Path values reach the driver typed like their column
    - Connections return to the pool after success, error, and early close
    - SQLAlchemy exceptions map to DatabaseError kinds
"""

import pytest
from sqlalchemy import event
from sqlalchemy.exc import (
    IntegrityError, NoSuchTableError, OperationalError, SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

from sqlrest.core.errors import DatabaseError
from sqlrest.core.stream_events import EndEvent, ErrorEvent, RowEvent
from sqlrest.infrastructure.table_gateway import TableGateway, map_database_error

from tests.helpers import checked_out, collect, make_engine, run_statements


def _rows(events):
    return [e.row for e in events if isinstance(e, RowEvent)]


# ─── Schema ──────────────────────────────────────────────────────

async def test_list_tables(gateway):
    assert await gateway.list_tables() == ["codes", "orders", "tags", "users"]


async def test_database_name_falls_back_to_url(engine):
    gateway = TableGateway(engine)
    assert gateway.database_name.endswith("test.db")


async def test_describe_table(gateway):
    description = await gateway.describe_table("users")
    assert description["table"]["name"] == "users"
    assert description["table"]["primary_key"] == ["id"]
    names = [c["name"] for c in description["columns"]]
    assert names == ["id", "name", "email", "age"]
    name_col = description["columns"][1]
    assert name_col["type"] == "TEXT"
    assert name_col["nullable"] is False


async def test_describe_missing_table_raises(gateway, engine):
    with pytest.raises(DatabaseError) as exc_info:
        await gateway.describe_table("missing")
    assert exc_info.value.kind == "no such table"
    assert exc_info.value.context.table == "missing"
    assert checked_out(engine) == 0


async def test_primary_key(gateway):
    assert await gateway.primary_key("users") == "id"
    assert await gateway.primary_key("codes") == "code"
    assert await gateway.primary_key("tags") is None


# ─── Streaming reads ─────────────────────────────────────────────

async def test_select_all_streams_rows_then_end(gateway, engine):
    events = await collect(gateway.select_all("users"))
    assert [r["name"] for r in _rows(events)] == ["ada", "grace", "linus"]
    assert events[-1] == EndEvent(had_rows=True)
    assert sum(not isinstance(e, RowEvent) for e in events) == 1
    assert checked_out(engine) == 0


async def test_select_column(gateway):
    events = await collect(gateway.select_column("users", "name"))
    assert _rows(events) == [{"name": "ada"}, {"name": "grace"}, {"name": "linus"}]


async def test_select_by_filters_is_conjunctive(gateway):
    events = await collect(
        gateway.select_by_filters("users", [("age", "36"), ("name", "linus")]),
    )
    assert [r["name"] for r in _rows(events)] == ["linus"]


async def test_select_no_match_ends_without_rows(gateway):
    events = await collect(gateway.select_by_filters("users", [("id", "99")]))
    assert events == [EndEvent(had_rows=False)]


async def test_injection_value_matches_nothing(gateway):
    events = await collect(
        gateway.select_by_filters("users", [("name", "x' OR '1'='1")]),
    )
    assert events == [EndEvent(had_rows=False)]


async def test_select_missing_table_yields_error_event(gateway, engine):
    events = await collect(gateway.select_all("missing"))
    assert len(events) == 1
    assert isinstance(events[0], ErrorEvent)
    assert events[0].error.code == "DATABASE_ERROR"
    assert "no such table" in events[0].error.detail
    assert checked_out(engine) == 0


async def test_early_close_releases_connection(gateway, engine):
    stream = gateway.select_all("users")
    first = await stream.__anext__()
    assert isinstance(first, RowEvent)
    assert checked_out(engine) == 1
    await stream.aclose()
    assert checked_out(engine) == 0


# ─── Writes ──────────────────────────────────────────────────────

async def test_insert_returns_stored_row(gateway):
    rows = await gateway.insert(
        "users", {"name": "barbara", "email": "b@example.com", "age": 80},
    )
    assert rows == [{"id": 4, "name": "barbara", "email": "b@example.com", "age": 80}]


async def test_insert_with_supplied_key(gateway):
    rows = await gateway.insert("codes", {"code": "EUR", "label": "euro"})
    assert rows == [{"code": "EUR", "label": "euro"}]


async def test_insert_without_primary_key_returns_ack(gateway):
    ack = await gateway.insert("tags", {"label": "green", "note": "calm"})
    assert ack["affectedRows"] == 1
    assert "insertId" in ack


async def test_insert_duplicate_raises_integrity_error(gateway, engine):
    with pytest.raises(DatabaseError) as exc_info:
        await gateway.insert("users", {"name": "dup", "email": "ada@example.com"})
    err = exc_info.value
    assert err.kind == "integrity constraint violated"
    assert err.operation == "insert"
    assert err.driver_error == "IntegrityError"
    assert "UNIQUE" in err.detail
    assert checked_out(engine) == 0


async def test_failed_insert_is_rolled_back(gateway):
    with pytest.raises(DatabaseError):
        await gateway.insert("users", {"nope": 1})
    events = await collect(gateway.select_all("users"))
    assert len(_rows(events)) == 3


async def test_update_reselects_by_new_values(gateway):
    rows = await gateway.update("users", [("name", "ada")], {"age": 45})
    assert sorted(r["name"] for r in rows) == ["ada", "grace"]


async def test_update_with_multiple_filters(gateway):
    rows = await gateway.update(
        "users", [("age", "36"), ("name", "linus")], {"age": 50},
    )
    assert [r["name"] for r in rows] == ["linus"]
    events = await collect(gateway.select_by_filters("users", [("name", "ada")]))
    assert _rows(events)[0]["age"] == 36


async def test_delete_reports_affected_rows(gateway):
    assert await gateway.delete_by_filter("orders", "user_id", "1") == {
        "affectedRows": 2,
    }
    events = await collect(gateway.select_all("orders"))
    assert [r["item"] for r in _rows(events)] == ["compiler"]


async def test_delete_no_match(gateway):
    assert await gateway.delete_by_filter("orders", "id", "99") == {"affectedRows": 0}


# ─── Typed binds ─────────────────────────────────────────────────

@pytest.fixture
def driver_params(engine):
    """Parameters handed to the driver for each statement."""
    seen = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        seen.append(tuple(parameters))

    event.listen(engine.sync_engine, "before_cursor_execute", capture)
    yield seen
    event.remove(engine.sync_engine, "before_cursor_execute", capture)


async def test_filter_values_bind_as_column_types(gateway, driver_params):
    await collect(gateway.select_by_filters("users", [("id", "2"), ("name", "grace")]))
    assert (2, "grace") in driver_params


async def test_delete_value_binds_as_column_type(gateway, driver_params):
    await gateway.delete_by_filter("users", "id", "3")
    assert (3,) in driver_params


async def test_update_binds_filters_and_body_as_column_types(gateway, driver_params):
    await gateway.update("users", [("id", "1")], {"age": "37"})
    assert (37, 1) in driver_params


async def test_text_key_that_looks_numeric_stays_text(gateway):
    await gateway.insert("codes", {"code": "007", "label": "agent"})
    events = await collect(gateway.select_by_filters("codes", [("code", "007")]))
    assert _rows(events) == [{"code": "007", "label": "agent"}]


async def test_binary_column_filters_and_streams_bytes(gateway, engine):
    await run_statements(engine, [
        "CREATE TABLE blobs (id INTEGER PRIMARY KEY, data BLOB)",
        "INSERT INTO blobs (id, data) VALUES (1, x'FF00FE')",
    ])
    events = await collect(gateway.select_by_filters("blobs", [("id", "1")]))
    assert _rows(events)[0]["data"] == b"\xff\x00\xfe"


# ─── Probes and lifecycle ────────────────────────────────────────

async def test_health_check(gateway):
    assert await gateway.health_check() is True


async def test_health_check_unreachable_database(tmp_path):
    engine = make_engine(tmp_path / "missing-dir" / "x.db")
    gateway = TableGateway(engine)
    assert await gateway.health_check() is False
    await gateway.close()


# ─── Error mapping ───────────────────────────────────────────────

class _DriverError(Exception):
    pass


@pytest.mark.parametrize("exc, kind", [
    (NoSuchTableError("users"), "no such table"),
    (PoolTimeoutError("QueuePool limit reached"), "connection pool exhausted"),
    (IntegrityError("INSERT", {}, _DriverError(1062, "Duplicate entry")),
     "integrity constraint violated"),
    (OperationalError("SELECT", {}, _DriverError(2003, "Can't connect")),
     "connection or operational error"),
    (SQLAlchemyError("boom"), "database operation failed"),
])
def test_map_database_error_kinds(exc, kind):
    err = map_database_error(exc, "select_all", "users")
    assert err.kind == kind
    assert err.context.table == "users"
    assert err.operation == "select_all"


def test_map_database_error_carries_driver_code():
    exc = IntegrityError("INSERT", {}, _DriverError(1062, "Duplicate entry"))
    err = map_database_error(exc, "insert")
    assert err.driver_error == "_DriverError"
    assert err.driver_code == 1062
    assert "Duplicate entry" in err.detail


def test_map_database_error_without_driver():
    err = map_database_error(NoSuchTableError("users"), "describe_table")
    assert err.driver_error == "NoSuchTableError"
    assert err.driver_code is None
