"""SQL Builders — Query Descriptor → SQLAlchemy Core statements.

Invariants:
    - Table and column names are rendered by the dialect's identifier preparer
      (quoted and escaped), never concatenated into SQL text
    - Every literal value is a bound parameter, including path segments
    - Filters are conjunctive: col1 = v1 AND col2 = v2 ...
    - A None value compiles to IS NULL
    - When column types are known, string values are converted to the
      column's Python type and bound with that type; unknown columns and
      unparseable strings are bound as given

Design Decisions:
    - Lightweight table()/column() constructs: the same statement compiles on
      MySQL, PostgreSQL and SQLite
    - Column types come from the caller (the gateway reflects them); typed
      binds matter for drivers with typed parameters such as asyncpg
    - Pure functions: statements are built here and executed by the gateway
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy import (
    Delete, Insert, Select, Update,
    and_, column, delete, insert, literal_column, select, table, true, update,
)
from sqlalchemy.sql.elements import ColumnClause, ColumnElement
from sqlalchemy.types import TypeEngine

from sqlrest.core.domain_types import FilterPair

ColumnTypes = Mapping[str, TypeEngine]

_TRUE_WORDS = {"1", "true", "t", "yes", "y", "on"}
_FALSE_WORDS = {"0", "false", "f", "no", "n", "off"}


def _parse_bool(value: str) -> bool:
    word = value.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"not a boolean: {value!r}")


_PARSERS: dict[type, Callable[[str], Any]] = {
    int: int,
    float: float,
    Decimal: Decimal,
    bool: _parse_bool,
    date: date.fromisoformat,
    datetime: datetime.fromisoformat,
    time: time.fromisoformat,
}


def coerce_value(value: Any, type_: TypeEngine | None) -> Any:
    """Convert a string to the column's Python type; anything else passes through."""
    if type_ is None or not isinstance(value, str):
        return value
    try:
        parser = _PARSERS.get(type_.python_type)
    except NotImplementedError:
        return value
    if parser is None:
        return value
    try:
        return parser(value)
    except (ValueError, ArithmeticError):
        return value


def _column(name: str, types: ColumnTypes | None) -> ColumnClause:
    return column(name, (types or {}).get(name))


def _coerced(
    pairs: Iterable[tuple[str, Any]], types: ColumnTypes | None,
) -> dict[str, Any]:
    types = types or {}
    return {name: coerce_value(value, types.get(name)) for name, value in pairs}


def _conjunction(
    pairs: Iterable[FilterPair], types: ColumnTypes | None = None,
) -> ColumnElement[bool]:
    types = types or {}
    clauses = [
        _column(name, types) == coerce_value(value, types.get(name))
        for name, value in pairs
    ]
    if not clauses:
        return true()
    return and_(*clauses)


def build_select_all(table_name: str) -> Select:
    return select(literal_column("*")).select_from(table(table_name))


def build_select_column(table_name: str, column_name: str) -> Select:
    return select(column(column_name)).select_from(table(table_name))


def build_select_by_filters(
    table_name: str, filters: Iterable[FilterPair],
    types: ColumnTypes | None = None,
) -> Select:
    return build_select_all(table_name).where(_conjunction(filters, types))


def build_delete(
    table_name: str, column_name: str, value: Any,
    types: ColumnTypes | None = None,
) -> Delete:
    return delete(table(table_name)).where(
        _conjunction([(column_name, value)], types),
    )


def build_insert(
    table_name: str, body: Mapping[str, Any], types: ColumnTypes | None = None,
) -> Insert:
    target = table(table_name, *(_column(name, types) for name in body))
    return insert(target).values(_coerced(body.items(), types))


def build_update(
    table_name: str, filters: Iterable[FilterPair], body: Mapping[str, Any],
    types: ColumnTypes | None = None,
) -> Update:
    target = table(table_name, *(_column(name, types) for name in body))
    return (
        update(target)
        .where(_conjunction(filters, types))
        .values(_coerced(body.items(), types))
    )


def build_reselect_by_values(
    table_name: str, body: Mapping[str, Any], types: ColumnTypes | None = None,
) -> Select:
    """Rows whose columns equal the values just written.

    Used after an update: it matches on the new values, not on the filter
    that selected the rows, so unrelated rows holding the same values are
    returned too.
    """
    return build_select_by_filters(table_name, body.items(), types)
