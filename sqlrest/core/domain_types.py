"""Domain Types — query descriptors and path-segment parsing.

Invariants:
    - QueryDescriptor is immutable and built once per request
    - filters is a tuple of (column, value) pairs, never a flat list
    - An odd number of filter segments (a column without a value) is rejected

Design Decisions:
    - Frozen dataclass over dict: the route hands one typed value to the gateway
    - Path values stay strings: the database coerces them, the gateway binds them
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, NewType


TableName = NewType("TableName", str)

Row = dict[str, Any]
FilterPair = tuple[str, Any]


class UnpairedSegmentError(ValueError):
    """Filter segments did not alternate column/value."""


def split_segments(path: str) -> list[str]:
    """Split the part of a URL after the table name into segments.

    Empty segments (from a trailing or doubled slash) are dropped.
    """
    return [s for s in path.split("/") if s]


def pair_filters(segments: list[str]) -> tuple[FilterPair, ...]:
    """Turn [col1, val1, col2, val2, ...] into ((col1, val1), (col2, val2), ...)."""
    if len(segments) % 2:
        raise UnpairedSegmentError(
            f"column '{segments[-1]}' has no value",
        )
    return tuple(zip(segments[0::2], segments[1::2]))


@dataclass(frozen=True)
class QueryDescriptor:
    """One operation against one table."""
    table: TableName
    filters: tuple[FilterPair, ...] = ()
    body: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_path(
        cls, table: str, path: str = "", body: Mapping[str, Any] | None = None,
    ) -> "QueryDescriptor":
        """Build a descriptor from the table name and the remaining path."""
        return cls(
            table=TableName(table),
            filters=pair_filters(split_segments(path)),
            body=dict(body or {}),
        )
