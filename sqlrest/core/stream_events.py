"""Stream Events — the sum type a streaming query produces, one event at a time.

Invariants:
    - A stream yields zero or more RowEvent, then exactly one terminal event
    - Terminal events are EndEvent (success) or ErrorEvent (failure), never both
    - The connection behind a stream is released before its terminal event

Design Decisions:
    - Frozen dataclasses + match-case instead of row/end/error callbacks
    - ErrorEvent carries the typed GatewayError so formatting needs no driver knowledge
"""

from dataclasses import dataclass
from typing import AsyncGenerator, Union

from sqlrest.core.domain_types import Row
from sqlrest.core.errors import GatewayError


@dataclass(frozen=True)
class RowEvent:
    """One row, as soon as the cursor produced it."""
    row: Row


@dataclass(frozen=True)
class EndEvent:
    """The cursor is exhausted."""
    had_rows: bool


@dataclass(frozen=True)
class ErrorEvent:
    """The query failed; no further rows follow."""
    error: GatewayError


StreamEvent = Union[RowEvent, EndEvent, ErrorEvent]
EventStream = AsyncGenerator[StreamEvent, None]
