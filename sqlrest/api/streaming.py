"""Envelope Streaming — relays a stream of row events as one chunked JSON envelope.

Invariants:
    - '{"results":[' is sent before the query produces anything
    - Each row is written as soon as it arrives; the full result set is never held
    - Exactly one closing chunk per response: success (200/404) or error (500)
    - The event source is always closed, so its connection returns to the pool
      even when the client disconnects mid-stream

Design Decisions:
    - StreamingResponse over a generator of string chunks: the server applies
      chunked transfer encoding, and the generator only advances when the
      previous chunk has been sent
    - HTTP status is always 200 for streams: headers go out before the outcome
      is known, the envelope's "status" carries it
    - Unexpected exceptions are closed out as an INTERNAL_ERROR envelope,
      never left as a truncated document
"""

import logging
from contextlib import aclosing
from typing import AsyncGenerator, Callable

from fastapi.responses import StreamingResponse

from sqlrest.core.envelope import (
    ENVELOPE_OPEN, close_error, close_success, row_chunk,
)
from sqlrest.core.errors import InternalError
from sqlrest.core.stream_events import EndEvent, ErrorEvent, EventStream, RowEvent

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


async def envelope_chunks(events: EventStream) -> AsyncGenerator[str, None]:
    """Turn row events into the chunks of a single envelope document."""
    yield ENVELOPE_OPEN
    first = True
    async with aclosing(events) as stream:
        try:
            async for event in stream:
                match event:
                    case RowEvent(row=row):
                        yield row_chunk(row, first)
                        first = False
                    case EndEvent(had_rows=had_rows):
                        yield close_success(had_rows)
                        return
                    case ErrorEvent(error=error):
                        yield close_error(error.to_error_object())
                        return
        except Exception as e:
            logger.error(f"Stream aborted: {e}", exc_info=True)
            yield close_error(InternalError().to_error_object())
            return
    yield close_success(not first)


def stream_envelope(
    operation: Callable[..., EventStream], *args,
) -> StreamingResponse:
    """Run a streaming gateway operation and send its rows as they arrive."""
    return StreamingResponse(
        envelope_chunks(operation(*args)),
        media_type="application/json",
        headers=STREAM_HEADERS,
    )
