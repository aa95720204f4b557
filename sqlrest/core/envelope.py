"""Result Envelope — the {results, status, error?} wrapper every response uses.

Invariants:
    - format_envelope always returns a list under "results"
    - status is explicit, else 500 when an error is attached, else 200
    - Streamed chunks concatenate to exactly one valid envelope document:
      ENVELOPE_OPEN + row chunks (comma separated) + one closing chunk
    - A streamed success closes with 200 if any row was sent, else 404

Design Decisions:
    - Chunk builders are pure strings: the streaming shell only sequences them
    - One row encoder (encode_rows) for atomic and streamed responses:
      binary values become lowercase hex, Decimal becomes its exact string,
      dates use ISO 8601
"""

import json
from decimal import Decimal
from typing import Any

from fastapi.encoders import jsonable_encoder


ENVELOPE_OPEN = '{"results":['

STATUS_OK = 200
STATUS_CREATED = 201
STATUS_NOT_FOUND = 404
STATUS_ERROR = 500

_ROW_ENCODERS = {
    bytes: bytes.hex,
    bytearray: bytearray.hex,
    memoryview: memoryview.hex,
    Decimal: str,
}


def encode_rows(value: Any) -> Any:
    """JSON-safe copy of driver values; keeps binary data and exact numerics intact."""
    return jsonable_encoder(value, custom_encoder=_ROW_ENCODERS)


def normalize_rows(rows: Any) -> list:
    """Coerce whatever an operation returned into a list of rows."""
    if rows is None:
        return []
    if isinstance(rows, str):
        return [{"result": rows}]
    if isinstance(rows, (list, tuple)):
        return list(rows)
    return [rows]


def format_envelope(
    rows: Any, error: dict | None = None, status: int | None = None,
) -> dict:
    """Wrap rows (and an optional error object) into a result envelope."""
    if status is None:
        status = STATUS_ERROR if error else STATUS_OK
    envelope: dict[str, Any] = {
        "results": encode_rows(normalize_rows(rows)),
        "status": status,
    }
    if error:
        envelope["error"] = encode_rows(error)
    return envelope


def to_json(value: Any) -> str:
    return json.dumps(encode_rows(value), ensure_ascii=False)


def row_chunk(row: Any, first: bool) -> str:
    """JSON for one streamed row, prefixed with a comma unless it is the first."""
    return to_json(row) if first else "," + to_json(row)


def close_success(had_rows: bool) -> str:
    status = STATUS_OK if had_rows else STATUS_NOT_FOUND
    return f'],"status":{status}}}'


def close_error(error: dict) -> str:
    return f'],"error":{to_json(error)},"status":{STATUS_ERROR}}}'
