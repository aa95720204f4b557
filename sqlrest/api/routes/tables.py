"""Table Routes — HTTP verb + path shape → gateway operation.

Invariants:
    - GET /                         → list tables
    - GET /{table}                  → all rows (streamed); with a query string → describe
    - GET /{table}/{col}            → one column (streamed)
    - GET /{table}/{col}/{val}/...  → rows matching every pair (streamed)
    - DELETE /{table}/{col}/{val}[/] → delete matching rows
    - POST /{table}                 → insert, 201
    - PUT /{table}/{col}/{val}/...  → update, 201
    - Anything else, including a column without a value, → 404 envelope
    - A POST/PUT body that is not a JSON object → 400 before the gateway is touched

Design Decisions:
    - Query-string presence selects describe: a bare trailing "?" is dropped
      by ASGI servers, so clients send e.g. /users?describe
    - The catch-all route is registered last and accepts every method, so an
      unknown method on a known path also gets the 404 envelope
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from sqlrest.api.streaming import stream_envelope
from sqlrest.core.domain_types import (
    QueryDescriptor, UnpairedSegmentError, split_segments,
)
from sqlrest.core.envelope import STATUS_CREATED, format_envelope
from sqlrest.core.errors import (
    ErrorContext, MalformedBodyError, RouteNotFoundError,
)
from sqlrest.infrastructure.database import get_gateway
from sqlrest.infrastructure.table_gateway import TableGateway

router = APIRouter(tags=["tables"])

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def envelope_response(envelope: dict) -> JSONResponse:
    return JSONResponse(status_code=envelope["status"], content=envelope)


async def read_json_object(request: Request, require_columns: bool = False) -> dict:
    """Parse the request body as a JSON object or raise MalformedBodyError."""
    if "json" not in request.headers.get("content-type", ""):
        raise MalformedBodyError("content type is not JSON")
    try:
        body = await request.json()
    except ValueError as e:
        raise MalformedBodyError("body is not valid JSON") from e
    if not isinstance(body, dict):
        raise MalformedBodyError("body is not a JSON object")
    if require_columns and not body:
        raise MalformedBodyError("body names no columns")
    return body


def build_descriptor(
    request: Request, table: str, params: str = "", body: dict | None = None,
) -> QueryDescriptor:
    try:
        return QueryDescriptor.from_path(table, params, body)
    except UnpairedSegmentError as e:
        raise RouteNotFoundError(
            request.method, request.url.path,
            ErrorContext(table=table, debug_info={"reason": str(e)}),
        ) from e


async def _read_whole_table(
    table: str, request: Request, gateway: TableGateway,
) -> Response:
    if request.url.query:
        description = await gateway.describe_table(table)
        return envelope_response(format_envelope(description))
    return stream_envelope(gateway.select_all, table)


@router.get("/")
async def list_tables(gateway: TableGateway = Depends(get_gateway)):
    """Every table in the database, one row per table."""
    key = f"Tables_in_{gateway.database_name}"
    names = await gateway.list_tables()
    return envelope_response(format_envelope([{key: name} for name in names]))


@router.get("/{table}")
async def read_table(
    table: str, request: Request, gateway: TableGateway = Depends(get_gateway),
):
    return await _read_whole_table(table, request, gateway)


@router.get("/{table}/{params:path}")
async def read_rows(
    table: str, params: str, request: Request,
    gateway: TableGateway = Depends(get_gateway),
):
    """One column, or the rows matching alternating column/value segments."""
    segments = split_segments(params)
    if not segments:
        return await _read_whole_table(table, request, gateway)
    if len(segments) == 1:
        return stream_envelope(gateway.select_column, table, segments[0])
    descriptor = build_descriptor(request, table, params)
    return stream_envelope(
        gateway.select_by_filters, descriptor.table, descriptor.filters,
    )


@router.delete("/{table}/{column}/{value}")
@router.delete("/{table}/{column}/{value}/", include_in_schema=False)
async def delete_rows(
    table: str, column: str, value: str,
    gateway: TableGateway = Depends(get_gateway),
):
    summary = await gateway.delete_by_filter(table, column, value)
    return envelope_response(format_envelope(summary))


@router.post("/{table}")
@router.post("/{table}/", include_in_schema=False)
async def create_row(
    table: str, request: Request, gateway: TableGateway = Depends(get_gateway),
):
    """Insert the JSON body as a new row and return the stored row."""
    body = await read_json_object(request)
    created = await gateway.insert(table, body)
    return envelope_response(format_envelope(created, status=STATUS_CREATED))


@router.put("/{table}/{params:path}")
async def update_rows(
    table: str, params: str, request: Request,
    gateway: TableGateway = Depends(get_gateway),
):
    """Apply the JSON body to matching rows and return rows holding the new values."""
    body = await read_json_object(request, require_columns=True)
    descriptor = build_descriptor(request, table, params, body)
    if not descriptor.filters:
        raise RouteNotFoundError(
            request.method, request.url.path, ErrorContext(table=table),
        )
    rows = await gateway.update(
        descriptor.table, descriptor.filters, descriptor.body,
    )
    return envelope_response(format_envelope(rows, status=STATUS_CREATED))


@router.api_route(
    "/{path:path}", methods=_ALL_METHODS, include_in_schema=False,
)
async def no_route(path: str, request: Request):
    raise RouteNotFoundError(request.method, request.url.path)
