"""Error Hierarchy — typed, categorized exceptions for every gateway failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Request errors (400-level) are the caller's fault; database errors are 500
    - to_error_object() produces the envelope's "error" member
    - Driver details are carried verbatim so clients can see what the database said

Design Decisions:
    - Single hierarchy with GatewayError base: one FastAPI handler catches all
    - ErrorContext as dataclass: observability fields without coupling to logging
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


BAD_REQUEST_MESSAGE = "Bad Request - please send JSON"


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Request context attached to an error for logs and responses."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    table: str | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_error_object(self) -> dict:
        """Convert to the envelope's "error" member."""
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "table": self.context.table,
            "operation": self.context.operation,
        }


# ─── Request Errors (400-level) ─────────────────────────────────

class MalformedBodyError(GatewayError):
    """POST/PUT body is missing, not JSON, or not a JSON object."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(
            BAD_REQUEST_MESSAGE, "MALFORMED_BODY", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.reason = reason

    def to_error_object(self) -> dict:
        error = super().to_error_object()
        error["reason"] = self.reason
        return error


class RouteNotFoundError(GatewayError):
    """No operation maps onto the requested method and path."""
    def __init__(self, method: str, path: str, context: ErrorContext | None = None):
        super().__init__(
            f"No route for {method} {path}",
            "ROUTE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.INFO, context, 404,
        )
        self.method = method
        self.path = path


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(GatewayError):
    """Connection acquisition or statement execution failed."""
    def __init__(
        self,
        kind: str,
        operation: str,
        detail: str = "",
        driver_error: str | None = None,
        driver_code: Any = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.operation = ctx.operation or operation
        super().__init__(
            f"Database {operation} failed: {kind}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, ctx, 500,
        )
        self.kind = kind
        self.operation = operation
        self.detail = detail
        self.driver_error = driver_error
        self.driver_code = driver_code

    def to_error_object(self) -> dict:
        error = super().to_error_object()
        error["detail"] = self.detail
        error["driver_error"] = self.driver_error
        error["driver_code"] = self.driver_code
        return error


class InternalError(GatewayError):
    """Unexpected failure — message never leaks internal details."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "An unexpected error occurred",
            "INTERNAL_ERROR", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )
