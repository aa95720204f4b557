"""Structured Logging — one JSON object per log line, carrying request and query fields.

Invariants:
    - Every line has timestamp, level, logger and message
    - table, operation, error_code, method, path and status appear only when the
      caller passed them in `extra`; gateway failures always carry table and
      operation, the request trace always carries method, path and status
    - log_format "text" switches to a single human-readable line for local runs

Design Decisions:
    - Plain logging.Formatter subclass on the root handler, so SQLAlchemy and
      uvicorn records come out in the same shape as ours
    - setup_logging runs from the app lifespan, never at import time, so tests
      keep pytest's own log capture; a second lifespan replaces the handler
      instead of doubling every line
"""

import json
import logging
from datetime import datetime, timezone


EXTRA_KEYS = (
    "table", "operation", "error_code", "method", "path", "status",
)
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _extras(record: logging.LogRecord) -> dict:
    return {
        key: record.__dict__[key]
        for key in EXTRA_KEYS
        if record.__dict__.get(key) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the time the record was made."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(
                record.created, timezone.utc,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable line; extras are appended as key=value pairs."""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = " ".join(f"{k}={v}" for k, v in _extras(record).items())
        return f"{line} [{extras}]" if extras else line


class _SqlrestHandler(logging.StreamHandler):
    pass


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install the root handler; calling it again replaces the previous one."""
    for handler in list(logging.root.handlers):
        if isinstance(handler, _SqlrestHandler):
            logging.root.removeHandler(handler)
    handler = _SqlrestHandler()
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
