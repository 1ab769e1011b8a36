"""
Structured JSON logging for the mill kernel.

Every record is one JSON object per line:

    {"ts": "...", "level": "INFO", "logger": "mill_kernel.modules.scrap.service",
     "message": "scrap_moved", "company_id": "...", "scrap_number": "..."}

Messages are snake_case event names; the interesting data travels in
``extra={...}``.  Request-scoped fields (correlation id, company, acting
user, lot number, document id) live in ``LogContext`` and are stamped on
every record emitted while they are bound.  When a record carries an
exception, its type, message, ``code`` and public attributes are flattened
into ``exc_*`` keys so a failed scrap move can be searched by item id.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

_CONTEXT_FIELDS = ("correlation_id", "company_id", "actor_id", "lot_number", "document_id")

_context: ContextVar[dict[str, str]] = ContextVar("mill_log_context", default={})


class LogContext:
    """Request-scoped log fields, safe across threads and asyncio tasks."""

    @staticmethod
    def _merge(fields: dict[str, Any]) -> dict[str, str]:
        unknown = set(fields) - set(_CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        return merged

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields for the rest of the current context; None leaves a field as is."""
        _context.set(cls._merge(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields inside a ``with`` block, restoring the previous values afterwards."""
        token = _context.set(cls._merge(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


_ROOT = "mill_kernel"


def get_logger(name: str) -> logging.Logger:
    """Logger named ``mill_kernel.<name>``."""
    return logging.getLogger(f"{_ROOT}.{name}")


_configured = False
_installed: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``mill_kernel`` logger.

    Only the first call has any effect until ``reset_logging()``.  ``level``
    may be a name such as ``"warning"``.  Without ``handler`` records go to
    ``stream`` (stderr by default).
    """
    global _configured, _installed
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_ROOT)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.propagate = False

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)
    _installed = target


def reset_logging() -> None:
    """Remove the handler installed by ``configure_logging``. Tests only."""
    global _configured, _installed
    with _lock:
        _configured = False
    root = logging.getLogger(_ROOT)
    if _installed is not None:
        root.removeHandler(_installed)
        _installed = None
    root.setLevel(logging.WARNING)
