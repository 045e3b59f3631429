"""
Structured JSON logging for the inventory kernel.

Every record is one JSON line.  Request-scoped fields (correlation id,
actor, operation, BOM, material, source document) ride along in
context variables, so a release or allocation can be traced end to end
across services without passing ids through every call.

Kernel exceptions are flattened into the record: ``exc_code`` plus one
``exc_<attr>`` key per structured attribute.  Batch shortfalls are
emitted as a list of plain dicts, and a chained cause (a lost stock race
re-raised as ConcurrentModificationError) is reported as ``exc_cause_*``.
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
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "operation",
    "bom_id",
    "material_id",
    "source_id",
)

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"inventory_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _CONTEXT_VARS[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name!r}") from None


class LogContext:
    """Thread-safe / async-safe holder for request-scoped log fields."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set context fields.  None values leave the current value alone."""
        for name, value in fields.items():
            var = _context_var(name)
            if value is not None:
                var.set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        """All fields that currently have a value."""
        ctx: dict[str, str] = {}
        for name, var in _CONTEXT_VARS.items():
            value = var.get()
            if value is not None:
                ctx[name] = value
        return ctx

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT_VARS.values():
            var.set(None)

    @staticmethod
    def bind(**fields: str | None) -> "_BoundContext":
        """
        Set fields for the duration of a ``with`` block.

        Usage::

            with LogContext.bind(bom_id=str(bom.id), operation="release"):
                ...
        """
        return _BoundContext(fields)


class _BoundContext:

    def __init__(self, fields: dict[str, str | None]):
        # Unknown names fail at bind time, not on exit
        self._fields = {name: (_context_var(name), value) for name, value in fields.items()}
        self._tokens: list = []

    def __enter__(self) -> type[LogContext]:
        for var, value in self._fields.values():
            if value is not None:
                self._tokens.append((var, var.set(value)))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _to_jsonable(obj: Any) -> Any:
    """Plain JSON value for the payload types the kernel logs."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if hasattr(obj, "as_dict"):
        return obj.as_dict()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(str(item) for item in obj)
    return str(obj)


def _exception_fields(exc: BaseException, prefix: str = "exc") -> dict[str, Any]:
    fields: dict[str, Any] = {
        f"{prefix}_type": type(exc).__name__,
        f"{prefix}_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields[f"{prefix}_code"] = code
    for key, value in vars(exc).items():
        if key.startswith("_") or key in ("args", "code"):
            continue
        if key == "shortfalls":
            fields[f"{prefix}_shortfall_count"] = len(value)
            value = [_to_jsonable(item) for item in value]
        fields[f"{prefix}_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload.update(_exception_fields(exc))
            if exc.__cause__ is not None:
                payload.update(_exception_fields(exc.__cause__, prefix="exc_cause"))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_jsonable)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "inventory_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the inventory_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on the inventory_kernel logger (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.setLevel(level)
    kernel_logger.propagate = False

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    kernel_logger.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and allow configure_logging() to run again.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.handlers.clear()
    kernel_logger.setLevel(logging.WARNING)
