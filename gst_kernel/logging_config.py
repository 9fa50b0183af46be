"""
Structured JSON logging for the GST kernel and engines.

Every record is written as one JSON object per line.  Log messages are
event names (``rate_not_resolved``, ``tax_computation_completed``); the data
travels in ``extra={}`` and in the computation context.

The computation context holds the fields that identify which invoice line
is being taxed.  ``TaxComputationEngine`` binds them around each line, so
resolver, advisory and exemption events emitted while computing a line can
be joined back to it without repeating the fields at every call site::

    with LogContext.bind(invoice_id="INV-7", line_id="2"):
        engine.compute_tax(...)
    # -> {"message": "rate_not_resolved", "invoice_id": "INV-7",
    #     "line_id": "2", "classification_code": "2523", ...}
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "gst_kernel"

# Fields a computation may bind; anything else is a programming error.
CONTEXT_FIELDS: tuple[str, ...] = (
    "invoice_id",
    "line_id",
    "classification_code",
    "tax_spec",
    "as_of_date",
)

_EMPTY: Mapping[str, Any] = MappingProxyType({})
_context: ContextVar[Mapping[str, Any]] = ContextVar("gst_log_context", default=_EMPTY)


class LogContext:
    """Computation-scoped fields stamped onto every log line."""

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """
        Layer fields over the current context for the duration of the block.

        None values leave an outer binding in place.  Nested blocks restore
        the outer fields on exit.

        Raises:
            TypeError: If a field is not one of ``CONTEXT_FIELDS``.
        """
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context fields: {', '.join(unknown)}")
        merged = dict(_context.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        token = _context.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _context.reset(token)

    @staticmethod
    def current() -> dict[str, Any]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)


def _jsonable(value: Any) -> Any:
    """Render the domain value types that appear in log payloads."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (tuple, frozenset, set)):
        return [_jsonable(v) for v in value]
    return str(value)


# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Key precedence: the fixed envelope (ts, level, logger, message), then
    the bound computation context, then ``extra`` fields.  A kernel error
    attached via ``exc_info`` contributes its code and attributes.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in _context.get().items():
            payload.setdefault(key, value)
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))

        return json.dumps(payload, default=_jsonable)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
            "traceback": self.formatException(record.exc_info),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
            fields.update(
                (f"exc_{k}", v) for k, v in vars(exc).items() if not k.startswith("_")
            )
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``gst_kernel`` namespace, e.g. ``gst_kernel.engines.rates``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _structured_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if isinstance(h.formatter, StructuredFormatter)]


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a structured handler to the ``gst_kernel`` logger.

    Idempotent: once a structured handler is attached, later calls change
    nothing.  Records do not propagate to the root logger.
    """
    root = logging.getLogger(_LOGGER_PREFIX)
    if _structured_handlers(root):
        return
    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Detach structured handlers and restore defaults. For tests."""
    root = logging.getLogger(_LOGGER_PREFIX)
    for h in _structured_handlers(root):
        root.removeHandler(h)
    root.setLevel(logging.WARNING)
    root.propagate = True
