"""
Structured JSON logging (``billing_kernel.logging_config``).

Every billing logger lives under the ``billing_kernel`` namespace and
writes one JSON object per line. Log messages are snake_case event names
(``invoice_transitioned``, ``client_recomputed``); data goes in ``extra=``.

Records are enriched with the ambient billing context bound through
``LogContext.bind``: the invoice or client being worked on, the recurrence
schedule, and a caller supplied correlation id. A failed operation logged
with ``exc_info`` carries its error ``code`` and structured attributes
under ``error``.

Usage:
    from billing_kernel.logging_config import LogContext, get_logger

    logger = get_logger("services.invoice_service")
    with LogContext.bind(invoice_id=invoice.id):
        logger.info("invoice_saved", extra={"version": invoice.version})
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import IO, Any
from uuid import UUID

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

NAMESPACE = "billing_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "invoice_id",
    "client_id",
    "recurrence_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("billing_log_context", default=_EMPTY)


class LogContext:
    """Billing identifiers attached to every record logged in this context.

    Backed by a single ``ContextVar`` holding an immutable mapping, so each
    thread and each asyncio task sees its own bindings. Unknown field names
    and None values are ignored; values are stored as strings.
    """

    @staticmethod
    def _merged(fields: Mapping[str, Any]) -> Mapping[str, str]:
        current = dict(_context.get())
        for name, value in fields.items():
            if name in CONTEXT_FIELDS and value is not None:
                current[name] = str(value)
        return MappingProxyType(current)

    @classmethod
    def set(cls, **fields: Any) -> None:
        _context.set(cls._merged(fields))

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Bind fields for the duration of the block, then restore."""
        token = _context.set(cls._merged(fields))
        try:
            yield
        finally:
            _context.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

_RESERVED: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(str(v) for v in value)
    # Money, Currency, Quantity render through __str__
    return str(value)


def _error_payload(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        error["code"] = code
        fields = {k: v for k, v in vars(exc).items() if not k.startswith("_")}
        if fields:
            error["fields"] = fields
    return error


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        payload.update(
            (k, v) for k, v in vars(record).items()
            if k not in _RESERVED and k not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = _error_payload(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_to_json)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger ``billing_kernel.<name>``."""
    return logging.getLogger(f"{NAMESPACE}.{name}")


_setup_lock = threading.Lock()
_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on the ``billing_kernel`` logger.

    Only the first call installs a handler; later calls are ignored until
    ``reset_logging``. ``level`` accepts a number or a name ("DEBUG").
    """
    global _handler
    with _setup_lock:
        if _handler is not None:
            return
        _handler = handler or logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(StructuredFormatter())
        root = logging.getLogger(NAMESPACE)
        root.setLevel(level.upper() if isinstance(level, str) else level)
        root.propagate = False
        root.addHandler(_handler)


def reset_logging() -> None:
    """Remove the installed handler and restore propagation. Tests only."""
    global _handler
    with _setup_lock:
        root = logging.getLogger(NAMESPACE)
        if _handler is not None:
            root.removeHandler(_handler)
            _handler = None
        root.setLevel(logging.NOTSET)
        root.propagate = True
