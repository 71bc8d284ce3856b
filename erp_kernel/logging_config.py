"""
Structured JSON logging for the ERP core.

Every record is one JSON object per line: ``ts``, ``level``, ``logger`` and
``message``, then whatever request/document context is bound, then the
record's ``extra`` fields.  Loggers live under the ``erp_kernel`` namespace
(``get_logger("modules.inventory.ledger")`` -> ``erp_kernel.modules.inventory.ledger``)
and do not propagate to the root logger, so the host application's logging
setup is left alone.

Context fields
--------------
``request_id``      bound by the Flask app for each HTTP request.
``actor_id``        the user behind the request (``X-Actor-Id``).
``document_ref``    receipt, issue, request or invoice number being posted.
``correlation_id``  free for callers driving several documents as one job.

Context lives in ``contextvars`` so threads and async tasks never see each
other's values.  ``LogContext.bind`` restores the previous values on exit;
``LogContext.clear`` drops them all (the app does this at request teardown).

When a record carries an exception that has a ``code`` (every
``ErpKernelError``), the code and the exception's public attributes are
emitted as ``exc_*`` fields, e.g. ``exc_requested`` / ``exc_available`` for
an insufficient-stock rejection.
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
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

_NAMESPACE = "erp_kernel"

_CONTEXT_FIELDS = ("request_id", "actor_id", "document_ref", "correlation_id")


class LogContext:
    """Request and document fields stamped onto every log record."""

    _vars: dict[str, ContextVar[str | None]] = {
        name: ContextVar(f"erp_log_{name}", default=None) for name in _CONTEXT_FIELDS
    }

    @classmethod
    def _var(cls, name: str) -> ContextVar[str | None]:
        try:
            return cls._vars[name]
        except KeyError:
            raise TypeError(f"Unknown log context field: {name!r}") from None

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set the given fields.  ``None`` values leave a field untouched."""
        for name, value in fields.items():
            var = cls._var(name)
            if value is not None:
                var.set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return {
            name: value
            for name, var in cls._vars.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in cls._vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block."""
        tokens = [
            (cls._var(name), cls._var(name).set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                entry.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            entry.update(self._exception_fields(record.exc_info[1]))
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_json_default)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
            fields.update(
                (f"exc_{name}", value)
                for name, value in vars(exc).items()
                if not name.startswith("_") and name != "code"
            )
        return fields


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_NAMESPACE}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``erp_kernel`` logger.

    Only the first call has any effect until ``reset_logging`` runs, so the
    app factory and the test harness can both call it safely.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())

    namespace_logger = logging.getLogger(_NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.propagate = False
    namespace_logger.addHandler(target)


def reset_logging() -> None:
    """Detach our handlers and allow ``configure_logging`` to run again.  Tests only."""
    global _configured
    with _configure_lock:
        _configured = False
    namespace_logger = logging.getLogger(_NAMESPACE)
    for existing in list(namespace_logger.handlers):
        if isinstance(existing.formatter, StructuredFormatter):
            namespace_logger.removeHandler(existing)
    namespace_logger.setLevel(logging.WARNING)
