"""
Module: ledger_kernel.logging_config
Responsibility: JSON-lines logging for the ledger engine.  One object per
    record: timestamp, level, logger, event name, the snapshot/operation
    bound by the service layer, the event's ``extra`` fields and, when a
    ledger error is attached, its code and structured attributes.
Architecture position: Kernel.  Imported by engines and services through
    ``get_logger``; the service layer is the only caller of
    ``LogContext.bind``.

Invariants enforced:
    - Extra values go through ``render_to_dict``, so Decimals, dates, enums
      and records render exactly as they do in engine reports.
    - Expected ledger failures (LedgerEngineError) are logged as fields,
      never as tracebacks.  Any other exception keeps its traceback.
    - ``configure_logging`` installs at most one structured handler.

Usage:
    logger = get_logger("engines.reconciliation")
    with LogContext.bind(snapshot_id="snap-1", operation="settle_many"):
        logger.warning("batch_item_failed", extra={"transaction_id": "e1"}, exc_info=error)
"""

from __future__ import annotations

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, TextIO

from ledger_kernel.domain.render import render_to_dict
from ledger_kernel.exceptions import LedgerEngineError

LOGGER_NAMESPACE = "ledger_kernel"

# Attributes carried by the ledger exception classes, in output order.
ERROR_ATTRIBUTES = (
    "field",
    "transaction_id",
    "entity_id",
    "current",
    "target",
    "paid",
    "outstanding",
)

_bound: ContextVar[Mapping[str, str]] = ContextVar("ledger_log_context", default={})


class LogContext:
    """Snapshot and operation of the service call currently running."""

    @staticmethod
    def current() -> dict[str, str]:
        return dict(_bound.get())

    @staticmethod
    def clear() -> None:
        _bound.set({})

    @staticmethod
    @contextmanager
    def bind(
        *,
        snapshot_id: str | None = None,
        operation: str | None = None,
    ) -> Iterator[None]:
        """Layer fields over the current context for the duration of a block."""
        fields = dict(_bound.get())
        if snapshot_id is not None:
            fields["snapshot_id"] = snapshot_id
        if operation is not None:
            fields["operation"] = operation
        token = _bound.set(fields)
        try:
            yield
        finally:
            _bound.reset(token)


_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _error_fields(error: LedgerEngineError) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_code": error.code,
        "error_reason": error.reason,
    }
    for name in ERROR_ATTRIBUTES:
        value = getattr(error, name, None)
        if value is not None:
            fields[f"error_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_bound.get())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            if isinstance(error, LedgerEngineError):
                payload.update(_error_fields(error))
            else:
                payload["error_type"] = type(error).__name__
                payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(render_to_dict(payload), default=str)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``ledger_kernel`` namespace, e.g. ``ledger_kernel.engines.cash_flow``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def _structured_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if isinstance(h.formatter, StructuredFormatter)]


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Send ledger logs to ``handler`` (or a stream handler); no-op when already configured."""
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    if _structured_handlers(namespace):
        return
    handler = handler or logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    namespace.addHandler(handler)
    namespace.setLevel(level)
    namespace.propagate = False


def reset_logging() -> None:
    """Detach the structured handlers. Test support."""
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    for handler in _structured_handlers(namespace):
        namespace.removeHandler(handler)
    namespace.setLevel(logging.WARNING)
