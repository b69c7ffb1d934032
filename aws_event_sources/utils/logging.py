"""Logging configuration for the controller.

Every logger returned by :func:`setup_logger` carries structured context
(source key, kind, correlation id, ...). The formatter appends the context
fields a record actually carries as ``key=value`` pairs::

    2024-01-01 12:00:00,000 INFO aws_event_sources.tasks.reconcile: Reconciliation success outcome=reconciled [kind=AWSSQSSource source=team-a/q duration_ms=12]
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from threading import Lock
from typing import Any, Final

from .config import get_settings

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s%(context)s"

CONTEXT_FIELDS: Final[tuple[str, ...]] = (
    "kind",
    "source",
    "correlation_id",
    "status",
    "duration_ms",
)

# Client libraries whose DEBUG output includes request signatures and bodies.
QUIET_LOGGERS: Final[tuple[str, ...]] = ("botocore", "urllib3", "kubernetes.client.rest")

_configured = False
_configure_lock: Final = Lock()


class ContextualFormatter(logging.Formatter):
    """Formatter appending the structured context of a record to its message."""

    def __init__(self, fmt: str = LOG_FORMAT, fields: Sequence[str] = CONTEXT_FIELDS) -> None:
        super().__init__(fmt)
        self._fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        pairs = [
            f"{name}={value}"
            for name in self._fields
            if (value := getattr(record, name, None)) not in (None, "")
        ]
        record.context = f" [{' '.join(pairs)}]" if pairs else ""
        return super().format(record)


def _configure_root_logger() -> None:
    global _configured
    with _configure_lock:
        if _configured:
            return

        level = getattr(logging, get_settings().log_level.upper(), logging.INFO)
        root = logging.getLogger()
        root.setLevel(level)

        if not root.handlers:
            root.addHandler(logging.StreamHandler(sys.stdout))
        for handler in root.handlers:
            handler.setLevel(level)
            handler.setFormatter(ContextualFormatter())

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.INFO))

        _configured = True


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter merging per-call extras over the logger's context."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:  # type: ignore[override]
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def setup_logger(
    name: str,
    *,
    level: str | None = None,
    context: dict[str, Any] | None = None,
) -> StructuredLoggerAdapter:
    """Return a logger of the controller.

    Args:
        name: Logger name, usually ``__name__``.
        level: Optional level of this logger (primarily for tests).
        context: Structured context attached to every record of this logger.
    """

    _configure_root_logger()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO) if level else logging.NOTSET)
    return StructuredLoggerAdapter(logger, dict(context or {}))


def log_reconcile_attempt(
    logger: logging.Logger | logging.LoggerAdapter,
    source: str,
    kind: str,
    duration_ms: int,
    status: str,
    **details: Any,
) -> None:
    """
    Log the outcome of a reconciliation pass.

    A ``success`` status is logged at INFO, anything else at ERROR. The
    remaining keyword arguments, apart from ``correlation_id``, are appended
    to the message as sorted ``key=value`` pairs.
    """
    correlation_id = details.pop("correlation_id", None)
    suffix = "".join(f" {key}={value}" for key, value in sorted(details.items()))
    status = status or "unknown"

    logger.log(
        logging.INFO if status == "success" else logging.ERROR,
        "Reconciliation %s%s",
        status,
        suffix,
        extra={
            "source": source,
            "kind": kind,
            "duration_ms": duration_ms,
            "status": status,
            "correlation_id": correlation_id,
        },
    )
