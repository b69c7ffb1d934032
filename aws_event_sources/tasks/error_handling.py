"""Structured error handling utilities for Celery reconciliation tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..exceptions import (
    ConfigurationError,
    DependencyNotFoundError,
    DependencyUnavailableError,
    EventSourcesError,
    LocalConflictError,
    MisconfiguredError,
    PermanentError,
    RemoteRejectedError,
    RemoteTransientError,
    SourceKindNotFoundError,
)


@dataclass(slots=True)
class ReconcileErrorReport:
    """Structured payload describing a failed reconciliation pass."""

    kind: str
    source: str
    correlation_id: str | None
    error_type: str
    message: str
    classification: str
    retryable: bool
    timestamp: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return a serializable dictionary representation of the error report."""

        payload: dict[str, Any] = {
            "kind": self.kind,
            "source": self.source,
            "correlation_id": self.correlation_id,
            "error_type": self.error_type,
            "message": self.message,
            "classification": self.classification,
            "retryable": self.retryable,
            "timestamp": self.timestamp,
        }
        if self.details:
            payload["details"] = self.details
        return payload


def build_error_report(
    exc: Exception,
    *,
    kind: str,
    source: str,
    correlation_id: str | None,
    extra_details: dict[str, Any] | None = None,
) -> ReconcileErrorReport:
    """Construct a :class:`ReconcileErrorReport` describing the supplied exception."""

    cause = exc.cause if isinstance(exc, PermanentError) else exc
    classification, retryable = _classify_exception(exc)

    timestamp = datetime.now(timezone.utc).isoformat()
    details: dict[str, Any] = {
        "exception_module": cause.__class__.__module__,
    }
    event = getattr(exc, "event", None)
    if event is not None:
        details["event"] = {"type": event.severity, "reason": event.reason}
    if extra_details:
        details.update(extra_details)

    message = str(exc) if str(exc) else cause.__class__.__name__

    return ReconcileErrorReport(
        kind=kind,
        source=source,
        correlation_id=correlation_id,
        error_type=cause.__class__.__name__,
        message=message,
        classification=classification,
        retryable=retryable,
        timestamp=timestamp,
        details=details,
    )


def _classify_exception(exc: Exception) -> tuple[str, bool]:
    """Return a tuple of (classification, retryable) for a given exception."""

    if isinstance(exc, PermanentError):
        classification, _ = _classify_exception(exc.cause)
        return classification, False
    if isinstance(exc, SourceKindNotFoundError):
        return "configuration", False
    if isinstance(exc, ConfigurationError):
        return "configuration", False
    if isinstance(exc, MisconfiguredError):
        return "misconfigured", False
    if isinstance(exc, RemoteRejectedError):
        return "remote_rejected", False
    if isinstance(exc, DependencyNotFoundError):
        return "dependency_not_found", True
    if isinstance(exc, DependencyUnavailableError):
        return "dependency_unavailable", True
    if isinstance(exc, RemoteTransientError):
        return "remote_transient", True
    if isinstance(exc, LocalConflictError):
        return "conflict", True
    if isinstance(exc, EventSourcesError):
        return "application", True
    return "unexpected", True
