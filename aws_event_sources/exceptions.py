"""Custom exceptions for aws_event_sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .constants import EVENT_TYPE_NORMAL, EVENT_TYPE_WARNING

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from aws_event_sources.tasks.error_handling import ReconcileErrorReport
    from aws_event_sources.tasks.policies import ReconcileRetryPolicy


@dataclass(frozen=True, slots=True)
class ReconcileEvent:
    """A human-readable outcome destined for the source's event stream."""

    severity: str
    reason: str
    message: str

    @classmethod
    def normal(cls, reason: str, message: str, *args: Any) -> ReconcileEvent:
        return cls(EVENT_TYPE_NORMAL, reason, message % args if args else message)

    @classmethod
    def warning(cls, reason: str, message: str, *args: Any) -> ReconcileEvent:
        return cls(EVENT_TYPE_WARNING, reason, message % args if args else message)

    @property
    def is_warning(self) -> bool:
        return self.severity == EVENT_TYPE_WARNING

    def __str__(self) -> str:
        return self.message


class EventSourcesError(Exception):
    """Base exception for all aws_event_sources errors.

    An error may carry the event that describes it, so that whoever handles
    the error can surface the outcome on the source object.
    """

    def __init__(self, message: str, *, event: ReconcileEvent | None = None) -> None:
        super().__init__(message)
        self.event = event

    @classmethod
    def from_event(cls, event: ReconcileEvent) -> EventSourcesError:
        """Build an error whose message is the message of the given event."""

        return cls(event.message, event=event)


class DependencyNotFoundError(EventSourcesError):
    """Raised when a referenced object (Secret, workload, sink) does not exist."""

    pass


class DependencyUnavailableError(EventSourcesError):
    """Raised when a dependency lookup fails for a reason other than absence."""

    pass


class RemoteRejectedError(EventSourcesError):
    """Raised when the notification service rejects a request (validation, authorization)."""

    pass


class RemoteTransientError(EventSourcesError):
    """Raised when a call to the notification service fails transiently."""

    pass


class LocalConflictError(EventSourcesError):
    """Raised when a write is refused because of a stale concurrency-control token."""

    pass


class MisconfiguredError(EventSourcesError):
    """Raised when the desired state of a source cannot be acted upon."""

    pass


class ConfigurationError(EventSourcesError):
    """Raised when controller configuration or client input is invalid or missing."""

    pass


class SourceKindNotFoundError(EventSourcesError):
    """Raised when requested source kind is not registered."""

    pass


class PermanentError(EventSourcesError):
    """Wraps an error that must not be retried by the dispatcher."""

    def __init__(self, cause: Exception) -> None:
        event = getattr(cause, "event", None)
        super().__init__(str(cause), event=event)
        self.cause = cause
        self.__cause__ = cause


def is_permanent(exc: BaseException) -> bool:
    """Return True when the error was flagged as non-retryable."""

    return isinstance(exc, PermanentError)


class TaskExecutionError(EventSourcesError):
    """Raised when a Celery reconciliation task fails after structured reporting."""

    def __init__(
        self,
        report: ReconcileErrorReport,
        *,
        original_error: Exception | None = None,
        retry_policy: ReconcileRetryPolicy | None = None,
    ) -> None:
        super().__init__(report.message)
        self.report = report
        self.original_error = original_error
        self.retry_policy = retry_policy

    def as_dict(self) -> dict[str, Any]:
        """Return a serializable representation of the task error for logging/tests."""

        return {
            "message": self.report.message,
            "error_type": self.report.error_type,
            "classification": self.report.classification,
            "retryable": self.report.retryable,
        }
