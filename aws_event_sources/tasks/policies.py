"""Retry policy applied by the dispatcher to failed reconciliation passes."""

from __future__ import annotations

from dataclasses import dataclass

from ..utils.config import GlobalSettings


@dataclass(slots=True)
class ReconcileRetryPolicy:
    """Exponential, capped backoff for retryable reconciliation failures."""

    max_retries: int
    backoff_seconds: float
    max_backoff_seconds: float

    def __post_init__(self) -> None:
        """Validate policy boundaries to avoid misconfiguration."""

        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.backoff_seconds <= 0:
            raise ValueError("backoff_seconds must be greater than zero")
        if self.max_backoff_seconds <= 0:
            raise ValueError("max_backoff_seconds must be greater than zero")
        if self.max_backoff_seconds < self.backoff_seconds:
            raise ValueError("max_backoff_seconds must be >= backoff_seconds")

    def next_countdown(self, retry_number: int) -> int:
        """Compute the delay before the next retry attempt."""

        exponent = max(retry_number, 0)
        delay = self.backoff_seconds * (2**exponent)
        return int(min(delay, self.max_backoff_seconds))

    def to_dict(self) -> dict[str, object]:
        """Return a serializable representation for logging."""

        return {
            "max_retries": self.max_retries,
            "backoff_seconds": self.backoff_seconds,
            "max_backoff_seconds": self.max_backoff_seconds,
        }

    @classmethod
    def from_settings(cls, settings: GlobalSettings) -> ReconcileRetryPolicy:
        """Build the policy from the Celery retry settings."""

        return cls(
            max_retries=settings.celery_max_retries,
            backoff_seconds=settings.celery_retry_backoff_seconds,
            max_backoff_seconds=settings.celery_retry_max_backoff_seconds,
        )
