"""Monitoring helpers for aws_event_sources."""

from .metrics import (
    observe_reconcile_duration,
    record_adapter_write,
    record_reconcile_attempt,
    record_reconcile_error,
    record_subscription_operation,
)

__all__ = [
    "observe_reconcile_duration",
    "record_adapter_write",
    "record_reconcile_attempt",
    "record_reconcile_error",
    "record_subscription_operation",
]
