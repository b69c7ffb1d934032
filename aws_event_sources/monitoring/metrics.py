"""Prometheus metrics definitions for aws_event_sources."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

RECONCILE_ATTEMPTS = Counter(
    "source_reconcile_attempts_total",
    "Total reconciliation passes by source kind and outcome.",
    labelnames=("kind", "outcome"),
)

RECONCILE_ERRORS = Counter(
    "source_reconcile_errors_total",
    "Total reconciliation errors grouped by error type.",
    labelnames=("error_type",),
)

RECONCILE_DURATION = Histogram(
    "source_reconcile_duration_seconds",
    "Distribution of reconciliation pass durations in seconds.",
    labelnames=("kind",),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

ADAPTER_WRITES = Counter(
    "adapter_writes_total",
    "Total writes of adapter workloads by workload kind and operation.",
    labelnames=("workload", "operation"),
)

SUBSCRIPTION_OPERATIONS = Counter(
    "subscription_operations_total",
    "Total subscription operations against the notification service by outcome.",
    labelnames=("operation", "outcome"),
)


def record_reconcile_attempt(kind: str, outcome: str) -> None:
    """Increment the reconciliation counter with the supplied labels."""

    RECONCILE_ATTEMPTS.labels(kind=kind, outcome=outcome).inc()


def record_reconcile_error(error_type: str) -> None:
    """Increment the reconciliation errors counter for the provided error type."""

    RECONCILE_ERRORS.labels(error_type=error_type).inc()


def observe_reconcile_duration(kind: str, duration_seconds: float) -> None:
    """Record the duration of a reconciliation pass in seconds."""

    RECONCILE_DURATION.labels(kind=kind).observe(max(duration_seconds, 0.0))


def record_adapter_write(workload: str, operation: str) -> None:
    """
    Record a write of an adapter workload.

    Args:
        workload: Workload kind (Deployment, Service)
        operation: Write operation (create, update)
    """
    ADAPTER_WRITES.labels(workload=workload, operation=operation).inc()


def record_subscription_operation(operation: str, outcome: str) -> None:
    """
    Record the outcome of a subscription operation.

    Args:
        operation: subscribe or unsubscribe
        outcome: Classified outcome (subscribed, rejected, transient, absent, ...)
    """
    SUBSCRIPTION_OPERATIONS.labels(operation=operation, outcome=outcome).inc()
