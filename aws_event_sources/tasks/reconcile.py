"""Celery reconciliation tasks, one per registered source kind."""

from __future__ import annotations

import time
import uuid
from typing import Any, cast

from celery import Task
from pydantic import ValidationError as PydanticValidationError

from ..cluster.interfaces import EventRecorder, RecordingEventRecorder
from ..constants import FINALIZER
from ..controller import get_controller_context
from ..exceptions import (
    DependencyNotFoundError,
    EventSourcesError,
    MisconfiguredError,
    PermanentError,
    TaskExecutionError,
)
from ..models.source import Source
from ..monitoring.metrics import (
    observe_reconcile_duration,
    record_reconcile_attempt,
    record_reconcile_error,
)
from ..reconciler.kinds import get_source_kind, list_source_kinds
from ..utils.config import get_settings
from ..utils.logging import log_reconcile_attempt, setup_logger
from .celery_app import celery_app
from .error_handling import build_error_report
from .policies import ReconcileRetryPolicy

logger = setup_logger(__name__, context={"kind": "CeleryTasks"})

RECONCILE_TASKS: dict[str, Task] = {}


def _prepare_request(request_payload: dict[str, Any]) -> tuple[str, str, str]:
    """Extract the namespaced name and correlation ID of the source to reconcile."""

    namespace = request_payload.get("namespace")
    name = request_payload.get("name")
    if not isinstance(namespace, str) or not namespace or not isinstance(name, str) or not name:
        raise ValueError("`namespace` and `name` must be provided for reconciliation tasks.")

    correlation_id = request_payload.get("correlation_id") or uuid.uuid4().hex
    return namespace, name, correlation_id


def _observe_resource_version(source: Source, written: dict[str, Any] | None) -> None:
    """Carry the resourceVersion returned by a write over to the next write."""

    resource_version = ((written or {}).get("metadata") or {}).get("resourceVersion")
    if resource_version:
        source.metadata.resource_version = resource_version


def run_reconciliation(
    kind: str,
    request_payload: dict[str, Any],
    *,
    recorder: EventRecorder | None = None,
) -> dict[str, Any]:
    """
    Run one reconciliation pass of a source synchronously.

    Args:
        kind: Kind of the source
        request_payload: ``namespace`` and ``name`` of the source, optional
            ``correlation_id`` and ``dry_run`` flag
        recorder: Event recorder overriding the controller's recorder

    Returns:
        Summary of the pass

    Raises:
        TaskExecutionError: If the pass failed; the report tells whether it may be retried
    """
    settings = get_settings()
    namespace, name, correlation_id = _prepare_request(request_payload)
    dry_run = bool(request_payload.get("dry_run", settings.dry_run))
    key = f"{namespace}/{name}"
    policy = ReconcileRetryPolicy.from_settings(settings)

    if dry_run and recorder is None:
        recorder = RecordingEventRecorder()

    started = time.perf_counter()
    status_updated = False
    outcome = "reconciled"

    try:
        source_kind = get_source_kind(kind)
        context = get_controller_context()

        try:
            obj = context.sources.get_source(kind, namespace, name)
        except DependencyNotFoundError:
            # the object was deleted after the task was queued
            record_reconcile_attempt(kind, "absent")
            logger.info(
                "Source no longer exists, nothing to reconcile",
                extra={"source": key, "kind": kind, "correlation_id": correlation_id},
            )
            return {"status": "absent", "kind": kind, "source": key, "event": None}

        try:
            source = Source.from_object(obj)
        except PydanticValidationError as exc:
            raise PermanentError(
                MisconfiguredError(f"Invalid {kind} {key}: {exc.error_count()} validation error(s)")
            ) from exc
        observed_status = source.status.to_api()
        reconciler = context.reconciler_for(source_kind, recorder=recorder, dry_run=dry_run)

        try:
            if source.is_deleting:
                outcome = "finalized"
                event = None
                if FINALIZER in source.metadata.finalizers:
                    event = reconciler.finalize(source, skip_side_effects=dry_run)
            else:
                if source_kind.subscribes and FINALIZER not in source.metadata.finalizers and not dry_run:
                    finalizers = [*source.metadata.finalizers, FINALIZER]
                    updated = context.sources.update_finalizers(kind, source.to_api(), finalizers)
                    source.metadata.finalizers = finalizers
                    _observe_resource_version(source, updated)
                event = reconciler.reconcile(source, skip_side_effects=dry_run)
        finally:
            if source.status.to_api() != observed_status and not dry_run:
                written = context.sources.update_status(kind, source.to_api())
                _observe_resource_version(source, written)
                status_updated = True

        if source.is_deleting and FINALIZER in source.metadata.finalizers and not dry_run:
            finalizers = [f for f in source.metadata.finalizers if f != FINALIZER]
            context.sources.update_finalizers(kind, source.to_api(), finalizers)
            source.metadata.finalizers = finalizers

    except Exception as exc:
        duration = time.perf_counter() - started
        report = build_error_report(
            exc,
            kind=kind,
            source=key,
            correlation_id=correlation_id,
            extra_details={"retry_policy": policy.to_dict(), "dry_run": dry_run},
        )
        outcome_label = "error" if report.retryable else "permanent_error"

        record_reconcile_attempt(kind, outcome_label)
        record_reconcile_error(report.error_type)
        observe_reconcile_duration(kind, duration)
        log_reconcile_attempt(
            logger,
            source=key,
            kind=kind,
            duration_ms=int(duration * 1000),
            status=outcome_label,
            correlation_id=correlation_id,
            error=report.message,
            classification=report.classification,
        )

        if not isinstance(exc, EventSourcesError):
            logger.exception(
                "Unexpected error during reconciliation task",
                extra={"source": key, "kind": kind, "correlation_id": correlation_id, "status": "error"},
            )
        raise TaskExecutionError(report, original_error=exc, retry_policy=policy) from exc

    duration = time.perf_counter() - started
    record_reconcile_attempt(kind, outcome)
    observe_reconcile_duration(kind, duration)
    log_reconcile_attempt(
        logger,
        source=key,
        kind=kind,
        duration_ms=int(duration * 1000),
        status="success",
        correlation_id=correlation_id,
        outcome=outcome,
    )

    result: dict[str, Any] = {
        "status": "success",
        "kind": kind,
        "source": key,
        "outcome": outcome,
        "ready": source.status_manager.is_ready(),
        "status_updated": status_updated,
        "event": (
            {"type": event.severity, "reason": event.reason, "message": event.message}
            if event is not None
            else None
        ),
        "source_status": source.status.to_api(),
    }
    if isinstance(recorder, RecordingEventRecorder):
        result["events"] = [
            {"type": e.severity, "reason": e.reason, "message": e.message}
            for _, e in recorder.events
        ]
    return result


def _register_task(kind: str) -> None:
    """Register a Celery task for the provided source kind."""

    task_name = f"reconcile_{kind.lower()}_task"

    @celery_app.task(name=task_name, bind=True)
    def _task(self, request_payload: dict[str, Any]) -> dict[str, Any]:
        """Run a reconciliation pass for the bound source kind."""

        try:
            return run_reconciliation(kind, request_payload)
        except TaskExecutionError as exc:
            policy = exc.retry_policy
            if not exc.report.retryable or policy is None:
                raise
            retries = self.request.retries or 0
            raise self.retry(
                exc=exc,
                countdown=policy.next_countdown(retries),
                max_retries=policy.max_retries,
            )

    RECONCILE_TASKS[kind] = cast(Task, _task)


for kind_name in list_source_kinds():
    _register_task(kind_name)


__all__ = [
    "RECONCILE_TASKS",
    "run_reconciliation",
]
