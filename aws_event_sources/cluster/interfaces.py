"""Contracts of the cluster collaborators consumed by the reconcilers.

The reconcilers never talk to the cluster directly. Objects travel as plain
API dictionaries so that any client (the official Kubernetes client, a fake in
tests) can satisfy these protocols.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from ..exceptions import ReconcileEvent

KubeObject = dict[str, Any]


class WorkloadStore(Protocol):
    """Read/write access to one workload kind in one API group."""

    def list(self, namespace: str, selector: Mapping[str, str]) -> list[KubeObject]:
        """Return objects whose labels match every pair of the selector."""

    def create(self, namespace: str, obj: KubeObject) -> KubeObject:
        """Create the object and return it as stored."""

    def update(self, namespace: str, obj: KubeObject) -> KubeObject:
        """Replace the object; raises LocalConflictError on a stale resourceVersion."""


class ObjectGetter(Protocol):
    """Read access to arbitrary objects, used to resolve sink references."""

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> KubeObject:
        """Return the object; raises DependencyNotFoundError when absent."""


class SecretGetter(Protocol):
    """Read access to Secrets of a namespace."""

    def get_secret(self, namespace: str, name: str) -> Mapping[str, str]:
        """Return the decoded data of the Secret; raises DependencyNotFoundError when absent."""


class PodReader(Protocol):
    """Read access to the pods backing a workload."""

    def list_pods(self, namespace: str, selector: Mapping[str, str]) -> list[KubeObject]:
        """Return pods whose labels match every pair of the selector."""


class EventRecorder(Protocol):
    """Fire-and-forget recorder of events attached to a source object."""

    def record(self, obj: KubeObject, event: ReconcileEvent) -> None:
        """Record the event; must never raise."""


class SourceStore(Protocol):
    """Read/write access to source objects and their status."""

    def get_source(self, kind: str, namespace: str, name: str) -> KubeObject:
        """Return the source object."""

    def update_status(self, kind: str, obj: KubeObject) -> KubeObject:
        """Write the status sub-resource of the source."""

    def update_finalizers(self, kind: str, obj: KubeObject, finalizers: list[str]) -> KubeObject:
        """Replace the finalizers of the source."""


class RecordingEventRecorder:
    """Event recorder that keeps events in memory.

    Used for dry runs and by the CLI to report what a pass would emit.
    """

    def __init__(self) -> None:
        self.events: list[tuple[str, ReconcileEvent]] = []

    def record(self, obj: KubeObject, event: ReconcileEvent) -> None:
        metadata = obj.get("metadata") or {}
        key = f"{metadata.get('namespace', '')}/{metadata.get('name', '')}"
        self.events.append((key, event))
