"""Access to the cluster the sources and their adapters live in."""

from .interfaces import (
    EventRecorder,
    KubeObject,
    ObjectGetter,
    PodReader,
    RecordingEventRecorder,
    SecretGetter,
    SourceStore,
    WorkloadStore,
)

__all__ = [
    "EventRecorder",
    "KubeObject",
    "ObjectGetter",
    "PodReader",
    "RecordingEventRecorder",
    "SecretGetter",
    "SourceStore",
    "WorkloadStore",
]
