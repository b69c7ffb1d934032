"""Reconciliation of event sources and their adapters."""

from .adapter import AdapterReconciler, adapter_name
from .kinds import SourceKind, get_source_kind, list_source_kinds, register_source_kind
from .orchestrator import SourceReconciler
from .semantic import semantic_equal
from .sinks import SinkResolver
from .workloads import DEPLOYMENT, KNATIVE_SERVICE, DeploymentKind, KnativeServiceKind, WorkloadKind

__all__ = [
    "AdapterReconciler",
    "DEPLOYMENT",
    "DeploymentKind",
    "KNATIVE_SERVICE",
    "KnativeServiceKind",
    "SinkResolver",
    "SourceKind",
    "SourceReconciler",
    "WorkloadKind",
    "adapter_name",
    "get_source_kind",
    "list_source_kinds",
    "register_source_kind",
    "semantic_equal",
]
