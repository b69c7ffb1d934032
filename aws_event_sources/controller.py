"""Wiring of the reconcilers to their cluster collaborators."""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import lru_cache

from .cluster.interfaces import (
    EventRecorder,
    KubeObject,
    ObjectGetter,
    PodReader,
    SecretGetter,
    SourceStore,
    WorkloadStore,
)
from .cluster.kube import KubeCluster, KubeSourceStore, KubeWorkloadStore, load_api_client
from .reconciler.adapter import AdapterReconciler
from .reconciler.kinds import SourceKind
from .reconciler.orchestrator import SourceReconciler
from .reconciler.sinks import SinkResolver
from .reconciler.workloads import WorkloadKind
from .subscriptions.sns import SNSSubscriptionManager
from .utils.config import GlobalSettings, get_adapter_configuration, get_settings
from .utils.logging import setup_logger

logger = setup_logger(__name__, context={"kind": "Controller"})

WorkloadStoreFactory = Callable[[WorkloadKind], WorkloadStore]


class DryRunWorkloadStore:
    """Workload store that reads through and turns writes into log entries."""

    def __init__(self, store: WorkloadStore) -> None:
        self._store = store
        self.writes: list[tuple[str, KubeObject]] = []

    def list(self, namespace: str, selector: Mapping[str, str]) -> list[KubeObject]:
        return self._store.list(namespace, selector)

    def create(self, namespace: str, obj: KubeObject) -> KubeObject:
        logger.info(
            "Dry run: would create %s %s/%s",
            obj.get("kind"),
            namespace,
            obj["metadata"]["name"],
            extra={"status": "dry_run"},
        )
        self.writes.append(("create", obj))
        return copy.deepcopy(obj)

    def update(self, namespace: str, obj: KubeObject) -> KubeObject:
        logger.info(
            "Dry run: would update %s %s/%s",
            obj.get("kind"),
            namespace,
            obj["metadata"]["name"],
            extra={"status": "dry_run"},
        )
        self.writes.append(("update", obj))
        return copy.deepcopy(obj)


@dataclass(slots=True)
class ControllerContext:
    """Collaborators shared by every reconciliation pass of the controller."""

    settings: GlobalSettings
    sources: SourceStore
    objects: ObjectGetter
    secrets: SecretGetter
    pods: PodReader
    recorder: EventRecorder
    workload_stores: WorkloadStoreFactory

    def reconciler_for(
        self,
        source_kind: SourceKind,
        *,
        recorder: EventRecorder | None = None,
        dry_run: bool = False,
    ) -> SourceReconciler:
        """
        Assemble the reconciler of a source kind.

        Args:
            source_kind: Kind of the sources to reconcile
            recorder: Event recorder overriding the context's recorder
            dry_run: Turn adapter writes into log entries

        Returns:
            Reconciler ready to run passes
        """
        recorder = recorder or self.recorder

        store = self.workload_stores(source_kind.workload)
        if dry_run:
            store = DryRunWorkloadStore(store)

        adapters = AdapterReconciler(
            source_kind.workload,
            store,
            recorder,
            self.settings.labels,
            pod_reader=self.pods,
        )

        subscriptions = None
        if source_kind.subscribes:
            subscriptions = SNSSubscriptionManager(
                self.secrets, recorder, aws_settings=self.settings.aws
            )

        return SourceReconciler(
            source_kind,
            adapters,
            SinkResolver(self.objects),
            recorder,
            adapter_config=get_adapter_configuration(self.settings),
            labels=self.settings.labels,
            subscriptions=subscriptions,
        )


def build_kube_context(settings: GlobalSettings) -> ControllerContext:
    """Return a context whose collaborators talk to the cluster API."""

    api_client = load_api_client(settings.kubernetes)
    timeout = settings.kubernetes.request_timeout_seconds
    cluster = KubeCluster(api_client, request_timeout=timeout)

    def workload_stores(kind: WorkloadKind) -> WorkloadStore:
        return KubeWorkloadStore(
            api_client, kind.group, kind.version, kind.plural, request_timeout=timeout
        )

    return ControllerContext(
        settings=settings,
        sources=KubeSourceStore(api_client, request_timeout=timeout),
        objects=cluster,
        secrets=cluster,
        pods=cluster,
        recorder=cluster,
        workload_stores=workload_stores,
    )


@lru_cache(maxsize=1)
def _get_controller_context_cached() -> ControllerContext:
    return build_kube_context(get_settings())


def get_controller_context(*, reload: bool = False) -> ControllerContext:
    """Return the cached controller context, optionally forcing a rebuild."""

    if reload:
        _get_controller_context_cached.cache_clear()
    return _get_controller_context_cached()
