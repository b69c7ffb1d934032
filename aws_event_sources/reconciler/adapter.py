"""Convergence of the adapter workload of a source."""

from __future__ import annotations

import copy
from collections.abc import Callable

from ..cluster.interfaces import EventRecorder, KubeObject, PodReader, WorkloadStore
from ..constants import (
    EVENT_REASON_ADAPTER_CREATE,
    EVENT_REASON_ADAPTER_UPDATE,
    EVENT_REASON_BAD_SINK_URI,
    EVENT_REASON_FAILED_ADAPTER_CREATE,
    EVENT_REASON_FAILED_ADAPTER_UPDATE,
)
from ..exceptions import (
    DependencyNotFoundError,
    DependencyUnavailableError,
    EventSourcesError,
    LocalConflictError,
    MisconfiguredError,
    PermanentError,
    ReconcileEvent,
)
from ..models.source import Source
from ..models.status import CloudEventAttributes
from ..monitoring.metrics import record_adapter_write
from ..utils.config import AdapterLabels
from ..utils.logging import setup_logger
from .semantic import semantic_equal
from .workloads import WorkloadKind

logger = setup_logger(__name__, context={"kind": "AdapterReconciler"})

AdapterBuilder = Callable[[str], KubeObject]
SinkURIResolver = Callable[[Source], str]


def adapter_name(source: Source) -> str:
    """Return the value of the app name label shared by all adapters of a source kind."""

    return source.kind.lower()


class AdapterReconciler:
    """Create-or-update reconciler of the adapter workload of a source.

    The same engine serves every workload kind; behaviors that differ between
    kinds (readiness, public address, availability explanation) are delegated
    to the :class:`WorkloadKind`.
    """

    def __init__(
        self,
        kind: WorkloadKind,
        store: WorkloadStore,
        recorder: EventRecorder,
        labels: AdapterLabels,
        pod_reader: PodReader | None = None,
    ) -> None:
        self.kind = kind
        self.store = store
        self.recorder = recorder
        self.labels = labels
        self.pod_reader = pod_reader

    def reconcile_source(
        self,
        source: Source,
        sink_resolver: SinkURIResolver,
        build_adapter: AdapterBuilder,
        *,
        ce_attributes: list[CloudEventAttributes] | None = None,
    ) -> KubeObject:
        """
        Converge the adapter of a source and reflect its state onto the source's status.

        Args:
            source: Source being reconciled; its status is updated in place
            sink_resolver: Callable returning the sink URL of the source
            build_adapter: Callable building the desired adapter from a sink URL
            ce_attributes: CloudEvent attributes to store on the status

        Returns:
            The adapter object as observed after convergence

        Raises:
            PermanentError: If the sink of the source can not be resolved
            EventSourcesError: Any other failure, to be retried
        """
        status = source.status_manager

        if ce_attributes is not None:
            status.set_ce_attributes(ce_attributes)

        try:
            sink_uri = sink_resolver(source)
        except EventSourcesError as exc:
            status.mark_no_sink()
            event = ReconcileEvent.warning(
                EVENT_REASON_BAD_SINK_URI, "Could not resolve sink URI: %s", exc
            )
            raise PermanentError(MisconfiguredError.from_event(event)) from exc
        status.mark_sink(sink_uri)

        desired = build_adapter(sink_uri)

        try:
            current = self.get_or_create_adapter(source, desired)
        except EventSourcesError:
            self.kind.propagate_availability(status, None)
            raise

        current = self.sync_adapter(source, current, desired)
        self.kind.propagate_availability(status, current, self.pod_reader)

        return current

    def find_adapter(self, source: Source) -> KubeObject:
        """
        Return the adapter of a source.

        The combination of the app name and instance labels is unique and
        immutable. Objects carrying those labels but not controlled by the
        source are disregarded.

        Raises:
            DependencyNotFoundError: If no adapter controlled by the source exists
        """
        selector = self.labels.selector(adapter_name(source), source.name)

        for obj in self.store.list(source.namespace, selector):
            if source.controls(obj):
                return obj

        selector_repr = ",".join(f"{key}={value}" for key, value in sorted(selector.items()))
        raise DependencyNotFoundError(
            f"{self.kind.plural}.{self.kind.group or 'core'} not found for selector {selector_repr}"
        )

    def get_or_create_adapter(self, source: Source, desired: KubeObject) -> KubeObject:
        """Return the existing adapter of a source, creating it when it is missing."""

        try:
            return self.find_adapter(source)
        except DependencyNotFoundError:
            pass
        except EventSourcesError:
            raise
        except Exception as exc:
            raise DependencyUnavailableError(
                f"Failed to get adapter {self.kind.kind} from cache: {exc}"
            ) from exc

        name = desired["metadata"]["name"]
        try:
            created = self.store.create(source.namespace, desired)
        except Exception as exc:
            event = ReconcileEvent.warning(
                EVENT_REASON_FAILED_ADAPTER_CREATE,
                'Failed to create adapter %s "%s": %s',
                self.kind.kind,
                name,
                exc,
            )
            raise DependencyUnavailableError.from_event(event) from exc

        record_adapter_write(self.kind.kind, "create")
        self.recorder.record(
            source.to_api(),
            ReconcileEvent.normal(
                EVENT_REASON_ADAPTER_CREATE,
                'Created adapter %s "%s"',
                self.kind.kind,
                created["metadata"]["name"],
            ),
        )
        logger.info(
            "Created adapter %s %s",
            self.kind.kind,
            name,
            extra={"source": source.key, "status": "created"},
        )
        return created

    def sync_adapter(self, source: Source, current: KubeObject, desired: KubeObject) -> KubeObject:
        """Update the adapter when its current state diverges from the desired state."""

        if semantic_equal(desired, current, ignored_annotations=self.kind.immutable_annotations):
            return current

        desired = copy.deepcopy(desired)
        desired_meta = desired.setdefault("metadata", {})
        current_meta = current.get("metadata") or {}

        # required by the API server for optimistic concurrency
        if current_meta.get("resourceVersion") is not None:
            desired_meta["resourceVersion"] = current_meta["resourceVersion"]

        current_annotations = current_meta.get("annotations") or {}
        for annotation in self.kind.immutable_annotations:
            if annotation in current_annotations:
                desired_meta.setdefault("annotations", {})[annotation] = current_annotations[annotation]

        if "status" in current:
            desired["status"] = copy.deepcopy(current["status"])

        name = desired_meta.get("name", "")

        try:
            updated = self.store.update(source.namespace, desired)
        except LocalConflictError:
            raise
        except Exception as exc:
            event = ReconcileEvent.warning(
                EVENT_REASON_FAILED_ADAPTER_UPDATE,
                'Failed to update adapter %s "%s": %s',
                self.kind.kind,
                name,
                exc,
            )
            raise DependencyUnavailableError.from_event(event) from exc

        record_adapter_write(self.kind.kind, "update")
        self.recorder.record(
            source.to_api(),
            ReconcileEvent.normal(
                EVENT_REASON_ADAPTER_UPDATE,
                'Updated adapter %s "%s"',
                self.kind.kind,
                updated["metadata"]["name"],
            ),
        )
        logger.info(
            "Updated adapter %s %s",
            self.kind.kind,
            name,
            extra={"source": source.key, "status": "updated"},
        )
        return updated
