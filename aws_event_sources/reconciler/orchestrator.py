"""Entry point of a reconciliation pass for one source object."""

from __future__ import annotations

from ..cluster.interfaces import EventRecorder, KubeObject
from ..constants import EVENT_REASON_INTERNAL_ERROR
from ..exceptions import EventSourcesError, ReconcileEvent, is_permanent
from ..models.source import Source
from ..subscriptions.sns import SNSSubscriptionManager
from ..utils.config import AdapterConfiguration, AdapterLabels
from ..utils.logging import setup_logger
from .adapter import AdapterReconciler, SinkURIResolver
from .kinds import SourceKind

logger = setup_logger(__name__, context={"kind": "SourceReconciler"})


class SourceReconciler:
    """Sequences sink resolution, adapter convergence and subscription management.

    Within a pass the sink is always resolved before the adapter is converged,
    and the adapter is always converged before the subscription is aligned, so
    that the subscription observes the adapter's public address.
    """

    def __init__(
        self,
        source_kind: SourceKind,
        adapters: AdapterReconciler,
        sink_resolver: SinkURIResolver,
        recorder: EventRecorder,
        *,
        adapter_config: AdapterConfiguration,
        labels: AdapterLabels,
        subscriptions: SNSSubscriptionManager | None = None,
    ) -> None:
        if source_kind.subscribes and subscriptions is None:
            raise ValueError(f"{source_kind.kind} requires a subscription manager")

        self.source_kind = source_kind
        self.adapters = adapters
        self.sink_resolver = sink_resolver
        self.recorder = recorder
        self.adapter_config = adapter_config
        self.labels = labels
        self.subscriptions = subscriptions

    def prepare(self, source: Source) -> Source:
        """Attach the condition set of the kind and initialize the status of a source."""

        source.with_condition_set(self.source_kind.condition_set)
        source.status_manager.initialize_conditions()
        return source

    def reconcile(self, source: Source, *, skip_side_effects: bool = False) -> ReconcileEvent | None:
        """
        Run one reconciliation pass.

        Args:
            source: Source to reconcile; its status is updated in place
            skip_side_effects: Do not call external services during this pass

        Returns:
            The event describing the outcome, if any

        Raises:
            PermanentError: If the pass failed and must not be retried
            EventSourcesError: If the pass failed and should be retried
        """
        self.prepare(source)
        source.status.observed_generation = source.metadata.generation

        def build_adapter(sink_uri: str) -> KubeObject:
            return self.source_kind.build_adapter(
                source, sink_uri, self.adapter_config, self.labels
            )

        try:
            adapter = self.adapters.reconcile_source(
                source,
                self.sink_resolver,
                build_adapter,
                ce_attributes=self.source_kind.ce_attributes(source),
            )

            event = None
            if self.source_kind.subscribes:
                address = self.source_kind.workload.address(adapter)
                event = self.subscriptions.ensure_subscribed(
                    source, address, skip=skip_side_effects
                )
        except EventSourcesError as exc:
            self._record_failure(source, exc)
            raise

        if event is not None:
            self.recorder.record(source.to_api(), event)
        return event

    def finalize(self, source: Source, *, skip_side_effects: bool = False) -> ReconcileEvent | None:
        """
        Tear down the external state of a source being deleted.

        Args:
            source: Source being finalized; its status is updated in place
            skip_side_effects: Do not call external services during this pass

        Returns:
            The event describing the outcome, if any

        Raises:
            EventSourcesError: If the teardown failed and should be retried
        """
        self.prepare(source)

        if not self.source_kind.subscribes:
            return None

        try:
            event = self.subscriptions.ensure_unsubscribed(
                source, skip=skip_side_effects
            )
        except EventSourcesError as exc:
            self._record_failure(source, exc)
            raise

        if event is not None:
            self.recorder.record(source.to_api(), event)
        return event

    def _record_failure(self, source: Source, exc: EventSourcesError) -> None:
        event = exc.event
        if event is None:
            event = ReconcileEvent.warning(EVENT_REASON_INTERNAL_ERROR, "%s", exc)

        self.recorder.record(source.to_api(), event)
        logger.warning(
            "Reconciliation failed: %s",
            event.message,
            extra={
                "source": source.key,
                "kind": source.kind,
                "status": "permanent_error" if is_permanent(exc) else "error",
            },
        )
