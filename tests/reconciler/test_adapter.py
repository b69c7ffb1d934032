"""Tests for the adapter convergence engine."""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from aws_event_sources.constants import (
    ANNOTATION_SERVING_CREATOR,
    COND_DEPLOYED,
    COND_SINK_PROVIDED,
    EVENT_REASON_ADAPTER_CREATE,
    EVENT_REASON_ADAPTER_UPDATE,
    EVENT_REASON_BAD_SINK_URI,
    EVENT_REASON_FAILED_ADAPTER_CREATE,
    STATUS_FALSE,
    STATUS_TRUE,
    STATUS_UNKNOWN,
)
from aws_event_sources.exceptions import (
    DependencyNotFoundError,
    DependencyUnavailableError,
    LocalConflictError,
    MisconfiguredError,
    PermanentError,
)
from aws_event_sources.reconciler.adapter import AdapterReconciler, adapter_name
from aws_event_sources.reconciler.kinds import get_source_kind
from aws_event_sources.reconciler.workloads import DEPLOYMENT, KNATIVE_SERVICE
from aws_event_sources.utils.config import AdapterConfiguration, AdapterLabels

SINK_URL = "http://broker-ingress.knative-eventing.svc.cluster.local/team-a/default"
SQS_ARN = "arn:aws:sqs:us-east-1:123456789012:my-queue"


def _get_metric_value(metric_name: str, labels: dict[str, str]) -> float:
    value = REGISTRY.get_sample_value(metric_name, labels)
    return float(value) if value is not None else 0.0


def _resolve_sink(source):
    return SINK_URL


@pytest.fixture
def sqs_source(make_source):
    def _make(**overrides):
        source = make_source("AWSSQSSource", spec={"arn": SQS_ARN}, **overrides)
        source_kind = get_source_kind("AWSSQSSource")
        source.with_condition_set(source_kind.condition_set)
        source.status_manager.initialize_conditions()
        return source

    return _make


@pytest.fixture
def builder():
    def _builder(source):
        source_kind = get_source_kind(source.kind)

        def build(sink_uri):
            return source_kind.build_adapter(source, sink_uri, AdapterConfiguration(), AdapterLabels())

        return build

    return _builder


@pytest.fixture
def engine(workload_store, recorder) -> AdapterReconciler:
    return AdapterReconciler(DEPLOYMENT, workload_store, recorder, AdapterLabels())


def _condition(source, condition_type):
    return source.status.get_condition(condition_type)


class TestReconcileSource:
    """Full convergence passes."""

    def test_unresolvable_sink_is_permanent(self, engine, workload_store, recorder, sqs_source, builder):
        """No workload is created while the sink is unknown."""

        source = sqs_source()

        def failing_resolver(_):
            raise MisconfiguredError("Broker team-a/default does not contain address")

        with pytest.raises(PermanentError) as excinfo:
            engine.reconcile_source(source, failing_resolver, builder(source))

        assert isinstance(excinfo.value.cause, MisconfiguredError)
        assert excinfo.value.event.reason == EVENT_REASON_BAD_SINK_URI
        assert "does not contain address" in excinfo.value.event.message
        assert _condition(source, COND_SINK_PROVIDED).status == STATUS_FALSE
        assert workload_store.creates == []
        assert recorder.events == []

    def test_creates_missing_adapter(self, engine, workload_store, recorder, sqs_source, builder):
        """A missing workload is created once and reported as not ready yet."""

        source = sqs_source()
        before = _get_metric_value("adapter_writes_total", {"workload": "Deployment", "operation": "create"})

        adapter = engine.reconcile_source(source, _resolve_sink, builder(source))

        assert len(workload_store.creates) == 1
        assert workload_store.updates == []
        assert adapter["metadata"]["name"] == "awssqssource-my-source"
        assert source.status.sink_uri == SINK_URL
        assert _condition(source, COND_SINK_PROVIDED).status == STATUS_TRUE
        assert _condition(source, COND_DEPLOYED).status == STATUS_UNKNOWN
        assert not source.status_manager.is_ready()

        (key, event), = recorder.events
        assert key == "team-a/my-source"
        assert event.reason == EVENT_REASON_ADAPTER_CREATE
        assert event.message == 'Created adapter Deployment "awssqssource-my-source"'
        assert _get_metric_value(
            "adapter_writes_total", {"workload": "Deployment", "operation": "create"}
        ) == pytest.approx(before + 1)

    def test_second_pass_writes_nothing(self, engine, workload_store, recorder, sqs_source, builder):
        """Reconciling an unchanged source twice is idempotent."""

        source = sqs_source()
        engine.reconcile_source(source, _resolve_sink, builder(source))
        first_status = source.status.to_api()

        engine.reconcile_source(source, _resolve_sink, builder(source))

        assert len(workload_store.creates) == 1
        assert workload_store.updates == []
        assert len(recorder.events) == 1
        assert source.status.to_api() == first_status

    def test_ce_attributes_are_stored(self, engine, sqs_source, builder):
        source = sqs_source()

        engine.reconcile_source(
            source,
            _resolve_sink,
            builder(source),
            ce_attributes=get_source_kind("AWSSQSSource").ce_attributes(source),
        )

        assert source.status.to_api()["ceAttributes"] == [
            {"type": "com.amazon.sqs.message", "source": SQS_ARN}
        ]

    def test_available_adapter_marks_deployed(self, engine, workload_store, sqs_source, builder):
        source = sqs_source()
        engine.reconcile_source(source, _resolve_sink, builder(source))
        workload_store.set_status(
            "team-a", "awssqssource-my-source", {"conditions": [{"type": "Available", "status": "True"}]}
        )

        engine.reconcile_source(source, _resolve_sink, builder(source))

        assert source.status_manager.is_ready()
        assert workload_store.updates == []

    def test_lookup_failure_is_retryable(self, engine, workload_store, sqs_source, builder):
        """A failed lookup is neither absence nor permanent."""

        source = sqs_source()
        workload_store.list_error = RuntimeError("connection reset by peer")

        with pytest.raises(DependencyUnavailableError) as excinfo:
            engine.reconcile_source(source, _resolve_sink, builder(source))

        assert not isinstance(excinfo.value, PermanentError)
        assert workload_store.creates == []
        assert _condition(source, COND_DEPLOYED).status == STATUS_UNKNOWN

    def test_create_failure_is_retryable(self, engine, workload_store, sqs_source, builder):
        source = sqs_source()
        workload_store.create_error = RuntimeError("admission webhook denied the request")

        with pytest.raises(DependencyUnavailableError) as excinfo:
            engine.reconcile_source(source, _resolve_sink, builder(source))

        assert excinfo.value.event.reason == EVENT_REASON_FAILED_ADAPTER_CREATE
        assert "admission webhook" in excinfo.value.event.message


class TestOwnership:
    """Objects carrying the adapter labels but owned by someone else."""

    def test_foreign_object_is_never_returned(self, engine, workload_store, sqs_source, builder):
        source = sqs_source()
        foreign = builder(source)(SINK_URL)
        foreign["metadata"]["name"] = "impostor"
        foreign["metadata"]["ownerReferences"] = []
        workload_store.add(foreign)

        with pytest.raises(DependencyNotFoundError):
            engine.find_adapter(source)

        adapter = engine.get_or_create_adapter(source, builder(source)(SINK_URL))

        assert adapter["metadata"]["name"] == "awssqssource-my-source"
        assert source.controls(adapter)
        assert len(workload_store.creates) == 1

    def test_object_owned_by_namesake_is_foreign(self, engine, workload_store, sqs_source, builder):
        """A previous incarnation of the source has a different UID."""

        source = sqs_source()
        stale = builder(source)(SINK_URL)
        stale["metadata"]["ownerReferences"][0]["uid"] = "previous-uid"
        stale["metadata"]["name"] = "awssqssource-my-source-old"
        workload_store.add(stale)

        adapter = engine.get_or_create_adapter(source, builder(source)(SINK_URL))

        assert adapter["metadata"]["name"] == "awssqssource-my-source"

    def test_not_found_message_names_the_selector(self, engine, sqs_source):
        with pytest.raises(DependencyNotFoundError) as excinfo:
            engine.find_adapter(sqs_source())

        message = str(excinfo.value)
        assert message.startswith("deployments.apps not found")
        assert "app.kubernetes.io/instance=my-source" in message

    def test_adapter_name_is_lowercase_kind(self, sqs_source):
        assert adapter_name(sqs_source()) == "awssqssource"


class TestSyncAdapter:
    """Updates of diverging adapters."""

    def test_divergence_is_updated_with_current_token(self, engine, workload_store, recorder, sqs_source, builder):
        source = sqs_source()
        current = engine.get_or_create_adapter(source, builder(source)(SINK_URL))
        current["status"] = {"conditions": [{"type": "Available", "status": "True"}]}
        desired = builder(source)("http://other-sink.example/")

        updated = engine.sync_adapter(source, current, desired)

        (written,) = workload_store.updates
        assert written["metadata"]["resourceVersion"] == current["metadata"]["resourceVersion"]
        assert written["status"] == current["status"]
        env = {e["name"]: e.get("value") for e in written["spec"]["template"]["spec"]["containers"][0]["env"]}
        assert env["K_SINK"] == "http://other-sink.example/"
        assert updated["metadata"]["resourceVersion"] != current["metadata"]["resourceVersion"]
        assert recorder.events[-1][1].reason == EVENT_REASON_ADAPTER_UPDATE
        assert "resourceVersion" not in desired["metadata"]

    def test_equal_objects_are_not_written(self, engine, workload_store, sqs_source, builder):
        source = sqs_source()
        current = engine.get_or_create_adapter(source, builder(source)(SINK_URL))

        assert engine.sync_adapter(source, current, builder(source)(SINK_URL)) is current
        assert workload_store.updates == []

    def test_stale_token_conflict_propagates(self, engine, workload_store, sqs_source, builder):
        """A conflicting write is retried by re-running the whole pass."""

        source = sqs_source()
        current = engine.get_or_create_adapter(source, builder(source)(SINK_URL))
        current["metadata"]["resourceVersion"] = "0"

        with pytest.raises(LocalConflictError):
            engine.sync_adapter(source, current, builder(source)("http://other-sink.example/"))

    def test_provenance_annotations_are_preserved(self, workload_store, recorder, make_source):
        """Knative Serving refuses updates that alter its provenance annotations."""

        engine = AdapterReconciler(KNATIVE_SERVICE, workload_store, recorder, AdapterLabels())
        source = make_source("AWSSNSSource")
        source_kind = get_source_kind("AWSSNSSource")
        source.with_condition_set(source_kind.condition_set)

        current = engine.get_or_create_adapter(
            source, source_kind.build_adapter(source, SINK_URL, AdapterConfiguration(), AdapterLabels())
        )
        current["metadata"]["annotations"] = {ANNOTATION_SERVING_CREATOR: "system:serviceaccount:controller"}
        workload_store.add(current)

        unchanged = source_kind.build_adapter(source, SINK_URL, AdapterConfiguration(), AdapterLabels())
        engine.sync_adapter(source, current, unchanged)
        assert workload_store.updates == []

        changed = source_kind.build_adapter(
            source, SINK_URL, AdapterConfiguration(image_tag="v2"), AdapterLabels()
        )
        engine.sync_adapter(source, current, changed)

        (written,) = workload_store.updates
        assert written["metadata"]["annotations"] == {
            ANNOTATION_SERVING_CREATOR: "system:serviceaccount:controller"
        }
