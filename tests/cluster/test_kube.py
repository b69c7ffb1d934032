"""Tests for the cluster collaborators backed by the Kubernetes client."""

from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from aws_event_sources.cluster import kube
from aws_event_sources.constants import API_GROUP, API_VERSION, MANAGED_BY
from aws_event_sources.exceptions import (
    ConfigurationError,
    DependencyNotFoundError,
    DependencyUnavailableError,
    LocalConflictError,
    ReconcileEvent,
)
from aws_event_sources.utils.config import KubernetesSettings


@pytest.fixture
def custom_api(monkeypatch):
    api = Mock(name="CustomObjectsApi")
    monkeypatch.setattr(kube.client, "CustomObjectsApi", lambda api_client: api)
    return api


@pytest.fixture
def core_api(monkeypatch):
    api = Mock(name="CoreV1Api")
    monkeypatch.setattr(kube.client, "CoreV1Api", lambda api_client: api)
    return api


class TestHelpers:
    """Error translation, selectors and resource names."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (404, DependencyNotFoundError),
            (409, LocalConflictError),
            (500, DependencyUnavailableError),
            (403, DependencyUnavailableError),
        ],
    )
    def test_translate_api_error(self, status, expected):
        error = kube.translate_api_error(ApiException(status=status, reason="Reason"), "Secret team-a/x")

        assert isinstance(error, expected)
        assert "Secret team-a/x" in str(error)

    @pytest.mark.parametrize(
        ("kind", "plural"),
        [
            ("AWSSQSSource", "awssqssources"),
            ("Broker", "brokers"),
            ("Policy", "policies"),
            ("Class", "classes"),
        ],
    )
    def test_plural_of(self, kind, plural):
        assert kube.plural_of(kind) == plural

    def test_label_selector_is_sorted(self):
        selector = kube.label_selector({"b": "2", "a": "1"})

        assert selector == "a=1,b=2"


class TestLoadApiClient:
    def test_kubeconfig(self, monkeypatch):
        load = Mock()
        monkeypatch.setattr(kube.config, "load_kube_config", load)
        monkeypatch.setattr(kube.client, "ApiClient", lambda: "api-client")

        api_client = kube.load_api_client(KubernetesSettings(context="kind-dev"))

        assert api_client == "api-client"
        load.assert_called_once_with(config_file=None, context="kind-dev")

    def test_configuration_errors_are_wrapped(self, monkeypatch):
        def fail():
            raise ConfigException("Service host/port is not set.")

        monkeypatch.setattr(kube.config, "load_incluster_config", fail)

        with pytest.raises(ConfigurationError, match="Unable to load Kubernetes configuration"):
            kube.load_api_client(KubernetesSettings(in_cluster=True))


class TestKubeWorkloadStore:
    """Namespaced custom object access of adapter workloads."""

    def test_list_uses_label_selector(self, custom_api):
        custom_api.list_namespaced_custom_object.return_value = {"items": [{"metadata": {"name": "a"}}]}
        store = kube.KubeWorkloadStore(Mock(), "apps", "v1", "deployments", request_timeout=5)

        items = store.list("team-a", {"app": "x"})

        assert items == [{"metadata": {"name": "a"}}]
        custom_api.list_namespaced_custom_object.assert_called_once_with(
            "apps", "v1", "team-a", "deployments", label_selector="app=x", _request_timeout=5
        )

    def test_update_conflict(self, custom_api):
        custom_api.replace_namespaced_custom_object.side_effect = ApiException(status=409, reason="Conflict")
        store = kube.KubeWorkloadStore(Mock(), "serving.knative.dev", "v1", "services")

        with pytest.raises(LocalConflictError):
            store.update("team-a", {"metadata": {"name": "svc"}})

    def test_create_failure(self, custom_api):
        custom_api.create_namespaced_custom_object.side_effect = ApiException(status=503, reason="Unavailable")
        store = kube.KubeWorkloadStore(Mock(), "apps", "v1", "deployments")

        with pytest.raises(DependencyUnavailableError, match="deployments team-a/dep"):
            store.create("team-a", {"metadata": {"name": "dep"}})


class TestKubeCluster:
    """Reads of arbitrary objects, Secrets and Pods, and event recording."""

    def test_get_custom_object(self, custom_api, core_api):
        custom_api.get_namespaced_custom_object.return_value = {"kind": "Broker"}
        cluster = kube.KubeCluster(Mock())

        obj = cluster.get("eventing.knative.dev/v1", "Broker", "team-a", "default")

        assert obj == {"kind": "Broker"}
        custom_api.get_namespaced_custom_object.assert_called_once_with(
            "eventing.knative.dev", "v1", "team-a", "brokers", "default", _request_timeout=30.0
        )

    def test_get_core_service_is_serialized(self, custom_api, core_api):
        api_client = Mock()
        api_client.sanitize_for_serialization.return_value = {"kind": "Service"}
        cluster = kube.KubeCluster(api_client)

        obj = cluster.get("v1", "Service", "team-a", "web")

        assert obj == {"kind": "Service"}
        core_api.read_namespaced_service.assert_called_once_with("web", "team-a", _request_timeout=30.0)

    def test_get_unsupported_core_kind(self, custom_api, core_api):
        cluster = kube.KubeCluster(Mock())

        with pytest.raises(DependencyUnavailableError, match="Unsupported core kind ConfigMap"):
            cluster.get("v1", "ConfigMap", "team-a", "cm")

    def test_get_missing_object(self, custom_api, core_api):
        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")
        cluster = kube.KubeCluster(Mock())

        with pytest.raises(DependencyNotFoundError, match="Broker team-a/default not found"):
            cluster.get("eventing.knative.dev/v1", "Broker", "team-a", "default")

    def test_get_secret_decodes_data(self, custom_api, core_api):
        encoded = base64.b64encode(b"AKIDEXAMPLE").decode()
        core_api.read_namespaced_secret.return_value = SimpleNamespace(data={"key_id": encoded})
        cluster = kube.KubeCluster(Mock())

        assert cluster.get_secret("team-a", "aws-creds") == {"key_id": "AKIDEXAMPLE"}

    def test_get_secret_without_data(self, custom_api, core_api):
        core_api.read_namespaced_secret.return_value = SimpleNamespace(data=None)
        cluster = kube.KubeCluster(Mock())

        assert cluster.get_secret("team-a", "empty") == {}

    def test_list_pods(self, custom_api, core_api):
        api_client = Mock()
        api_client.sanitize_for_serialization.side_effect = lambda pod: {"name": pod}
        core_api.list_namespaced_pod.return_value = SimpleNamespace(items=["p1", "p2"])
        cluster = kube.KubeCluster(api_client)

        pods = cluster.list_pods("team-a", {"app": "x"})

        assert pods == [{"name": "p1"}, {"name": "p2"}]

    def test_record_creates_event(self, custom_api, core_api):
        cluster = kube.KubeCluster(Mock())
        source = {
            "apiVersion": f"{API_GROUP}/{API_VERSION}",
            "kind": "AWSSQSSource",
            "metadata": {"name": "q", "namespace": "team-a", "uid": "u-1"},
        }

        cluster.record(source, ReconcileEvent.normal("CreateAdapter", "Created adapter %s", "x"))

        namespace, body = core_api.create_namespaced_event.call_args.args
        assert namespace == "team-a"
        assert body["type"] == "Normal"
        assert body["reason"] == "CreateAdapter"
        assert body["involvedObject"]["uid"] == "u-1"
        assert body["source"] == {"component": MANAGED_BY}

    def test_record_never_raises(self, custom_api, core_api):
        core_api.create_namespaced_event.side_effect = ApiException(status=403, reason="Forbidden")
        cluster = kube.KubeCluster(Mock())

        cluster.record({"metadata": {"name": "q"}}, ReconcileEvent.warning("InternalError", "boom"))


class TestKubeSourceStore:
    """Source reads and subresource writes."""

    def test_get_source(self, custom_api):
        custom_api.get_namespaced_custom_object.return_value = {"kind": "AWSSNSSource"}
        store = kube.KubeSourceStore(Mock())

        assert store.get_source("AWSSNSSource", "team-a", "t") == {"kind": "AWSSNSSource"}
        custom_api.get_namespaced_custom_object.assert_called_once_with(
            API_GROUP, API_VERSION, "team-a", "awssnssources", "t", _request_timeout=30.0
        )

    def test_update_status_conflict(self, custom_api):
        custom_api.replace_namespaced_custom_object_status.side_effect = ApiException(
            status=409, reason="Conflict"
        )
        store = kube.KubeSourceStore(Mock())

        with pytest.raises(LocalConflictError, match="status of AWSSNSSource team-a/t"):
            store.update_status("AWSSNSSource", {"metadata": {"name": "t", "namespace": "team-a"}})

    def test_update_finalizers_patches_with_resource_version(self, custom_api):
        store = kube.KubeSourceStore(Mock())
        obj = {"metadata": {"name": "t", "namespace": "team-a", "resourceVersion": "42"}}

        store.update_finalizers("AWSSNSSource", obj, ["awssnssources.sources.triggermesh.io"])

        patch = custom_api.patch_namespaced_custom_object.call_args.args[5]
        assert patch == {
            "metadata": {
                "finalizers": ["awssnssources.sources.triggermesh.io"],
                "resourceVersion": "42",
            }
        }
