"""Cluster collaborators backed by the official Kubernetes Python client."""

from __future__ import annotations

import base64
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from ..constants import API_GROUP, API_VERSION, MANAGED_BY
from ..exceptions import (
    ConfigurationError,
    DependencyNotFoundError,
    DependencyUnavailableError,
    EventSourcesError,
    LocalConflictError,
    ReconcileEvent,
)
from ..utils.config import KubernetesSettings
from ..utils.logging import setup_logger
from .interfaces import KubeObject

logger = setup_logger(__name__, context={"kind": "KubeClient"})


def load_api_client(settings: KubernetesSettings) -> client.ApiClient:
    """Return an API client configured from the cluster or a kubeconfig file."""

    try:
        if settings.in_cluster:
            config.load_incluster_config()
        else:
            config.load_kube_config(
                config_file=str(settings.kubeconfig) if settings.kubeconfig else None,
                context=settings.context,
            )
    except ConfigException as exc:
        raise ConfigurationError(f"Unable to load Kubernetes configuration: {exc}") from exc

    return client.ApiClient()


def translate_api_error(exc: ApiException, what: str) -> EventSourcesError:
    """Map an API error to the error taxonomy of the reconcilers."""

    reason = exc.reason or exc.__class__.__name__
    if exc.status == 404:
        return DependencyNotFoundError(f"{what} not found")
    if exc.status == 409:
        return LocalConflictError(f"Conflict writing {what}: {reason}")
    return DependencyUnavailableError(f"Failed to access {what}: {exc.status} {reason}")


def label_selector(selector: Mapping[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(selector.items()))


def plural_of(kind: str) -> str:
    """Return the resource name of a kind, following the regular pluralization."""

    lowered = kind.lower()
    if lowered.endswith("s"):
        return f"{lowered}es"
    if lowered.endswith("y"):
        return f"{lowered[:-1]}ies"
    return f"{lowered}s"


def _split_api_version(api_version: str) -> tuple[str, str]:
    group, _, version = api_version.rpartition("/")
    return group, version


class KubeWorkloadStore:
    """:class:`WorkloadStore` of one workload resource in one API group."""

    def __init__(
        self,
        api_client: client.ApiClient,
        group: str,
        version: str,
        plural: str,
        *,
        request_timeout: float = 30.0,
    ) -> None:
        self._api = client.CustomObjectsApi(api_client)
        self.group = group
        self.version = version
        self.plural = plural
        self._timeout = request_timeout

    def list(self, namespace: str, selector: Mapping[str, str]) -> list[KubeObject]:
        try:
            result = self._api.list_namespaced_custom_object(
                self.group,
                self.version,
                namespace,
                self.plural,
                label_selector=label_selector(selector),
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise translate_api_error(exc, f"{self.plural} in {namespace}") from exc
        return list(result.get("items") or [])

    def create(self, namespace: str, obj: KubeObject) -> KubeObject:
        try:
            return self._api.create_namespaced_custom_object(
                self.group,
                self.version,
                namespace,
                self.plural,
                obj,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise translate_api_error(exc, f"{self.plural} {namespace}/{obj['metadata']['name']}") from exc

    def update(self, namespace: str, obj: KubeObject) -> KubeObject:
        name = obj["metadata"]["name"]
        try:
            return self._api.replace_namespaced_custom_object(
                self.group,
                self.version,
                namespace,
                self.plural,
                name,
                obj,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise translate_api_error(exc, f"{self.plural} {namespace}/{name}") from exc


class KubeCluster:
    """Read access to arbitrary objects, Secrets and Pods, plus event recording."""

    def __init__(self, api_client: client.ApiClient, *, request_timeout: float = 30.0) -> None:
        self._api_client = api_client
        self._core = client.CoreV1Api(api_client)
        self._custom = client.CustomObjectsApi(api_client)
        self._timeout = request_timeout

    # ObjectGetter

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> KubeObject:
        what = f"{kind} {namespace}/{name}"
        group, version = _split_api_version(api_version)
        try:
            if not group:
                if kind != "Service":
                    raise DependencyUnavailableError(f"Unsupported core kind {kind}")
                obj = self._core.read_namespaced_service(
                    name, namespace, _request_timeout=self._timeout
                )
                return self._api_client.sanitize_for_serialization(obj)

            return self._custom.get_namespaced_custom_object(
                group,
                version,
                namespace,
                plural_of(kind),
                name,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise translate_api_error(exc, what) from exc

    # SecretGetter

    def get_secret(self, namespace: str, name: str) -> Mapping[str, str]:
        try:
            secret = self._core.read_namespaced_secret(
                name, namespace, _request_timeout=self._timeout
            )
        except ApiException as exc:
            raise translate_api_error(exc, f"Secret {namespace}/{name}") from exc

        return {
            key: base64.b64decode(value).decode("utf-8")
            for key, value in (secret.data or {}).items()
        }

    # PodReader

    def list_pods(self, namespace: str, selector: Mapping[str, str]) -> list[KubeObject]:
        try:
            pods = self._core.list_namespaced_pod(
                namespace,
                label_selector=label_selector(selector),
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise translate_api_error(exc, f"pods in {namespace}") from exc
        return [self._api_client.sanitize_for_serialization(pod) for pod in pods.items]

    # EventRecorder

    def record(self, obj: KubeObject, event: ReconcileEvent) -> None:
        metadata = obj.get("metadata") or {}
        namespace = metadata.get("namespace", "default")
        timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

        body = {
            "apiVersion": "v1",
            "kind": "Event",
            "metadata": {"generateName": f"{metadata.get('name', 'source')}.", "namespace": namespace},
            "involvedObject": {
                "apiVersion": obj.get("apiVersion"),
                "kind": obj.get("kind"),
                "name": metadata.get("name"),
                "namespace": namespace,
                "uid": metadata.get("uid"),
                "resourceVersion": metadata.get("resourceVersion"),
            },
            "type": event.severity,
            "reason": event.reason,
            "message": event.message,
            "source": {"component": MANAGED_BY},
            "firstTimestamp": timestamp,
            "lastTimestamp": timestamp,
            "count": 1,
        }

        try:
            self._core.create_namespaced_event(namespace, body, _request_timeout=self._timeout)
        except Exception as exc:
            logger.warning(
                "Failed to record event %s: %s",
                event.reason,
                exc,
                extra={"source": f"{namespace}/{metadata.get('name')}", "status": "warning"},
            )


class KubeSourceStore:
    """:class:`SourceStore` of the event source custom resources."""

    def __init__(self, api_client: client.ApiClient, *, request_timeout: float = 30.0) -> None:
        self._api = client.CustomObjectsApi(api_client)
        self._timeout = request_timeout

    def get_source(self, kind: str, namespace: str, name: str) -> KubeObject:
        try:
            return self._api.get_namespaced_custom_object(
                API_GROUP,
                API_VERSION,
                namespace,
                plural_of(kind),
                name,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise translate_api_error(exc, f"{kind} {namespace}/{name}") from exc

    def update_status(self, kind: str, obj: KubeObject) -> KubeObject:
        metadata = obj["metadata"]
        try:
            return self._api.replace_namespaced_custom_object_status(
                API_GROUP,
                API_VERSION,
                metadata["namespace"],
                plural_of(kind),
                metadata["name"],
                obj,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise translate_api_error(
                exc, f"status of {kind} {metadata['namespace']}/{metadata['name']}"
            ) from exc

    def update_finalizers(self, kind: str, obj: KubeObject, finalizers: list[str]) -> KubeObject:
        metadata = obj["metadata"]
        patch = {
            "metadata": {
                "finalizers": finalizers,
                "resourceVersion": metadata.get("resourceVersion"),
            }
        }
        try:
            return self._api.patch_namespaced_custom_object(
                API_GROUP,
                API_VERSION,
                metadata["namespace"],
                plural_of(kind),
                metadata["name"],
                patch,
                _request_timeout=self._timeout,
            )
        except ApiException as exc:
            raise translate_api_error(
                exc, f"finalizers of {kind} {metadata['namespace']}/{metadata['name']}"
            ) from exc
