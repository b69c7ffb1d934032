"""Registry of the supported source kinds and builders of their adapters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..cluster.interfaces import KubeObject
from ..constants import (
    AWS_EVENT_TYPE_PREFIX,
    COMPONENT_ADAPTER,
    LABEL_APP_COMPONENT,
    LABEL_APP_MANAGED_BY,
    LABEL_APP_PART_OF,
    MANAGED_BY,
    PART_OF,
)
from ..exceptions import SourceKindNotFoundError
from ..models.source import Source, ValueFromField
from ..models.status import (
    BASIC_CONDITIONS,
    SUBSCRIPTION_CONDITIONS,
    CloudEventAttributes,
    ConditionSet,
)
from ..utils.config import AdapterConfiguration, AdapterLabels
from .workloads import DEPLOYMENT, KNATIVE_SERVICE, WorkloadKind

ENV_SINK = "K_SINK"
ENV_NAMESPACE = "NAMESPACE"
ENV_NAME = "NAME"
ENV_ARN = "ARN"
ENV_LOGGING_CONFIG = "K_LOGGING_CONFIG"
ENV_METRICS_CONFIG = "K_METRICS_CONFIG"
ENV_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
ENV_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"
ENV_BRANCH = "BRANCH"
ENV_EVENT_TYPES = "EVENT_TYPES"


def _credential_env(name: str, field_value: ValueFromField) -> dict[str, Any] | None:
    selector = field_value.value_from_secret
    if selector is not None:
        return {
            "name": name,
            "valueFrom": {"secretKeyRef": {"name": selector.name, "key": selector.key}},
        }
    if field_value.value:
        return {"name": name, "value": field_value.value}
    return None


@dataclass(frozen=True)
class SourceKind:
    """Static description of a source kind."""

    #: Kind of the source objects
    kind: str
    #: Workload kind the adapter runs as
    workload: WorkloadKind
    #: Fixed event types emitted by the adapter
    event_types: tuple[str, ...] = ()
    #: Whether event types are taken from the source's spec
    configurable_event_types: bool = False
    #: Whether the source manages a subscription with an external service
    subscribes: bool = False
    #: Extra environment variables computed from the source
    extra_env: tuple[str, ...] = ()

    @property
    def adapter_name(self) -> str:
        return self.kind.lower()

    @property
    def condition_set(self) -> ConditionSet:
        return SUBSCRIPTION_CONDITIONS if self.subscribes else BASIC_CONDITIONS

    def event_types_for(self, source: Source) -> list[str]:
        if self.configurable_event_types:
            return list(source.spec.event_types or [])
        return list(self.event_types)

    def ce_attributes(self, source: Source) -> list[CloudEventAttributes]:
        """Return the attributes of the CloudEvents emitted on behalf of a source."""

        arn = source.spec.arn
        return [
            CloudEventAttributes(
                type=f"{AWS_EVENT_TYPE_PREFIX}.{arn.service}.{event_type}",
                source=str(arn),
            )
            for event_type in self.event_types_for(source)
        ]

    def adapter_env(
        self, source: Source, sink_uri: str, config: AdapterConfiguration
    ) -> list[dict[str, Any]]:
        env: list[dict[str, Any]] = [
            {"name": ENV_SINK, "value": sink_uri},
            {"name": ENV_NAMESPACE, "value": source.namespace},
            {"name": ENV_NAME, "value": source.name},
            {"name": ENV_ARN, "value": str(source.spec.arn)},
            {"name": ENV_LOGGING_CONFIG, "value": config.logging_config},
            {"name": ENV_METRICS_CONFIG, "value": config.metrics_config},
        ]

        credentials = source.spec.credentials
        for name, value in (
            (ENV_ACCESS_KEY_ID, credentials.access_key_id),
            (ENV_SECRET_ACCESS_KEY, credentials.secret_access_key),
        ):
            entry = _credential_env(name, value)
            if entry is not None:
                env.append(entry)

        if ENV_BRANCH in self.extra_env and source.spec.branch:
            env.append({"name": ENV_BRANCH, "value": source.spec.branch})
        if ENV_EVENT_TYPES in self.extra_env:
            env.append({"name": ENV_EVENT_TYPES, "value": ",".join(self.event_types_for(source))})

        return env

    def adapter_labels(self, source: Source, labels: AdapterLabels) -> dict[str, str]:
        return {
            **labels.selector(self.adapter_name, source.name),
            LABEL_APP_COMPONENT: COMPONENT_ADAPTER,
            LABEL_APP_PART_OF: PART_OF,
            LABEL_APP_MANAGED_BY: MANAGED_BY,
        }

    def build_adapter(
        self,
        source: Source,
        sink_uri: str,
        config: AdapterConfiguration,
        labels: AdapterLabels,
    ) -> KubeObject:
        """
        Build the desired adapter workload of a source.

        Args:
            source: Source the adapter receives events for
            sink_uri: Resolved URL of the source's sink
            config: Deployment parameters shared by adapters
            labels: Keys of the labels identifying the adapter

        Returns:
            Workload object in its API representation
        """
        object_labels = self.adapter_labels(source, labels)
        container = {
            "name": "adapter",
            "image": config.image_for(self.adapter_name),
            "env": self.adapter_env(source, sink_uri, config),
        }
        metadata = {
            "name": f"{self.adapter_name}-{source.name}",
            "namespace": source.namespace,
            "labels": object_labels,
            "ownerReferences": [source.owner_reference()],
        }

        if self.workload is KNATIVE_SERVICE:
            return {
                "apiVersion": self.workload.api_version,
                "kind": self.workload.kind,
                "metadata": metadata,
                "spec": {
                    "template": {
                        "metadata": {"labels": object_labels},
                        "spec": {"containers": [container]},
                    }
                },
            }

        return {
            "apiVersion": self.workload.api_version,
            "kind": self.workload.kind,
            "metadata": metadata,
            "spec": {
                "replicas": 1,
                "selector": {"matchLabels": labels.selector(self.adapter_name, source.name)},
                "template": {
                    "metadata": {"labels": object_labels},
                    "spec": {"containers": [container]},
                },
            },
        }


# Source kind registry - register new kinds here
_SOURCE_KIND_REGISTRY: dict[str, SourceKind] = {}


def register_source_kind(source_kind: SourceKind) -> None:
    """
    Register a source kind.

    Args:
        source_kind: Description of the kind, keyed by its ``kind``
    """
    _SOURCE_KIND_REGISTRY[source_kind.kind] = source_kind


def get_source_kind(kind: str) -> SourceKind:
    """
    Get a source kind by name.

    Raises:
        SourceKindNotFoundError: If the kind is not registered
    """
    if kind not in _SOURCE_KIND_REGISTRY:
        available = sorted(_SOURCE_KIND_REGISTRY.keys())
        available_display = ", ".join(available) if available else "none"
        raise SourceKindNotFoundError(
            f"Source kind '{kind}' is not registered. Available kinds: {available_display}."
        )
    return _SOURCE_KIND_REGISTRY[kind]


def list_source_kinds() -> list[str]:
    """Return list of registered source kinds."""
    return list(_SOURCE_KIND_REGISTRY.keys())


register_source_kind(
    SourceKind(
        kind="AWSCodeCommitSource",
        workload=DEPLOYMENT,
        configurable_event_types=True,
        extra_env=(ENV_BRANCH, ENV_EVENT_TYPES),
    )
)
register_source_kind(
    SourceKind(kind="AWSCognitoIdentitySource", workload=DEPLOYMENT, event_types=("sync_trigger",))
)
register_source_kind(
    SourceKind(kind="AWSCognitoUserPoolSource", workload=DEPLOYMENT, event_types=("sync_trigger",))
)
register_source_kind(
    SourceKind(kind="AWSDynamoDBSource", workload=DEPLOYMENT, event_types=("stream_record",))
)
register_source_kind(
    SourceKind(kind="AWSKinesisSource", workload=DEPLOYMENT, event_types=("stream_record",))
)
register_source_kind(
    SourceKind(
        kind="AWSSNSSource",
        workload=KNATIVE_SERVICE,
        event_types=("notification",),
        subscribes=True,
    )
)
register_source_kind(SourceKind(kind="AWSSQSSource", workload=DEPLOYMENT, event_types=("message",)))
