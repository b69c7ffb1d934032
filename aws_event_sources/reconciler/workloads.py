"""Capabilities of the workload kinds an adapter can run as.

An adapter runs either as a long-running Deployment or as an auto-scaled
Knative Service. The convergence engine only relies on the small set of
capabilities declared by :class:`WorkloadKind`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..cluster.interfaces import KubeObject, PodReader
from ..constants import (
    COND_READY,
    DEPLOYMENT_API_VERSION,
    KNATIVE_SERVICE_API_VERSION,
    KNATIVE_SERVING_ANNOTATIONS,
    REASON_ADAPTER_UNAVAILABLE,
    STATUS_FALSE,
    STATUS_TRUE,
)
from ..models.status import StatusManager
from ..utils.logging import setup_logger

logger = setup_logger(__name__, context={"kind": "Workloads"})


def _find_condition(obj: KubeObject | None, condition_type: str) -> dict[str, Any] | None:
    if obj is None:
        return None
    for condition in (obj.get("status") or {}).get("conditions") or []:
        if condition.get("type") == condition_type:
            return condition
    return None


def _name(obj: KubeObject) -> str:
    return (obj.get("metadata") or {}).get("name", "")


class WorkloadKind(ABC):
    """Abstract capability set of a workload kind."""

    #: Kind of the workload object
    kind: str
    #: apiVersion of the workload object
    api_version: str
    #: Plural resource name
    plural: str
    #: Annotations the platform sets on the object and which must be preserved
    immutable_annotations: tuple[str, ...] = ()

    @property
    def group(self) -> str:
        return self.api_version.rpartition("/")[0]

    @property
    def version(self) -> str:
        return self.api_version.rpartition("/")[2]

    @abstractmethod
    def is_ready(self, obj: KubeObject | None) -> bool:
        """Return True when the workload reports itself as ready."""

    def address(self, obj: KubeObject | None) -> str | None:
        """Return the public address of a ready workload, if it has one."""
        return None

    @abstractmethod
    def propagate_availability(
        self,
        status: StatusManager,
        obj: KubeObject | None,
        pods: PodReader | None = None,
    ) -> None:
        """Reflect the availability of the workload onto the source's status."""


class DeploymentKind(WorkloadKind):
    """Adapter running as a long-running ``apps/v1`` Deployment."""

    kind = "Deployment"
    api_version = DEPLOYMENT_API_VERSION
    plural = "deployments"

    def is_ready(self, obj: KubeObject | None) -> bool:
        condition = _find_condition(obj, "Available")
        return condition is not None and condition.get("status") == STATUS_TRUE

    def propagate_availability(
        self,
        status: StatusManager,
        obj: KubeObject | None,
        pods: PodReader | None = None,
    ) -> None:
        if obj is None:
            status.mark_not_deployed(
                REASON_ADAPTER_UNAVAILABLE,
                "The status of the adapter Deployment can not be determined",
                unknown=True,
            )
            return

        if self.is_ready(obj):
            status.mark_deployed()
            return

        condition = _find_condition(obj, "Available")
        reason = REASON_ADAPTER_UNAVAILABLE
        message = f'The adapter Deployment "{_name(obj)}" is unavailable'
        if condition is not None and condition.get("status") == STATUS_FALSE:
            reason = condition.get("reason") or reason
            message = condition.get("message") or message

        explanation = self.explain_unavailability(obj, pods) if pods is not None else None
        if explanation is not None:
            reason, message = explanation

        status.mark_not_deployed(reason, message, unknown=condition is None and explanation is None)

    def explain_unavailability(
        self, obj: KubeObject, pods: PodReader
    ) -> tuple[str, str] | None:
        """Inspect the backing pods to explain why the Deployment is unavailable.

        Returns the reason and message of the first container that is stuck
        (e.g. ``ImagePullBackOff``) or of the first pod that cannot be scheduled.
        """
        metadata = obj.get("metadata") or {}
        selector = ((obj.get("spec") or {}).get("selector") or {}).get("matchLabels") or {}
        if not selector:
            return None

        try:
            backing_pods = pods.list_pods(metadata.get("namespace", ""), selector)
        except Exception as exc:
            # the explanation is informative only
            logger.warning(
                "Unable to list pods of adapter Deployment %s: %s",
                metadata.get("name"),
                exc,
                extra={"status": "warning"},
            )
            return None

        for pod in backing_pods:
            pod_status = pod.get("status") or {}
            for container in pod_status.get("containerStatuses") or []:
                state = container.get("state") or {}
                waiting = state.get("waiting")
                if waiting and waiting.get("reason") and waiting.get("reason") != "ContainerCreating":
                    return waiting["reason"], waiting.get("message") or waiting["reason"]
                terminated = state.get("terminated")
                if terminated and terminated.get("exitCode", 0) != 0:
                    return (
                        terminated.get("reason") or "Error",
                        terminated.get("message")
                        or f"Container {container.get('name')} exited with code {terminated.get('exitCode')}",
                    )

            for condition in pod_status.get("conditions") or []:
                if condition.get("type") == "PodScheduled" and condition.get("status") == STATUS_FALSE:
                    return (
                        condition.get("reason") or "Unschedulable",
                        condition.get("message") or "The adapter Pod can not be scheduled",
                    )

        return None


class KnativeServiceKind(WorkloadKind):
    """Adapter running as an auto-scaled Knative Service."""

    kind = "Service"
    api_version = KNATIVE_SERVICE_API_VERSION
    plural = "services"
    immutable_annotations = KNATIVE_SERVING_ANNOTATIONS

    def is_ready(self, obj: KubeObject | None) -> bool:
        if obj is None:
            return False
        condition = _find_condition(obj, COND_READY)
        if condition is None or condition.get("status") != STATUS_TRUE:
            return False

        generation = (obj.get("metadata") or {}).get("generation")
        observed = (obj.get("status") or {}).get("observedGeneration")
        return generation is None or observed is None or observed >= generation

    def address(self, obj: KubeObject | None) -> str | None:
        if not self.is_ready(obj):
            return None
        return (obj.get("status") or {}).get("url") or None

    def propagate_availability(
        self,
        status: StatusManager,
        obj: KubeObject | None,
        pods: PodReader | None = None,
    ) -> None:
        if obj is None:
            status.mark_not_deployed(
                REASON_ADAPTER_UNAVAILABLE,
                "The status of the adapter Service can not be determined",
                unknown=True,
            )
            return

        url = (obj.get("status") or {}).get("url")
        status.set_address(url)

        if self.is_ready(obj):
            status.mark_deployed()
            return

        message = "The adapter Service is unavailable"
        condition = _find_condition(obj, COND_READY)
        if condition is not None and condition.get("message"):
            message = f"{message}: {condition['message']}"

        status.mark_not_deployed(REASON_ADAPTER_UNAVAILABLE, message)


DEPLOYMENT = DeploymentKind()
KNATIVE_SERVICE = KnativeServiceKind()
