"""Pydantic schemas for event source objects."""

from __future__ import annotations

from typing import Any

from pydantic import Field, PrivateAttr

from .arn import ARN
from .base import APIModel
from .status import BASIC_CONDITIONS, ConditionSet, SourceStatus, StatusManager


class SecretKeySelector(APIModel):
    """Reference to a key of a Secret in the source's namespace."""

    name: str
    key: str


class ValueFromField(APIModel):
    """A value given either inline or through a Secret key reference."""

    value: str | None = None
    value_from_secret: SecretKeySelector | None = None


class AWSSecurityCredentials(APIModel):
    """AWS security credentials of a source."""

    access_key_id: ValueFromField = Field(default_factory=ValueFromField, alias="accessKeyID")
    secret_access_key: ValueFromField = Field(default_factory=ValueFromField)


class KReference(APIModel):
    """Reference to an addressable object."""

    api_version: str
    kind: str
    name: str
    namespace: str | None = None


class Destination(APIModel):
    """Where the events of a source are delivered."""

    ref: KReference | None = None
    uri: str | None = None


class OwnerReference(APIModel):
    """Reference from a dependent object to its owner."""

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool | None = None
    block_owner_deletion: bool | None = None


class ObjectMeta(APIModel):
    """Subset of the standard object metadata used by the reconcilers."""

    name: str
    namespace: str = "default"
    uid: str = ""
    generation: int | None = None
    resource_version: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: str | None = None


class SourceSpec(APIModel):
    """Desired state of an event source."""

    arn: ARN
    credentials: AWSSecurityCredentials = Field(default_factory=AWSSecurityCredentials)
    sink: Destination = Field(default_factory=Destination)
    subscription_attributes: dict[str, str] | None = None
    event_types: list[str] | None = None
    branch: str | None = None


class Source(APIModel):
    """A user-declared desire for an AWS event feed to be delivered to a sink."""

    api_version: str
    kind: str
    metadata: ObjectMeta
    spec: SourceSpec
    status: SourceStatus = Field(default_factory=SourceStatus)

    _condition_set: ConditionSet = PrivateAttr(default=BASIC_CONDITIONS)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def key(self) -> str:
        """Namespaced key identifying the source."""

        return f"{self.metadata.namespace}/{self.metadata.name}"

    @property
    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def with_condition_set(self, condition_set: ConditionSet) -> Source:
        self._condition_set = condition_set
        return self

    @property
    def status_manager(self) -> StatusManager:
        return self._condition_set.manage(self.status)

    def owner_reference(self) -> dict[str, Any]:
        """Return a controller owner reference pointing at this source."""

        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.metadata.name,
            uid=self.metadata.uid,
            controller=True,
            block_owner_deletion=True,
        ).to_api()

    def controls(self, obj: dict[str, Any]) -> bool:
        """Return True when the given object is controller-owned by this source."""

        owner_refs = (obj.get("metadata") or {}).get("ownerReferences") or []
        for ref in owner_refs:
            if ref.get("controller") and ref.get("uid") == self.metadata.uid:
                return True
        return False

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> Source:
        """Parse a source from its API representation."""

        return cls.model_validate(obj)
