"""Status conditions of event sources and the helpers that mutate them."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import Field

from ..constants import (
    COND_DEPLOYED,
    COND_READY,
    COND_SINK_PROVIDED,
    COND_SUBSCRIBED,
    REASON_SINK_NOT_FOUND,
    STATUS_FALSE,
    STATUS_TRUE,
    STATUS_UNKNOWN,
)
from .base import APIModel


class Condition(APIModel):
    """A single observation of one aspect of a source's state."""

    type: str
    status: str = STATUS_UNKNOWN
    reason: str | None = None
    message: str | None = None
    last_transition_time: str | None = None

    @property
    def is_true(self) -> bool:
        return self.status == STATUS_TRUE

    @property
    def is_false(self) -> bool:
        return self.status == STATUS_FALSE


class CloudEventAttributes(APIModel):
    """Attributes of the CloudEvents produced by a source."""

    type: str
    source: str


class Addressable(APIModel):
    """Public address of a source's adapter."""

    url: str | None = None


class SourceStatus(APIModel):
    """Observed state of an event source."""

    observed_generation: int | None = None
    conditions: list[Condition] = Field(default_factory=list)
    sink_uri: str | None = None
    address: Addressable | None = None
    ce_attributes: list[CloudEventAttributes] = Field(default_factory=list)
    subscription_arn: str | None = None

    def get_condition(self, condition_type: str) -> Condition | None:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None


@dataclass(frozen=True, slots=True)
class ConditionSet:
    """The dependent conditions summarized by the happy ``Ready`` condition."""

    dependents: tuple[str, ...]
    happy: str = COND_READY

    def manage(self, status: SourceStatus) -> StatusManager:
        return StatusManager(status, self)


BASIC_CONDITIONS = ConditionSet(dependents=(COND_SINK_PROVIDED, COND_DEPLOYED))
SUBSCRIPTION_CONDITIONS = ConditionSet(
    dependents=(COND_SINK_PROVIDED, COND_DEPLOYED, COND_SUBSCRIBED)
)


def _now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class StatusManager:
    """Mutates a :class:`SourceStatus` while keeping ``Ready`` consistent.

    A condition's ``lastTransitionTime`` only moves when its status flips, so
    two passes observing the same state produce identical status objects.
    """

    def __init__(self, status: SourceStatus, condition_set: ConditionSet) -> None:
        self.status = status
        self.condition_set = condition_set

    def initialize_conditions(self) -> None:
        """Ensure the happy condition and every dependent condition are present."""

        for condition_type in (self.condition_set.happy, *self.condition_set.dependents):
            if self.status.get_condition(condition_type) is None:
                self.status.conditions.append(
                    Condition(type=condition_type, last_transition_time=_now())
                )

    def _set(self, condition_type: str, status: str, reason: str | None, message: str | None) -> None:
        current = self.status.get_condition(condition_type)
        if current is None:
            self.status.conditions.append(
                Condition(
                    type=condition_type,
                    status=status,
                    reason=reason,
                    message=message,
                    last_transition_time=_now(),
                )
            )
        else:
            if current.status != status:
                current.last_transition_time = _now()
            current.status = status
            current.reason = reason
            current.message = message

        if condition_type != self.condition_set.happy:
            self._recompute_happy()

    def _recompute_happy(self) -> None:
        dependents = [self.status.get_condition(dep) for dep in self.condition_set.dependents]

        for dependent in dependents:
            if dependent is not None and dependent.is_false:
                self._set(self.condition_set.happy, STATUS_FALSE, dependent.reason, dependent.message)
                return

        for dependent in dependents:
            if dependent is None or not dependent.is_true:
                reason = dependent.reason if dependent is not None else None
                message = dependent.message if dependent is not None else None
                self._set(self.condition_set.happy, STATUS_UNKNOWN, reason, message)
                return

        self._set(self.condition_set.happy, STATUS_TRUE, None, None)

    def mark_true(self, condition_type: str) -> None:
        self._set(condition_type, STATUS_TRUE, None, None)

    def mark_false(self, condition_type: str, reason: str, message: str) -> None:
        self._set(condition_type, STATUS_FALSE, reason, message)

    def mark_unknown(self, condition_type: str, reason: str, message: str) -> None:
        self._set(condition_type, STATUS_UNKNOWN, reason, message)

    def is_ready(self) -> bool:
        happy = self.status.get_condition(self.condition_set.happy)
        return happy is not None and happy.is_true

    # Sink

    def mark_sink(self, uri: str) -> None:
        self.status.sink_uri = uri
        self.mark_true(COND_SINK_PROVIDED)

    def mark_no_sink(self) -> None:
        self.status.sink_uri = None
        self.mark_false(
            COND_SINK_PROVIDED,
            REASON_SINK_NOT_FOUND,
            "The sink does not exist or its URL is not set",
        )

    # Adapter

    def mark_deployed(self) -> None:
        self.mark_true(COND_DEPLOYED)

    def mark_not_deployed(self, reason: str, message: str, *, unknown: bool = False) -> None:
        if unknown:
            self.mark_unknown(COND_DEPLOYED, reason, message)
        else:
            self.mark_false(COND_DEPLOYED, reason, message)

    # Subscription

    def mark_subscribed(self, subscription_arn: str | None) -> None:
        self.status.subscription_arn = subscription_arn
        self.mark_true(COND_SUBSCRIBED)

    def mark_not_subscribed(self, reason: str, message: str) -> None:
        self.mark_false(COND_SUBSCRIBED, reason, message)

    def set_address(self, url: str | None) -> None:
        self.status.address = Addressable(url=url) if url else None

    def set_ce_attributes(self, attributes: list[CloudEventAttributes]) -> None:
        self.status.ce_attributes = list(attributes)
