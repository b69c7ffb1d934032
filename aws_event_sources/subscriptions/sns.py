"""Registration of adapter endpoints with Amazon SNS topics.

The subscription of a source moves through the following states::

    Unknown -> Subscribing -> Subscribed -> Unsubscribing -> Unsubscribed
                    |
                    +-> Rejected

``Rejected`` is reached when SNS refuses the registration for a reason that
requires user intervention; the dispatcher does not retry it.

Authorization errors are deliberately handled asymmetrically. During
registration they are a permanent rejection, surfaced to the user. During
teardown they are logged and ignored: a finalizer that can never succeed
would keep the source object from ever being deleted.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from botocore.exceptions import BotoCoreError, ClientError

from ..aws.clients import new_sns_client
from ..aws.errors import CLASS_REJECTED, classify_subscribe_error, condense_error, is_denied, is_not_found
from ..cluster.interfaces import EventRecorder, SecretGetter
from ..constants import (
    COND_SUBSCRIBED,
    EVENT_REASON_FAILED_SUBSCRIBE,
    EVENT_REASON_FAILED_UNSUBSCRIBE,
    EVENT_REASON_SUBSCRIBED,
    EVENT_REASON_UNSUBSCRIBED,
    REASON_SNS_FAILED_SYNC,
    REASON_SNS_NO_CLIENT,
    REASON_SNS_NO_URL,
    REASON_SNS_REJECTED,
    REASON_SNS_UNSUBSCRIBED,
)
from ..credentials import Credentials, resolve_credentials
from ..exceptions import (
    ConfigurationError,
    DependencyNotFoundError,
    DependencyUnavailableError,
    EventSourcesError,
    PermanentError,
    ReconcileEvent,
    RemoteRejectedError,
    RemoteTransientError,
)
from ..models.source import Source
from ..models.status import SourceStatus
from ..monitoring.metrics import record_subscription_operation
from ..utils.config import AWSSettings
from ..utils.logging import setup_logger

logger = setup_logger(__name__, context={"kind": "AWSSNSSource"})

SNSClientFactory = Callable[..., Any]


class SubscriptionState(str, Enum):
    """Lifecycle states of the external subscription of a source."""

    UNKNOWN = "Unknown"
    SUBSCRIBING = "Subscribing"
    SUBSCRIBED = "Subscribed"
    UNSUBSCRIBING = "Unsubscribing"
    UNSUBSCRIBED = "Unsubscribed"
    REJECTED = "Rejected"

    @classmethod
    def observe(cls, status: SourceStatus) -> SubscriptionState:
        """Derive the state of a subscription from the persisted status of its source."""

        condition = status.get_condition(COND_SUBSCRIBED)
        if condition is None:
            return cls.UNKNOWN
        if condition.is_true and status.subscription_arn:
            return cls.SUBSCRIBED
        if condition.reason == REASON_SNS_REJECTED:
            return cls.REJECTED
        if condition.reason == REASON_SNS_UNSUBSCRIBED and not status.subscription_arn:
            return cls.UNSUBSCRIBED
        return cls.UNKNOWN


class SNSSubscriptionManager:
    """Aligns the SNS subscription of a source with its desired state."""

    def __init__(
        self,
        secrets: SecretGetter,
        recorder: EventRecorder,
        *,
        client_factory: SNSClientFactory = new_sns_client,
        aws_settings: AWSSettings | None = None,
    ) -> None:
        self._secrets = secrets
        self._recorder = recorder
        self._client_factory = client_factory
        self._aws_settings = aws_settings

    def _new_client(self, source: Source) -> Any:
        credentials: Credentials = resolve_credentials(
            self._secrets, source.namespace, source.spec.credentials
        )
        return self._client_factory(
            source.spec.arn.region, credentials, settings=self._aws_settings
        )

    def _transition(self, source: Source, state: SubscriptionState) -> None:
        previous = SubscriptionState.observe(source.status)
        if previous != state:
            logger.debug(
                "Subscription state %s -> %s",
                previous.value,
                state.value,
                extra={"source": source.key},
            )

    def ensure_subscribed(
        self,
        source: Source,
        adapter_address: str | None,
        *,
        skip: bool = False,
    ) -> ReconcileEvent | None:
        """
        Ensure the adapter's endpoint is subscribed to the source's SNS topic.

        Args:
            source: Source whose subscription is reconciled; its status is updated
            adapter_address: Public URL of the adapter, None while it is not ready
            skip: Skip every side effect of this pass

        Returns:
            A Normal event on success, None when nothing was attempted

        Raises:
            PermanentError: If SNS rejected the registration
            RemoteTransientError: If the registration failed transiently
            DependencyUnavailableError: If no SNS client could be obtained
        """
        if skip:
            return None

        status = source.status_manager

        # skip this cycle if the adapter URL wasn't yet determined
        if not adapter_address:
            status.mark_not_subscribed(
                REASON_SNS_NO_URL, "The receive adapter did not report its public URL yet"
            )
            return None

        topic_arn = str(source.spec.arn)

        try:
            client = self._new_client(source)
        except EventSourcesError as exc:
            status.mark_not_subscribed(REASON_SNS_NO_CLIENT, "Cannot obtain SNS client")
            event = ReconcileEvent.warning(
                EVENT_REASON_FAILED_SUBSCRIBE, "Error creating SNS client: %s", condense_error(exc)
            )
            raise DependencyUnavailableError.from_event(event) from exc

        self._transition(source, SubscriptionState.SUBSCRIBING)

        request: dict[str, Any] = {
            "TopicArn": topic_arn,
            "Protocol": urlsplit(adapter_address).scheme,
            "Endpoint": adapter_address,
            "ReturnSubscriptionArn": True,
        }
        if source.spec.subscription_attributes:
            request["Attributes"] = dict(source.spec.subscription_attributes)

        try:
            response = client.subscribe(**request)
        except (ClientError, BotoCoreError) as exc:
            event = ReconcileEvent.warning(
                EVENT_REASON_FAILED_SUBSCRIBE,
                'Error subscribing endpoint "%s" to SNS topic "%s": %s',
                adapter_address,
                topic_arn,
                condense_error(exc),
            )

            if classify_subscribe_error(exc) == CLASS_REJECTED:
                # All documented API errors require some user intervention
                # and are not to be retried.
                record_subscription_operation("subscribe", "rejected")
                self._transition(source, SubscriptionState.REJECTED)
                status.mark_not_subscribed(REASON_SNS_REJECTED, "Subscription request rejected")
                raise PermanentError(RemoteRejectedError.from_event(event)) from exc

            record_subscription_operation("subscribe", "transient")
            status.mark_not_subscribed(
                REASON_SNS_FAILED_SYNC, "Cannot subscribe event source endpoint"
            )
            raise RemoteTransientError.from_event(event) from exc

        logger.debug("Subscribe responded with: %s", response, extra={"source": source.key})

        record_subscription_operation("subscribe", "subscribed")
        self._transition(source, SubscriptionState.SUBSCRIBED)
        status.mark_subscribed(response.get("SubscriptionArn"))

        return ReconcileEvent.normal(
            EVENT_REASON_SUBSCRIBED, 'Subscribed to SNS topic "%s"', topic_arn
        )

    def ensure_unsubscribed(self, source: Source, *, skip: bool = False) -> ReconcileEvent | None:
        """
        Ensure the adapter's endpoint is unsubscribed from the source's SNS topic.

        Args:
            source: Source being finalized; its status is updated
            skip: Skip every side effect of this pass

        Returns:
            A Normal event when the subscription is gone, None when there was
            nothing to do or the failure was ignored

        Raises:
            DependencyUnavailableError: If no SNS client could be obtained
            RemoteTransientError: If the deregistration failed and must be retried
        """
        if skip:
            return None

        subscription_arn = source.status.subscription_arn

        # abandon if the subscription's ARN was never written to the source's status
        if not subscription_arn:
            return None

        source_obj = source.to_api()

        try:
            client = self._new_client(source)
        except (DependencyNotFoundError, ConfigurationError) as exc:
            # the finalizer is unlikely to recover from a missing Secret or an
            # unusable client configuration, so we simply record a warning
            # event and return
            record_subscription_operation("unsubscribe", "ignored")
            self._recorder.record(
                source_obj,
                ReconcileEvent.warning(
                    EVENT_REASON_FAILED_UNSUBSCRIBE,
                    'Cannot obtain SNS client while finalizing subscription "%s". Ignoring: %s',
                    subscription_arn,
                    condense_error(exc),
                ),
            )
            return None
        except EventSourcesError as exc:
            event = ReconcileEvent.warning(
                EVENT_REASON_FAILED_UNSUBSCRIBE, "Error creating SNS client: %s", condense_error(exc)
            )
            raise DependencyUnavailableError.from_event(event) from exc

        self._transition(source, SubscriptionState.UNSUBSCRIBING)

        try:
            response = client.unsubscribe(SubscriptionArn=subscription_arn)
        except (ClientError, BotoCoreError) as exc:
            if is_not_found(exc):
                record_subscription_operation("unsubscribe", "absent")
                self._mark_unsubscribed(source)
                return ReconcileEvent.normal(
                    EVENT_REASON_UNSUBSCRIBED,
                    'Subscription "%s" already absent, skipping finalization',
                    subscription_arn,
                )

            if is_denied(exc):
                # it is unlikely that we recover from authorization errors in
                # the finalizer, so we simply record a warning event and return
                record_subscription_operation("unsubscribe", "ignored")
                self._recorder.record(
                    source_obj,
                    ReconcileEvent.warning(
                        EVENT_REASON_FAILED_UNSUBSCRIBE,
                        'Authorization error finalizing subscription "%s". Ignoring: %s',
                        subscription_arn,
                        condense_error(exc),
                    ),
                )
                return None

            record_subscription_operation("unsubscribe", "failed")
            event = ReconcileEvent.warning(
                EVENT_REASON_FAILED_UNSUBSCRIBE,
                'Error finalizing event source "%s": %s',
                subscription_arn,
                condense_error(exc),
            )
            raise RemoteTransientError.from_event(event) from exc

        logger.debug("Unsubscribe responded with: %s", response, extra={"source": source.key})

        record_subscription_operation("unsubscribe", "unsubscribed")
        self._mark_unsubscribed(source)

        return ReconcileEvent.normal(
            EVENT_REASON_UNSUBSCRIBED,
            'Subscription "%s" was successfully deleted',
            subscription_arn,
        )

    def _mark_unsubscribed(self, source: Source) -> None:
        self._transition(source, SubscriptionState.UNSUBSCRIBED)
        source.status.subscription_arn = None
        source.status_manager.mark_not_subscribed(
            REASON_SNS_UNSUBSCRIBED, "The subscription was deleted"
        )
