"""Data model of event sources."""

from .arn import ARN
from .source import (
    AWSSecurityCredentials,
    Destination,
    KReference,
    ObjectMeta,
    SecretKeySelector,
    Source,
    SourceSpec,
    ValueFromField,
)
from .status import (
    BASIC_CONDITIONS,
    SUBSCRIPTION_CONDITIONS,
    CloudEventAttributes,
    Condition,
    ConditionSet,
    SourceStatus,
    StatusManager,
)

__all__ = [
    "ARN",
    "AWSSecurityCredentials",
    "BASIC_CONDITIONS",
    "CloudEventAttributes",
    "Condition",
    "ConditionSet",
    "Destination",
    "KReference",
    "ObjectMeta",
    "SUBSCRIPTION_CONDITIONS",
    "SecretKeySelector",
    "Source",
    "SourceSpec",
    "SourceStatus",
    "StatusManager",
    "ValueFromField",
]
