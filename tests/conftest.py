"""Shared fixtures for the aws_event_sources test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from botocore.exceptions import ClientError

from aws_event_sources.cluster.interfaces import KubeObject, RecordingEventRecorder
from aws_event_sources.models.source import Source
from aws_event_sources.utils.config import get_adapter_configuration, get_settings
from tests.fixtures.fakes.cluster import FakeObjects, FakeSecrets, FakeWorkloadStore

SOURCE_UID = "6f1c1a2e-0000-4000-8000-000000000001"
SNS_TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:my-topic"


def _client_error(code: str, message: str = "", status: int = 400, operation: str = "Subscribe") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {
                "RequestId": "0d3b1a9c-2f6e-4b8a-9c1d-7e5f3a2b1c0d",
                "HTTPStatusCode": status,
            },
        },
        operation,
    )


@pytest.fixture
def client_error() -> Callable[..., ClientError]:
    """Factory of botocore ClientErrors as returned by AWS APIs."""

    return _client_error


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Ensure global settings cache is cleared before and after each test."""

    get_settings(reload=True)
    get_adapter_configuration(reload=True)
    yield
    get_settings(reload=True)
    get_adapter_configuration(reload=True)


@pytest.fixture
def source_object() -> Callable[..., KubeObject]:
    """Factory of source objects in their API representation."""

    def _make(kind: str = "AWSSNSSource", **overrides: Any) -> KubeObject:
        obj: KubeObject = {
            "apiVersion": "sources.triggermesh.io/v1alpha1",
            "kind": kind,
            "metadata": {
                "name": "my-source",
                "namespace": "team-a",
                "uid": SOURCE_UID,
                "generation": 1,
            },
            "spec": {
                "arn": SNS_TOPIC_ARN,
                "credentials": {
                    "accessKeyID": {"valueFromSecret": {"name": "aws-creds", "key": "key_id"}},
                    "secretAccessKey": {"valueFromSecret": {"name": "aws-creds", "key": "secret"}},
                },
                "sink": {
                    "ref": {"apiVersion": "eventing.knative.dev/v1", "kind": "Broker", "name": "default"}
                },
            },
        }
        for key, value in overrides.items():
            if key in ("metadata", "spec", "status") and isinstance(value, dict):
                obj.setdefault(key, {}).update(value)
            else:
                obj[key] = value
        return obj

    return _make


@pytest.fixture
def make_source(source_object) -> Callable[..., Source]:
    """Factory of parsed sources."""

    def _make(kind: str = "AWSSNSSource", **overrides: Any) -> Source:
        return Source.from_object(source_object(kind, **overrides))

    return _make


@pytest.fixture
def workload_store() -> FakeWorkloadStore:
    return FakeWorkloadStore()


@pytest.fixture
def secrets() -> FakeSecrets:
    return FakeSecrets({("team-a", "aws-creds"): {"key_id": "AKIDEXAMPLE", "secret": "s3cr3t"}})


@pytest.fixture
def objects() -> FakeObjects:
    store = FakeObjects()
    store.add(
        "eventing.knative.dev/v1",
        "Broker",
        "team-a",
        "default",
        {"status": {"address": {"url": "http://broker-ingress.knative-eventing.svc.cluster.local/team-a/default"}}},
    )
    return store


@pytest.fixture
def recorder() -> RecordingEventRecorder:
    return RecordingEventRecorder()
