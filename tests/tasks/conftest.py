"""Shared fixtures for the reconciliation task suite."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from aws_event_sources.aws import clients
from aws_event_sources.controller import ControllerContext
from aws_event_sources.utils.config import get_settings
from tests.fixtures.fakes.cluster import FakePods, FakeSourceStore

SUBSCRIPTION_ARN = "arn:aws:sns:us-east-1:123456789012:my-topic:8f9c0d3e-1a2b-4c5d-9e8f-7a6b5c4d3e2f"


@pytest.fixture
def source_store() -> FakeSourceStore:
    return FakeSourceStore()


@pytest.fixture
def sns_client(monkeypatch: pytest.MonkeyPatch) -> Mock:
    """SNS client returned by every boto3 session built by the controller."""

    client = Mock(name="sns")
    client.subscribe.return_value = {"SubscriptionArn": SUBSCRIPTION_ARN}
    client.unsubscribe.return_value = {}
    session_cls = Mock(name="Session")
    session_cls.return_value.client.return_value = client
    monkeypatch.setattr(clients, "Session", session_cls)
    return client


@pytest.fixture
def controller_context(
    monkeypatch: pytest.MonkeyPatch,
    source_store,
    workload_store,
    objects,
    secrets,
    recorder,
    sns_client,
) -> ControllerContext:
    """Controller context wired to in-memory collaborators."""

    context = ControllerContext(
        settings=get_settings(),
        sources=source_store,
        objects=objects,
        secrets=secrets,
        pods=FakePods(),
        recorder=recorder,
        workload_stores=lambda kind: workload_store,
    )
    monkeypatch.setattr(
        "aws_event_sources.tasks.reconcile.get_controller_context", lambda: context
    )
    return context
