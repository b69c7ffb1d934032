"""Tests for the SNS client factory."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from aws_event_sources.aws import clients
from aws_event_sources.aws.clients import client_config, new_sns_client
from aws_event_sources.credentials import Credentials
from aws_event_sources.exceptions import ConfigurationError
from aws_event_sources.utils.config import AWSSettings

CREDS = Credentials(access_key_id="AKIDEXAMPLE", secret_access_key="s3cr3t")


@pytest.fixture
def session_cls(monkeypatch: pytest.MonkeyPatch) -> Mock:
    mock = Mock(name="Session")
    monkeypatch.setattr(clients, "Session", mock)
    return mock


def test_client_is_bound_to_region_and_static_keys(session_cls):
    """The session is built from the explicit key pair only."""

    client = new_sns_client("eu-west-1", CREDS)

    session_cls.assert_called_once_with(
        aws_access_key_id="AKIDEXAMPLE",
        aws_secret_access_key="s3cr3t",
        region_name="eu-west-1",
    )
    session = session_cls.return_value
    session.client.assert_called_once()
    args, kwargs = session.client.call_args
    assert args == ("sns",)
    assert kwargs["endpoint_url"] is None
    assert client is session.client.return_value


def test_custom_endpoint_and_timeouts(session_cls):
    settings = AWSSettings(
        endpoint_url="http://localhost:4566",
        connect_timeout_seconds=2,
        read_timeout_seconds=7,
        max_attempts=1,
    )

    new_sns_client("us-east-1", CREDS, settings=settings)

    _, kwargs = session_cls.return_value.client.call_args
    assert kwargs["endpoint_url"] == "http://localhost:4566"
    config = kwargs["config"]
    assert config.connect_timeout == 2
    assert config.read_timeout == 7
    assert config.retries == {"max_attempts": 1, "mode": "standard"}


def test_settings_default_to_environment(session_cls, monkeypatch: pytest.MonkeyPatch):
    """Without explicit settings the global AWS settings apply."""

    from aws_event_sources.utils.config import get_settings

    monkeypatch.setenv("AES_AWS__ENDPOINT_URL", "http://sns.local:4566")
    get_settings(reload=True)

    new_sns_client("us-east-1", CREDS)

    _, kwargs = session_cls.return_value.client.call_args
    assert kwargs["endpoint_url"] == "http://sns.local:4566"


def test_empty_region_is_rejected(session_cls):
    with pytest.raises(ConfigurationError, match="region"):
        new_sns_client("", CREDS)
    session_cls.assert_not_called()


@pytest.mark.parametrize(
    "creds",
    [
        Credentials(access_key_id="", secret_access_key="s3cr3t"),
        Credentials(access_key_id="AKIDEXAMPLE", secret_access_key=""),
    ],
)
def test_incomplete_key_pair_is_rejected(session_cls, creds):
    with pytest.raises(ConfigurationError):
        new_sns_client("us-east-1", creds)
    session_cls.assert_not_called()


def test_client_config_bounds_calls():
    config = client_config(AWSSettings())

    assert config.connect_timeout == 5.0
    assert config.read_timeout == 30.0
    assert config.retries["max_attempts"] == 3


def test_malformed_region_is_a_configuration_error():
    """botocore's region validation surfaces as a configuration error."""

    with pytest.raises(ConfigurationError, match="Invalid SNS client configuration"):
        new_sns_client("us east 1", CREDS)
