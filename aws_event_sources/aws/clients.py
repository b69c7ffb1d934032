"""Factory of AWS clients scoped to a source."""

from __future__ import annotations

from typing import Any

from boto3.session import Session
from botocore.config import Config
from botocore.exceptions import BotoCoreError

from ..credentials import Credentials
from ..exceptions import ConfigurationError
from ..utils.config import AWSSettings, get_settings


def client_config(settings: AWSSettings) -> Config:
    """Return the botocore configuration bounding every call made by a client."""

    return Config(
        connect_timeout=settings.connect_timeout_seconds,
        read_timeout=settings.read_timeout_seconds,
        retries={"max_attempts": settings.max_attempts, "mode": "standard"},
    )


def new_sns_client(
    region: str,
    credentials: Credentials,
    *,
    settings: AWSSettings | None = None,
) -> Any:
    """
    Return an SNS client for the given region using static credentials.

    Args:
        region: AWS region the client is bound to
        credentials: Resolved access key pair
        settings: Optional AWS client settings (defaults to global settings)

    Returns:
        boto3 SNS client

    Raises:
        ConfigurationError: If the region or the key material is empty or malformed
    """
    if not region:
        raise ConfigurationError("An AWS region is required to build an SNS client")
    if not credentials.access_key_id or not credentials.secret_access_key:
        raise ConfigurationError("Both an AWS access key ID and a secret access key are required")

    aws_settings = settings or get_settings().aws

    # A Session built from explicit keys never falls back to the default
    # credential chain and never refreshes.
    try:
        session = Session(
            aws_access_key_id=credentials.access_key_id,
            aws_secret_access_key=credentials.secret_access_key,
            region_name=region,
        )
        return session.client(
            "sns",
            endpoint_url=aws_settings.endpoint_url,
            config=client_config(aws_settings),
        )
    except (BotoCoreError, ValueError) as exc:
        raise ConfigurationError(f"Invalid SNS client configuration: {exc}") from exc
