"""Configuration loader and settings helpers for aws_event_sources."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic import (
    ValidationError as PydanticValidationError,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import LABEL_APP_INSTANCE, LABEL_APP_NAME
from ..exceptions import ConfigurationError


logger = logging.getLogger(__name__)


def load_yaml_config(config_path: str | Path) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If file not found or invalid YAML
    """
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
            return config if config else {}
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")


def validate_config(config: dict[str, Any], model: type[BaseModel]) -> BaseModel:
    """
    Validate configuration against Pydantic model.

    Args:
        config: Configuration dictionary
        model: Pydantic model class for validation

    Returns:
        Validated configuration model instance

    Raises:
        ConfigurationError: If validation fails
    """
    try:
        return model(**config)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}")


class AWSSettings(BaseModel):
    """Settings of the AWS clients built by the reconcilers."""

    model_config = ConfigDict(extra="forbid")

    endpoint_url: str | None = None
    connect_timeout_seconds: float = Field(default=5.0, gt=0)
    read_timeout_seconds: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)


class KubernetesSettings(BaseModel):
    """How the controller reaches the cluster API."""

    model_config = ConfigDict(extra="forbid")

    in_cluster: bool = False
    kubeconfig: Path | None = None
    context: str | None = None
    request_timeout_seconds: float = Field(default=30.0, gt=0)


class AdapterLabels(BaseModel):
    """The immutable label pair used to discover the adapter of a source."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    app_name: str = LABEL_APP_NAME
    instance: str = LABEL_APP_INSTANCE

    def selector(self, adapter_name: str, source_name: str) -> dict[str, str]:
        return {self.app_name: adapter_name, self.instance: source_name}


class AdapterConfiguration(BaseModel):
    """Deployment parameters shared by every adapter workload."""

    model_config = ConfigDict(extra="forbid")

    image_registry: str = "gcr.io/triggermesh"
    image_tag: str = "latest"
    images: dict[str, str] = Field(default_factory=dict)
    logging_config: str = '{"level":"info"}'
    metrics_config: str = "{}"

    def image_for(self, adapter_name: str) -> str:
        """Return the container image of the named adapter."""

        if adapter_name in self.images:
            return self.images[adapter_name]
        return f"{self.image_registry}/{adapter_name}-adapter:{self.image_tag}"


class GlobalSettings(BaseSettings):
    """Global application settings sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AES_",
        env_nested_delimiter="__",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"
    redis_url: str | None = None
    dry_run: bool = False
    adapter_config_file: Path | None = None
    adapter: AdapterConfiguration = AdapterConfiguration()
    labels: AdapterLabels = AdapterLabels()
    aws: AWSSettings = AWSSettings()
    kubernetes: KubernetesSettings = KubernetesSettings()
    celery_retry_backoff_seconds: float = Field(default=5.0, gt=0)
    celery_retry_max_backoff_seconds: float = Field(default=300.0, gt=0)
    celery_max_retries: int = Field(default=10, ge=0)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        """Ensure log level values are uppercase for logging config."""

        return value.upper()

    @field_validator("adapter_config_file", mode="before")
    @classmethod
    def _expand_paths(cls, value: Any) -> Any:
        """Allow string paths and expand user markers."""

        if isinstance(value, str):
            if not value.strip():
                return None
            return Path(value).expanduser()
        return value


def _deep_merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries without mutating the inputs."""

    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


@lru_cache(maxsize=8)
def _load_adapter_configuration_cached(config_file: str, defaults_json: str) -> AdapterConfiguration:
    """Load and cache the adapter configuration file merged over the defaults."""

    defaults = AdapterConfiguration.model_validate_json(defaults_json)
    file_config = load_yaml_config(config_file)

    adapter_section = file_config.get("adapter", file_config)
    if not isinstance(adapter_section, dict):
        raise ConfigurationError(
            f"Adapter configuration in '{config_file}' must be a mapping"
        )

    merged = _deep_merge_dicts(defaults.model_dump(), adapter_section)
    try:
        return AdapterConfiguration.model_validate(merged)
    except PydanticValidationError as exc:
        raise ConfigurationError(
            f"Invalid adapter configuration in '{config_file}': {exc}"
        ) from exc


def get_adapter_configuration(
    settings: GlobalSettings | None = None,
    *,
    reload: bool = False,
) -> AdapterConfiguration:
    """Return the adapter configuration, applying the optional YAML file."""

    if settings is None:
        settings = get_settings()

    if reload:
        _load_adapter_configuration_cached.cache_clear()

    if settings.adapter_config_file is None:
        return settings.adapter

    return _load_adapter_configuration_cached(
        str(settings.adapter_config_file), settings.adapter.model_dump_json()
    )


@lru_cache(maxsize=1)
def _get_settings_cached() -> GlobalSettings:
    return GlobalSettings()


def get_settings(*, reload: bool = False) -> GlobalSettings:
    """Return cached settings, optionally forcing a reload."""

    if reload:
        _get_settings_cached.cache_clear()
    return _get_settings_cached()
