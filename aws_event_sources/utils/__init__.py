"""Utilities package initialization."""
from .config import (
    AdapterConfiguration,
    AdapterLabels,
    GlobalSettings,
    get_adapter_configuration,
    get_settings,
    load_yaml_config,
    validate_config,
)
from .logging import log_reconcile_attempt, setup_logger

__all__ = [
    "AdapterConfiguration",
    "AdapterLabels",
    "GlobalSettings",
    "get_adapter_configuration",
    "get_settings",
    "load_yaml_config",
    "validate_config",
    "log_reconcile_attempt",
    "setup_logger",
]
