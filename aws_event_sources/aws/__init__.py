"""AWS client construction and error handling."""

from .clients import client_config, new_sns_client
from .errors import (
    classify_subscribe_error,
    condense_error,
    error_code,
    is_denied,
    is_not_found,
    is_retryable_client_error,
)

__all__ = [
    "classify_subscribe_error",
    "client_config",
    "condense_error",
    "error_code",
    "is_denied",
    "is_not_found",
    "is_retryable_client_error",
    "new_sns_client",
]
