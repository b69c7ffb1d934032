"""Classification and condensation of errors returned by AWS APIs."""

from __future__ import annotations

import re
from typing import Final

from botocore.exceptions import BotoCoreError, ClientError

# Codes under which the SNS API reports an absent resource.
NOT_FOUND_CODES: Final[frozenset[str]] = frozenset(
    {"NotFound", "NotFoundException", "ResourceNotFoundException"}
)

# Codes under which the SNS API reports a request that could not be authorized.
DENIED_CODES: Final[frozenset[str]] = frozenset(
    {"AuthorizationError", "AuthorizationErrorException", "AccessDenied", "AccessDeniedException"}
)

# Codes of structured errors which are not the caller's fault and may succeed later.
TRANSIENT_CODES: Final[frozenset[str]] = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestThrottled",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "InternalError",
        "InternalErrorException",
        "InternalFailure",
        "ServiceUnavailable",
        "ServiceUnavailableException",
        "RequestTimeout",
        "RequestTimeoutException",
    }
)

CLASS_REJECTED: Final[str] = "rejected"
CLASS_TRANSIENT: Final[str] = "transient"

_REQUEST_ID_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"[,;]?\s*\(?\s*(?:aws\s+)?request\s*-?\s*id\s*[:=]\s*[\w-]+\s*\)?", re.IGNORECASE),
    re.compile(
        r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b", re.IGNORECASE
    ),
)


def error_code(exc: BaseException) -> str | None:
    """Return the AWS error code of a structured service error."""

    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code")
        return str(code) if code else None
    return None


def _http_status(exc: ClientError) -> int | None:
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def is_service_error(exc: BaseException) -> bool:
    """Return True when the error is a structured response of an AWS API."""

    return isinstance(exc, ClientError)


def is_not_found(exc: BaseException) -> bool:
    """Return True when an AWS API reported that the resource does not exist."""

    return error_code(exc) in NOT_FOUND_CODES


def is_denied(exc: BaseException) -> bool:
    """Return True when an AWS API reported that the request could not be authorized."""

    return error_code(exc) in DENIED_CODES


def is_retryable_client_error(exc: BaseException) -> bool:
    """Return True for structured errors caused by throttling or service-side faults."""

    if not isinstance(exc, ClientError):
        return False
    if error_code(exc) in TRANSIENT_CODES:
        return True
    status = _http_status(exc)
    return status is not None and status >= 500


def classify_subscribe_error(exc: BaseException) -> str:
    """Return whether a failed registration is permanently rejected or transient.

    Every documented error of the Subscribe API (invalid parameter, authorization,
    missing topic, subscription limit) requires user intervention. Transport
    failures, timeouts, throttling and service faults may succeed on retry.
    """

    if isinstance(exc, ClientError) and not is_retryable_client_error(exc):
        return CLASS_REJECTED
    return CLASS_TRANSIENT


def strip_request_ids(message: str) -> str:
    """Remove per-request identifiers from an error message."""

    for pattern in _REQUEST_ID_PATTERNS:
        message = pattern.sub("", message)
    return re.sub(r"\s{2,}", " ", message).strip().rstrip(",;:").strip()


def condense_error(exc: BaseException) -> str:
    """Return a short, request-ID-free description of an error.

    AWS errors embed a unique request ID. Writing that text to a status
    condition would make every retry produce a different status, and each
    status write would trigger yet another reconciliation.
    """

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code") or "Unknown"
        message = strip_request_ids(str(error.get("Message") or ""))
        return f"{code}: {message}" if message else str(code)

    if isinstance(exc, BotoCoreError):
        return strip_request_ids(f"{exc.__class__.__name__}: {exc}")

    return strip_request_ids(str(exc)) or exc.__class__.__name__
