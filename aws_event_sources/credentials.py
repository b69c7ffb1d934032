"""Resolution of the AWS security credentials referenced by a source."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from .cluster.interfaces import SecretGetter
from .exceptions import DependencyNotFoundError, DependencyUnavailableError
from .models.source import AWSSecurityCredentials, ValueFromField
from .utils.logging import setup_logger

logger = setup_logger(__name__, context={"kind": "Credentials"})


@dataclass(frozen=True, slots=True)
class Credentials:
    """Resolved AWS access key pair. Never persisted."""

    access_key_id: str
    secret_access_key: str

    def __repr__(self) -> str:
        return f"Credentials(access_key_id={self.access_key_id!r}, secret_access_key='***')"


class SecretCache:
    """Request-scoped memoization of Secrets keyed by name.

    A cache lives for a single resolution and is discarded afterwards, so a
    rotated Secret is always observed by the next reconciliation pass.
    """

    def __init__(self, secrets: SecretGetter, namespace: str) -> None:
        self._secrets = secrets
        self._namespace = namespace
        self._data: dict[str, Mapping[str, str]] = {}
        self.fetches = 0

    def get(self, name: str) -> Mapping[str, str]:
        if name not in self._data:
            self.fetches += 1
            try:
                self._data[name] = self._secrets.get_secret(self._namespace, name)
            except DependencyNotFoundError:
                raise
            except Exception as exc:
                raise DependencyUnavailableError(
                    f"Unable to read Secret {self._namespace}/{name}: {exc}"
                ) from exc
        return self._data[name]


def _resolve_field(field: ValueFromField, cache: SecretCache, label: str) -> str:
    selector = field.value_from_secret
    if selector is None:
        return field.value or ""

    data = cache.get(selector.name)
    if selector.key not in data:
        raise DependencyNotFoundError(
            f"Secret {selector.name!r} has no key {selector.key!r} for the {label}"
        )
    return data[selector.key]


def resolve_credentials(
    secrets: SecretGetter,
    namespace: str,
    creds: AWSSecurityCredentials,
) -> Credentials:
    """
    Resolve the access key pair of a source.

    Args:
        secrets: Secret store of the cluster
        namespace: Namespace of the source, in which referenced Secrets live
        creds: Credentials section of the source

    Returns:
        Resolved credentials

    Raises:
        DependencyNotFoundError: If a referenced Secret or Secret key does not exist
        DependencyUnavailableError: If a Secret could not be read for any other reason
    """
    cache = SecretCache(secrets, namespace)

    access_key_id = _resolve_field(creds.access_key_id, cache, "access key ID")
    secret_access_key = _resolve_field(creds.secret_access_key, cache, "secret access key")

    logger.debug(
        "Resolved AWS credentials using %d Secret lookup(s)",
        cache.fetches,
        extra={"source": namespace},
    )

    return Credentials(access_key_id=access_key_id, secret_access_key=secret_access_key)
