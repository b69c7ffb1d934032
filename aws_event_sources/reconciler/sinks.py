"""Resolution of the URL events are delivered to."""

from __future__ import annotations

from urllib.parse import urljoin, urlsplit

from ..cluster.interfaces import ObjectGetter
from ..exceptions import EventSourcesError, MisconfiguredError
from ..models.source import Destination, KReference, Source

CORE_SERVICE_API_VERSION = "v1"
CLUSTER_DOMAIN = "cluster.local"


def _is_absolute(uri: str) -> bool:
    parts = urlsplit(uri)
    return bool(parts.scheme) and bool(parts.netloc)


class SinkResolver:
    """Turns the sink :class:`Destination` of a source into a URL."""

    def __init__(self, objects: ObjectGetter, *, cluster_domain: str = CLUSTER_DOMAIN) -> None:
        self._objects = objects
        self._cluster_domain = cluster_domain

    def __call__(self, source: Source) -> str:
        return self.uri_from_destination(source.spec.sink, source)

    def uri_from_destination(self, destination: Destination, source: Source) -> str:
        """
        Resolve a destination to an absolute URL.

        Args:
            destination: Sink of the source
            source: Source owning the destination, supplies the default namespace

        Returns:
            Absolute URL of the sink

        Raises:
            MisconfiguredError: If the destination can not be resolved
        """
        if destination.ref is None:
            if not destination.uri:
                raise MisconfiguredError("sink has neither a ref nor a URI")
            if not _is_absolute(destination.uri):
                raise MisconfiguredError(f"sink URI {destination.uri!r} is not absolute")
            return destination.uri

        ref = destination.ref
        if not ref.namespace:
            ref = ref.model_copy(update={"namespace": source.namespace})

        base = self._resolve_ref(ref)

        if destination.uri:
            if _is_absolute(destination.uri):
                raise MisconfiguredError(
                    f"sink URI {destination.uri!r} must be relative when a ref is set"
                )
            return urljoin(base, destination.uri)

        return base

    def _resolve_ref(self, ref: KReference) -> str:
        try:
            obj = self._objects.get(ref.api_version, ref.kind, ref.namespace or "", ref.name)
        except EventSourcesError as exc:
            raise MisconfiguredError(
                f"failed to get ref {ref.kind} {ref.namespace}/{ref.name}: {exc}"
            ) from exc

        if ref.api_version == CORE_SERVICE_API_VERSION and ref.kind == "Service":
            return f"http://{ref.name}.{ref.namespace}.svc.{self._cluster_domain}/"

        address = (obj.get("status") or {}).get("address") or {}
        url = address.get("url")
        if not url:
            raise MisconfiguredError(
                f"{ref.kind} {ref.namespace}/{ref.name} does not contain address"
            )
        return url
