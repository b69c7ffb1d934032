"""Semantic comparison of desired and current API objects.

The desired object, built by the reconciler, is the authority: every field it
sets must be present with the same value in the current object. Fields the
reconciler never sets (server-side defaults, fields owned by the platform) are
ignored, as are the fields the API server mutates on every write.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Final

# Top-level fields never managed by the reconciler.
IGNORED_TOP_LEVEL_FIELDS: Final[frozenset[str]] = frozenset({"status"})

# Metadata fields maintained by the API server.
IGNORED_METADATA_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "resourceVersion",
        "uid",
        "generation",
        "creationTimestamp",
        "deletionTimestamp",
        "deletionGracePeriodSeconds",
        "managedFields",
        "selfLink",
    }
)


def _is_empty(value: Any) -> bool:
    return value is None or value == {} or value == [] or value == ""


def _matches(desired: Any, current: Any) -> bool:
    if isinstance(desired, Mapping):
        if not isinstance(current, Mapping):
            return all(_is_empty(value) for value in desired.values()) and _is_empty(current)
        for key, value in desired.items():
            if key not in current:
                if _is_empty(value):
                    continue
                return False
            if not _matches(value, current[key]):
                return False
        return True

    if isinstance(desired, Sequence) and not isinstance(desired, str):
        if current is None:
            return len(desired) == 0
        if not isinstance(current, Sequence) or isinstance(current, str):
            return False
        if len(desired) != len(current):
            return False
        return all(_matches(d, c) for d, c in zip(desired, current))

    if desired is None:
        return True

    return desired == current


def _strip(obj: Mapping[str, Any], ignored_annotations: Iterable[str]) -> dict[str, Any]:
    stripped = {key: value for key, value in obj.items() if key not in IGNORED_TOP_LEVEL_FIELDS}

    metadata = dict(stripped.get("metadata") or {})
    for field in IGNORED_METADATA_FIELDS:
        metadata.pop(field, None)

    annotations = dict(metadata.get("annotations") or {})
    for annotation in ignored_annotations:
        annotations.pop(annotation, None)
    if annotations:
        metadata["annotations"] = annotations
    else:
        metadata.pop("annotations", None)

    stripped["metadata"] = metadata
    return stripped


def semantic_equal(
    desired: Mapping[str, Any],
    current: Mapping[str, Any],
    *,
    ignored_annotations: Sequence[str] = (),
) -> bool:
    """
    Return True when the current object already satisfies the desired object.

    Args:
        desired: Object built by the reconciler
        current: Object as observed in the cluster
        ignored_annotations: Annotations set by the platform (provenance)

    Returns:
        Whether no write is required to converge current towards desired
    """
    return _matches(
        _strip(desired, ignored_annotations),
        _strip(current, ignored_annotations),
    )
