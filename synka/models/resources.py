"""Resource identity and the cached object document model."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


@dataclass(frozen=True)
class ResourceKind:
    """A group/version/resource triple identifying one watched collection."""

    group: str
    version: str
    resource: str

    @classmethod
    def parse(cls, arg: str) -> ResourceKind:
        """Parse ``resource.version.group`` (``pods.v1.`` for the core group).

        Raises:
            ValueError: if *arg* does not carry at least a resource and version.
        """
        if arg.count(".") < 2:
            raise ValueError(f"Invalid resource {arg!r}: expected resource.version.group")
        resource, version, group = arg.split(".", 2)
        if not resource or not version:
            raise ValueError(f"Invalid resource {arg!r}: resource and version must not be empty")
        return cls(group=group, version=version, resource=resource)

    @property
    def api_version(self) -> str:
        """``v1`` for the core group, ``group/version`` otherwise."""
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    @property
    def group_resource(self) -> str:
        if not self.group:
            return self.resource
        return f"{self.resource}.{self.group}"

    def __str__(self) -> str:
        return f"{self.resource}.{self.version}.{self.group}"


def object_key(namespace: str, name: str) -> str:
    """Return ``namespace/name``, or bare ``name`` for cluster-scoped objects."""
    if namespace:
        return f"{namespace}/{name}"
    return name


def split_key(key: str) -> tuple[str, str]:
    """Split an object key into ``(namespace, name)``.

    Raises:
        ValueError: if *key* has more than one ``/`` or an empty name.
    """
    parts = key.split("/")
    if len(parts) == 1 and parts[0]:
        return "", parts[0]
    if len(parts) == 2 and parts[1]:
        return parts[0], parts[1]
    raise ValueError(f"Unexpected key format: {key!r}")


@dataclass(frozen=True)
class CachedObject:
    """Last observed representation of one object.

    The payload is the full object document exactly as the API server sent it.
    Metadata accessors read from it lazily; nothing else about the schema of
    the kind is assumed.
    """

    payload: dict[str, Any]

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> CachedObject:
        return cls(payload=copy.deepcopy(raw))

    @property
    def metadata(self) -> dict[str, Any]:
        metadata = self.payload.get("metadata")
        return metadata if isinstance(metadata, dict) else {}

    @property
    def name(self) -> str:
        return str(self.metadata.get("name") or "")

    @property
    def namespace(self) -> str:
        return str(self.metadata.get("namespace") or "")

    @property
    def api_version(self) -> str:
        return str(self.payload.get("apiVersion") or "")

    @property
    def kind(self) -> str:
        return str(self.payload.get("kind") or "")

    @property
    def annotations(self) -> dict[str, str]:
        annotations = self.metadata.get("annotations")
        return dict(annotations) if isinstance(annotations, dict) else {}

    @property
    def resource_version(self) -> str:
        return str(self.metadata.get("resourceVersion") or "")

    @property
    def uid(self) -> str:
        return str(self.metadata.get("uid") or "")

    @property
    def key(self) -> str:
        return object_key(self.namespace, self.name)

    def to_dict(self) -> dict[str, Any]:
        """Return a deep copy of the payload that callers may mutate freely."""
        return copy.deepcopy(self.payload)


class WatchEventType(StrEnum):
    """Kind of change carried by a watch notification (wire values)."""

    ADDED = "ADDED"
    UPDATED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class WatchEvent:
    """A change notification for one object key.

    ``obj`` is the new state for ADDED/UPDATED and the last known state (if
    any) for DELETED.
    """

    type: WatchEventType
    key: str
    obj: CachedObject | None = None
