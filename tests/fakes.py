"""In-memory stand-ins for the source and target control planes.

FakeSource implements the list/watch side consumed by the reflector;
FakeCluster implements the ClusterConnection side consumed by the Sync Engine.
Both record every call so tests can assert on exactly what was sent.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncGenerator
from typing import Any

from synka.models.config import ClusterDescriptor
from synka.models.resources import ResourceKind

DEPLOYMENTS = ResourceKind(group="apps", version="v1", resource="deployments")
NAMESPACES = ResourceKind(group="", version="v1", resource="namespaces")


def make_object(
    name: str = "web",
    namespace: str = "default",
    annotations: dict[str, str] | None = None,
    resource_version: str = "100",
    uid: str = "3f1c1f0e-0000-4000-8000-000000000001",
    spec: dict[str, Any] | None = None,
    kind: str = "Deployment",
    api_version: str = "apps/v1",
) -> dict[str, Any]:
    """Return a raw object as the source API server would deliver it."""
    metadata: dict[str, Any] = {
        "name": name,
        "resourceVersion": resource_version,
        "uid": uid,
        "creationTimestamp": "2026-01-01T00:00:00Z",
        "labels": {"app": name},
        "annotations": dict(annotations or {}),
    }
    if namespace:
        metadata["namespace"] = namespace
    return {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": metadata,
        "spec": spec if spec is not None else {"replicas": 3, "template": {"spec": {"containers": [{"image": "web:v1"}]}}},
        "status": {"readyReplicas": 3},
    }


def synced(**kwargs: Any) -> dict[str, Any]:
    """A raw object annotated for replication."""
    annotations = {"synka.io/sync": "true", **kwargs.pop("annotations", {})}
    return make_object(annotations=annotations, **kwargs)


class FakeCluster:
    """A target cluster holding objects in a dict keyed by (resource, namespace, name)."""

    def __init__(self, name: str = "a") -> None:
        self.name = name
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.namespaces_seen: list[str | None] = []
        self.fail_ops: set[str] = set()
        self.closed = False

    def descriptor(self) -> ClusterDescriptor:
        return ClusterDescriptor(name=self.name, server=f"https://{self.name}.example.com:6443")

    def seed(self, kind: ResourceKind, body: dict[str, Any]) -> None:
        metadata = body["metadata"]
        self.objects[(kind.group_resource, metadata.get("namespace", ""), metadata["name"])] = copy.deepcopy(body)

    def stored(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any] | None:
        return self.objects.get((kind.group_resource, namespace, name))

    @property
    def writes(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] in ("create", "replace")]

    def _record(self, op: str, namespace: str | None, name: str) -> None:
        self.calls.append((op, f"{namespace}/{name}" if namespace else name))
        self.namespaces_seen.append(namespace)
        if op in self.fail_ops:
            raise ConnectionError(f"{self.name}: {op} refused")

    async def get(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any] | None:
        self._record("get", namespace, name)
        found = self.objects.get((kind.group_resource, namespace or "", name))
        return copy.deepcopy(found) if found is not None else None

    async def create(self, kind: ResourceKind, body: dict[str, Any], namespace: str | None) -> dict[str, Any]:
        name = body["metadata"]["name"]
        self._record("create", namespace, name)
        key = (kind.group_resource, namespace or "", name)
        if key in self.objects:
            raise ValueError(f"{name} already exists")
        self.objects[key] = copy.deepcopy(body)
        return copy.deepcopy(body)

    async def replace(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        name: str,
        namespace: str | None,
    ) -> dict[str, Any]:
        self._record("replace", namespace, name)
        key = (kind.group_resource, namespace or "", name)
        if key not in self.objects:
            raise ValueError(f"{name} not found")
        self.objects[key] = copy.deepcopy(body)
        return copy.deepcopy(body)

    async def close(self) -> None:
        self.closed = True


def connect_to(*clusters: FakeCluster):  # noqa: ANN201
    """Connection factory resolving descriptors to the given fake clusters."""
    by_name = {cluster.name: cluster for cluster in clusters}

    async def _connect(descriptor: ClusterDescriptor) -> FakeCluster:
        return by_name[descriptor.name]

    return _connect


class FakeSource:
    """A source control plane whose watch stream is fed by the test.

    ``push`` queues an event, ``fail`` makes the open stream raise,
    ``close_stream`` ends the open stream normally.
    """

    def __init__(self, items: list[dict[str, Any]] | None = None, resource_version: str = "10") -> None:
        self.items = [copy.deepcopy(item) for item in items or []]
        self.resource_version = resource_version
        self.list_calls = 0
        self.watch_calls: list[str] = []
        self.list_error: Exception | None = None
        self.list_gate: asyncio.Event | None = None
        self.streams_closed = 0
        self._events: asyncio.Queue[tuple[str, dict[str, Any]] | Exception | None] = asyncio.Queue()

    async def list(self, kind: ResourceKind) -> tuple[list[dict[str, Any]], str]:
        self.list_calls += 1
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error is not None:
            error, self.list_error = self.list_error, None
            raise error
        return [copy.deepcopy(item) for item in self.items], self.resource_version

    async def watch(
        self,
        kind: ResourceKind,
        resource_version: str,
        timeout_seconds: int = 300,
    ) -> AsyncGenerator[tuple[str, dict[str, Any]], None]:
        self.watch_calls.append(resource_version)
        try:
            while True:
                item = await self._events.get()
                if item is None:
                    return
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.streams_closed += 1

    def push(self, event_type: str, raw: dict[str, Any]) -> None:
        self._events.put_nowait((event_type, copy.deepcopy(raw)))

    def fail(self, exc: Exception) -> None:
        self._events.put_nowait(exc)

    def close_stream(self) -> None:
        self._events.put_nowait(None)


async def eventually(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:  # noqa: ANN001
    """Poll *predicate* until it is truthy or fail the test after *timeout*."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
