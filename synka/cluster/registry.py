"""Target cluster registry.

Owns the ordered ClusterDescriptors and the live connection for each one.
Connections are built on first use, exactly once per cluster, and then served
to every key for the rest of the process lifetime.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Iterator
from typing import Any, Protocol

import structlog

from synka.errors import ClusterConnectionError, UnknownClusterError
from synka.models.config import ClusterDescriptor
from synka.models.resources import ResourceKind

_log = structlog.get_logger(component="cluster.registry")


class ClusterConnection(Protocol):
    """Kind-agnostic read/write access to one target control plane."""

    async def get(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any] | None:
        """Return the object, or None if it does not exist."""
        ...

    async def create(self, kind: ResourceKind, body: dict[str, Any], namespace: str | None) -> dict[str, Any]: ...

    async def replace(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        name: str,
        namespace: str | None,
    ) -> dict[str, Any]: ...

    async def close(self) -> None: ...


ConnectionFactory = Callable[[ClusterDescriptor], Awaitable[ClusterConnection]]


async def _default_connect(descriptor: ClusterDescriptor) -> ClusterConnection:
    # Imported lazily so that the registry can be used without a kube client.
    from synka.cluster.client import connect_cluster

    return await connect_cluster(descriptor)


class ClusterRegistry:
    """Maps cluster name to a lazily-built, shared ClusterConnection.

    Args:
        descriptors: Target clusters in configuration order.  Names must be
                     unique.
        connect:     Async factory turning a descriptor into a connection.
    """

    def __init__(
        self,
        descriptors: Iterable[ClusterDescriptor],
        connect: ConnectionFactory | None = None,
    ) -> None:
        self._descriptors: dict[str, ClusterDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in self._descriptors:
                raise ValueError(f"Duplicate cluster name: {descriptor.name}")
            self._descriptors[descriptor.name] = descriptor
        self._connect = connect or _default_connect
        self._connections: dict[str, ClusterConnection] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def descriptors(self) -> tuple[ClusterDescriptor, ...]:
        """Descriptors in configuration order."""
        return tuple(self._descriptors.values())

    def __iter__(self) -> Iterator[ClusterDescriptor]:
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def is_connected(self, name: str) -> bool:
        return name in self._connections

    async def get_or_create(self, name: str) -> ClusterConnection:
        """Return the connection for *name*, building it on first use.

        Concurrent first calls for the same cluster share a single build.
        A failed build is not cached; the next call tries again.

        Raises:
            UnknownClusterError: if *name* is not a configured cluster.
            ClusterConnectionError: if the connection cannot be built.
        """
        connection = self._connections.get(name)
        if connection is not None:
            return connection

        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise UnknownClusterError(f"Unknown cluster: {name}")

        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            connection = self._connections.get(name)
            if connection is not None:
                return connection
            try:
                connection = await self._connect(descriptor)
            except Exception as exc:
                _log.error("cluster_connect_failed", cluster=name, server=descriptor.server, error=str(exc))
                raise ClusterConnectionError(name, exc) from exc
            self._connections[name] = connection
            _log.info("cluster_connected", cluster=name, server=descriptor.server)
            return connection

    async def close(self) -> None:
        """Close every connection that was built.  Errors are logged, not raised."""
        connections = list(self._connections.items())
        self._connections.clear()
        for name, connection in connections:
            try:
                await connection.close()
            except Exception as exc:
                _log.warning("cluster_close_failed", cluster=name, error=str(exc))
