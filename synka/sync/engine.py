"""Per-key multi-cluster reconciliation.

For one object key the engine reads the cached source object, evaluates its
sync policy, strips source-specific metadata and then visits every configured
target cluster in order: get, then create when absent or replace when present
(unless skip-existing is set).  Clusters are processed one at a time and the
first failure aborts the pass; the worker pool retries the whole key, which is
safe because create-or-replace with the same payload is idempotent.
"""

from __future__ import annotations

import copy
from enum import StrEnum
from typing import Any

import structlog

from synka.cache.remote_cache import RemoteCache
from synka.cluster.registry import ClusterConnection, ClusterRegistry
from synka.errors import CacheNotSyncedError, MalformedObjectError, RemoteOperationError
from synka.models.resources import CachedObject, ResourceKind
from synka.observability.metrics import cluster_operations_total, sync_total
from synka.sync.policy import SyncPolicy

_log = structlog.get_logger(component="sync.engine")

# Metadata that only has meaning on the control plane the object came from.
_STRIPPED_METADATA_FIELDS = (
    "resourceVersion",
    "uid",
    "selfLink",
    "creationTimestamp",
    "managedFields",
    "ownerReferences",
)


class SyncOutcome(StrEnum):
    """What happened to an object on one target cluster."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


def clean_payload(obj: CachedObject) -> dict[str, Any]:
    """Return a copy of *obj* fit to be written to another cluster.

    Raises:
        MalformedObjectError: if the object has no metadata or no name.
    """
    body = obj.to_dict()
    metadata = body.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        raise MalformedObjectError(f"object {obj.key or '<unknown>'} has no metadata.name")
    for field_name in _STRIPPED_METADATA_FIELDS:
        metadata.pop(field_name, None)
    body.pop("status", None)
    return body


class SyncEngine:
    """Reconciles object keys of one ResourceKind against every target cluster.

    Args:
        kind:     The resource kind this engine replicates.
        cache:    Remote cache of the source objects (read only).
        registry: Target clusters, visited in configuration order.
    """

    def __init__(self, kind: ResourceKind, cache: RemoteCache, registry: ClusterRegistry) -> None:
        self._kind = kind
        self._cache = cache
        self._registry = registry
        self._log = _log.bind(resource=kind.group_resource)

    async def sync(self, key: str) -> dict[str, SyncOutcome]:
        """Replicate the object stored under *key*.

        Returns the outcome per cluster; empty when nothing had to be done.
        Raises on the first failure so the caller can retry the key.
        """
        try:
            obj = self._cache.get(key)
        except CacheNotSyncedError as exc:
            self._log.error("cache_fetch_failed", key=key, error=str(exc))
            sync_total.labels(resource=self._kind.group_resource, outcome="error").inc()
            raise

        if obj is None:
            # Deletes are not propagated; replicated copies stay on the targets.
            self._log.info("resource_deleted_upstream", key=key)
            sync_total.labels(resource=self._kind.group_resource, outcome="deleted").inc()
            return {}

        policy = SyncPolicy.from_annotations(obj.annotations)
        if not policy.sync:
            self._log.debug("sync_not_requested", key=key)
            sync_total.labels(resource=self._kind.group_resource, outcome="ignored").inc()
            return {}

        self._log.debug("sync_started", key=key, api_version=obj.api_version, kind=obj.kind)
        try:
            body = clean_payload(obj)
            outcomes: dict[str, SyncOutcome] = {}
            for descriptor in self._registry.descriptors:
                connection = await self._registry.get_or_create(descriptor.name)
                outcomes[descriptor.name] = await self._sync_to_cluster(
                    descriptor.name, connection, obj, body, policy
                )
        except Exception:
            sync_total.labels(resource=self._kind.group_resource, outcome="error").inc()
            raise

        sync_total.labels(resource=self._kind.group_resource, outcome="synced").inc()
        return outcomes

    async def _sync_to_cluster(
        self,
        cluster: str,
        connection: ClusterConnection,
        obj: CachedObject,
        body: dict[str, Any],
        policy: SyncPolicy,
    ) -> SyncOutcome:
        namespace = obj.namespace or None

        existing = await self._call(cluster, "get", obj.key, connection.get(self._kind, obj.name, namespace))
        if existing is None:
            await self._call(
                cluster, "create", obj.key, connection.create(self._kind, copy.deepcopy(body), namespace)
            )
            self._log.info("resource_created", key=obj.key, cluster=cluster)
            return SyncOutcome.CREATED

        if policy.skip_existing:
            self._log.debug("resource_exists_skipped", key=obj.key, cluster=cluster)
            return SyncOutcome.SKIPPED

        update = copy.deepcopy(body)
        # Custom resources refuse updates without the target's resourceVersion.
        target_version = (existing.get("metadata") or {}).get("resourceVersion")
        if target_version:
            update["metadata"]["resourceVersion"] = target_version
        await self._call(
            cluster,
            "replace",
            obj.key,
            connection.replace(self._kind, update, obj.name, namespace),
        )
        self._log.info("resource_updated", key=obj.key, cluster=cluster)
        return SyncOutcome.UPDATED

    async def _call(self, cluster: str, operation: str, key: str, awaitable: Any) -> Any:
        """Await one remote call, recording its outcome and wrapping failures."""
        try:
            result = await awaitable
        except Exception as exc:
            cluster_operations_total.labels(cluster=cluster, operation=operation, success="false").inc()
            self._log.warning(
                "cluster_operation_failed",
                key=key,
                cluster=cluster,
                operation=operation,
                error=str(exc),
            )
            raise RemoteOperationError(cluster, operation, key, exc) from exc
        cluster_operations_total.labels(cluster=cluster, operation=operation, success="true").inc()
        return result
