"""kubernetes-asyncio backed access to a control plane.

``KubeResourceClient`` talks to any resource kind through the dynamic client,
serving both as the source of list/watch streams and as the ClusterConnection
used against target clusters.
"""

from __future__ import annotations

import asyncio
import base64
import os
from collections.abc import AsyncGenerator
from typing import Any

import structlog
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]
from kubernetes_asyncio.dynamic import DynamicClient  # type: ignore[import-untyped]

from synka.errors import RemoteOperationError, ResourceExpiredError
from synka.models.config import ClusterDescriptor, SourceConfig
from synka.models.resources import ResourceKind

_log = structlog.get_logger(component="cluster.client")

_HTTP_NOT_FOUND = 404
_HTTP_GONE = 410


def _to_dict(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if to_dict is not None:
        return to_dict()  # type: ignore[no-any-return]
    raise TypeError(f"Cannot convert {type(obj).__name__} to dict")


class KubeResourceClient:
    """Dynamic-client wrapper exposing list, watch, get, create and replace.

    Args:
        api_client: Configured kubernetes-asyncio ApiClient.  Owned by this
                    object and closed by ``close()``.
        name:       Cluster name used in logs and errors.
    """

    def __init__(self, api_client: Any, name: str) -> None:
        self._api_client = api_client
        self._name = name
        self._dynamic: Any = None
        self._resources: dict[ResourceKind, Any] = {}
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    async def _resource(self, kind: ResourceKind) -> tuple[Any, Any]:
        """Return ``(dynamic_client, resource)``, running discovery once per kind."""
        async with self._lock:
            if self._dynamic is None:
                self._dynamic = await DynamicClient(self._api_client)
            resource = self._resources.get(kind)
            if resource is None:
                resource = await self._dynamic.resources.get(api_version=kind.api_version, name=kind.resource)
                self._resources[kind] = resource
            return self._dynamic, resource

    @staticmethod
    def _scope(resource: Any, namespace: str | None) -> str | None:
        if not getattr(resource, "namespaced", True):
            return None
        return namespace or None

    # ------------------------------------------------------------------
    # Source side
    # ------------------------------------------------------------------

    async def list(self, kind: ResourceKind) -> tuple[list[dict[str, Any]], str]:
        """List every object of *kind* across all namespaces.

        Returns the items and the list's resourceVersion.  Items in list
        responses omit apiVersion/kind, so they are filled in from the list.
        """
        dynamic, resource = await self._resource(kind)
        result = _to_dict(await dynamic.get(resource))
        list_kind = str(result.get("kind") or "")
        item_kind = list_kind[: -len("List")] if list_kind.endswith("List") else getattr(resource, "kind", "")
        api_version = str(result.get("apiVersion") or kind.api_version)
        items: list[dict[str, Any]] = []
        for item in result.get("items") or []:
            raw = _to_dict(item)
            raw.setdefault("apiVersion", api_version)
            raw.setdefault("kind", item_kind)
            items.append(raw)
        resource_version = str((result.get("metadata") or {}).get("resourceVersion") or "")
        return items, resource_version

    async def watch(
        self,
        kind: ResourceKind,
        resource_version: str,
        timeout_seconds: int = 300,
    ) -> AsyncGenerator[tuple[str, dict[str, Any]], None]:
        """Stream ``(event_type, raw_object)`` pairs starting after *resource_version*.

        Raises:
            ResourceExpiredError: if the server no longer holds that version.
        """
        dynamic, resource = await self._resource(kind)
        try:
            async for event in dynamic.watch(
                resource,
                resource_version=resource_version or None,
                timeout=timeout_seconds,
            ):
                event_type = str(event.get("type") or "")
                raw = _to_dict(event.get("raw_object") or event.get("object"))
                if event_type == "ERROR":
                    if raw.get("code") == _HTTP_GONE:
                        raise ResourceExpiredError(str(raw.get("message") or "resource version expired"))
                    raise RemoteOperationError(
                        self._name,
                        "watch",
                        kind.group_resource,
                        RuntimeError(str(raw.get("message") or raw)),
                    )
                yield event_type, raw
        except ApiException as exc:
            if exc.status == _HTTP_GONE:
                raise ResourceExpiredError(str(exc)) from exc
            raise

    # ------------------------------------------------------------------
    # Target side
    # ------------------------------------------------------------------

    async def get(self, kind: ResourceKind, name: str, namespace: str | None) -> dict[str, Any] | None:
        dynamic, resource = await self._resource(kind)
        try:
            result = await dynamic.get(resource, name=name, namespace=self._scope(resource, namespace))
        except ApiException as exc:
            if exc.status == _HTTP_NOT_FOUND:
                return None
            raise
        return _to_dict(result)

    async def create(self, kind: ResourceKind, body: dict[str, Any], namespace: str | None) -> dict[str, Any]:
        dynamic, resource = await self._resource(kind)
        result = await dynamic.create(resource, body=body, namespace=self._scope(resource, namespace))
        return _to_dict(result)

    async def replace(
        self,
        kind: ResourceKind,
        body: dict[str, Any],
        name: str,
        namespace: str | None,
    ) -> dict[str, Any]:
        dynamic, resource = await self._resource(kind)
        result = await dynamic.replace(resource, body=body, name=name, namespace=self._scope(resource, namespace))
        return _to_dict(result)

    async def close(self) -> None:
        await self._api_client.close()


def build_kubeconfig(descriptor: ClusterDescriptor) -> dict[str, Any]:
    """Render a descriptor as a single-context kubeconfig document.

    The ``*-data`` fields of a kubeconfig carry base64 text, so the decoded
    credential bytes are re-encoded here.
    """

    def _b64(data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")

    cluster: dict[str, Any] = {
        "server": descriptor.server,
        "insecure-skip-tls-verify": descriptor.insecure_skip_tls_verify,
    }
    if descriptor.ca:
        cluster["certificate-authority-data"] = _b64(descriptor.ca)

    user: dict[str, Any] = {}
    if descriptor.cert:
        user["client-certificate-data"] = _b64(descriptor.cert)
    if descriptor.key:
        user["client-key-data"] = _b64(descriptor.key)
    if descriptor.token:
        user["token"] = descriptor.token

    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": descriptor.name, "cluster": cluster}],
        "users": [{"name": descriptor.name, "user": user}],
        "contexts": [
            {
                "name": descriptor.name,
                "context": {"cluster": descriptor.name, "user": descriptor.name},
            }
        ],
        "current-context": descriptor.name,
    }


async def connect_cluster(descriptor: ClusterDescriptor) -> KubeResourceClient:
    """Build a KubeResourceClient for a target cluster.  No request is sent yet."""
    configuration = k8s_client.Configuration()
    await k8s_config.load_kube_config_from_dict(
        config_dict=build_kubeconfig(descriptor),
        client_configuration=configuration,
    )
    api_client = k8s_client.ApiClient(configuration=configuration)
    return KubeResourceClient(api_client, name=descriptor.name)


async def connect_source(source: SourceConfig) -> KubeResourceClient:
    """Build the source client from in-cluster config, falling back to kubeconfig.

    A non-empty ``source.master`` overrides the API server address.
    """
    configuration = k8s_client.Configuration()
    try:
        k8s_config.load_incluster_config(client_configuration=configuration)
        _log.info("source client configured from in-cluster service account")
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config(
            config_file=os.path.expanduser(source.kubeconfig),
            client_configuration=configuration,
        )
        _log.info("source client configured from kubeconfig", kubeconfig=source.kubeconfig)
    if source.master:
        configuration.host = source.master
    api_client = k8s_client.ApiClient(configuration=configuration)
    return KubeResourceClient(api_client, name="source")
