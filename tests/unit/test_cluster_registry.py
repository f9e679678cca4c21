"""Tests for ClusterRegistry construct-once semantics and kubeconfig rendering."""

from __future__ import annotations

import asyncio
import base64

import pytest

from synka.cluster.client import build_kubeconfig
from synka.cluster.registry import ClusterRegistry
from synka.errors import ClusterConnectionError, UnknownClusterError
from synka.models.config import ClusterDescriptor

from tests.fakes import FakeCluster, connect_to


class _CountingConnect:
    """Factory that counts builds and can fail a fixed number of times."""

    def __init__(self, failures: int = 0, delay: float = 0.0) -> None:
        self.builds = 0
        self.failures = failures
        self.delay = delay

    async def __call__(self, descriptor: ClusterDescriptor) -> FakeCluster:
        self.builds += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures:
            self.failures -= 1
            raise OSError("connection refused")
        return FakeCluster(descriptor.name)


def _descriptors(*names: str) -> list[ClusterDescriptor]:
    return [ClusterDescriptor(name=n, server=f"https://{n}:6443") for n in names]


class TestDescriptors:
    def test_configuration_order_is_kept(self) -> None:
        registry = ClusterRegistry(_descriptors("c", "a", "b"), connect=_CountingConnect())
        assert [d.name for d in registry.descriptors] == ["c", "a", "b"]
        assert [d.name for d in registry] == ["c", "a", "b"]
        assert len(registry) == 3

    def test_duplicate_names_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate"):
            ClusterRegistry(_descriptors("a", "a"))

    def test_no_connection_before_first_use(self) -> None:
        connect = _CountingConnect()
        registry = ClusterRegistry(_descriptors("a"), connect=connect)
        assert registry.is_connected("a") is False
        assert connect.builds == 0


class TestGetOrCreate:
    async def test_connection_is_reused(self) -> None:
        connect = _CountingConnect()
        registry = ClusterRegistry(_descriptors("a"), connect=connect)
        first = await registry.get_or_create("a")
        second = await registry.get_or_create("a")
        assert first is second
        assert connect.builds == 1
        assert registry.is_connected("a") is True

    async def test_concurrent_first_use_builds_once(self) -> None:
        connect = _CountingConnect(delay=0.02)
        registry = ClusterRegistry(_descriptors("a"), connect=connect)
        results = await asyncio.gather(*(registry.get_or_create("a") for _ in range(10)))
        assert connect.builds == 1
        assert all(conn is results[0] for conn in results)

    async def test_failure_is_not_cached(self) -> None:
        connect = _CountingConnect(failures=1)
        registry = ClusterRegistry(_descriptors("a"), connect=connect)
        with pytest.raises(ClusterConnectionError) as exc_info:
            await registry.get_or_create("a")
        assert exc_info.value.cluster == "a"
        assert registry.is_connected("a") is False

        await registry.get_or_create("a")
        assert connect.builds == 2

    async def test_unknown_cluster(self) -> None:
        registry = ClusterRegistry(_descriptors("a"), connect=_CountingConnect())
        with pytest.raises(UnknownClusterError):
            await registry.get_or_create("z")

    async def test_close_closes_built_connections(self) -> None:
        a, b = FakeCluster("a"), FakeCluster("b")
        registry = ClusterRegistry([a.descriptor(), b.descriptor()], connect=connect_to(a, b))
        await registry.get_or_create("a")
        await registry.close()
        assert a.closed is True
        assert b.closed is False
        assert registry.is_connected("a") is False


class TestBuildKubeconfig:
    def test_token_cluster(self) -> None:
        doc = build_kubeconfig(
            ClusterDescriptor(name="east", server="https://east:6443", insecure_skip_tls_verify=True, token="t0k")
        )
        assert doc["current-context"] == "east"
        cluster = doc["clusters"][0]["cluster"]
        assert cluster["server"] == "https://east:6443"
        assert cluster["insecure-skip-tls-verify"] is True
        assert "certificate-authority-data" not in cluster
        assert doc["users"][0]["user"] == {"token": "t0k"}

    def test_certificate_material_is_reencoded(self) -> None:
        doc = build_kubeconfig(ClusterDescriptor(name="west", server="https://west:6443", ca=b"CA", cert=b"CRT", key=b"KEY"))
        cluster = doc["clusters"][0]["cluster"]
        user = doc["users"][0]["user"]
        assert base64.b64decode(cluster["certificate-authority-data"]) == b"CA"
        assert base64.b64decode(user["client-certificate-data"]) == b"CRT"
        assert base64.b64decode(user["client-key-data"]) == b"KEY"
        assert "token" not in user
