"""Shared fixtures for synka integration tests.

Controllers and reflectors run against in-memory FakeSource / FakeCluster
control planes; no real Kubernetes API server is contacted.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from synka.cluster.registry import ClusterRegistry

from tests.fakes import FakeCluster, FakeSource, connect_to


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def cluster_a() -> FakeCluster:
    return FakeCluster("a")


@pytest.fixture
def cluster_b() -> FakeCluster:
    return FakeCluster("b")


@pytest.fixture
async def registry(cluster_a: FakeCluster, cluster_b: FakeCluster) -> AsyncIterator[ClusterRegistry]:
    registry = ClusterRegistry(
        [cluster_a.descriptor(), cluster_b.descriptor()],
        connect=connect_to(cluster_a, cluster_b),
    )
    yield registry
    await registry.close()
