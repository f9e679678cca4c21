"""Target cluster access for synka.

Submodules:
    registry -- ClusterRegistry: ordered descriptors, construct-once connections.
    client   -- kubernetes-asyncio dynamic-client adapter and connection factories.
"""

from synka.cluster.registry import ClusterConnection, ClusterRegistry, ConnectionFactory

__all__ = ["ClusterConnection", "ClusterRegistry", "ConnectionFactory"]
