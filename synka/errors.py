"""Exception hierarchy for synka.

Every per-object failure raised by the sync path is a ``SynkaError`` subclass
so that the worker pool can treat them uniformly as retryable.
"""

from __future__ import annotations


class SynkaError(Exception):
    """Base class for all synka errors."""


class ConfigError(SynkaError):
    """Raised when the configuration file or environment is invalid."""


class CacheNotSyncedError(SynkaError):
    """Raised when the remote cache is read before its first full list."""


class ResourceExpiredError(SynkaError):
    """Raised when a watch resumption marker is too old to resume from."""


class UnknownClusterError(SynkaError):
    """Raised when a cluster name is not present in the registry."""


class MalformedObjectError(SynkaError):
    """Raised when an object lacks the metadata needed to replicate it."""


class ClusterConnectionError(SynkaError):
    """Raised when a connection to a target cluster cannot be built."""

    def __init__(self, cluster: str, cause: Exception) -> None:
        super().__init__(f"Connecting to cluster '{cluster}' failed: {cause}")
        self.cluster = cluster
        self.cause = cause


class RemoteOperationError(SynkaError):
    """Raised when a get/create/replace against a target cluster fails."""

    def __init__(self, cluster: str, operation: str, key: str, cause: Exception) -> None:
        super().__init__(f"{operation} {key} on cluster '{cluster}' failed: {cause}")
        self.cluster = cluster
        self.operation = operation
        self.key = key
        self.cause = cause
