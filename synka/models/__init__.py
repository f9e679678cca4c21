"""Core data structures for synka."""

from synka.models.config import (
    ClusterDescriptor,
    ControllerConfig,
    LogConfig,
    MetricsConfig,
    QueueConfig,
    SourceConfig,
    SynkaConfig,
)
from synka.models.resources import (
    CachedObject,
    ResourceKind,
    WatchEvent,
    WatchEventType,
    object_key,
    split_key,
)

__all__ = [
    "CachedObject",
    "ClusterDescriptor",
    "ControllerConfig",
    "LogConfig",
    "MetricsConfig",
    "QueueConfig",
    "ResourceKind",
    "SourceConfig",
    "SynkaConfig",
    "WatchEvent",
    "WatchEventType",
    "object_key",
    "split_key",
]
