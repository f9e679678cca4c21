"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_RESOURCES = [
    "deployments.v1.apps",
    "pods.v1.",
    "namespaces.v1.",
    "services.v1.",
    "serviceaccounts.v1.",
]


@dataclass(frozen=True)
class ClusterDescriptor:
    """Connection parameters for one target cluster.

    Credential material is held decoded; nothing here touches the network.
    """

    name: str
    server: str
    insecure_skip_tls_verify: bool = False
    cert: bytes = b""
    key: bytes = b""
    ca: bytes = b""
    token: str = field(default="", repr=False)


@dataclass
class SourceConfig:
    """Connection settings for the source control plane."""

    kubeconfig: str = "~/.kube/config"
    master: str = ""


@dataclass
class QueueConfig:
    """Retry queue and worker pool tuning."""

    workers: int = 1
    max_retries: int = 5
    base_delay: float = 0.005
    max_delay: float = 1000.0
    qps: float = 10.0
    burst: int = 100


@dataclass
class ControllerConfig:
    """Per-controller timing."""

    cache_sync_timeout: float = 120.0
    watch_timeout_seconds: int = 300


@dataclass
class MetricsConfig:
    """Prometheus exporter configuration.  Port 0 disables the exporter."""

    port: int = 0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class SynkaConfig:
    """Top-level synka configuration."""

    config_file: str = "/etc/synka/config.yaml"
    resources: list[str] = field(default_factory=lambda: list(DEFAULT_RESOURCES))
    clusters: list[ClusterDescriptor] = field(default_factory=list)
    source: SourceConfig = field(default_factory=SourceConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    log: LogConfig = field(default_factory=LogConfig)
