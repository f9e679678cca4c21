"""Configuration loading from environment variables and the cluster file."""

from __future__ import annotations

import base64
import binascii
import os
from pathlib import Path
from typing import Any

import structlog
import yaml

from synka.errors import ConfigError
from synka.models.config import (
    DEFAULT_RESOURCES,
    ClusterDescriptor,
    ControllerConfig,
    LogConfig,
    MetricsConfig,
    QueueConfig,
    SourceConfig,
    SynkaConfig,
)
from synka.models.resources import ResourceKind

_log = structlog.get_logger(component="config")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"SYNKA_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _env_list(key: str, default: list[str]) -> list[str]:
    raw = _env(key, "")
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_resources(values: list[str]) -> list[str]:
    if not values:
        raise ValueError("At least one resource must be configured")
    for value in values:
        ResourceKind.parse(value)
    return values


def _b64_to_bytes(value: str, field_name: str, cluster: str) -> bytes:
    """Decode *value*; undecodable input is treated as empty."""
    if not value:
        return b""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        _log.warning("invalid_base64_credential", cluster=cluster, field=field_name)
        return b""


def parse_clusters(data: Any) -> list[ClusterDescriptor]:
    """Build ClusterDescriptors from the decoded cluster file document.

    Raises:
        ConfigError: if the document is not a mapping, a cluster entry has no
            name or server, or two clusters share a name.
    """
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a mapping")
    entries = data.get("clusters") or []
    if not isinstance(entries, list):
        raise ConfigError("'clusters' must be a list")

    clusters: list[ClusterDescriptor] = []
    seen: set[str] = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigError(f"Cluster entry #{index} must be a mapping")
        name = str(entry.get("name") or "")
        if not name:
            raise ConfigError(f"Cluster entry #{index} has no name")
        if name in seen:
            raise ConfigError(f"Duplicate cluster name: {name}")
        server = str(entry.get("server") or "")
        if not server:
            raise ConfigError(f"Cluster '{name}' has no server")
        seen.add(name)
        clusters.append(
            ClusterDescriptor(
                name=name,
                server=server,
                insecure_skip_tls_verify=bool(entry.get("insecure-skip-tls-verify", False)),
                cert=_b64_to_bytes(str(entry.get("cert") or ""), "cert", name),
                key=_b64_to_bytes(str(entry.get("key") or ""), "key", name),
                ca=_b64_to_bytes(str(entry.get("ca") or ""), "ca", name),
                token=str(entry.get("token") or ""),
            )
        )
    return clusters


def load_clusters(path: str) -> list[ClusterDescriptor]:
    """Read and parse the YAML cluster file at *path*."""
    file_path = Path(path).expanduser()
    try:
        content = file_path.read_text()
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {file_path}: {exc}") from exc
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {file_path}: {exc}") from exc
    return parse_clusters(data)


def load_config(
    config_file: str | None = None,
    kubeconfig: str | None = None,
    master: str | None = None,
    resources: list[str] | None = None,
    workers: int | None = None,
    log_level: str | None = None,
    metrics_port: int | None = None,
) -> SynkaConfig:
    """Load configuration from SYNKA_* environment variables and the cluster file.

    Explicit arguments take precedence over the environment.
    """
    config_file = config_file or _env("CONFIG", "/etc/synka/config.yaml")
    return SynkaConfig(
        config_file=config_file,
        resources=_validate_resources(resources or _env_list("RESOURCES", DEFAULT_RESOURCES)),
        clusters=load_clusters(config_file),
        source=SourceConfig(
            kubeconfig=kubeconfig or _env("KUBECONFIG", "~/.kube/config"),
            master=master if master is not None else _env("MASTER", ""),
        ),
        queue=QueueConfig(
            workers=workers if workers is not None else _env_int("WORKERS", 1, min_val=1, max_val=64),
            max_retries=_env_int("MAX_RETRIES", 5, min_val=0, max_val=100),
            base_delay=_env_float("BACKOFF_BASE", 0.005, min_val=0.0),
            max_delay=_env_float("BACKOFF_MAX", 1000.0, min_val=0.0),
            qps=_env_float("QPS", 10.0, min_val=0.1),
            burst=_env_int("BURST", 100, min_val=1),
        ),
        controller=ControllerConfig(
            cache_sync_timeout=_env_float("CACHE_SYNC_TIMEOUT", 120.0, min_val=1.0),
            watch_timeout_seconds=_env_int("WATCH_TIMEOUT", 300, min_val=10, max_val=3600),
        ),
        metrics=MetricsConfig(
            port=metrics_port if metrics_port is not None else _env_int("METRICS_PORT", 0, min_val=0, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(log_level or _env("LOG_LEVEL", "info")),
        ),
    )
