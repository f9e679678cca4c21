"""Prometheus metrics for synka.

All collectors live in the default registry.  ``start_metrics_server`` exposes
them over HTTP when a port is configured.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, start_http_server

sync_total = Counter(
    "synka_sync_total",
    "Sync Engine invocations per resource and outcome.",
    ["resource", "outcome"],
)

cluster_operations_total = Counter(
    "synka_cluster_operations_total",
    "Get/create/replace calls against target clusters.",
    ["cluster", "operation", "success"],
)

workqueue_depth = Gauge(
    "synka_workqueue_depth",
    "Number of keys waiting in the retry queue.",
    ["name"],
)

workqueue_adds_total = Counter(
    "synka_workqueue_adds_total",
    "Keys inserted into the retry queue.",
    ["name"],
)

workqueue_retries_total = Counter(
    "synka_workqueue_retries_total",
    "Keys requeued with rate-limited backoff.",
    ["name"],
)

workqueue_drops_total = Counter(
    "synka_workqueue_drops_total",
    "Keys dropped after exceeding the retry ceiling.",
    ["name"],
)

watch_restarts_total = Counter(
    "synka_watch_restarts_total",
    "Reflector relists by reason.",
    ["resource", "reason"],
)


def start_metrics_server(port: int) -> None:
    """Serve the default registry on *port*.  A port of 0 disables the exporter."""
    if port <= 0:
        return
    start_http_server(port)
