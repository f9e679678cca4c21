"""Controller for one watched resource kind.

Each controller owns its cache, retry queue, reflector and worker pool; it
shares nothing but the cluster registry with the controllers of other kinds.
"""

from __future__ import annotations

import asyncio
import contextlib

import structlog

from synka.cache.remote_cache import RemoteCache
from synka.cluster.registry import ClusterRegistry
from synka.collector.reflector import SourceClient, WatchReflector
from synka.controller.worker import WorkerPool
from synka.models.config import ControllerConfig, QueueConfig
from synka.models.resources import ResourceKind, WatchEvent, WatchEventType
from synka.sync.engine import SyncEngine
from synka.workqueue.queue import RateLimitingQueue
from synka.workqueue.rate_limiter import RateLimiter, default_controller_rate_limiter

_log = structlog.get_logger(component="controller")


class Controller:
    """Replicates annotated objects of one ResourceKind to every target cluster.

    Args:
        kind:         Resource kind to watch.
        source:       Source control plane client.
        registry:     Target clusters.
        queue_config: Worker count, retry ceiling and backoff tuning.
        config:       Cache-sync and watch timeouts.
        rate_limiter: Overrides the limiter built from ``queue_config``.
    """

    def __init__(
        self,
        kind: ResourceKind,
        source: SourceClient,
        registry: ClusterRegistry,
        queue_config: QueueConfig | None = None,
        config: ControllerConfig | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        queue_config = queue_config or QueueConfig()
        self._config = config or ControllerConfig()
        self.kind = kind
        self._log = _log.bind(resource=kind.group_resource)

        self.cache = RemoteCache(name=kind.group_resource)
        self.queue = RateLimitingQueue(
            rate_limiter=rate_limiter
            or default_controller_rate_limiter(
                base_delay=queue_config.base_delay,
                max_delay=queue_config.max_delay,
                qps=queue_config.qps,
                burst=queue_config.burst,
            ),
            name=kind.group_resource,
        )
        self.reflector = WatchReflector(
            kind,
            source,
            self.cache,
            self.dispatch,
            watch_timeout=self._config.watch_timeout_seconds,
        )
        self.engine = SyncEngine(kind, self.cache, registry)
        self.workers = WorkerPool(
            self.queue,
            self.engine.sync,
            workers=queue_config.workers,
            max_retries=queue_config.max_retries,
            name=kind.group_resource,
        )

    def dispatch(self, event: WatchEvent) -> None:
        """Turn a change notification into a queued key."""
        if event.type == WatchEventType.DELETED:
            self._log.info("resource_deleted", key=event.key)
        self.queue.add(event.key)

    async def run(self, stop: asyncio.Event) -> bool:
        """Run until *stop* is set.

        Returns False if the cache never synced (the controller gives up
        without affecting other controllers), True after a clean shutdown.
        """
        reflector_task = asyncio.create_task(self.reflector.run(), name=f"reflector-{self.kind.group_resource}")
        try:
            if not await self._wait_for_sync(stop):
                if not stop.is_set():
                    self._log.error(
                        "cache_sync_timed_out",
                        timeout=self._config.cache_sync_timeout,
                    )
                    return False
                return True

            self.workers.start()
            self._log.info("controller_started")
            await stop.wait()
            self._log.info("controller_shutting_down")
            return True
        finally:
            self.queue.shut_down()
            await self.workers.wait()
            self.reflector.stop()
            reflector_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reflector_task
            self._log.info("controller_stopped")

    async def _wait_for_sync(self, stop: asyncio.Event) -> bool:
        sync_task = asyncio.create_task(self.reflector.wait_for_sync(self._config.cache_sync_timeout))
        stop_task = asyncio.create_task(stop.wait())
        try:
            await asyncio.wait({sync_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            sync_task.cancel()
        if stop.is_set():
            return False
        return sync_task.done() and not sync_task.cancelled() and sync_task.result()
