"""Fixed-size worker pool draining a RateLimitingQueue."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from synka.observability.metrics import workqueue_drops_total
from synka.workqueue.queue import RateLimitingQueue

_log = structlog.get_logger(component="controller.worker")

SyncFn = Callable[[str], Awaitable[Any]]


class WorkerPool:
    """Runs ``workers`` identical loops of get -> sync -> done.

    On success a key is forgotten.  On failure it is requeued with backoff
    until ``num_requeues`` reaches ``max_retries``; then it is forgotten and
    dropped.  A dropped key is only seen again when a new change for it
    arrives.

    Args:
        queue:       Shared retry queue.
        sync_fn:     Coroutine function reconciling one key; raising means failure.
        workers:     Number of concurrent loops.
        max_retries: Requeues allowed before a failing key is dropped.
        name:        Label for task names and logs.
    """

    def __init__(
        self,
        queue: RateLimitingQueue,
        sync_fn: SyncFn,
        workers: int = 1,
        max_retries: int = 5,
        name: str = "",
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._queue = queue
        self._sync_fn = sync_fn
        self._workers = workers
        self._max_retries = max_retries
        self._name = name or queue.name
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Spawn the worker tasks.  Calling it again while running is a no-op."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._run_worker(), name=f"worker-{self._name}-{i}") for i in range(self._workers)
        ]
        _log.debug("workers_started", pool=self._name, workers=self._workers)

    async def wait(self) -> None:
        """Wait for every worker to exit (after the queue is shut down)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _run_worker(self) -> None:
        while await self.process_next_item():
            pass

    async def process_next_item(self) -> bool:
        """Handle one key.  Returns False once the queue is shut down."""
        key, shutdown = await self._queue.get()
        if shutdown or key is None:
            return False
        try:
            error: Exception | None = None
            try:
                await self._sync_fn(key)
            except Exception as exc:
                error = exc
            self.handle_err(error, key)
        finally:
            self._queue.done(key)
        return True

    def handle_err(self, err: Exception | None, key: str) -> None:
        """Forget on success, back off on failure, drop at the retry ceiling."""
        if err is None:
            self._queue.forget(key)
            return

        requeues = self._queue.num_requeues(key)
        if requeues < self._max_retries:
            _log.info("sync_failed_requeued", pool=self._name, key=key, requeues=requeues, error=str(err))
            self._queue.add_rate_limited(key)
            return

        self._queue.forget(key)
        workqueue_drops_total.labels(name=self._name).inc()
        _log.error("key_dropped", pool=self._name, key=key, requeues=requeues, error=str(err))
