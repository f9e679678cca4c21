"""Deduplicating, rate-limited FIFO of object keys.

Bookkeeping follows three sets:

* ``_queue``      -- keys ready to be handed out, in insertion order.
* ``_dirty``      -- keys that need processing (queued, or re-added in flight).
* ``_processing`` -- keys currently held by a worker.

A key is never in ``_queue`` twice and never handed to two workers at once.
Re-adding a key that is in flight only marks it dirty; ``done()`` puts it back
in the queue so it is processed exactly once more.

All methods except ``get()`` are synchronous and must be called from the
event loop thread.
"""

from __future__ import annotations

import asyncio
from collections import deque

import structlog

from synka.observability.metrics import (
    workqueue_adds_total,
    workqueue_depth,
    workqueue_retries_total,
)
from synka.workqueue.rate_limiter import RateLimiter, default_controller_rate_limiter

_log = structlog.get_logger(component="workqueue")


class RateLimitingQueue:
    """Work queue with deduplication, delayed adds and per-key backoff.

    Args:
        rate_limiter: Policy computing retry delays and tracking requeues.
                      Defaults to ``default_controller_rate_limiter()``.
        name:         Label used in metrics and logs.
    """

    def __init__(self, rate_limiter: RateLimiter | None = None, name: str = "synka.io") -> None:
        self._rate_limiter = rate_limiter or default_controller_rate_limiter()
        self._name = name
        self._queue: deque[str] = deque()
        self._dirty: set[str] = set()
        self._processing: set[str] = set()
        # key -> (ready_at, timer) for keys waiting out a delay
        self._waiting: dict[str, tuple[float, asyncio.TimerHandle]] = {}
        self._getters: deque[asyncio.Future[None]] = deque()
        self._shutting_down = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def __len__(self) -> int:
        return len(self._queue)

    # ------------------------------------------------------------------
    # Core queue operations
    # ------------------------------------------------------------------

    def add(self, item: str) -> None:
        """Mark *item* as needing processing.

        No-op if the queue is shutting down or the item is already pending.
        """
        if self._shutting_down:
            return
        if item in self._dirty:
            return
        workqueue_adds_total.labels(name=self._name).inc()
        self._dirty.add(item)
        if item in self._processing:
            return
        self._queue.append(item)
        workqueue_depth.labels(name=self._name).set(len(self._queue))
        self._wakeup_next()

    async def get(self) -> tuple[str | None, bool]:
        """Block until an item is available and mark it in flight.

        Returns ``(item, False)``, or ``(None, True)`` once the queue has been
        shut down and holds nothing more to hand out.
        """
        loop = asyncio.get_running_loop()
        while not self._queue and not self._shutting_down:
            getter: asyncio.Future[None] = loop.create_future()
            self._getters.append(getter)
            try:
                await getter
            except asyncio.CancelledError:
                getter.cancel()
                try:
                    self._getters.remove(getter)
                except ValueError:
                    pass
                # Pass the wakeup on if this getter consumed one
                if self._queue and not getter.cancelled():
                    self._wakeup_next()
                raise

        if not self._queue:
            return None, True

        item = self._queue.popleft()
        workqueue_depth.labels(name=self._name).set(len(self._queue))
        self._processing.add(item)
        self._dirty.discard(item)
        return item, False

    def done(self, item: str) -> None:
        """Release *item*; requeue it if it was re-added while in flight."""
        self._processing.discard(item)
        if item in self._dirty:
            self._queue.append(item)
            workqueue_depth.labels(name=self._name).set(len(self._queue))
            self._wakeup_next()

    def shut_down(self) -> None:
        """Stop accepting items and release every blocked ``get()``.

        Items already queued are still handed out; ``get()`` reports shutdown
        once the queue is empty.
        """
        if self._shutting_down:
            return
        self._shutting_down = True
        for _, timer in self._waiting.values():
            timer.cancel()
        self._waiting.clear()
        while self._getters:
            getter = self._getters.popleft()
            if not getter.done():
                getter.set_result(None)
        _log.debug("queue_shut_down", queue=self._name, remaining=len(self._queue))

    # ------------------------------------------------------------------
    # Delayed and rate-limited adds
    # ------------------------------------------------------------------

    def add_after(self, item: str, delay: float) -> None:
        """Add *item* after *delay* seconds.

        If the item is already waiting, the earlier ready time is kept.
        """
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(item)
            return
        loop = asyncio.get_running_loop()
        ready_at = loop.time() + delay
        existing = self._waiting.get(item)
        if existing is not None:
            if existing[0] <= ready_at:
                return
            existing[1].cancel()
        timer = loop.call_at(ready_at, self._fire_waiting, item)
        self._waiting[item] = (ready_at, timer)

    def _fire_waiting(self, item: str) -> None:
        self._waiting.pop(item, None)
        self.add(item)

    def add_rate_limited(self, item: str) -> None:
        """Re-add *item* once the rate limiter says it may be retried."""
        workqueue_retries_total.labels(name=self._name).inc()
        self.add_after(item, self._rate_limiter.when(item))

    def forget(self, item: str) -> None:
        """Reset the requeue counter for *item*."""
        self._rate_limiter.forget(item)

    def num_requeues(self, item: str) -> int:
        return self._rate_limiter.num_requeues(item)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _wakeup_next(self) -> None:
        while self._getters:
            getter = self._getters.popleft()
            if not getter.done():
                getter.set_result(None)
                return
