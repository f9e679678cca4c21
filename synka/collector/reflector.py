"""List-then-watch reflector feeding the remote cache.

The reflector lists every object of its kind, replaces the cache contents,
then watches from the list's resource version.  Each change is written to the
cache first and then handed to the dispatch callable as a WatchEvent, so a
worker that picks the key up always reads at least that state.

Recovery:
    * watch closed by the server  -> resume from the last seen version
    * resource version expired    -> relist immediately
    * any other failure           -> relist after exponential back-off
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncGenerator, Callable
from typing import Any, Protocol

import structlog

from synka.cache.remote_cache import RemoteCache
from synka.errors import ResourceExpiredError
from synka.models.resources import CachedObject, ResourceKind, WatchEvent, WatchEventType
from synka.observability.metrics import watch_restarts_total

_log = structlog.get_logger(component="collector.reflector")

_INITIAL_BACKOFF = 1.0
_MAX_BACKOFF = 30.0
# Pause before reopening a watch that closed without delivering anything.
_EMPTY_WATCH_DELAY = 1.0


class SourceClient(Protocol):
    """List and watch access to the source control plane."""

    async def list(self, kind: ResourceKind) -> tuple[list[dict[str, Any]], str]:
        """Return every object of *kind* plus the resume marker."""
        ...

    def watch(
        self,
        kind: ResourceKind,
        resource_version: str,
        timeout_seconds: int = 300,
    ) -> AsyncGenerator[tuple[str, dict[str, Any]], None]:
        """Stream ``(event_type, raw_object)`` pairs after *resource_version*."""
        ...


class WatchReflector:
    """Keeps a RemoteCache in step with one resource kind on the source.

    Args:
        kind:              Resource kind to list and watch.
        source:            Source control plane client.
        cache:             Cache this reflector is the only writer of.
        dispatch:          Called with a WatchEvent for every observed change.
        watch_timeout:     Server-side watch timeout in seconds.
        initial_backoff:   First delay before relisting after a failure.
        max_backoff:       Upper bound of the relist delay.
        empty_watch_delay: Pause before reopening a watch stream that ended
                           without a single event.
    """

    def __init__(
        self,
        kind: ResourceKind,
        source: SourceClient,
        cache: RemoteCache,
        dispatch: Callable[[WatchEvent], None],
        watch_timeout: int = 300,
        initial_backoff: float = _INITIAL_BACKOFF,
        max_backoff: float = _MAX_BACKOFF,
        empty_watch_delay: float = _EMPTY_WATCH_DELAY,
    ) -> None:
        self._kind = kind
        self._source = source
        self._cache = cache
        self._dispatch = dispatch
        self._watch_timeout = watch_timeout
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._empty_watch_delay = empty_watch_delay
        self._synced = asyncio.Event()
        self._stopping = False
        self._resource_version = ""
        self._log = _log.bind(resource=kind.group_resource)

    @property
    def has_synced(self) -> bool:
        return self._synced.is_set()

    @property
    def resource_version(self) -> str:
        """Last resume marker observed from a list or a watch event."""
        return self._resource_version

    async def wait_for_sync(self, timeout: float | None = None) -> bool:
        """Wait for the first full list.  Returns False on timeout."""
        try:
            await asyncio.wait_for(self._synced.wait(), timeout)
        except TimeoutError:
            return False
        return True

    def stop(self) -> None:
        """Ask ``run()`` to return after the current step."""
        self._stopping = True

    async def run(self) -> None:
        """List and watch until stopped or cancelled."""
        backoff = self._initial_backoff
        while not self._stopping:
            try:
                await self._list_and_replace()
                backoff = self._initial_backoff
                await self._watch_until_failure()
            except asyncio.CancelledError:
                raise
            except ResourceExpiredError as exc:
                watch_restarts_total.labels(resource=self._kind.group_resource, reason="expired").inc()
                self._log.info("watch_expired_relisting", resource_version=self._resource_version, error=str(exc))
            except Exception as exc:
                watch_restarts_total.labels(resource=self._kind.group_resource, reason="error").inc()
                self._log.warning("reflector_failed", error=str(exc), retry_in=backoff)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, self._max_backoff)
        self._log.info("reflector_stopped")

    async def _list_and_replace(self) -> None:
        items, resource_version = await self._source.list(self._kind)
        objects = [CachedObject.from_raw(item) for item in items]
        known = set(self._cache.keys())
        vanished = self._cache.replace(objects, resource_version)
        self._resource_version = resource_version
        self._synced.set()
        self._log.debug("listed", objects=len(objects), resource_version=resource_version)

        for obj in objects:
            event_type = WatchEventType.UPDATED if obj.key in known else WatchEventType.ADDED
            self._dispatch(WatchEvent(type=event_type, key=obj.key, obj=obj))
        for obj in vanished:
            self._dispatch(WatchEvent(type=WatchEventType.DELETED, key=obj.key, obj=obj))

    async def _watch_until_failure(self) -> None:
        """Run watch streams back to back until one fails or the reflector stops."""
        while not self._stopping:
            received = 0
            stream = self._source.watch(
                self._kind,
                self._resource_version,
                timeout_seconds=self._watch_timeout,
            )
            async with contextlib.aclosing(stream):
                async for event_type, raw in stream:
                    received += 1
                    self._handle(event_type, raw)
                    if self._stopping:
                        return
            self._log.debug(
                "watch_closed_resuming",
                resource_version=self._resource_version,
                events=received,
            )
            await asyncio.sleep(self._empty_watch_delay if received == 0 else 0)

    def _handle(self, event_type: str, raw: dict[str, Any]) -> None:
        obj = CachedObject.from_raw(raw)
        if obj.resource_version:
            self._resource_version = obj.resource_version

        if event_type == "BOOKMARK":
            return
        if not obj.name:
            self._log.warning("watch_event_without_name", event_type=event_type)
            return

        if event_type in (WatchEventType.ADDED, WatchEventType.UPDATED):
            self._cache.upsert(obj)
            self._dispatch(WatchEvent(type=WatchEventType(event_type), key=obj.key, obj=obj))
        elif event_type == WatchEventType.DELETED:
            last = self._cache.remove(obj.key)
            self._dispatch(WatchEvent(type=WatchEventType.DELETED, key=obj.key, obj=last or obj))
        else:
            self._log.debug("watch_event_ignored", event_type=event_type)
