"""In-memory mirror of a watched resource collection.

The cache has exactly one writer (the Watch Reflector) and many readers (the
workers).  All access happens on the event loop thread, and every mutation
swaps a whole CachedObject under its key, so a reader never observes a
partially-applied update.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

import structlog

from synka.errors import CacheNotSyncedError
from synka.models.resources import CachedObject

_log = structlog.get_logger(component="cache.remote_cache")


class RemoteCache:
    """Key-indexed store of CachedObjects for a single ResourceKind."""

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._items: dict[str, CachedObject] = {}
        self._synced = False
        self._last_sync_resource_version = ""

    @property
    def has_synced(self) -> bool:
        """True once the first full list has been applied."""
        return self._synced

    @property
    def last_sync_resource_version(self) -> str:
        return self._last_sync_resource_version

    # ------------------------------------------------------------------
    # Writer API (Watch Reflector only)
    # ------------------------------------------------------------------

    def replace(self, objects: Iterable[CachedObject], resource_version: str) -> list[CachedObject]:
        """Swap the whole contents for *objects* and mark the cache synced.

        Returns the objects that were cached before but are absent from the
        new list, i.e. deletions missed while the watch was down.
        """
        fresh = {obj.key: obj for obj in objects}
        vanished = [obj for key, obj in self._items.items() if key not in fresh]
        self._items = fresh
        self._last_sync_resource_version = resource_version
        if not self._synced:
            _log.info("cache_synced", cache=self._name, objects=len(fresh), resource_version=resource_version)
        self._synced = True
        return vanished

    def upsert(self, obj: CachedObject) -> None:
        self._items[obj.key] = obj

    def remove(self, key: str) -> CachedObject | None:
        return self._items.pop(key, None)

    # ------------------------------------------------------------------
    # Reader API
    # ------------------------------------------------------------------

    def get(self, key: str) -> CachedObject | None:
        """Return the object stored under *key*, or None if it is absent.

        Raises:
            CacheNotSyncedError: if the initial list has not completed yet.
        """
        if not self._synced:
            raise CacheNotSyncedError(f"cache {self._name or '<unnamed>'} has not synced yet")
        return self._items.get(key)

    def keys(self) -> list[str]:
        return list(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[CachedObject]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)
