"""Keyed in-memory stores for materialized feature collections."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Protocol

from census_api.cache import models as cache_models

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


class CacheStoreProtocol(Protocol):
    """Protocol interface for one family of cached collections.

    A store maps keys to CacheEntry objects and stamps entries when they
    are written. It never judges freshness; that is left to the caller.
    """

    def get(self, key: str) -> cache_models.CacheEntry | None: ...

    def put(
        self,
        key: str,
        value: cache_models.FeatureCollection,
    ) -> cache_models.CacheEntry: ...

    def clear(self) -> None: ...

    def keys(self) -> Iterable[str]: ...


class InMemoryCacheStore(CacheStoreProtocol):
    """Dictionary-backed store guarded by a lock.

    Stale entries stay in place until they are replaced or the store is
    cleared; there is no background eviction.
    """

    def __init__(self, now: Callable[[], float] | None = None) -> None:
        """Initialize an empty store.

        Args:
            now: Clock used to stamp entries, defaults to time.monotonic.
        """
        self._now = now or time.monotonic
        self._lock = threading.Lock()
        self._entries: dict[str, cache_models.CacheEntry] = {}

    def get(self, key: str) -> cache_models.CacheEntry | None:
        """Return the entry for ``key`` whether fresh or stale.

        Args:
            key: Cache key.

        Returns:
            The CacheEntry if present, None otherwise.
        """
        with self._lock:
            return self._entries.get(key)

    def put(
        self,
        key: str,
        value: cache_models.FeatureCollection,
    ) -> cache_models.CacheEntry:
        """Store ``value`` under ``key``, replacing any previous entry.

        Args:
            key: Cache key.
            value: Collection to store. It must not be modified afterwards.

        Returns:
            The new CacheEntry.
        """
        entry = cache_models.CacheEntry(value=value, produced_at=self._now())
        with self._lock:
            self._entries[key] = entry
        return entry

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
