"""Read-through cache orchestration with time-based expiry.

CacheOrchestrator sits in front of one CacheStoreProtocol. For each key it
either returns the stored collection while it is fresh, or awaits the
supplied producer, stores its result with a new timestamp, and returns it.
A failed production leaves the store untouched and re-raises the error,
so errors are never cached and a later request simply tries again.

Concurrent misses for the same key wait on a per-key lock: only the first
caller runs the producer, the others find the fresh entry once it is
stored. A key's lock is dropped as soon as no request waits on it, and a
value produced across an invalidate() is returned but never stored.

Example:
    Cache the departments collection for five minutes:
        >>> from census_api.cache import orchestrator, store
        >>> cache = orchestrator.CacheOrchestrator(
        ...     store.InMemoryCacheStore(), ttl_seconds=300
        ... )
        >>> collection = await cache.get_or_produce("departments", producer)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from census_api.cache import models as cache_models
    from census_api.cache import store as cache_store

    Producer = Callable[[], Awaitable[cache_models.FeatureCollection]]

logger = logging.getLogger(__name__)


class CacheOrchestrator:
    """Serve fresh entries from a store and produce the rest on demand.

    Attributes:
        store: Backing store for this resource family.
        ttl_seconds: Age at which an entry stops being served.
    """

    def __init__(
        self,
        store: cache_store.CacheStoreProtocol,
        ttl_seconds: float,
        now: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Store owning the entries of this family.
            ttl_seconds: Time-to-live applied to every entry.
            now: Clock used for freshness checks; must match the clock
                the store stamps entries with. Defaults to time.monotonic.
        """
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._now = now or time.monotonic
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self._generation = 0

    def _fresh_value(self, key: str) -> cache_models.FeatureCollection | None:
        entry = self.store.get(key)
        if entry is not None and entry.is_fresh(self._now(), self.ttl_seconds):
            return entry.value
        return None

    async def get_or_produce(
        self,
        key: str,
        producer: Producer,
    ) -> cache_models.FeatureCollection:
        """Return the cached collection for ``key`` or produce a new one.

        Args:
            key: Cache key.
            producer: Zero-argument coroutine function building a fresh
                collection. It is awaited only on a miss or stale entry.

        Returns:
            The fresh FeatureCollection for ``key``.

        Raises:
            Exception: whatever ``producer`` raises; nothing is stored.
        """
        value = self._fresh_value(key)
        if value is not None:
            logger.debug("Cache hit for %s", key)
            return value

        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                # Another request may have produced the value while we waited.
                value = self._fresh_value(key)
                if value is not None:
                    logger.debug("Cache hit for %s after waiting", key)
                    return value
                return await self._produce(key, producer)
        finally:
            self._release(key)

    async def _produce(
        self,
        key: str,
        producer: Producer,
    ) -> cache_models.FeatureCollection:
        generation = self._generation
        logger.info("Cache miss for %s, producing", key)
        try:
            value = await producer()
        except Exception as exc:
            logger.warning("Producing %s failed: %s", key, exc)
            raise
        if generation != self._generation:
            logger.info("Cache invalidated while producing %s, not storing", key)
            return value
        self.store.put(key, value)
        return value

    def _release(self, key: str) -> None:
        """Forget the lock of ``key`` once nobody waits on it."""
        remaining = self._waiters[key] - 1
        if remaining:
            self._waiters[key] = remaining
        else:
            del self._waiters[key]
            del self._locks[key]

    def invalidate(self) -> None:
        """Drop every entry of this family.

        Productions already running when this is called still return their
        value to their callers but do not store it.
        """
        self._generation += 1
        self.store.clear()
