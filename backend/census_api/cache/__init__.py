"""Feature collection caching.

This package holds the in-memory cache that sits between the HTTP routes
and the boundary datasets: the cache entry models, the keyed stores, and
the orchestrator that decides between serving a fresh entry and producing
a new one.

Example:
    Build a cache for one resource family:
        >>> from census_api.cache import orchestrator, store
        >>> cache = orchestrator.CacheOrchestrator(
        ...     store.InMemoryCacheStore(), ttl_seconds=300
        ... )
"""
