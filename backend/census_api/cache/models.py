"""Data models for cached boundary collections.

This module defines the GeoJSON shapes served by the API and the cache
entry that wraps them. A FeatureCollection is built once by the
materializer and never modified afterwards; refreshing a key replaces its
CacheEntry with a new one.

Example:
    Wrap a collection in a cache entry:
        >>> from census_api.cache.models import CacheEntry
        >>> collection = {"type": "FeatureCollection", "features": []}
        >>> entry = CacheEntry(value=collection, produced_at=12.5)
        >>> entry.is_fresh(now=100.0, ttl_seconds=300)
        True
"""

from __future__ import annotations

import dataclasses
from typing import Any, Literal, TypedDict

Scalar = str | int | float | bool | None

DEPARTMENTS_KEY = "departments"


class FeatureRecord(TypedDict):
    """One geographic entity: GeoJSON geometry plus its attributes."""

    type: Literal["Feature"]
    properties: dict[str, Scalar]
    geometry: dict[str, Any] | None


class FeatureCollection(TypedDict):
    """Ordered features in source-layer iteration order."""

    type: Literal["FeatureCollection"]
    features: list[FeatureRecord]


@dataclasses.dataclass(frozen=True)
class CacheEntry:
    """A materialized collection and the moment it was produced.

    Attributes:
        value: The cached FeatureCollection.
        produced_at: Clock reading (seconds) when the entry was stored.
    """

    value: FeatureCollection
    produced_at: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        """Return True while the entry is younger than ``ttl_seconds``."""
        return now - self.produced_at < ttl_seconds
