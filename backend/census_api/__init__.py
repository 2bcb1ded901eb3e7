"""Census Boundaries API: administrative boundaries as GeoJSON over HTTP.

This package serves department and municipality boundaries read from
GeoPackage datasets. Collections are materialized with GDAL on first
request, kept in an in-memory cache for a configurable TTL, and reloaded
lazily once stale. Municipality datasets missing from the local data
directory are downloaded from a remote object store.

- Lazy, TTL-based caching with per-key coalescing of concurrent misses
- GDAL (ogrinfo/ogr2ogr) conversion of the first layer to GeoJSON
- Remote fallback downloads streamed to scoped temporary files
- Typed errors rendered as ``{"error", "details"}`` JSON responses

See module sub-docstrings for details on architecture and usage.
"""
