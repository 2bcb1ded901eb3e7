"""Department and municipality boundary API endpoints.

This module provides REST API endpoints serving administrative boundaries
as GeoJSON FeatureCollections, and an endpoint to drop the in-memory
cache. Collections are served from the FeatureCache stored on the
application state; failures raise BoundaryDataError subclasses which the
application maps to ``{"error": ..., "details": ...}`` responses.

Example:
    Fetch departments and the municipalities of one department:
        >>> response = client.get("/api/departments")
        >>> response.json()["type"]
        'FeatureCollection'

        >>> response = client.get("/api/municipalities/05")
        >>> len(response.json()["features"])
        125

    Clear the cache:
        >>> client.delete("/api/cache").json()
        {'message': 'Cache cleared'}
"""

import fastapi
from fastapi import responses

from census_api.services import boundaries

router = fastapi.APIRouter(prefix="/api", tags=["boundaries"])


def _get_cache(request: fastapi.Request) -> boundaries.FeatureCache:
    """Resolve the application-wide feature cache.

    Args:
        request: Incoming request (injected by FastAPI).

    Returns:
        FeatureCache created by the application factory.
    """
    return request.app.state.feature_cache  # type: ignore[no-any-return]


@router.get("/departments")
async def get_departments(
    cache: boundaries.FeatureCache = fastapi.Depends(_get_cache),  # noqa: B008
) -> responses.JSONResponse:
    """Return all departments as a FeatureCollection.

    Args:
        cache: Feature cache (injected via FastAPI Depends).

    Returns:
        JSON response with the departments FeatureCollection.

    Raises:
        KeyNotFoundError: If the departments dataset is missing (404).
        DatasetOpenError: If the dataset cannot be opened (500).
        LayerReadError: If reading the dataset fails (500).
    """
    return responses.JSONResponse(await cache.departments())


@router.get("/municipalities/{department_code}")
async def get_municipalities(
    department_code: str,
    cache: boundaries.FeatureCache = fastapi.Depends(_get_cache),  # noqa: B008
) -> responses.JSONResponse:
    """Return the municipalities of one department.

    The local dataset is used when present; otherwise it is downloaded
    from the configured remote object store.

    Args:
        department_code: Department code, e.g. "05".
        cache: Feature cache (injected via FastAPI Depends).

    Returns:
        JSON response with the municipalities FeatureCollection.

    Raises:
        KeyNotFoundError: If no dataset exists for the code (404).
        RemoteUnavailableError: If the remote download fails (500).
        DatasetOpenError: If the dataset cannot be opened (500).
        LayerReadError: If reading the dataset fails (500).

    Example:
        >>> response = client.get("/api/municipalities/99")
        >>> response.status_code, response.json()["error"]
        (404, 'Municipality data not found')
    """
    return responses.JSONResponse(await cache.municipalities(department_code))


@router.delete("/cache")
async def clear_cache(
    cache: boundaries.FeatureCache = fastapi.Depends(_get_cache),  # noqa: B008
) -> dict[str, str]:
    """Drop every cached collection so the next requests reload them."""
    cache.invalidate_all()
    return {"message": "Cache cleared"}
