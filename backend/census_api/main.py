"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that sets up
logging, CORS middleware, the boundary API router, the error handlers that
render every failure as JSON, and a health check endpoint.
The factory also creates the process-wide FeatureCache and, when
``preload_on_startup`` is enabled, warms it during application startup.

Example:
    The application can be run with uvicorn:
        $ uvicorn census_api.main:app --reload

    Or via the package entrypoint:
        $ python -m census_api
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

import fastapi
from fastapi import responses
from fastapi.middleware import cors

from census_api.api import boundaries as api_boundaries
from census_api.core import config, errors
from census_api.services import boundaries

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def configure_logging(settings: config.Settings) -> None:
    """Configure root logging from settings.

    Args:
        settings: Application settings providing the log level name.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def _handle_boundary_error(
    request: fastapi.Request,
    exc: errors.BoundaryDataError,
) -> responses.JSONResponse:
    """Render a BoundaryDataError as ``{"error", "details"}`` JSON."""
    log = logger.info if exc.status_code < 500 else logger.error
    log("%s %s failed: %s", request.method, request.url.path, exc)
    return responses.JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
    )


async def _handle_unexpected_error(
    request: fastapi.Request,
    exc: Exception,
) -> responses.JSONResponse:
    """Render any other failure as a generic JSON 500."""
    logger.error(
        "%s %s failed", request.method, request.url.path, exc_info=exc
    )
    return responses.JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


@contextlib.asynccontextmanager
async def _lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
    """Warm the feature cache on startup when configured to."""
    cache: boundaries.FeatureCache = app.state.feature_cache
    if cache.settings.preload_on_startup:
        await cache.warm_up()
    yield


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Sets up logging, the feature cache, CORS middleware, the boundary
    API router, the BoundaryDataError handler, and a health check endpoint.
    CORS origins are configured from settings.

    Returns:
        Configured FastAPI application instance ready for ASGI server.

    Example:
        The app can be used with uvicorn or other ASGI servers:
            >>> app = create_app()
            >>> # Or use the module-level app instance:
            >>> from census_api.main import app
    """
    settings = config.get_settings()
    configure_logging(settings)

    app = fastapi.FastAPI(
        title="Census Boundaries API",
        version="0.1.0",
        lifespan=_lifespan,
    )
    app.state.feature_cache = boundaries.FeatureCache(settings)

    app.include_router(api_boundaries.router)
    app.add_exception_handler(
        errors.BoundaryDataError,
        _handle_boundary_error,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, _handle_unexpected_error)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_credentials=settings.allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
