"""Department and municipality boundary loading behind a TTL cache.

This module wires the producers of the two resource families to their
caches. Departments come from a single local GeoPackage. Municipalities
are partitioned by department code: the local ``DPTO_CCDGO_<code>.gpkg``
is used when present, otherwise the dataset is fetched from the remote
object store.

FeatureCache owns one CacheOrchestrator (and store) per family. Producers
are blocking GDAL and HTTP work, so they run in the threadpool while the
event loop keeps serving other requests.

Example:
    Serve collections from a long-lived cache:
        >>> from census_api.core.config import get_settings
        >>> from census_api.services.boundaries import FeatureCache

        >>> cache = FeatureCache(get_settings())
        >>> departments = await cache.departments()
        >>> municipalities = await cache.municipalities("05")
        >>> cache.invalidate_all()
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING

from fastapi import concurrency

from census_api.cache import models as cache_models
from census_api.cache import orchestrator, store
from census_api.core import errors
from census_api.services import materialize, remote

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Callable

    from census_api.core import config

logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r"^\d{1,5}$")


def validate_department_code(code: str) -> str:
    """Reject codes that cannot name a department dataset.

    Only short digit strings are accepted, which also keeps codes from
    escaping the data directory when substituted into file names.

    Args:
        code: Department code from the request path.

    Returns:
        The validated code.

    Raises:
        KeyNotFoundError: If the code is not a digit string.
    """
    if not _CODE_PATTERN.match(code):
        raise errors.KeyNotFoundError(
            "Municipality data not found",
            details=f"Invalid department code {code!r}",
        )
    return code


def municipality_path(code: str, settings: config.Settings) -> pathlib.Path:
    """Return where the municipality dataset of ``code`` is stored locally."""
    filename = settings.municipality_file_template.format(code=code)
    return settings.data_dir / filename


def load_departments(
    settings: config.Settings,
) -> cache_models.FeatureCollection:
    """Materialize the local departments dataset.

    Raises:
        KeyNotFoundError: If the departments file does not exist.
        DatasetOpenError: If it cannot be opened.
        LayerReadError: If reading it fails.
    """
    path = settings.department_path
    if not path.is_file():
        raise errors.KeyNotFoundError(
            "Departments data not found",
            details=f"{path} does not exist",
        )
    return materialize.materialize(path)


def load_municipality(
    code: str,
    settings: config.Settings,
) -> cache_models.FeatureCollection:
    """Materialize the municipalities of one department.

    Args:
        code: Validated department code.
        settings: Application settings.

    Returns:
        FeatureCollection from the local file, or from the remote store
        when no local file exists.

    Raises:
        KeyNotFoundError: If neither source has the dataset.
        RemoteUnavailableError: If the remote download fails.
        DatasetOpenError: If the dataset cannot be opened.
        LayerReadError: If reading it fails.
    """
    path = municipality_path(code, settings)
    if path.is_file():
        return materialize.materialize(path)
    logger.info("No local dataset at %s, trying remote store", path)
    return remote.fetch_remote(code, settings)


def local_department_codes(settings: config.Settings) -> list[str]:
    """List department codes that have a local municipality dataset."""
    prefix, _, suffix = settings.municipality_file_template.partition("{code}")
    if not settings.data_dir.is_dir():
        return []
    codes = []
    for path in sorted(settings.data_dir.glob(f"{prefix}*{suffix}")):
        code = path.name[len(prefix) : len(path.name) - len(suffix)]
        if _CODE_PATTERN.match(code):
            codes.append(code)
    return codes


class FeatureCache:
    """Cached access to department and municipality collections.

    The two families live in separate stores with the same TTL. Each
    family can be invalidated on its own; invalidate_all() clears both.

    Attributes:
        settings: Application settings used by the producers.
        departments_cache: Orchestrator for the departments family.
        municipalities_cache: Orchestrator keyed by department code.
    """

    def __init__(
        self,
        settings: config.Settings,
        now: Callable[[], float] | None = None,
    ) -> None:
        """Create empty caches.

        Args:
            settings: Application settings (TTL, paths, remote).
            now: Clock shared by stores and orchestrators, defaults to
                time.monotonic.
        """
        clock = now or time.monotonic
        self.settings = settings
        self.departments_cache = orchestrator.CacheOrchestrator(
            store.InMemoryCacheStore(now=clock),
            settings.cache_ttl_seconds,
            now=clock,
        )
        self.municipalities_cache = orchestrator.CacheOrchestrator(
            store.InMemoryCacheStore(now=clock),
            settings.cache_ttl_seconds,
            now=clock,
        )

    async def departments(self) -> cache_models.FeatureCollection:
        """Return the departments collection."""

        async def produce() -> cache_models.FeatureCollection:
            return await concurrency.run_in_threadpool(
                load_departments, self.settings
            )

        return await self.departments_cache.get_or_produce(
            cache_models.DEPARTMENTS_KEY, produce
        )

    async def municipalities(self, code: str) -> cache_models.FeatureCollection:
        """Return the municipalities collection of a department.

        Args:
            code: Department code from the request.

        Raises:
            KeyNotFoundError: If the code is invalid or has no dataset.
        """
        code = validate_department_code(code)

        async def produce() -> cache_models.FeatureCollection:
            return await concurrency.run_in_threadpool(
                load_municipality, code, self.settings
            )

        return await self.municipalities_cache.get_or_produce(code, produce)

    def invalidate_all(self) -> None:
        """Clear both families."""
        self.departments_cache.invalidate()
        self.municipalities_cache.invalidate()
        logger.info("Feature cache cleared")

    async def warm_up(self) -> list[str]:
        """Load every local dataset into the cache.

        Failures are logged and skipped so one bad file does not prevent
        the others from loading.

        Returns:
            Keys that were loaded successfully.
        """
        loaded = []
        try:
            await self.departments()
            loaded.append(cache_models.DEPARTMENTS_KEY)
        except errors.BoundaryDataError as exc:
            logger.error("Failed to preload departments: %s", exc)

        for code in local_department_codes(self.settings):
            try:
                await self.municipalities(code)
                loaded.append(code)
            except errors.BoundaryDataError as exc:
                logger.error(
                    "Failed to preload municipalities of %s: %s", code, exc
                )
        logger.info("Preloaded %d collections", len(loaded))
        return loaded
