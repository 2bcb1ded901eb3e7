"""Remote object-store fallback for municipality datasets.

When a department's municipality GeoPackage is not in the local data
directory, it is downloaded from the object store configured by
``Settings.remote_url_template``. The download is streamed into a scoped
temporary file, handed to the materializer, and the file is removed before
the function returns, whether the conversion succeeded or not.

Example:
    Fetch and convert the dataset of department 05:
        >>> from census_api.core.config import get_settings
        >>> from census_api.services.remote import fetch_remote

        >>> collection = fetch_remote("05", get_settings())
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import requests

from census_api.core import errors
from census_api.services import materialize
from census_api.utils import temp_files

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Callable

    from census_api.cache import models as cache_models
    from census_api.core import config

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
MISSING_OBJECT_STATUSES = (403, 404)


def build_remote_url(template: str, code: str) -> str:
    """Substitute a department code into the remote URL template.

    Args:
        template: URL containing a ``{code}`` placeholder.
        code: Department code.

    Returns:
        Address of the remote dataset.
    """
    return template.format(code=code)


def download_dataset(
    url: str,
    destination: pathlib.Path,
    timeout: float,
    now: Callable[[], float] | None = None,
) -> int:
    """Stream a remote object into ``destination``.

    Object stores answer 403 or 404 for keys that do not exist, and both
    are reported as a missing key. Every other failure means the store
    could not be reached or could not serve the object.

    ``timeout`` bounds the whole transfer, not only the connect step and
    each socket read, so a remote trickling bytes is cut off too.

    Args:
        url: Address of the object.
        destination: File the body is written to.
        timeout: Overall download deadline in seconds.
        now: Clock the deadline is measured with, defaults to
            time.monotonic.

    Returns:
        Number of bytes written.

    Raises:
        KeyNotFoundError: If the object does not exist.
        RemoteUnavailableError: On any other HTTP or transport failure, when
            the deadline passes, or when the body cannot be written.
    """
    clock = now or time.monotonic
    deadline = clock() + timeout
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            if response.status_code in MISSING_OBJECT_STATUSES:
                raise errors.KeyNotFoundError(
                    "Municipality data not found",
                    details=f"Remote object {url} does not exist",
                )
            if not response.ok:
                raise errors.RemoteUnavailableError(
                    details=f"GET {url} returned {response.status_code}",
                    status=response.status_code,
                )
            size = 0
            with destination.open("wb") as fh:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if clock() > deadline:
                        raise errors.RemoteUnavailableError(
                            details=(
                                f"GET {url} exceeded {timeout:g}s "
                                f"after {size} bytes"
                            )
                        )
                    size += len(chunk)
                    fh.write(chunk)
    except requests.RequestException as exc:
        raise errors.RemoteUnavailableError(
            details=f"GET {url} failed: {exc}"
        ) from exc
    except OSError as exc:
        raise errors.RemoteUnavailableError(
            details=f"Cannot write {url} to {destination}: {exc}"
        ) from exc

    if size == 0:
        raise errors.RemoteUnavailableError(
            details=f"GET {url} returned an empty body"
        )
    return size


def fetch_remote(
    code: str,
    settings: config.Settings,
) -> cache_models.FeatureCollection:
    """Download and materialize the municipality dataset of a department.

    Args:
        code: Department code, already validated.
        settings: Application settings with the URL template, timeout and
            temporary directory.

    Returns:
        FeatureCollection of the downloaded dataset.

    Raises:
        KeyNotFoundError: If no remote is configured or the object is
            missing.
        RemoteUnavailableError: If the download fails or the temporary
            file cannot be created.
        DatasetOpenError: If the downloaded file is not a readable dataset.
        LayerReadError: If reading its first layer fails.
    """
    if not settings.remote_url_template:
        raise errors.KeyNotFoundError(
            "Municipality data not found",
            details=f"No local dataset for department {code}",
        )

    url = build_remote_url(settings.remote_url_template, code)
    try:
        with temp_files.scoped_temp_file(settings.temp_dir) as path:
            size = download_dataset(url, path, settings.remote_timeout_seconds)
            logger.info("Downloaded %d bytes from %s to %s", size, url, path)
            return materialize.materialize(path)
    except OSError as exc:
        raise errors.RemoteUnavailableError(
            details=f"Cannot stage download in {settings.temp_dir}: {exc}"
        ) from exc
