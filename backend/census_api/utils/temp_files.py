"""Scoped temporary files for downloaded datasets.

GDAL needs a seekable file on disk to open a GeoPackage, so datasets that
arrive over the network or as in-memory buffers are spilled into a
temporary file first. scoped_temp_file() ties the lifetime of that file to
a ``with`` block: it is removed when the block exits, whether the block
returns, raises, or is interrupted.

Example:
    Parse an in-memory GeoPackage:
        >>> from census_api.utils import temp_files
        >>> with temp_files.scoped_temp_file(tmp_dir, data=payload) as path:
        ...     collection = materialize.materialize(path)
        >>> path.exists()
        False
"""

from __future__ import annotations

import contextlib
import logging
import pathlib
import tempfile
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def scoped_temp_file(
    directory: pathlib.Path | None = None,
    *,
    suffix: str = ".gpkg",
    data: bytes | None = None,
) -> Iterator[pathlib.Path]:
    """Acquire a temporary file and guarantee its removal on exit.

    Args:
        directory: Directory to create the file in (created if needed);
            None uses the system temporary directory.
        suffix: File suffix, used by GDAL for driver detection.
        data: Optional bytes written to the file before it is yielded.

    Yields:
        Path of the temporary file. The caller may overwrite it.
    """
    if directory is not None:
        directory.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        delete=False, dir=directory, suffix=suffix
    ) as tmp:
        path = pathlib.Path(tmp.name)
    try:
        if data is not None:
            path.write_bytes(data)
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug("Removed temporary file %s", path)
