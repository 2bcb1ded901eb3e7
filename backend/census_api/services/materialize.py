"""Vector dataset to GeoJSON FeatureCollection conversion using GDAL.

This module turns a GDAL-readable vector dataset (in practice a GeoPackage)
into the FeatureCollection served by the API. ``ogrinfo -json`` lists the
dataset's layers and the first one is selected; ``ogr2ogr`` then streams
that layer as GeoJSON to standard output, which is parsed and normalized
into Feature records. Geometries keep the coordinates and the nested
GeoJSON structure GDAL writes for the source CRS.

Both tools run as subprocesses via gdal_helpers.run_command, so the
dataset handle is closed when the subprocess exits on every path. The
conversion is all-or-nothing: a failure while reading the layer never
yields a partial collection.

Example:
    Materialize a local GeoPackage:
        >>> from pathlib import Path
        >>> from census_api.services.materialize import materialize

        >>> collection = materialize(Path("data/department.gpkg"))
        >>> collection["type"]
        'FeatureCollection'

    Or an in-memory buffer, spilled to a temporary file first:
        >>> collection = materialize(payload_bytes, temp_dir=Path("/tmp"))
"""

from __future__ import annotations

import json
import logging
import pathlib
from typing import TYPE_CHECKING, Any

from census_api.core import errors
from census_api.utils import gdal_helpers, temp_files

if TYPE_CHECKING:
    from census_api.cache import models as cache_models

logger = logging.getLogger(__name__)


def first_layer_name(source_path: pathlib.Path) -> str:
    """Return the name of the first layer of a vector dataset.

    Args:
        source_path: Path to the dataset.

    Returns:
        Layer name as reported by ``ogrinfo``.

    Raises:
        DatasetOpenError: If the file is missing, GDAL cannot open it, or
            it contains no vector layer.
    """
    if not source_path.is_file():
        raise errors.DatasetOpenError(details=f"{source_path} does not exist")

    command = ("ogrinfo", "-json", "-ro", "-so", str(source_path))
    try:
        output = gdal_helpers.run_command(command)
        info = json.loads(output)
    except gdal_helpers.CommandError as exc:
        raise errors.DatasetOpenError(details=str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise errors.DatasetOpenError(
            details=f"Unreadable ogrinfo output for {source_path}: {exc}"
        ) from exc

    if not isinstance(info, dict):
        raise errors.DatasetOpenError(
            details=f"Unexpected ogrinfo output for {source_path}"
        )
    layers = info.get("layers") or []
    if not layers:
        raise errors.DatasetOpenError(
            details=f"{source_path} contains no vector layers"
        )
    first = layers[0] if isinstance(layers, list) else None
    if not isinstance(first, dict) or "name" not in first:
        raise errors.DatasetOpenError(
            details=f"Unexpected layer listing for {source_path}"
        )
    return str(first["name"])


def _to_record(feature: dict[str, Any]) -> cache_models.FeatureRecord:
    """Normalize one GDAL GeoJSON feature into a FeatureRecord."""
    return {
        "type": "Feature",
        "properties": dict(feature.get("properties") or {}),
        "geometry": feature.get("geometry"),
    }


def read_layer(
    source_path: pathlib.Path,
    layer_name: str,
) -> cache_models.FeatureCollection:
    """Read every feature of a layer as a FeatureCollection.

    Args:
        source_path: Path to the dataset.
        layer_name: Layer to read.

    Returns:
        FeatureCollection with one record per feature, in layer order.

    Raises:
        LayerReadError: If ogr2ogr fails or its output is not a valid
            GeoJSON FeatureCollection.
    """
    command = (
        "ogr2ogr",
        "-f",
        "GeoJSON",
        "/vsistdout/",
        str(source_path),
        layer_name,
    )
    try:
        output = gdal_helpers.run_command(command)
        document = json.loads(output)
    except gdal_helpers.CommandError as exc:
        raise errors.LayerReadError(details=str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise errors.LayerReadError(
            details=f"Truncated or invalid GeoJSON for {layer_name}: {exc}"
        ) from exc

    if not isinstance(document, dict):
        document = {}
    features = document.get("features")
    if (
        document.get("type") != "FeatureCollection"
        or not isinstance(features, list)
        or not all(isinstance(feature, dict) for feature in features)
    ):
        raise errors.LayerReadError(
            details=f"Layer {layer_name} did not convert to a FeatureCollection"
        )
    return {
        "type": "FeatureCollection",
        "features": [_to_record(feature) for feature in features],
    }


def materialize(
    source: pathlib.Path | bytes,
    temp_dir: pathlib.Path | None = None,
) -> cache_models.FeatureCollection:
    """Convert the first layer of a vector dataset into a FeatureCollection.

    Args:
        source: Path of a local dataset, or the raw bytes of one.
        temp_dir: Directory for the temporary copy of a byte buffer.

    Returns:
        FeatureCollection of the dataset's first layer.

    Raises:
        DatasetOpenError: If the dataset cannot be opened.
        LayerReadError: If reading the layer fails.
    """
    if isinstance(source, bytes):
        try:
            with temp_files.scoped_temp_file(temp_dir, data=source) as path:
                return materialize(path)
        except OSError as exc:
            raise errors.DatasetOpenError(
                details=f"Cannot stage dataset in {temp_dir}: {exc}"
            ) from exc

    layer_name = first_layer_name(source)
    collection = read_layer(source, layer_name)
    logger.info(
        "Materialized %d features from %s (layer %s)",
        len(collection["features"]),
        source,
        layer_name,
    )
    return collection
