"""Tissue region sources: polygon files and label images."""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any

import numpy as np

from markerseg.core.exceptions import ConfigurationError
from markerseg.core.geometry import Polygon
from markerseg.core.models import Region

logger = logging.getLogger(__name__)


def read_region_polygons(path: Path, shape: tuple[int, int]) -> list[Region]:
    """Read named region polygons and rasterize them to a frame of ``shape``.

    Accepted layouts:

    * a list of ``{"name": str, "polygon": [[x, y], ...]}`` entries;
    * a mapping ``{name: [[[x, y], ...], ...]}`` of polygon lists;
    * a GeoJSON FeatureCollection of Polygon/MultiPolygon features named
      by ``properties.name`` or ``properties.classification.name``.

    Polygons sharing a name are unioned into one Region. Regions come
    back in order of first appearance.

    Raises:
        ConfigurationError: If the file is missing or has an unknown layout.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Region file not found: {path}")
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in region file {path}: {e}") from e

    grouped = _group_polygons(data)
    regions = [Region.from_polygons(name, polys, shape) for name, polys in grouped.items()]
    logger.debug("Read %d regions from %s", len(regions), path.name)
    return regions


def _group_polygons(data: Any) -> dict[str, list[Polygon]]:
    grouped: dict[str, list[Polygon]] = defaultdict(list)

    if isinstance(data, dict) and data.get("type") == "FeatureCollection":
        for feature in data.get("features", []):
            name = _feature_name(feature)
            for poly in _geometry_polygons(feature.get("geometry") or {}):
                grouped[name].append(poly)
        return dict(grouped)

    if isinstance(data, dict):
        for name, polygons in data.items():
            for poly in polygons:
                grouped[str(name)].append(_as_polygon(poly))
        return dict(grouped)

    if isinstance(data, list):
        for entry in data:
            if not isinstance(entry, dict) or "name" not in entry or "polygon" not in entry:
                raise ConfigurationError(
                    "Region entries must be objects with 'name' and 'polygon'"
                )
            grouped[str(entry["name"])].append(_as_polygon(entry["polygon"]))
        return dict(grouped)

    raise ConfigurationError(f"Unsupported region file layout: {type(data).__name__}")


def _feature_name(feature: dict[str, Any]) -> str:
    props = feature.get("properties") or {}
    classification = props.get("classification")
    if isinstance(classification, dict) and classification.get("name"):
        return str(classification["name"])
    if props.get("name"):
        return str(props["name"])
    return "region"


def _geometry_polygons(geometry: dict[str, Any]) -> list[Polygon]:
    kind = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if kind == "Polygon" and coords:
        # Outer ring only; holes are not represented in region masks
        return [_as_polygon(coords[0])]
    if kind == "MultiPolygon":
        return [_as_polygon(rings[0]) for rings in coords if rings]
    return []


def _as_polygon(points: Any) -> Polygon:
    try:
        return [(float(x), float(y)) for x, y in points]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid polygon vertices: {e}") from e


def regions_from_label_image(
    labels: np.ndarray, names: dict[int, str] | None = None
) -> list[Region]:
    """One Region per non-zero label value, in ascending label order.

    Args:
        labels: 2D integer label image, 0 = no region.
        names: Optional label value -> region name mapping. Unmapped
            labels are named ``region_<value>``.
    """
    names = names or {}
    regions: list[Region] = []
    for value in np.unique(labels):
        if value == 0:
            continue
        name = names.get(int(value), f"region_{int(value)}")
        regions.append(Region.from_mask(name, labels == value))
    return regions
