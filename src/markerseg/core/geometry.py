"""Bounding-box and polygon helpers shared by cells and regions."""

from __future__ import annotations

import numpy as np
from skimage.draw import polygon as draw_polygon
from skimage.measure import find_contours

# (min_row, min_col, max_row, max_col), max exclusive, as in regionprops.bbox
BBox = tuple[int, int, int, int]
Polygon = list[tuple[float, float]]


def mask_bbox(mask: np.ndarray) -> BBox | None:
    """Bounding box of the True pixels of a 2D mask, or None if empty."""
    rows = np.flatnonzero(mask.any(axis=1))
    if rows.size == 0:
        return None
    cols = np.flatnonzero(mask.any(axis=0))
    return int(rows[0]), int(cols[0]), int(rows[-1]) + 1, int(cols[-1]) + 1


def coords_bbox(coords: np.ndarray) -> BBox | None:
    """Bounding box of an (N, 2) array of (row, col) pixel coordinates."""
    if len(coords) == 0:
        return None
    mins = coords.min(axis=0)
    maxs = coords.max(axis=0)
    return int(mins[0]), int(mins[1]), int(maxs[0]) + 1, int(maxs[1]) + 1


def bboxes_intersect(a: BBox | None, b: BBox | None) -> bool:
    """True if two half-open bounding boxes share at least one pixel."""
    if a is None or b is None:
        return False
    return a[0] < b[2] and b[0] < a[2] and a[1] < b[3] and b[1] < a[3]


def mask_to_polygons(mask: np.ndarray, offset: tuple[int, int] = (0, 0)) -> list[Polygon]:
    """Trace the outer contours of a binary mask as (x, y) vertex lists.

    The mask is padded by one pixel so objects touching the frame edge
    still produce closed contours. ``offset`` is the (row, col) origin of
    ``mask`` in full-frame coordinates. Contours are returned longest first.
    """
    if not np.any(mask):
        return []
    padded = np.pad(mask.astype(np.uint8), 1)
    contours = find_contours(padded, 0.5)
    contours.sort(key=len, reverse=True)
    row0, col0 = offset
    polygons: list[Polygon] = []
    for contour in contours:
        # find_contours yields (row, col); undo padding and swap to (x, y)
        polygons.append([
            (float(c + col0 - 1), float(r + row0 - 1)) for r, c in contour
        ])
    return polygons


def mask_to_polygon(mask: np.ndarray, offset: tuple[int, int] = (0, 0)) -> Polygon:
    """Longest outer contour of a binary mask, or [] when the mask is empty."""
    polygons = mask_to_polygons(mask, offset)
    return polygons[0] if polygons else []


def polygon_to_mask(polygon: Polygon, shape: tuple[int, int]) -> np.ndarray:
    """Rasterize an (x, y) polygon into a boolean mask of the given shape."""
    mask = np.zeros(shape, dtype=bool)
    if len(polygon) < 3:
        return mask
    xy = np.asarray(polygon, dtype=np.float64)
    rr, cc = draw_polygon(xy[:, 1], xy[:, 0], shape=shape)
    mask[rr, cc] = True
    return mask
