"""Multi-channel TIFF reading and metadata extraction via tifffile."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import tifffile
from defusedxml import ElementTree as ET

from markerseg.core.models import Stack

logger = logging.getLogger(__name__)

_MICRON_UNITS = ("µm", "um", "micron", "microns", "\\u00B5m")
_CHANNEL_AXES = "CSIQ"


def read_stack(path: Path) -> Stack:
    """Read a multi-channel TIFF into a Stack.

    OME-TIFF, ImageJ hyperstacks and plain multi-page TIFFs are
    supported. Z is reduced by maximum projection; other non-spatial
    axes (e.g., T) keep their first index. Channel labels come from OME
    channel names, then ImageJ slice labels, else 1-based positions.
    Pixel size defaults to 1.0 when the file has no calibration.

    Args:
        path: Path to the TIFF file.

    Returns:
        Stack with data shaped (C, Y, X).

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the image has no Y/X plane.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")

    with tifffile.TiffFile(str(path)) as tif:
        series = tif.series[0]
        data = _to_cyx(series.asarray(), series.axes)
        labels = _channel_labels(tif, data.shape[0])
        pixel_size_um = _extract_pixel_size(tif)

    if pixel_size_um is None:
        logger.warning("No pixel size found in %s; assuming 1.0 um/px", path.name)
        pixel_size_um = 1.0

    return Stack(
        data=data,
        labels=tuple(labels),
        pixel_size_um=float(pixel_size_um),
        source=str(path),
    )


def read_tiff_metadata(path: Path) -> dict:
    """Extract metadata from a TIFF file without reading pixel data.

    Returns:
        Dict with keys: 'shape', 'axes', 'dtype', 'labels', 'pixel_size_um'.
        pixel_size_um may be None if not found.
    """
    with tifffile.TiffFile(str(path)) as tif:
        series = tif.series[0]
        axes = series.axes
        n_channels = 1
        for ax in _CHANNEL_AXES:
            if ax in axes:
                n_channels = series.shape[axes.index(ax)]
                break
        return {
            "shape": tuple(series.shape),
            "axes": axes,
            "dtype": str(series.dtype),
            "labels": _channel_labels(tif, n_channels),
            "pixel_size_um": _extract_pixel_size(tif),
        }


def _to_cyx(data: np.ndarray, axes: str) -> np.ndarray:
    """Reduce an array with tifffile axis codes to (C, Y, X)."""
    axes = axes.upper()
    if "Y" not in axes or "X" not in axes:
        raise ValueError(f"Image has no YX plane (axes={axes!r})")

    channel_axis = next((ax for ax in _CHANNEL_AXES if ax in axes), None)
    keep = {"Y", "X", channel_axis}

    for ax in [a for a in axes if a not in keep]:
        idx = axes.index(ax)
        if ax == "Z":
            data = data.max(axis=idx)
        else:
            data = data.take(0, axis=idx)
        axes = axes[:idx] + axes[idx + 1:]

    if channel_axis is None:
        data = data[np.newaxis]
        axes = "C" + axes
        channel_axis = "C"

    order = [axes.index(channel_axis), axes.index("Y"), axes.index("X")]
    return np.ascontiguousarray(np.transpose(data, order))


def _channel_labels(tif: tifffile.TiffFile, n_channels: int) -> list[str]:
    """Channel labels from OME, then ImageJ metadata, else "1", "2", ..."""
    names: list[str] = []

    if tif.ome_metadata:
        try:
            root = ET.fromstring(tif.ome_metadata)
            pixels = root.find(".//{*}Pixels")
            if pixels is not None:
                names = [ch.get("Name", "") for ch in pixels.findall("{*}Channel")]
        except Exception as exc:
            logger.debug("Could not parse OME channel names: %s", exc)
            names = []

    if len(names) != n_channels and tif.imagej_metadata:
        labels = tif.imagej_metadata.get("Labels")
        if isinstance(labels, (list, tuple)) and len(labels) >= n_channels:
            names = [str(label) for label in labels[:n_channels]]

    if len(names) != n_channels:
        names = [""] * n_channels
    return [name or str(i) for i, name in enumerate(names, start=1)]


def _extract_pixel_size(tif: tifffile.TiffFile) -> float | None:
    """Try to extract pixel size in micrometers from TIFF metadata.

    Checks in order: OME-XML, ImageJ calibration, resolution tags.
    """
    # 1. OME-XML
    if tif.ome_metadata:
        try:
            root = ET.fromstring(tif.ome_metadata)
            pixels = root.find(".//{*}Pixels")
            if pixels is not None:
                ps_x = pixels.get("PhysicalSizeX")
                unit = pixels.get("PhysicalSizeXUnit", "µm")
                if ps_x is not None:
                    value = float(ps_x)
                    if unit == "nm":
                        return value / 1000.0
                    if unit in ("mm", "millimeter"):
                        return value * 1000.0
                    return value  # assume µm
        except Exception as exc:
            logger.debug("Could not parse OME pixel size: %s", exc)

    page = tif.pages[0]
    tags = page.tags
    if "XResolution" not in tags:
        return None

    try:
        x_res = tags["XResolution"].value
        if isinstance(x_res, tuple) and len(x_res) == 2:
            pixels_per_unit = x_res[0] / x_res[1]
        else:
            pixels_per_unit = float(x_res)
    except (TypeError, ZeroDivisionError, ValueError):
        return None
    if pixels_per_unit <= 0:
        return None

    # 2. ImageJ calibration: resolution is pixels per `unit`
    ij = tif.imagej_metadata or {}
    if ij.get("unit") in _MICRON_UNITS:
        return 1.0 / pixels_per_unit

    # 3. TIFF ResolutionUnit: 2=inch, 3=centimeter
    res_unit = tags["ResolutionUnit"].value if "ResolutionUnit" in tags else None
    if res_unit == 3:
        return 10000.0 / pixels_per_unit
    if res_unit == 2:
        # 72/96 dpi is a screen default, not a calibration
        if pixels_per_unit in (72.0, 96.0):
            return None
        return 25400.0 / pixels_per_unit
    return None
