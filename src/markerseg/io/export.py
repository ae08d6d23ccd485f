"""Writers for per-file and batch output artifacts."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd
import tifffile

from markerseg.core.models import CellSegmentation, Region

logger = logging.getLogger(__name__)

BATCH_TABLE_NAME = "overlap_summary.csv"


def output_paths(output_dir: Path, stem: str) -> dict[str, Path]:
    """Per-file artifact paths keyed by kind."""
    output_dir = Path(output_dir)
    return {
        "table": output_dir / f"{stem}_cells.csv",
        "overview": output_dir / f"{stem}_cells.tif",
        "rois": output_dir / f"{stem}_rois.json",
    }


def write_file_outputs(
    output_dir: Path,
    stem: str,
    table: pd.DataFrame,
    cells: CellSegmentation,
    regions: Sequence[Region],
) -> dict[str, Path]:
    """Write the measurement table, label overview and ROI polygons for one file.

    Returns:
        The paths written, keyed by "table", "overview" and "rois".
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = output_paths(output_dir, stem)

    table.to_csv(paths["table"], index=False)

    labels = cells.labels
    resolution = (1.0 / cells.pixel_size_um, 1.0 / cells.pixel_size_um)
    if labels.max() <= np.iinfo(np.uint16).max:
        tifffile.imwrite(
            str(paths["overview"]),
            labels.astype(np.uint16),
            resolution=resolution,
            metadata={"unit": "um"},
            imagej=True,
        )
    else:
        # ImageJ hyperstacks cannot hold 32-bit integers
        tifffile.imwrite(str(paths["overview"]), labels.astype(np.uint32), resolution=resolution)

    rois = {
        "pixel_size_um": cells.pixel_size_um,
        "cells": [
            {"label": cell.label, "polygon": [list(p) for p in cell.polygon]}
            for cell in cells
        ],
        "regions": [
            {"name": region.name, "polygons": [[list(p) for p in poly] for poly in region.polygons]}
            for region in regions
        ],
    }
    with open(paths["rois"], "w") as f:
        json.dump(rois, f)

    logger.debug("Wrote outputs for %s to %s", stem, output_dir)
    return paths


def remove_file_outputs(output_dir: Path, stem: str) -> int:
    """Delete any (partial) per-file artifacts. Returns the number removed."""
    removed = 0
    for path in output_paths(output_dir, stem).values():
        if path.exists():
            path.unlink()
            removed += 1
    return removed


def write_batch_table(output_dir: Path, table: pd.DataFrame) -> Path:
    """Write the combined per-cell table for all completed files."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / BATCH_TABLE_NAME
    table.to_csv(path, index=False)
    return path
