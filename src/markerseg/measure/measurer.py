"""Measurer: per-cell measurement table combining geometry, intensities and overlap."""

from __future__ import annotations

import logging
import re
from typing import Sequence

import pandas as pd

from markerseg.core.models import CellSegmentation, OverlapRow, Stack
from markerseg.measure.metrics import MetricRegistry

logger = logging.getLogger(__name__)

GEOMETRY_COLUMNS = [
    "cell_label",
    "centroid_x",
    "centroid_y",
    "bbox_x",
    "bbox_y",
    "bbox_w",
    "bbox_h",
    "area_pixels",
    "area_um2",
    "nucleus_area_pixels",
    "expansion_radius_um",
]


def column_name(label: str) -> str:
    """Make a slice or region label safe to use as a column prefix."""
    name = re.sub(r"[^0-9a-zA-Z]+", "_", label.strip()).strip("_")
    return name or "channel"


class Measurer:
    """Build the per-cell measurement table for one processed file.

    Args:
        metrics: Optional MetricRegistry. If None, uses default builtins.
    """

    def __init__(self, metrics: MetricRegistry | None = None) -> None:
        self._metrics = metrics or MetricRegistry()

    def measure(
        self,
        cells: CellSegmentation,
        stack: Stack | None = None,
        overlap: Sequence[OverlapRow] | None = None,
        metrics: list[str] | None = None,
    ) -> pd.DataFrame:
        """One row per cell.

        Args:
            cells: Expanded cells.
            stack: If given, every slice is measured with every metric;
                columns are named ``<slice label>_<metric>``.
            overlap: Optional OverlapRows; percentages are added as
                ``overlap_<region>`` columns.
            metrics: Metric names (default: all registered metrics).

        Returns:
            DataFrame ordered by cell label. Empty (with geometry columns)
            when there are no cells.

        Raises:
            KeyError: If a requested metric is unknown.
        """
        metric_names = metrics or self._metrics.list_metrics()
        for m in metric_names:
            if m not in self._metrics:
                raise KeyError(f"Unknown metric {m!r}")

        overlap_by_label = {row.cell_label: row for row in overlap or []}
        records: list[dict[str, object]] = []

        for cell in cells:
            min_row, min_col, max_row, max_col = cell.bbox
            record: dict[str, object] = {
                "cell_label": cell.label,
                "centroid_x": cell.centroid_x,
                "centroid_y": cell.centroid_y,
                "bbox_x": min_col,
                "bbox_y": min_row,
                "bbox_w": max_col - min_col,
                "bbox_h": max_row - min_row,
                "area_pixels": cell.area_pixels,
                "area_um2": cell.area_um2,
                "nucleus_area_pixels": cell.nucleus_area_pixels,
                "expansion_radius_um": cell.expansion_radius_um,
            }

            if stack is not None:
                rows, cols = cell.coords[:, 0], cell.coords[:, 1]
                for position, label in enumerate(stack.labels, start=1):
                    values = stack.slice(position)[rows, cols]
                    prefix = column_name(label)
                    for metric_name in metric_names:
                        record[f"{prefix}_{metric_name}"] = self._metrics.compute(
                            metric_name, values,
                        )

            row = overlap_by_label.get(cell.label)
            if row is not None:
                for region, pct in row.percentages.items():
                    record[f"overlap_{column_name(region)}"] = pct

            records.append(record)

        if not records:
            logger.info("No cells to measure")
            return pd.DataFrame(columns=GEOMETRY_COLUMNS)

        return pd.DataFrame.from_records(records)
