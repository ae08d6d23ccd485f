"""Label image to NucleusInstance / Cell extraction using scikit-image regionprops."""

from __future__ import annotations

import numpy as np
from skimage.measure import regionprops

from markerseg.core.geometry import mask_to_polygon
from markerseg.core.models import Cell, NucleusInstance


class LabelProcessor:
    """Extract per-object records from a label image.

    Uses ``skimage.measure.regionprops`` for coordinates, centroid,
    bounding box and area. Records come back in ascending label order.
    """

    def extract_nuclei(
        self, labels: np.ndarray, pixel_size_um: float = 1.0
    ) -> list[NucleusInstance]:
        """Convert a nucleus label image to NucleusInstance records.

        Args:
            labels: 2D integer array (Y, X), 0 = background.
            pixel_size_um: Physical pixel size used for ``area_um2``.

        Returns:
            One NucleusInstance per label; empty list for an empty image.
        """
        if labels.max() == 0:
            return []

        pixel_area = np.float64(pixel_size_um) ** 2
        nuclei: list[NucleusInstance] = []
        for prop in regionprops(labels):
            # regionprops centroid is (row, col) = (y, x)
            cy, cx = prop.centroid
            nuclei.append(
                NucleusInstance(
                    label=int(prop.label),
                    coords=np.asarray(prop.coords, dtype=np.intp),
                    centroid_x=float(cx),
                    centroid_y=float(cy),
                    area_pixels=int(prop.area),
                    area_um2=float(np.float64(prop.area) * pixel_area),
                    bbox=tuple(int(v) for v in prop.bbox),  # type: ignore[arg-type]
                )
            )
        return nuclei

    def extract_cells(
        self,
        labels: np.ndarray,
        nucleus_labels: np.ndarray,
        pixel_size_um: float = 1.0,
        radii_um: dict[int, float] | None = None,
    ) -> list[Cell]:
        """Convert a cell label image to Cell records.

        Args:
            labels: 2D integer cell label image, 0 = background.
            nucleus_labels: Seed nucleus label image with matching labels.
            pixel_size_um: Physical pixel size.
            radii_um: Optional applied expansion radius per label.

        Returns:
            One Cell per label, with its outer polygon traced from the mask.
        """
        if labels.max() == 0:
            return []

        radii_um = radii_um or {}
        pixel_area = np.float64(pixel_size_um) ** 2
        nucleus_areas = np.bincount(
            nucleus_labels.ravel(), minlength=int(labels.max()) + 1
        )

        cells: list[Cell] = []
        for prop in regionprops(labels):
            cy, cx = prop.centroid
            min_row, min_col, _, _ = prop.bbox
            label = int(prop.label)
            nucleus_area = int(nucleus_areas[label]) if label < len(nucleus_areas) else 0
            cells.append(
                Cell(
                    label=label,
                    coords=np.asarray(prop.coords, dtype=np.intp),
                    polygon=mask_to_polygon(prop.image, offset=(min_row, min_col)),
                    centroid_x=float(cx),
                    centroid_y=float(cy),
                    area_pixels=int(prop.area),
                    area_um2=float(np.float64(prop.area) * pixel_area),
                    bbox=tuple(int(v) for v in prop.bbox),  # type: ignore[arg-type]
                    nucleus_area_pixels=nucleus_area,
                    expansion_radius_um=float(radii_um.get(label, 0.0)),
                )
            )
        return cells
