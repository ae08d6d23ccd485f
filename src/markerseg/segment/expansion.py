"""CellExpander: grow non-overlapping cells from nucleus seeds."""

from __future__ import annotations

import logging

import numpy as np
import scipy.ndimage as ndi
from skimage.segmentation import watershed

from markerseg.core.models import CellSegmentation, NucleusSegmentation
from markerseg.segment.label_processor import LabelProcessor

logger = logging.getLogger(__name__)

_EIGHT = np.ones((3, 3), dtype=bool)


class CellExpander:
    """Marker-controlled, distance-bounded expansion of nuclei into cells.

    All nuclei grow at once as a single priority flood (a watershed on
    the distance-to-nearest-nucleus map with the nuclei as markers), so
    each pixel is claimed by exactly one front and two competing fronts
    meet at their midline. Growth is limited to:

    * without a matrix mask: every pixel within ``max_distance``;
    * with a matrix mask: matrix foreground, plus any pixel within
      ``min_distance`` regardless of matrix signal, never beyond
      ``max_distance``.

    The flood breaks exact ties by queue order, so a final pass hands
    every pixel equidistant from two nuclei to the lower label. The same
    pass drops pixels farther than ``max_distance`` from their own
    nucleus (a front that detoured around a matrix gap) and any piece
    of a cell cut off from its nucleus by that cap.

    Args:
        min_distance_um: Guaranteed expansion in calibrated units.
        max_distance_um: Hard expansion cap in calibrated units.
    """

    def __init__(self, min_distance_um: float = 1.0, max_distance_um: float = 10.0) -> None:
        self._check_bounds(min_distance_um, max_distance_um)
        self.min_distance_um = min_distance_um
        self.max_distance_um = max_distance_um

    @staticmethod
    def _check_bounds(min_distance: float, max_distance: float) -> None:
        if min_distance < 0:
            raise ValueError(f"min_distance must be >= 0, got {min_distance}")
        if max_distance < min_distance:
            raise ValueError(
                f"max_distance ({max_distance}) must be >= min_distance ({min_distance})"
            )

    def expand(
        self,
        nuclei: NucleusSegmentation,
        matrix_mask: np.ndarray | None = None,
        min_distance_um: float | None = None,
        max_distance_um: float | None = None,
    ) -> CellSegmentation:
        """Expand nuclei into cells.

        Args:
            nuclei: Output of NuclearSegmenter.
            matrix_mask: Optional 2D cell-matrix foreground mask.
            min_distance_um: Overrides the configured minimum distance.
            max_distance_um: Overrides the configured maximum distance.

        Returns:
            CellSegmentation whose labels equal the seed nucleus labels.

        Raises:
            ValueError: If the matrix mask shape differs from the nuclei.
        """
        min_um = self.min_distance_um if min_distance_um is None else min_distance_um
        max_um = self.max_distance_um if max_distance_um is None else max_distance_um
        self._check_bounds(min_um, max_um)

        seeds = nuclei.labels
        pixel_size = nuclei.pixel_size_um
        if seeds.max() == 0:
            return CellSegmentation(np.zeros(seeds.shape, dtype=np.int32), [], pixel_size)

        if matrix_mask is not None and matrix_mask.shape != seeds.shape:
            raise ValueError(
                f"Matrix mask shape {matrix_mask.shape} != nucleus shape {seeds.shape}"
            )

        min_px = min_um / pixel_size
        max_px = max_um / pixel_size

        seed_mask = seeds > 0
        distance = ndi.distance_transform_edt(~seed_mask)

        if matrix_mask is None:
            allowed = distance <= max_px
        else:
            allowed = ((np.asarray(matrix_mask) > 0) | (distance <= min_px)) & (distance <= max_px)
        allowed |= seed_mask

        labels = watershed(distance, markers=seeds, mask=allowed, connectivity=2)
        labels = labels.astype(np.int32)
        labels[seed_mask] = seeds[seed_mask]

        radii_um = self._settle(labels, seeds, max_px, pixel_size)

        cells = LabelProcessor().extract_cells(labels, seeds, pixel_size, radii_um)
        logger.debug(
            "Expanded %d nuclei into %d cells (min=%.2f um, max=%.2f um, matrix=%s)",
            len(nuclei), len(cells), min_um, max_um, matrix_mask is not None,
        )
        return CellSegmentation(labels, cells, pixel_size)

    @staticmethod
    def _settle(
        labels: np.ndarray,
        seeds: np.ndarray,
        max_px: float,
        pixel_size: float,
    ) -> dict[int, float]:
        """Cap, tie-break and prune the flooded labels in place.

        Visiting nuclei in ascending label order, each cell loses pixels
        farther than ``max_px`` from its own nucleus, hands pixels that are
        exactly as close to a lower-labelled nucleus over to that label,
        and keeps only the connected pieces that touch its nucleus.

        Returns the applied expansion radius (micrometers) per label.
        """
        pad = int(np.ceil(max_px))
        nearest = np.full(labels.shape, np.inf)
        nearest_label = np.zeros(labels.shape, dtype=labels.dtype)
        cell_windows = ndi.find_objects(labels)
        radii: dict[int, float] = {}

        for index, seed_window in enumerate(ndi.find_objects(seeds), start=1):
            if seed_window is None:
                continue
            window = _widen(seed_window, pad + 1, labels.shape)
            if index <= len(cell_windows) and cell_windows[index - 1] is not None:
                window = _union(window, cell_windows[index - 1])

            sub_labels = labels[window]
            own_nucleus = seeds[window] == index
            # Exact inside any crop that holds the whole nucleus
            dist = ndi.distance_transform_edt(~own_nucleus)
            cell = sub_labels == index

            too_far = cell & (dist > max_px)
            sub_labels[too_far] = 0
            cell &= ~too_far

            sub_nearest = nearest[window]
            sub_nearest_label = nearest_label[window]
            tied = cell & ~own_nucleus & (sub_nearest == dist)
            for lower in np.unique(sub_nearest_label[tied]):
                lower_cell = ndi.binary_dilation(sub_labels == lower, structure=_EIGHT)
                handed = tied & (sub_nearest_label == lower) & lower_cell
                if not handed.any():
                    continue
                sub_labels[handed] = lower
                cell &= ~handed
                won = float(dist[handed].max()) * pixel_size
                radii[int(lower)] = max(radii.get(int(lower), 0.0), won)

            pieces, n_pieces = ndi.label(cell, structure=_EIGHT)
            if n_pieces > 1:
                keep = np.unique(pieces[own_nucleus & cell])
                stray = cell & ~np.isin(pieces, keep[keep > 0])
                sub_labels[stray] = 0
                cell &= ~stray

            radii[index] = max(
                radii.get(index, 0.0),
                float(dist[cell].max()) * pixel_size if cell.any() else 0.0,
            )

            closer = dist < sub_nearest
            sub_nearest[closer] = dist[closer]
            sub_nearest_label[closer] = index
        return radii


def _widen(window: tuple[slice, ...], pad: int, shape: tuple[int, ...]) -> tuple[slice, ...]:
    return tuple(
        slice(max(s.start - pad, 0), min(s.stop + pad, n)) for s, n in zip(window, shape)
    )


def _union(a: tuple[slice, ...], b: tuple[slice, ...]) -> tuple[slice, ...]:
    return tuple(slice(min(x.start, y.start), max(x.stop, y.stop)) for x, y in zip(a, b))

