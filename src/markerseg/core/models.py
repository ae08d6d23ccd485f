"""Data models for the markerseg core module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from markerseg.core.geometry import (
    BBox,
    Polygon,
    mask_bbox,
    mask_to_polygons,
    polygon_to_mask,
)


@dataclass(frozen=True, eq=False)
class Stack:
    """A labeled multi-channel image read from one input file.

    Attributes:
        data: 3D array (C, Y, X). All slices share width and height.
        labels: One label per slice (channel name, or 1-based index as text).
        pixel_size_um: Physical pixel size in micrometers.
        source: Identity of the file the stack came from.
    """

    data: np.ndarray
    labels: tuple[str, ...]
    pixel_size_um: float = 1.0
    source: str | None = None

    def __post_init__(self) -> None:
        if self.data.ndim != 3:
            raise ValueError(
                f"Stack data must be 3D (C, Y, X), got shape {self.data.shape}"
            )
        if len(self.labels) != self.data.shape[0]:
            raise ValueError(
                f"Stack has {self.data.shape[0]} slices but {len(self.labels)} labels"
            )
        if self.pixel_size_um <= 0:
            raise ValueError(f"pixel_size_um must be > 0, got {self.pixel_size_um}")

    @property
    def n_slices(self) -> int:
        return int(self.data.shape[0])

    @property
    def height(self) -> int:
        return int(self.data.shape[1])

    @property
    def width(self) -> int:
        return int(self.data.shape[2])

    @property
    def shape(self) -> tuple[int, int]:
        """Spatial (Y, X) shape shared by every slice."""
        return self.height, self.width

    def slice(self, position: int) -> np.ndarray:
        """Return the slice at a 1-based position."""
        if not 1 <= position <= self.n_slices:
            raise IndexError(
                f"Slice position {position} out of range (1-{self.n_slices})"
            )
        return self.data[position - 1]


@dataclass(frozen=True, eq=False)
class ProjectedImage:
    """Single 2D float image built from one or more stack slices."""

    data: np.ndarray
    pixel_size_um: float = 1.0
    positions: tuple[int, ...] = ()

    @property
    def shape(self) -> tuple[int, int]:
        return self.data.shape  # type: ignore[return-value]


@dataclass(frozen=True, eq=False)
class NucleusInstance:
    """One separated nucleus from the watershed result.

    Attributes:
        label: Integer label in the nucleus label image (1-based, sequential).
        coords: (N, 2) array of (row, col) pixel coordinates.
        centroid_x: Centroid column.
        centroid_y: Centroid row.
        area_pixels: Pixel count.
        area_um2: Calibrated area.
        bbox: (min_row, min_col, max_row, max_col), max exclusive.
    """

    label: int
    coords: np.ndarray
    centroid_x: float
    centroid_y: float
    area_pixels: int
    area_um2: float
    bbox: BBox


@dataclass(frozen=True, eq=False)
class NucleusSegmentation:
    """Nucleus label image plus its per-instance records."""

    labels: np.ndarray
    nuclei: list[NucleusInstance] = field(default_factory=list)
    pixel_size_um: float = 1.0

    def __len__(self) -> int:
        return len(self.nuclei)

    def __iter__(self) -> Iterator[NucleusInstance]:
        return iter(self.nuclei)

    @classmethod
    def empty(cls, shape: tuple[int, int], pixel_size_um: float = 1.0) -> NucleusSegmentation:
        return cls(np.zeros(shape, dtype=np.int32), [], pixel_size_um)


@dataclass(frozen=True, eq=False)
class Cell:
    """A post-expansion cell compartment grown from one nucleus.

    Attributes:
        label: Cell label, equal to the label of its seed nucleus.
        coords: (N, 2) array of (row, col) pixel coordinates.
        polygon: Outer boundary as (x, y) vertices.
        centroid_x: Centroid column.
        centroid_y: Centroid row.
        area_pixels: Pixel count.
        area_um2: Calibrated area.
        bbox: (min_row, min_col, max_row, max_col), max exclusive.
        nucleus_area_pixels: Pixel count of the seed nucleus.
        expansion_radius_um: Largest distance of any cell pixel from the
            seed nucleus, in micrometers.
    """

    label: int
    coords: np.ndarray
    polygon: Polygon
    centroid_x: float
    centroid_y: float
    area_pixels: int
    area_um2: float
    bbox: BBox
    nucleus_area_pixels: int
    expansion_radius_um: float

    @property
    def nucleus_label(self) -> int:
        return self.label


@dataclass(frozen=True, eq=False)
class CellSegmentation:
    """Cell label image plus its per-cell records."""

    labels: np.ndarray
    cells: list[Cell] = field(default_factory=list)
    pixel_size_um: float = 1.0

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[Cell]:
        return iter(self.cells)


@dataclass(frozen=True, eq=False)
class Region:
    """A labeled tissue compartment stored as a full-frame boolean mask."""

    name: str
    mask: np.ndarray
    bbox: BBox | None
    polygons: list[Polygon] = field(default_factory=list)

    @property
    def area_pixels(self) -> int:
        return int(np.count_nonzero(self.mask))

    @classmethod
    def from_mask(cls, name: str, mask: np.ndarray) -> Region:
        """Build a region from a filled mask plane."""
        mask = np.asarray(mask) > 0
        return cls(name, mask, mask_bbox(mask), mask_to_polygons(mask))

    @classmethod
    def from_polygons(
        cls, name: str, polygons: list[Polygon], shape: tuple[int, int]
    ) -> Region:
        """Build a region from (x, y) polygons; overlapping polygons are unioned."""
        mask = np.zeros(shape, dtype=bool)
        for poly in polygons:
            mask |= polygon_to_mask(poly, shape)
        return cls(name, mask, mask_bbox(mask), [list(p) for p in polygons])


@dataclass(frozen=True)
class OverlapRow:
    """Percentage of one cell's pixels inside each region (0-100)."""

    cell_label: int
    percentages: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, float | int]:
        row: dict[str, float | int] = {"cell_label": self.cell_label}
        row.update(self.percentages)
        return row
