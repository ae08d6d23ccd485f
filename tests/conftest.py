"""Shared test fixtures for markerseg."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import numpy as np
import pytest
import tifffile
from skimage.draw import disk


def _two_nuclei_stack(
    shape: tuple[int, int] = (100, 100),
    centers: tuple[tuple[int, int], ...] = ((50, 35), (50, 65)),
    radius: int = 6,
) -> np.ndarray:
    """(3, Y, X) uint16 stack: DAPI disks, a uniform matrix, an empty third channel."""
    data = np.zeros((3, *shape), dtype=np.uint16)
    data[0] = 10
    for center in centers:
        rr, cc = disk(center, radius, shape=shape)
        data[0, rr, cc] = 1000
    data[1] = 500
    return data


def _write_imagej_stack(
    path: Path,
    data: np.ndarray,
    labels: list[str],
    pixel_size_um: float = 1.0,
) -> Path:
    tifffile.imwrite(
        str(path),
        data,
        imagej=True,
        resolution=(1.0 / pixel_size_um, 1.0 / pixel_size_um),
        metadata={"axes": "CYX", "unit": "um", "Labels": labels},
    )
    return path


@pytest.fixture
def make_stack() -> Callable[..., np.ndarray]:
    """Factory for synthetic (3, Y, X) stacks with bright nucleus disks."""
    return _two_nuclei_stack


@pytest.fixture
def write_stack() -> Callable[..., Path]:
    """Factory writing a (C, Y, X) array as a labeled ImageJ TIFF."""
    return _write_imagej_stack


@pytest.fixture
def stack_path(tmp_path: Path) -> Path:
    """Calibrated three-channel TIFF with two well-separated nuclei."""
    return _write_imagej_stack(
        tmp_path / "sample.tif",
        _two_nuclei_stack(),
        ["DAPI (Ch1)", "CD8 (Ch2)", "Ch3"],
        pixel_size_um=1.0,
    )
