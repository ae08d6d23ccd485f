"""Shared fixtures for segmentation module tests."""

from __future__ import annotations

from typing import Callable

import numpy as np
import pytest
from skimage.draw import disk

from markerseg.core.models import NucleusSegmentation
from markerseg.segment.label_processor import LabelProcessor


def _nuclei_from_labels(labels: np.ndarray, pixel_size_um: float = 1.0) -> NucleusSegmentation:
    labels = labels.astype(np.int32)
    return NucleusSegmentation(
        labels, LabelProcessor().extract_nuclei(labels, pixel_size_um), pixel_size_um,
    )


@pytest.fixture
def nuclei_from_labels() -> Callable[..., NucleusSegmentation]:
    """Factory wrapping a label image as a NucleusSegmentation."""
    return _nuclei_from_labels


@pytest.fixture
def two_nuclei() -> NucleusSegmentation:
    """Disks of radius 6 at (50, 35) and (50, 65) in a 100x100 frame."""
    labels = np.zeros((100, 100), dtype=np.int32)
    for label, center in enumerate(((50, 35), (50, 65)), start=1):
        rr, cc = disk(center, 6, shape=labels.shape)
        labels[rr, cc] = label
    return _nuclei_from_labels(labels)
