"""Shared fixtures for measurement module tests."""

from __future__ import annotations

import numpy as np
import pytest

from markerseg.core.models import CellSegmentation
from markerseg.segment.label_processor import LabelProcessor


@pytest.fixture
def square_cells() -> CellSegmentation:
    """Two 10x10 square cells: label 1 at rows/cols 10-19, label 2 at rows 10-19, cols 40-49."""
    labels = np.zeros((60, 60), dtype=np.int32)
    labels[10:20, 10:20] = 1
    labels[10:20, 40:50] = 2
    nuclei = np.zeros_like(labels)
    nuclei[13:17, 13:17] = 1
    nuclei[13:17, 43:47] = 2
    cells = LabelProcessor().extract_cells(labels, nuclei, 0.5, {1: 2.0, 2: 2.5})
    return CellSegmentation(labels, cells, 0.5)
