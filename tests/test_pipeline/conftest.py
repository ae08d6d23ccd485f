"""Shared fixtures for pipeline engine tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from markerseg.core.config import PipelineConfig


@pytest.fixture
def regions_json(tmp_path: Path) -> Path:
    """One region covering the left half of a 100x100 frame."""
    path = tmp_path / "regions.json"
    path.write_text(json.dumps([
        {"name": "tumor", "polygon": [[-1, -1], [49, -1], [49, 100], [-1, 100]]},
    ]))
    return path


@pytest.fixture
def config(regions_json: Path) -> PipelineConfig:
    return PipelineConfig(
        nucleus_channels=["dapi"],
        min_distance_um=1.0,
        max_distance_um=8.0,
        regions_json=str(regions_json),
    )
