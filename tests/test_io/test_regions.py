"""Tests for region sources."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from markerseg.core.exceptions import ConfigurationError
from markerseg.io.regions import read_region_polygons, regions_from_label_image

SQUARE = [[0, 0], [9, 0], [9, 9], [0, 9]]
OTHER = [[20, 20], [29, 20], [29, 29], [20, 29]]


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "regions.json"
    path.write_text(json.dumps(data))
    return path


class TestReadRegionPolygons:
    def test_list_layout_unions_by_name(self, tmp_path: Path):
        path = _write(tmp_path, [
            {"name": "tumor", "polygon": SQUARE},
            {"name": "stroma", "polygon": OTHER},
            {"name": "tumor", "polygon": OTHER},
        ])
        regions = read_region_polygons(path, (40, 40))
        assert [r.name for r in regions] == ["tumor", "stroma"]
        tumor = regions[0]
        assert tumor.mask[5, 5] and tumor.mask[25, 25]
        assert len(tumor.polygons) == 2

    def test_mapping_layout(self, tmp_path: Path):
        path = _write(tmp_path, {"tumor": [SQUARE], "stroma": [OTHER]})
        regions = read_region_polygons(path, (40, 40))
        assert {r.name for r in regions} == {"tumor", "stroma"}
        assert regions[0].mask.shape == (40, 40)

    def test_geojson(self, tmp_path: Path):
        path = _write(tmp_path, {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "geometry": {"type": "Polygon", "coordinates": [SQUARE]},
                    "properties": {"classification": {"name": "Tumor"}},
                },
                {
                    "type": "Feature",
                    "geometry": {"type": "MultiPolygon", "coordinates": [[OTHER]]},
                    "properties": {"name": "Stroma"},
                },
            ],
        })
        regions = read_region_polygons(path, (40, 40))
        assert [r.name for r in regions] == ["Tumor", "Stroma"]
        assert regions[1].mask[25, 25]

    def test_polygon_clipped_to_frame(self, tmp_path: Path):
        path = _write(tmp_path, [{"name": "big", "polygon": [[-5, -5], [100, -5], [100, 100], [-5, 100]]}])
        region = read_region_polygons(path, (20, 20))[0]
        assert region.mask.all()

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            read_region_polygons(tmp_path / "none.json", (10, 10))

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text("{")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            read_region_polygons(path, (10, 10))

    def test_bad_entries(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            read_region_polygons(_write(tmp_path, [{"polygon": SQUARE}]), (10, 10))
        with pytest.raises(ConfigurationError):
            read_region_polygons(_write(tmp_path, [{"name": "a", "polygon": [1, 2]}]), (10, 10))
        with pytest.raises(ConfigurationError):
            read_region_polygons(_write(tmp_path, "tumor"), (10, 10))


class TestRegionsFromLabelImage:
    def test_named_and_default(self):
        labels = np.zeros((10, 10), dtype=np.uint8)
        labels[0:5] = 1
        labels[5:] = 3
        regions = regions_from_label_image(labels, {1: "epithelium"})
        assert [r.name for r in regions] == ["epithelium", "region_3"]
        assert regions[0].area_pixels == 50
