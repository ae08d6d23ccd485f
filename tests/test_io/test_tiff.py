"""Tests for multi-channel TIFF reading."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import PropertyMock, patch

import numpy as np
import pytest
import tifffile

from markerseg.io.tiff import read_stack, read_tiff_metadata


class TestReadStack:
    def test_imagej_labels_and_pixel_size(self, tmp_path: Path, make_stack, write_stack):
        data = make_stack()
        path = write_stack(tmp_path / "a.tif", data, ["DAPI (Ch1)", "CD8 (Ch2)", "Ch3"], 0.65)
        stack = read_stack(path)
        assert stack.labels == ("DAPI (Ch1)", "CD8 (Ch2)", "Ch3")
        assert stack.pixel_size_um == pytest.approx(0.65, rel=1e-4)
        assert stack.data.shape == (3, 100, 100)
        np.testing.assert_array_equal(stack.data, data)
        assert stack.source == str(path)

    def test_plain_tiff_defaults(self, tmp_path: Path):
        path = tmp_path / "plain.tif"
        data = np.arange(2 * 8 * 8, dtype=np.uint16).reshape(2, 8, 8)
        tifffile.imwrite(str(path), data)
        stack = read_stack(path)
        assert stack.n_slices == 2
        assert stack.labels == ("1", "2")
        assert stack.pixel_size_um == 1.0

    def test_single_plane(self, tmp_path: Path):
        path = tmp_path / "single.tif"
        tifffile.imwrite(str(path), np.ones((8, 8), dtype=np.uint8))
        stack = read_stack(path)
        assert stack.data.shape == (1, 8, 8)
        assert stack.labels == ("1",)

    def test_z_is_max_projected(self, tmp_path: Path):
        path = tmp_path / "zstack.tif"
        data = np.zeros((3, 2, 8, 8), dtype=np.uint16)  # Z, C, Y, X
        data[1, 0, 4, 4] = 50
        data[2, 1, 2, 2] = 70
        tifffile.imwrite(str(path), data, imagej=True, metadata={"axes": "ZCYX"})
        stack = read_stack(path)
        assert stack.data.shape == (2, 8, 8)
        assert stack.data[0, 4, 4] == 50
        assert stack.data[1, 2, 2] == 70

    def test_ome_channel_names(self, tmp_path: Path):
        path = tmp_path / "a.ome.tif"
        data = np.zeros((2, 8, 8), dtype=np.uint16)
        tifffile.imwrite(
            str(path), data, ome=True,
            metadata={
                "axes": "CYX",
                "Channel": {"Name": ["Hoechst", "PDGFR"]},
                "PhysicalSizeX": 0.325,
                "PhysicalSizeXUnit": "µm",
            },
        )
        stack = read_stack(path)
        assert stack.labels == ("Hoechst", "PDGFR")
        assert stack.pixel_size_um == pytest.approx(0.325)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            read_stack(tmp_path / "missing.tif")


class TestMetadata:
    def test_metadata_without_pixels(self, stack_path: Path):
        meta = read_tiff_metadata(stack_path)
        assert meta["axes"] == "CYX"
        assert meta["labels"] == ["DAPI (Ch1)", "CD8 (Ch2)", "Ch3"]
        assert meta["pixel_size_um"] == pytest.approx(1.0)


class TestXXEProtection:
    def test_hostile_ome_xml_is_ignored(self, tmp_path: Path):
        """OME-XML with entity declarations is rejected by defusedxml and not trusted."""
        hostile_xml = (
            '<?xml version="1.0"?>'
            '<!DOCTYPE foo ['
            '  <!ENTITY xxe "AAAA">'
            ']>'
            '<OME xmlns="http://www.openmicroscopy.org/Schemas/OME/2016-06">'
            '  <Image><Pixels PhysicalSizeX="&xxe;"><Channel Name="&xxe;"/></Pixels></Image>'
            '</OME>'
        )
        path = tmp_path / "hostile.tif"
        tifffile.imwrite(str(path), np.zeros((32, 32), dtype=np.uint16))

        with patch.object(
            tifffile.TiffFile, "ome_metadata", new_callable=PropertyMock,
            return_value=hostile_xml,
        ):
            stack = read_stack(path)
        assert stack.labels == ("1",)
        assert stack.pixel_size_um == 1.0
