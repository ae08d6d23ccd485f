"""Tests for MaskThresholder."""

from __future__ import annotations

import numpy as np
import pytest

from markerseg.core.config import ThresholdConfig
from markerseg.core.exceptions import (
    ConfigurationError,
    DegenerateMaskError,
    InteractiveAcquisitionCancelled,
)
from markerseg.segment.thresholding import (
    UNSET,
    FixedBounds,
    MaskThresholder,
    bounds_from_config,
)


@pytest.fixture
def gradient() -> np.ndarray:
    return np.linspace(0.0, 1.0, 100).reshape(10, 10)


class TestFixedBounds:
    def test_inclusive(self, gradient: np.ndarray):
        image = np.array([[0.1, 0.5, 0.9, 1.0]])
        mask = MaskThresholder().threshold(image, FixedBounds(0.5, 0.9))
        np.testing.assert_array_equal(mask, [[False, True, True, False]])

    def test_raising_lower_never_adds_foreground(self, gradient: np.ndarray):
        thresholder = MaskThresholder()
        previous = thresholder.threshold(gradient, FixedBounds(0.0, 1.0))
        for lower in np.linspace(0.1, 1.0, 10):
            mask = thresholder.threshold(gradient, FixedBounds(float(lower), 1.0))
            assert not np.any(mask & ~previous)
            previous = mask

    def test_pure_function(self, gradient: np.ndarray):
        thresholder = MaskThresholder()
        copy = gradient.copy()
        a = thresholder.threshold(gradient, FixedBounds(0.3, 0.7))
        b = thresholder.threshold(gradient, FixedBounds(0.3, 0.7))
        np.testing.assert_array_equal(a, b)
        np.testing.assert_array_equal(gradient, copy)

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            FixedBounds(0.8, 0.2)
        with pytest.raises(ValueError):
            FixedBounds(float("nan"), 1.0)


class TestUnsetBounds:
    def test_no_acquirer_is_configuration_error(self, gradient: np.ndarray):
        with pytest.raises(ConfigurationError, match="unset"):
            MaskThresholder().threshold(gradient, UNSET, marker="nucleus")

    def test_acquirer_supplies_bounds(self, gradient: np.ndarray):
        calls: list[str] = []

        def acquire(image: np.ndarray, marker: str) -> FixedBounds:
            calls.append(marker)
            return FixedBounds(0.5, 1.0)

        mask = MaskThresholder(acquire).threshold(gradient, UNSET, marker="matrix")
        assert calls == ["matrix"]
        np.testing.assert_array_equal(mask, gradient >= 0.5)

    def test_acquirer_cancel(self, gradient: np.ndarray):
        thresholder = MaskThresholder(lambda image, marker: None)
        with pytest.raises(InteractiveAcquisitionCancelled):
            thresholder.threshold(gradient, UNSET, marker="nucleus")

    def test_sentinel_config_is_unset(self):
        assert bounds_from_config(ThresholdConfig("fixed", -1e30, 1e30)) is UNSET

    def test_fixed_config(self):
        assert bounds_from_config(ThresholdConfig("fixed", 0.2, 0.4)) == FixedBounds(0.2, 0.4)


class TestAutomaticMethods:
    @pytest.mark.parametrize("method", ["otsu", "li", "triangle", "isodata"])
    def test_two_level_image(self, method: str):
        image = np.zeros((20, 20))
        image[5:15, 5:15] = 1.0
        mask = MaskThresholder().threshold(image, UNSET, method=method)
        assert mask[10, 10]
        assert not mask[0, 0]

    def test_flat_image_gives_empty_mask(self):
        mask = MaskThresholder().threshold(np.full((5, 5), 3.0), UNSET, method="otsu")
        assert not mask.any()

    def test_threshold_config(self):
        image = np.zeros((10, 10))
        image[2:5, 2:5] = 10.0
        mask = MaskThresholder().threshold_config(image, ThresholdConfig("otsu"))
        assert mask.sum() == 9

    def test_unknown_method(self, gradient: np.ndarray):
        with pytest.raises(ConfigurationError):
            MaskThresholder().threshold(gradient, UNSET, method="magic")


class TestRequireForeground:
    def test_empty_mask(self):
        with pytest.raises(DegenerateMaskError):
            MaskThresholder.require_foreground(np.zeros((4, 4), dtype=bool), "nucleus")

    def test_nonempty_mask_passes_through(self):
        mask = np.zeros((4, 4), dtype=bool)
        mask[1, 1] = True
        assert MaskThresholder.require_foreground(mask) is mask
