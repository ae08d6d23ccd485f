"""Tests for MetricRegistry and built-in metric functions."""

from __future__ import annotations

import numpy as np
import pytest

from markerseg.measure.metrics import (
    MetricRegistry,
    integrated_intensity,
    max_intensity,
    mean_intensity,
    median_intensity,
    min_intensity,
    std_intensity,
)


class TestBuiltinMetrics:
    """Test each built-in metric function directly."""

    @pytest.fixture
    def values(self) -> np.ndarray:
        return np.array([60, 70, 100, 110], dtype=np.uint16)

    def test_mean_intensity(self, values):
        assert mean_intensity(values) == pytest.approx(85.0)

    def test_max_intensity(self, values):
        assert max_intensity(values) == 110.0

    def test_min_intensity(self, values):
        assert min_intensity(values) == 60.0

    def test_integrated_intensity_does_not_overflow(self):
        values = np.full(10, 65535, dtype=np.uint16)
        assert integrated_intensity(values) == 655350.0

    def test_std_intensity(self, values):
        assert std_intensity(values) == pytest.approx(float(np.std([60, 70, 100, 110])))

    def test_median_intensity(self, values):
        assert median_intensity(values) == pytest.approx(85.0)

    def test_return_python_float(self, values):
        assert type(mean_intensity(values)) is float


class TestMetricRegistry:
    def test_builtins_registered(self):
        registry = MetricRegistry()
        assert len(registry) == 6
        assert "mean_intensity" in registry
        assert registry.list_metrics() == sorted(registry.list_metrics())

    def test_register_custom(self):
        registry = MetricRegistry()
        registry.register("p90", lambda v: float(np.percentile(v, 90)))
        assert "p90" in registry
        assert registry.compute("p90", np.arange(11, dtype=float)) == pytest.approx(9.0)

    def test_register_empty_name(self):
        with pytest.raises(ValueError):
            MetricRegistry().register("", mean_intensity)

    def test_unknown_metric(self):
        with pytest.raises(KeyError, match="Unknown metric"):
            MetricRegistry().compute("nope", np.ones(3))

    def test_empty_values(self):
        assert MetricRegistry().compute("max_intensity", np.array([])) == 0.0
