"""Built-in per-cell intensity metrics and metric registry."""

from __future__ import annotations

from typing import Callable

import numpy as np

# Metric function signature: (channel_pixels_of_one_cell) -> float
MetricFunction = Callable[[np.ndarray], float]


def mean_intensity(values: np.ndarray) -> float:
    """Average pixel intensity of the cell."""
    return float(np.mean(values))


def max_intensity(values: np.ndarray) -> float:
    """Maximum pixel intensity of the cell."""
    return float(np.max(values))


def min_intensity(values: np.ndarray) -> float:
    """Minimum pixel intensity of the cell."""
    return float(np.min(values))


def integrated_intensity(values: np.ndarray) -> float:
    """Summed pixel intensity of the cell."""
    return float(np.sum(values, dtype=np.float64))


def std_intensity(values: np.ndarray) -> float:
    return float(np.std(values))


def median_intensity(values: np.ndarray) -> float:
    return float(np.median(values))


_BUILTIN_METRICS: dict[str, MetricFunction] = {
    "mean_intensity": mean_intensity,
    "max_intensity": max_intensity,
    "min_intensity": min_intensity,
    "integrated_intensity": integrated_intensity,
    "std_intensity": std_intensity,
    "median_intensity": median_intensity,
}


class MetricRegistry:
    """Registry of per-cell intensity metrics.

    Comes pre-loaded with the built-in metrics. Custom metrics can be
    registered via ``register()``.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, MetricFunction] = dict(_BUILTIN_METRICS)

    def register(self, name: str, func: MetricFunction) -> None:
        """Register a custom metric.

        Args:
            name: Metric name, used as a column suffix.
            func: Callable mapping a 1D array of cell pixel values to a float.

        Raises:
            ValueError: If name is empty.
        """
        if not name:
            raise ValueError("Metric name must not be empty")
        self._metrics[name] = func

    def compute(self, name: str, values: np.ndarray) -> float:
        """Compute a named metric over one cell's pixel values.

        Raises:
            KeyError: If the metric is not registered.
        """
        if name not in self._metrics:
            raise KeyError(
                f"Unknown metric {name!r}. "
                f"Available: {sorted(self._metrics)}"
            )
        if values.size == 0:
            return 0.0
        return self._metrics[name](values)

    def list_metrics(self) -> list[str]:
        """Return sorted list of all registered metric names."""
        return sorted(self._metrics)

    def __contains__(self, name: str) -> bool:
        return name in self._metrics

    def __len__(self) -> int:
        return len(self._metrics)
