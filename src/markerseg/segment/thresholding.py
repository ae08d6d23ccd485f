"""MaskThresholder: turn a probability or intensity image into a binary mask."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

import numpy as np

from markerseg.core.config import THRESHOLD_METHODS, ThresholdConfig
from markerseg.core.exceptions import (
    ConfigurationError,
    DegenerateMaskError,
    InteractiveAcquisitionCancelled,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnsetBounds:
    """Bounds that must be acquired (interactively or programmatically) first."""

    def __repr__(self) -> str:
        return "UNSET"


@dataclass(frozen=True)
class FixedBounds:
    """Concrete inclusive threshold bounds: foreground = lower <= v <= upper."""

    lower: float
    upper: float

    def __post_init__(self) -> None:
        if np.isnan(self.lower) or np.isnan(self.upper):
            raise ValueError("Threshold bounds must not be NaN")
        if self.lower > self.upper:
            raise ValueError(
                f"lower bound {self.lower} exceeds upper bound {self.upper}"
            )


UNSET = UnsetBounds()
ThresholdBounds = Union[UnsetBounds, FixedBounds]

# Callback signature: (image, marker_name) -> FixedBounds, or None to cancel
ThresholdAcquirer = Callable[[np.ndarray, str], Union[FixedBounds, None]]


def bounds_from_config(config: ThresholdConfig) -> ThresholdBounds:
    """Translate a ThresholdConfig into tagged bounds."""
    if config.is_unset:
        return UNSET
    if config.method != "fixed":
        return UNSET
    return FixedBounds(float(config.lower), float(config.upper))  # type: ignore[arg-type]


def compute_auto_threshold(image: np.ndarray, method: str) -> float:
    """Global dark-background threshold from an automatic method."""
    from skimage.filters import (
        threshold_isodata,
        threshold_li,
        threshold_otsu,
        threshold_triangle,
    )

    funcs = {
        "otsu": threshold_otsu,
        "li": threshold_li,
        "triangle": threshold_triangle,
        "isodata": threshold_isodata,
    }
    if method not in funcs:
        raise ValueError(f"Unknown automatic threshold method: {method!r}")
    return float(funcs[method](image))


class MaskThresholder:
    """Binarize 2D images with fixed bounds or an automatic method.

    Thresholding itself is pure: the same image, bounds and method always
    give the same mask and the input image is never modified. When fixed
    bounds are ``UNSET`` they are obtained from ``acquire``; returning
    None from that callback cancels processing of the current file.

    Args:
        acquire: Optional callback(image, marker) -> FixedBounds | None.
    """

    def __init__(self, acquire: ThresholdAcquirer | None = None) -> None:
        self._acquire = acquire

    def threshold(
        self,
        image: np.ndarray,
        bounds: ThresholdBounds,
        method: str = "fixed",
        marker: str = "image",
    ) -> np.ndarray:
        """Return a boolean foreground mask.

        Args:
            image: 2D float image (probability map or intensity).
            bounds: Fixed bounds, or UNSET to acquire them.
            method: "fixed" or an automatic method ("otsu", "li", "triangle",
                "isodata").
            marker: Name used in prompts and errors (e.g., "nucleus").

        Raises:
            ConfigurationError: Unknown method, or UNSET bounds with no acquirer.
            InteractiveAcquisitionCancelled: If the acquirer declined.
        """
        if method not in THRESHOLD_METHODS:
            raise ConfigurationError(
                f"Unknown threshold method {method!r}. "
                f"Supported: {sorted(THRESHOLD_METHODS)}"
            )

        if method != "fixed":
            finite = image[np.isfinite(image)]
            if finite.size == 0 or finite.min() == finite.max():
                # Flat image: nothing to separate
                return np.zeros(image.shape, dtype=bool)
            value = compute_auto_threshold(finite, method)
            logger.debug("%s %s threshold = %.6g", marker, method, value)
            return image > value

        if isinstance(bounds, UnsetBounds):
            bounds = self.acquire_bounds(image, marker)
        return (image >= bounds.lower) & (image <= bounds.upper)

    def acquire_bounds(self, image: np.ndarray, marker: str) -> FixedBounds:
        """Obtain concrete bounds from the acquisition callback."""
        if self._acquire is None:
            raise ConfigurationError(
                f"Threshold bounds for {marker} are unset and no "
                "acquisition callback is configured",
                selector=marker,
            )
        bounds = self._acquire(image, marker)
        if bounds is None:
            raise InteractiveAcquisitionCancelled(marker)
        logger.info(
            "Acquired %s threshold bounds [%g, %g]", marker, bounds.lower, bounds.upper
        )
        return bounds

    def threshold_config(
        self, image: np.ndarray, config: ThresholdConfig, marker: str = "image"
    ) -> np.ndarray:
        """Threshold using a ThresholdConfig."""
        return self.threshold(image, bounds_from_config(config), config.method, marker)

    @staticmethod
    def require_foreground(mask: np.ndarray, marker: str = "image") -> np.ndarray:
        """Return ``mask`` unchanged, or raise if it has no foreground pixels.

        Raises:
            DegenerateMaskError: If the mask is all background.
        """
        if not np.any(mask):
            raise DegenerateMaskError(
                f"{marker} mask has no foreground pixels", shape=mask.shape
            )
        return mask
