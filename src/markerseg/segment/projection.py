"""StackProjector: build one 2D intensity image from matched stack slices."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from markerseg.core.models import ProjectedImage, Stack


def robust_scale(plane: np.ndarray) -> float:
    """Robust central statistic used to normalize one slice.

    The median of the slice; when the median is not positive (sparse
    signal on a zero background) the median of the positive pixels is
    used instead. A slice with no positive pixels gets 1.0 so it
    contributes nothing but does not divide by zero. Every branch scales
    linearly with the input, so normalized output is invariant to a
    uniform rescaling of the slice.
    """
    median = float(np.median(plane))
    if median > 0:
        return median
    positive = plane[plane > 0]
    if positive.size:
        return float(np.median(positive))
    return 1.0


def project_slices(planes: Sequence[np.ndarray]) -> np.ndarray:
    """Combine 2D planes: one plane is copied, several are median-normalized and summed.

    Raises:
        ValueError: If no planes are given.
    """
    if len(planes) == 0:
        raise ValueError("At least one slice is required for projection")
    if len(planes) == 1:
        return np.array(planes[0], dtype=np.float64, copy=True)

    acc = np.zeros(planes[0].shape, dtype=np.float64)
    for plane in planes:
        plane = np.asarray(plane, dtype=np.float64)
        acc += plane / robust_scale(plane)
    return acc


class StackProjector:
    """Project selected slices of a Stack into a ProjectedImage."""

    def project(self, stack: Stack, positions: Sequence[int]) -> ProjectedImage:
        """Project the slices at the given 1-based positions.

        Args:
            stack: Source stack.
            positions: 1-based slice positions from ChannelResolver.

        Returns:
            ProjectedImage carrying the stack's pixel size.

        Raises:
            ValueError: If ``positions`` is empty (callers must check first).
        """
        if not positions:
            raise ValueError(
                "StackProjector.project called with no slice positions"
            )
        planes = [stack.slice(p) for p in positions]
        return ProjectedImage(
            data=project_slices(planes),
            pixel_size_um=stack.pixel_size_um,
            positions=tuple(positions),
        )
