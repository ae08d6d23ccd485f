"""ChannelResolver: match wanted channel tokens against stack slice labels."""

from __future__ import annotations

import logging
from typing import Sequence

from markerseg.core.exceptions import ChannelNotFoundError

logger = logging.getLogger(__name__)


def _matches(label: str, token: str, position: int) -> bool:
    """Match rule for one lower-cased slice label against one lower-cased token.

    A label matches on equality or when it contains ``token + " "``, so
    "dapi" matches "dapi (ch1)" but not "dapi2". A purely numeric token
    additionally selects the slice at that 1-based position.
    """
    if label == token or f"{token} " in label:
        return True
    return token.isdigit() and int(token) == position


def resolve_channels(
    slice_labels: Sequence[str], wanted: Sequence[str]
) -> list[int]:
    """Resolve wanted channel tokens to 1-based slice positions.

    Positions are returned in stack order, not in ``wanted`` order, and
    each slice appears at most once even when several tokens match it.
    Zero matches returns an empty list; the caller decides whether that
    is fatal.

    Args:
        slice_labels: Slice labels in stack order.
        wanted: Channel names (case-insensitive) or numeric slice positions.

    Returns:
        Sorted list of matched 1-based slice positions.
    """
    tokens = [str(t).strip().lower() for t in wanted if str(t).strip()]
    if not tokens:
        return []

    positions: list[int] = []
    for position, label in enumerate(slice_labels, start=1):
        lowered = label.strip().lower()
        if any(_matches(lowered, token, position) for token in tokens):
            positions.append(position)
    return positions


class ChannelResolver:
    """Resolve named or numbered channel selectors against a stack.

    Args:
        slice_labels: Slice labels of the stack, in stack order.
    """

    def __init__(self, slice_labels: Sequence[str]) -> None:
        self._labels = list(slice_labels)

    @property
    def labels(self) -> list[str]:
        return list(self._labels)

    def resolve(self, wanted: Sequence[str]) -> list[int]:
        """Return the 1-based positions matched by ``wanted`` (may be empty)."""
        return resolve_channels(self._labels, wanted)

    def require(self, selector: str, wanted: Sequence[str]) -> list[int]:
        """Resolve a mandatory selector.

        Raises:
            ChannelNotFoundError: If nothing matched.
        """
        positions = self.resolve(wanted)
        if not positions:
            raise ChannelNotFoundError(selector, list(wanted), self._labels)
        logger.debug("Resolved %s channels %r -> %r", selector, list(wanted), positions)
        return positions

    def optional(self, selector: str, wanted: Sequence[str]) -> list[int]:
        """Resolve an optional selector; an empty result is only logged."""
        positions = self.resolve(wanted)
        if wanted and not positions:
            logger.warning(
                "No %s channel matched %r (labels: %r); continuing without it",
                selector, list(wanted), self._labels,
            )
        return positions

    def labels_for(self, positions: Sequence[int]) -> list[str]:
        """Slice labels for a list of 1-based positions."""
        return [self._labels[p - 1] for p in positions]
