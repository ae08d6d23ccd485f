"""Exception classes for the markerseg core module."""

from __future__ import annotations


class SegmentationError(Exception):
    """Base exception for all segmentation pipeline errors.

    Carries optional context (source file, stage name, input shape) so a
    failure can always be attributed in the run log. The pipeline engine
    fills in whatever context is still missing as the error propagates.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        stage: str | None = None,
        shape: tuple[int, ...] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.stage = stage
        self.shape = shape

    def with_context(
        self,
        source: str | None = None,
        stage: str | None = None,
        shape: tuple[int, ...] | None = None,
    ) -> SegmentationError:
        """Fill in context fields that are not set yet. Returns self."""
        if self.source is None:
            self.source = source
        if self.stage is None:
            self.stage = stage
        if self.shape is None and shape is not None:
            self.shape = tuple(shape)
        return self

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"file={self.source}")
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.shape:
            parts.append(f"shape={'x'.join(str(s) for s in self.shape)}")
        if not parts:
            return self.message
        return f"{self.message} [{', '.join(parts)}]"


class ConfigurationError(SegmentationError):
    """Raised for invalid configuration or an empty mandatory channel selector."""

    def __init__(self, message: str, *, selector: str | None = None, **context) -> None:
        super().__init__(message, **context)
        self.selector = selector


class ChannelNotFoundError(ConfigurationError):
    """Raised when a mandatory channel selector resolves to zero slices."""

    def __init__(
        self,
        selector: str,
        wanted: list[str] | None = None,
        available: list[str] | None = None,
        **context,
    ) -> None:
        wanted = list(wanted or [])
        available = list(available or [])
        msg = (
            f"No {selector} channel matched {wanted!r}. "
            f"Available slice labels: {available!r}"
        )
        super().__init__(msg, selector=selector, **context)
        self.wanted = wanted
        self.available = available


class DegenerateMaskError(SegmentationError):
    """Raised when thresholding yields an all-background mask.

    Not fatal: the engine degrades to an empty cell set for the file.
    """


class InteractiveAcquisitionCancelled(SegmentationError):
    """Raised when threshold bounds were required but none were supplied."""

    def __init__(self, marker: str | None = None, **context) -> None:
        msg = (
            f"Threshold acquisition cancelled for {marker}"
            if marker else "Threshold acquisition cancelled"
        )
        super().__init__(msg, **context)
        self.marker = marker


class ProcessingAborted(SegmentationError):
    """Raised between stages when the caller requested cancellation."""

    def __init__(self, **context) -> None:
        super().__init__("Processing aborted by caller", **context)
