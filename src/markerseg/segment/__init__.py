"""markerseg segment: channel resolution, projection, thresholding, nuclei and cells."""

from markerseg.segment.channels import ChannelResolver, resolve_channels
from markerseg.segment.classifier import (
    BaseClassifier,
    IntensityClassifier,
    SklearnPixelClassifier,
    load_classifier,
)
from markerseg.segment.expansion import CellExpander
from markerseg.segment.label_processor import LabelProcessor
from markerseg.segment.nuclei import NuclearSegmenter
from markerseg.segment.projection import StackProjector, robust_scale
from markerseg.segment.thresholding import (
    UNSET,
    FixedBounds,
    MaskThresholder,
    ThresholdAcquirer,
    UnsetBounds,
)

__all__ = [
    "BaseClassifier",
    "CellExpander",
    "ChannelResolver",
    "FixedBounds",
    "IntensityClassifier",
    "LabelProcessor",
    "MaskThresholder",
    "NuclearSegmenter",
    "SklearnPixelClassifier",
    "StackProjector",
    "ThresholdAcquirer",
    "UNSET",
    "UnsetBounds",
    "load_classifier",
    "resolve_channels",
    "robust_scale",
]
