"""markerseg core: data models, configuration, exceptions."""

from markerseg.core.config import (
    PipelineConfig,
    ThresholdConfig,
    load_config,
    save_config,
)
from markerseg.core.exceptions import (
    ChannelNotFoundError,
    ConfigurationError,
    DegenerateMaskError,
    InteractiveAcquisitionCancelled,
    ProcessingAborted,
    SegmentationError,
)
from markerseg.core.models import (
    Cell,
    CellSegmentation,
    NucleusInstance,
    NucleusSegmentation,
    OverlapRow,
    ProjectedImage,
    Region,
    Stack,
)

__all__ = [
    "Cell",
    "CellSegmentation",
    "ChannelNotFoundError",
    "ConfigurationError",
    "DegenerateMaskError",
    "InteractiveAcquisitionCancelled",
    "NucleusInstance",
    "NucleusSegmentation",
    "OverlapRow",
    "PipelineConfig",
    "ProcessingAborted",
    "ProjectedImage",
    "Region",
    "SegmentationError",
    "Stack",
    "ThresholdConfig",
    "load_config",
    "save_config",
]
