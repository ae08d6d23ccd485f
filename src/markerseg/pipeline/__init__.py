"""markerseg pipeline: sequential per-file batch driver."""

from markerseg.pipeline.engine import STAGES, BatchResult, FileResult, PipelineEngine

__all__ = [
    "BatchResult",
    "FileResult",
    "PipelineEngine",
    "STAGES",
]
