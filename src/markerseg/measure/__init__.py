"""markerseg measure: region overlap and per-cell measurement table."""

from markerseg.measure.measurer import Measurer
from markerseg.measure.metrics import MetricRegistry
from markerseg.measure.overlap import RegionOverlapQuantifier, overlap_table

__all__ = [
    "Measurer",
    "MetricRegistry",
    "RegionOverlapQuantifier",
    "overlap_table",
]
