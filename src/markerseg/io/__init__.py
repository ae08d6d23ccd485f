"""markerseg IO: stack reading, region sources and output writers."""

from markerseg.io.export import (
    remove_file_outputs,
    write_batch_table,
    write_file_outputs,
)
from markerseg.io.regions import read_region_polygons, regions_from_label_image
from markerseg.io.tiff import read_stack, read_tiff_metadata

__all__ = [
    "read_region_polygons",
    "read_stack",
    "read_tiff_metadata",
    "regions_from_label_image",
    "remove_file_outputs",
    "write_batch_table",
    "write_file_outputs",
]
