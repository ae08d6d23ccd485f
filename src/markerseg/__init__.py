"""markerseg: marker-based cell segmentation and tissue-region overlap."""

__version__ = "0.1.0"
