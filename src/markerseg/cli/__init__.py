"""markerseg command-line interface."""
