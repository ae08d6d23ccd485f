"""markerseg channels: list slice labels and calibration of an image."""

from __future__ import annotations

from pathlib import Path

import click
from rich.table import Table

from markerseg.cli.utils import console, error_handler


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--nucleus-channels", default=None,
    help="Comma-separated tokens; matching slices are marked.",
)
@error_handler
def channels(path: str, nucleus_channels: str | None) -> None:
    """Show the slice labels of PATH as channel tokens would see them."""
    from markerseg.io.tiff import read_tiff_metadata
    from markerseg.segment.channels import resolve_channels

    meta = read_tiff_metadata(Path(path))
    labels = meta["labels"]

    matched: set[int] = set()
    if nucleus_channels:
        tokens = [t.strip() for t in nucleus_channels.split(",") if t.strip()]
        matched = set(resolve_channels(labels, tokens))

    table = Table(show_header=True, title=Path(path).name)
    table.add_column("Position", style="bold")
    table.add_column("Label")
    if nucleus_channels:
        table.add_column("Nucleus")
    for position, label in enumerate(labels, start=1):
        row = [str(position), label]
        if nucleus_channels:
            row.append("yes" if position in matched else "")
        table.add_row(*row)
    console.print(table)

    pixel_size = meta["pixel_size_um"]
    calibration = f"{pixel_size:.4g} um/px" if pixel_size else "[yellow]not calibrated[/yellow]"
    console.print(f"  Axes: {meta['axes']}  Shape: {meta['shape']}  dtype: {meta['dtype']}")
    console.print(f"  Pixel size: {calibration}")
