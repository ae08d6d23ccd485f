"""markerseg run: segment cells and quantify region overlap for image files."""

from __future__ import annotations

from pathlib import Path

import click

from markerseg.cli.utils import console, error_handler, make_progress, setup_logging

_IMAGE_SUFFIXES = (".tif", ".tiff")


def _split(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


def _collect_inputs(inputs: tuple[str, ...]) -> list[Path]:
    """Expand directories to their TIFF files; keep explicit files as given."""
    files: list[Path] = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            files.extend(sorted(
                p for p in path.iterdir()
                if p.is_file() and p.suffix.lower() in _IMAGE_SUFFIXES
            ))
        else:
            files.append(path)
    return files


@click.command()
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "-o", "--output", "output_dir", required=True, type=click.Path(file_okay=False),
    help="Directory for tables, label images, ROI files and run.log.",
)
@click.option(
    "-c", "--config", "config_path", type=click.Path(exists=True, dir_okay=False),
    default=None, help="YAML configuration (see `markerseg init-config`).",
)
@click.option(
    "--nucleus-channels", default=None,
    help="Comma-separated nucleus channel tokens (e.g., DAPI,Hoechst).",
)
@click.option(
    "--matrix-channels", default=None,
    help="Comma-separated matrix channel tokens; omit for fixed-radius cells.",
)
@click.option(
    "--region-channels", default=None,
    help="Comma-separated channel tokens thresholded into tissue regions.",
)
@click.option(
    "--regions-json", type=click.Path(exists=True, dir_okay=False), default=None,
    help="Region polygons (JSON or GeoJSON) in pixel coordinates.",
)
@click.option("--min-distance", type=float, default=None, help="Minimum expansion distance (um).")
@click.option("--max-distance", type=float, default=None, help="Maximum expansion distance (um).")
@click.option("--min-area", type=float, default=None, help="Minimum nucleus area (um^2).")
@click.option(
    "--interactive", is_flag=True,
    help="Prompt for nucleus/matrix threshold bounds for every file.",
)
@click.option(
    "--start-at", default=None,
    help="File name or stem to restart a batch from.",
)
@error_handler
def run(
    inputs: tuple[str, ...],
    output_dir: str,
    config_path: str | None,
    nucleus_channels: str | None,
    matrix_channels: str | None,
    region_channels: str | None,
    regions_json: str | None,
    min_distance: float | None,
    max_distance: float | None,
    min_area: float | None,
    interactive: bool,
    start_at: str | None,
) -> None:
    """Segment cells in INPUTS (TIFF files or directories) and quantify overlap."""
    from markerseg.core.config import PipelineConfig, ThresholdConfig, load_config
    from markerseg.pipeline import PipelineEngine

    out = Path(output_dir)
    log_path = setup_logging(out)

    config = load_config(Path(config_path)) if config_path else PipelineConfig()
    config = config.updated(
        nucleus_channels=_split(nucleus_channels),
        matrix_channels=_split(matrix_channels),
        region_channels=_split(region_channels),
        regions_json=regions_json,
        min_distance_um=min_distance,
        max_distance_um=max_distance,
        min_nucleus_area_um2=min_area,
    )

    acquire = None
    if interactive:
        from markerseg.cli.utils import prompt_threshold_bounds

        acquire = prompt_threshold_bounds
        config = config.updated(
            nucleus_threshold=ThresholdConfig(method="fixed"),
            matrix_threshold=ThresholdConfig(method="fixed"),
        )

    files = _collect_inputs(inputs)
    if not files:
        console.print("[red]Error:[/red] No TIFF files found in the given inputs")
        raise SystemExit(1)

    engine = PipelineEngine(config, acquire=acquire)

    if interactive:
        result = engine.run(files, output_dir=out, start_at=start_at)
    else:
        with make_progress() as progress:
            task = progress.add_task("Processing...", total=len(files))

            def on_progress(current: int, total: int, name: str) -> None:
                progress.update(
                    task, total=total, completed=current,
                    description=f"Processed {name}",
                )

            result = engine.run(
                files, output_dir=out, start_at=start_at,
                progress_callback=on_progress,
            )

    # Summary
    console.print()
    console.print("[green]Run complete[/green]")
    console.print(f"  Files completed: {result.count('completed')}")
    console.print(f"  Files empty: {result.count('empty')}")
    console.print(f"  Files failed: {result.count('failed')}")
    console.print(f"  Total cells: {result.cell_count}")
    console.print(f"  Elapsed: {result.elapsed_seconds:.1f}s")
    if result.table_path is not None:
        console.print(f"  Summary table: {result.table_path}")
    if log_path is not None:
        console.print(f"  Log: {log_path}")

    if result.warnings:
        console.print()
        console.print(f"[yellow]Warnings ({len(result.warnings)}):[/yellow]")
        for w in result.warnings:
            console.print(f"  [dim]- {w}[/dim]")

    if not any(f.ok for f in result.files):
        raise SystemExit(1)
