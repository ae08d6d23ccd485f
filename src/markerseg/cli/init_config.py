"""markerseg init-config: write a configuration file with default values."""

from __future__ import annotations

from pathlib import Path

import click

from markerseg.cli.utils import console, error_handler


@click.command("init-config")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
@error_handler
def init_config(path: str, force: bool) -> None:
    """Write the default pipeline configuration to PATH (YAML)."""
    from markerseg.core.config import PipelineConfig, save_config

    target = Path(path)
    if target.exists() and not force:
        console.print(f"[red]Error:[/red] {target} exists (use --force to overwrite)")
        raise SystemExit(1)
    save_config(PipelineConfig(), target)
    console.print(f"[green]Wrote default configuration to[/green] {target}")
