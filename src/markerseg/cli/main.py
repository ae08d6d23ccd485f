"""markerseg CLI: top-level Click group."""

from __future__ import annotations

import click


@click.group()
@click.version_option(package_name="markerseg")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging and full tracebacks on errors.")
def cli(verbose: bool) -> None:
    """markerseg: nucleus-seeded cell segmentation and region overlap."""
    from markerseg.cli import utils

    utils.verbose = verbose


def _register_commands() -> None:
    """Register all subcommands; imports deferred to avoid loading heavy deps at startup."""
    from markerseg.cli.channels import channels
    from markerseg.cli.init_config import init_config
    from markerseg.cli.run import run

    cli.add_command(channels)
    cli.add_command(init_config)
    cli.add_command(run)


_register_commands()
