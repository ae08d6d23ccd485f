"""Shared CLI utilities: Rich console, logging setup, error handling, prompts."""

from __future__ import annotations

import functools
import logging
import traceback
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn

if TYPE_CHECKING:
    import numpy as np

    from markerseg.segment.thresholding import FixedBounds

console = Console()

# Set by the --verbose flag on the top-level CLI group.
verbose: bool = False

RUN_LOG_NAME = "run.log"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(output_dir: Path | None = None) -> Path | None:
    """Route markerseg log records to the console and, optionally, a run log.

    Console output goes through a RichHandler (INFO, or DEBUG with
    --verbose). When ``output_dir`` is given, every record at DEBUG and
    above is also appended to ``<output_dir>/run.log``.

    Returns:
        The run log path, or None when no file handler was installed.
    """
    pkg_logger = logging.getLogger("markerseg")
    pkg_logger.setLevel(logging.DEBUG)
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=console, show_path=False, rich_tracebacks=verbose,
    )
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    pkg_logger.addHandler(console_handler)

    log_path = None
    if output_dir is not None:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        log_path = output_dir / RUN_LOG_NAME
        file_handler = logging.FileHandler(log_path, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        pkg_logger.addHandler(file_handler)
        pkg_logger.debug("Logging to file: %s", log_path)

    pkg_logger.propagate = False
    return log_path


def error_handler(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator wrapping CLI commands with standard error handling.

    Catches SegmentationError (exit 1) and unexpected exceptions (exit 2).
    With --verbose, unexpected errors include the full traceback.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        from markerseg.core.exceptions import SegmentationError

        try:
            return func(*args, **kwargs)
        except SystemExit:
            raise
        except SegmentationError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise SystemExit(1)
        except Exception as e:
            if verbose:
                console.print(f"[red]Internal error:[/red] {e}")
                console.print(traceback.format_exc())
            else:
                console.print(
                    f"[red]Internal error:[/red] {type(e).__name__}: {e}\n"
                    "[dim]Use --verbose for the full traceback.[/dim]"
                )
            raise SystemExit(2)

    return wrapper


def make_progress() -> Progress:
    """Create a Rich progress bar for CLI operations."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    )


def prompt_threshold_bounds(image: np.ndarray, marker: str) -> FixedBounds | None:
    """Ask for inclusive threshold bounds on the terminal.

    Shows the image's value range as a guide. A blank answer cancels,
    which makes the pipeline skip the current file.
    """
    import numpy as np

    from markerseg.segment.thresholding import FixedBounds

    lo, p50, p99, hi = np.percentile(image, [0, 50, 99, 100])
    console.print(
        f"\n[bold]{marker}[/bold] threshold: values range {lo:.4g}..{hi:.4g} "
        f"(median {p50:.4g}, 99th percentile {p99:.4g})"
    )

    while True:
        lower = click.prompt(
            "  Lower bound (blank to cancel)", default="", show_default=False,
        )
        if not lower.strip():
            return None
        upper = click.prompt("  Upper bound", default=f"{hi:.6g}")
        try:
            return FixedBounds(float(lower), float(upper))
        except ValueError as e:
            console.print(f"  [red]Invalid bounds:[/red] {e}")
