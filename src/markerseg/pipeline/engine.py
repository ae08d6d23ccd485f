"""PipelineEngine: carry each input file through every stage, one file at a time."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator, Sequence

import numpy as np
import pandas as pd

from markerseg.core.config import PipelineConfig, ThresholdConfig
from markerseg.core.exceptions import (
    ConfigurationError,
    DegenerateMaskError,
    InteractiveAcquisitionCancelled,
    ProcessingAborted,
    SegmentationError,
)
from markerseg.core.models import (
    CellSegmentation,
    NucleusSegmentation,
    OverlapRow,
    Region,
    Stack,
)
from markerseg.io.export import remove_file_outputs, write_batch_table, write_file_outputs
from markerseg.io.regions import read_region_polygons
from markerseg.io.tiff import read_stack
from markerseg.measure.measurer import Measurer
from markerseg.measure.metrics import MetricRegistry
from markerseg.measure.overlap import RegionOverlapQuantifier
from markerseg.segment.channels import ChannelResolver
from markerseg.segment.classifier import BaseClassifier, load_classifier
from markerseg.segment.expansion import CellExpander
from markerseg.segment.nuclei import NuclearSegmenter
from markerseg.segment.projection import StackProjector
from markerseg.segment.thresholding import MaskThresholder, ThresholdAcquirer

logger = logging.getLogger(__name__)

STAGES = (
    "read",
    "resolve",
    "project",
    "classify",
    "threshold",
    "segment_nuclei",
    "expand_cells",
    "regions",
    "quantify",
    "measure",
    "write",
)

# Statuses whose tables enter the batch summary
_AGGREGATED = frozenset({"completed", "empty"})


@dataclass
class FileResult:
    """Outcome of processing one input file.

    Attributes:
        source: Input path.
        status: "completed", "empty" (degenerate mask / zero cells),
            "failed" or "aborted".
        nucleus_count: Number of nuclei kept after the area cutoff.
        cell_count: Number of cells produced.
        table: Per-cell measurement table (None unless completed/empty).
        overlap: OverlapRows, one per cell.
        nuclei: Nucleus segmentation, when kept.
        cells: Cell segmentation, when kept.
        regions: Regions used for overlap, when kept.
        outputs: Artifact paths written for this file.
        warnings: Non-fatal problems.
        error: Error message for failed/aborted files.
        failed_stage: Stage that raised, for failed/aborted files.
        elapsed_seconds: Wall-clock time for this file.
    """

    source: str
    status: str = "completed"
    nucleus_count: int = 0
    cell_count: int = 0
    table: pd.DataFrame | None = None
    overlap: list[OverlapRow] = field(default_factory=list)
    nuclei: NucleusSegmentation | None = None
    cells: CellSegmentation | None = None
    regions: list[Region] = field(default_factory=list)
    outputs: dict[str, Path] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None
    failed_stage: str | None = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status in _AGGREGATED


@dataclass
class BatchResult:
    """Summary of a batch run; ``table`` only holds completed/empty files."""

    files: list[FileResult] = field(default_factory=list)
    table: pd.DataFrame = field(default_factory=pd.DataFrame)
    table_path: Path | None = None
    elapsed_seconds: float = 0.0

    def count(self, status: str) -> int:
        return sum(1 for f in self.files if f.status == status)

    @property
    def cell_count(self) -> int:
        return sum(f.cell_count for f in self.files if f.ok)

    @property
    def warnings(self) -> list[str]:
        messages: list[str] = []
        for f in self.files:
            name = Path(f.source).name
            messages.extend(f"{name}: {w}" for w in f.warnings)
            if f.error:
                messages.append(f"{name}: {f.status}: {f.error}")
        return messages


class _StageTracker:
    """Enter named stages, checking for cancellation between them."""

    def __init__(self, source: str, should_abort: Callable[[], bool] | None) -> None:
        self.source = source
        self.should_abort = should_abort
        self.current: str | None = None
        self.shape: tuple[int, ...] | None = None

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        if self.should_abort is not None and self.should_abort():
            raise ProcessingAborted(source=self.source, stage=name, shape=self.shape)
        self.current = name
        logger.debug("%s: stage %s started", self.source, name)
        start = time.monotonic()
        try:
            yield
        except SegmentationError as exc:
            exc.with_context(self.source, name, self.shape)
            raise
        logger.debug(
            "%s: stage %s finished in %.2fs", self.source, name, time.monotonic() - start,
        )


class PipelineEngine:
    """Run the segmentation pipeline over input files, strictly sequentially.

    Each file goes through read -> resolve -> project -> classify ->
    threshold -> segment_nuclei -> expand_cells -> regions -> quantify ->
    measure -> write before the next file starts. Nothing is shared
    between files except loaded classifier models, and intermediate
    images are released as soon as the next stage has consumed them.

    Args:
        config: Pipeline configuration.
        acquire: Optional threshold-bounds callback for unset bounds.
        metrics: Optional MetricRegistry for the measurement table.
        classifiers: Optional {"nucleus": (classifier, model), "matrix": ...}
            overriding the models named in ``config``.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        acquire: ThresholdAcquirer | None = None,
        metrics: MetricRegistry | None = None,
        classifiers: dict[str, tuple[BaseClassifier, Any]] | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self._thresholder = MaskThresholder(acquire)
        self._projector = StackProjector()
        self._measurer = Measurer(metrics)
        self._classifiers: dict[str, tuple[BaseClassifier, Any]] = dict(classifiers or {})

    def _classifier(self, marker: str) -> tuple[BaseClassifier, Any]:
        if marker not in self._classifiers:
            path = self.config.nucleus_model if marker == "nucleus" else self.config.matrix_model
            self._classifiers[marker] = load_classifier(path)
        return self._classifiers[marker]

    def run(
        self,
        paths: Sequence[str | Path],
        output_dir: str | Path | None = None,
        should_abort: Callable[[], bool] | None = None,
        start_at: str | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ) -> BatchResult:
        """Process files in order and aggregate completed results.

        Args:
            paths: Input image paths.
            output_dir: If given, per-file artifacts and the combined
                ``overlap_summary.csv`` are written here.
            should_abort: Polled between stages; True aborts the current file.
            start_at: File name or stem to restart from; earlier files are
                not processed.
            progress_callback: Optional callback(current, total, file_name).

        Returns:
            BatchResult. Failed and aborted files are reported but never
            contribute rows to the combined table.

        Raises:
            ValueError: If ``paths`` is empty or ``start_at`` is not among them.
        """
        start = time.monotonic()
        files = [Path(p) for p in paths]
        if not files:
            raise ValueError("No input files to process")

        if start_at is not None:
            names = [(p.name, p.stem) for p in files]
            index = next(
                (i for i, pair in enumerate(names) if start_at in pair), None,
            )
            if index is None:
                raise ValueError(f"start_at {start_at!r} does not match any input file")
            if index:
                logger.info("Restarting batch at %s (skipping %d files)", files[index].name, index)
            files = files[index:]

        results: list[FileResult] = []
        total = len(files)
        for i, path in enumerate(files):
            result = self.process_file(
                path, output_dir=output_dir, should_abort=should_abort,
                keep_segmentation=False,
            )
            results.append(result)
            if progress_callback:
                progress_callback(i + 1, total, path.name)

        tables = [
            r.table for r in results
            if r.ok and r.table is not None and not r.table.empty
        ]
        combined = pd.concat(tables, ignore_index=True) if tables else pd.DataFrame()

        table_path = None
        if output_dir is not None:
            table_path = write_batch_table(Path(output_dir), combined)

        batch = BatchResult(
            files=results,
            table=combined,
            table_path=table_path,
            elapsed_seconds=round(time.monotonic() - start, 3),
        )
        logger.info(
            "Batch finished: %d completed, %d empty, %d failed, %d aborted, %d cells",
            batch.count("completed"), batch.count("empty"), batch.count("failed"),
            batch.count("aborted"), batch.cell_count,
        )
        return batch

    def process_file(
        self,
        path: str | Path,
        output_dir: str | Path | None = None,
        should_abort: Callable[[], bool] | None = None,
        keep_segmentation: bool = True,
    ) -> FileResult:
        """Carry one file through all stages.

        Configuration errors and cancelled threshold acquisition fail the
        file; an empty nuclear mask degrades to an empty result; caller
        cancellation marks it aborted and removes partial outputs. None of
        these propagate, so a batch can continue with the next file.
        """
        start = time.monotonic()
        path = Path(path)
        tracker = _StageTracker(str(path), should_abort)
        result = FileResult(source=str(path))

        try:
            self._process(path, tracker, result, output_dir, keep_segmentation)
        except ProcessingAborted as exc:
            result.status = "aborted"
            result.error = exc.message
            result.failed_stage = exc.stage
            logger.warning("%s", exc)
        except (ConfigurationError, InteractiveAcquisitionCancelled) as exc:
            result.status = "failed"
            result.error = exc.message
            result.failed_stage = exc.stage
            logger.warning("Skipping file: %s", exc)
        except Exception as exc:
            if isinstance(exc, MemoryError):
                raise
            result.status = "failed"
            result.error = str(exc)
            result.failed_stage = tracker.current
            logger.warning(
                "Processing failed for %s at stage %s (shape=%s): %s",
                path.name, tracker.current, tracker.shape, exc, exc_info=True,
            )

        if not result.ok:
            result.table = None
            if output_dir is not None:
                remove_file_outputs(Path(output_dir), path.stem)
                result.outputs = {}

        result.elapsed_seconds = round(time.monotonic() - start, 3)
        if result.ok:
            logger.info(
                "%s: %s, %d nuclei, %d cells (%.1fs)",
                path.name, result.status, result.nucleus_count, result.cell_count,
                result.elapsed_seconds,
            )
        return result

    def _process(
        self,
        path: Path,
        tracker: _StageTracker,
        result: FileResult,
        output_dir: str | Path | None,
        keep_segmentation: bool,
    ) -> None:
        cfg = self.config

        with tracker.stage("read"):
            stack = read_stack(path)
            tracker.shape = tuple(stack.data.shape)

        with tracker.stage("resolve"):
            resolver = ChannelResolver(stack.labels)
            nucleus_pos = resolver.require("nucleus", cfg.nucleus_channels)
            matrix_pos = resolver.optional("matrix", cfg.matrix_channels)
            region_pos = resolver.optional("region", cfg.region_channels)
            if cfg.matrix_channels and not matrix_pos:
                result.warnings.append(
                    f"no matrix channel matched {cfg.matrix_channels!r}; using fixed radius"
                )

        nucleus_mask = self._marker_mask(tracker, stack, nucleus_pos, "nucleus", cfg.nucleus_threshold)
        try:
            self._thresholder.require_foreground(nucleus_mask, "nucleus")
        except DegenerateMaskError as exc:
            exc.with_context(tracker.source, "threshold", tracker.shape)
            logger.warning("%s", exc)
            result.warnings.append(exc.message)

        matrix_mask = None
        if matrix_pos:
            matrix_mask = self._marker_mask(tracker, stack, matrix_pos, "matrix", cfg.matrix_threshold)
            if not matrix_mask.any():
                logger.warning(
                    "%s: matrix mask is empty; cells limited to the minimum distance",
                    path.name,
                )
                result.warnings.append("matrix mask is empty")

        with tracker.stage("segment_nuclei"):
            segmenter = NuclearSegmenter(
                min_area_um2=cfg.min_nucleus_area_um2,
                seed_min_distance_px=cfg.seed_min_distance_px,
                smooth_sigma=cfg.smooth_sigma,
            )
            nuclei = segmenter.segment(nucleus_mask, stack.pixel_size_um)
            del nucleus_mask
            result.nucleus_count = len(nuclei)

        with tracker.stage("expand_cells"):
            expander = CellExpander(cfg.min_distance_um, cfg.max_distance_um)
            cells = expander.expand(nuclei, matrix_mask)
            del matrix_mask
            result.cell_count = len(cells)

        with tracker.stage("regions"):
            regions = self._regions(stack, resolver, region_pos)

        with tracker.stage("quantify"):
            overlap = RegionOverlapQuantifier().quantify(
                cells.cells, regions, shape=cells.labels.shape
            )

        with tracker.stage("measure"):
            table = self._measurer.measure(
                cells, stack if cfg.measure_channels else None, overlap,
            )
            table.insert(0, "source", path.stem)
            del stack

        if output_dir is not None:
            with tracker.stage("write"):
                result.outputs = write_file_outputs(
                    Path(output_dir), path.stem, table, cells, regions,
                )

        result.table = table
        result.overlap = overlap
        result.status = "completed" if len(cells) else "empty"
        if not len(cells):
            result.warnings.append("0 cells detected")
        if keep_segmentation:
            result.nuclei = nuclei
            result.cells = cells
            result.regions = regions

    def _marker_mask(
        self,
        tracker: _StageTracker,
        stack: Stack,
        positions: list[int],
        marker: str,
        threshold: ThresholdConfig,
    ) -> np.ndarray:
        """Project, classify and threshold one marker's channels."""
        with tracker.stage("project"):
            projected = self._projector.project(stack, positions)

        with tracker.stage("classify"):
            classifier, model = self._classifier(marker)
            probability = classifier.classify(projected.data, model)
            del projected

        with tracker.stage("threshold"):
            mask = self._thresholder.threshold_config(probability, threshold, marker)
            del probability
        return mask

    def _regions(
        self, stack: Stack, resolver: ChannelResolver, positions: list[int]
    ) -> list[Region]:
        regions: list[Region] = []
        for position, label in zip(positions, resolver.labels_for(positions)):
            plane = stack.slice(position).astype(np.float64)
            mask = self._thresholder.threshold_config(
                plane, self.config.region_threshold, f"region {label}",
            )
            regions.append(Region.from_mask(label, mask))

        if self.config.regions_json:
            regions.extend(read_region_polygons(Path(self.config.regions_json), stack.shape))

        names = [r.name for r in regions]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate region names: {duplicates}")
        return regions
