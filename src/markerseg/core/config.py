"""Pipeline configuration and YAML (de)serialization."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from markerseg.core.exceptions import ConfigurationError

THRESHOLD_METHODS = frozenset({"fixed", "otsu", "li", "triangle", "isodata"})

# Legacy "unset" sentinel: bounds at or beyond these magnitudes mean
# "ask interactively" rather than a real threshold.
_SENTINEL_MAGNITUDE = 1e30


@dataclass(frozen=True)
class ThresholdConfig:
    """How one marker's probability/intensity image is binarized.

    Attributes:
        method: "fixed" uses [lower, upper]; the others compute a global
            dark-background threshold from the image.
        lower: Inclusive lower bound (fixed method). None = unset.
        upper: Inclusive upper bound (fixed method). None = unset.
    """

    method: str = "fixed"
    lower: float | None = None
    upper: float | None = None

    def __post_init__(self) -> None:
        if self.method not in THRESHOLD_METHODS:
            raise ConfigurationError(
                f"Unknown threshold method {self.method!r}. "
                f"Supported: {sorted(THRESHOLD_METHODS)}"
            )
        if (
            self.lower is not None
            and self.upper is not None
            and not self.is_sentinel
            and self.lower > self.upper
        ):
            raise ConfigurationError(
                f"Threshold lower bound {self.lower} exceeds upper bound {self.upper}"
            )

    @property
    def is_sentinel(self) -> bool:
        return (
            self.lower is not None
            and self.upper is not None
            and self.lower <= -_SENTINEL_MAGNITUDE
            and self.upper >= _SENTINEL_MAGNITUDE
        )

    @property
    def is_unset(self) -> bool:
        """True when fixed bounds must be acquired before thresholding."""
        if self.method != "fixed":
            return False
        return self.lower is None or self.upper is None or self.is_sentinel


@dataclass(frozen=True)
class PipelineConfig:
    """All tunable values for one pipeline run.

    Distances and areas are in calibrated units (micrometers), converted
    to pixels per file using the stack's pixel size.
    """

    nucleus_channels: list[str] = field(default_factory=lambda: ["dapi"])
    matrix_channels: list[str] = field(default_factory=list)
    region_channels: list[str] = field(default_factory=list)
    nucleus_threshold: ThresholdConfig = field(
        default_factory=lambda: ThresholdConfig(method="fixed", lower=0.5, upper=1.0)
    )
    matrix_threshold: ThresholdConfig = field(
        default_factory=lambda: ThresholdConfig(method="fixed", lower=0.5, upper=1.0)
    )
    region_threshold: ThresholdConfig = field(
        default_factory=lambda: ThresholdConfig(method="otsu")
    )
    nucleus_model: str | None = None
    matrix_model: str | None = None
    min_distance_um: float = 1.0
    max_distance_um: float = 10.0
    min_nucleus_area_um2: float = 10.0
    seed_min_distance_px: int = 5
    smooth_sigma: float = 1.0
    regions_json: str | None = None
    measure_channels: bool = True

    def __post_init__(self) -> None:
        if not self.nucleus_channels:
            raise ConfigurationError(
                "nucleus_channels must not be empty", selector="nucleus"
            )
        if self.min_distance_um < 0:
            raise ConfigurationError(
                f"min_distance_um must be >= 0, got {self.min_distance_um}"
            )
        if self.max_distance_um < self.min_distance_um:
            raise ConfigurationError(
                f"max_distance_um ({self.max_distance_um}) must be >= "
                f"min_distance_um ({self.min_distance_um})"
            )
        if self.min_nucleus_area_um2 < 0:
            raise ConfigurationError(
                f"min_nucleus_area_um2 must be >= 0, got {self.min_nucleus_area_um2}"
            )
        if self.seed_min_distance_px < 1:
            raise ConfigurationError(
                f"seed_min_distance_px must be >= 1, got {self.seed_min_distance_px}"
            )
        if self.smooth_sigma < 0:
            raise ConfigurationError(
                f"smooth_sigma must be >= 0, got {self.smooth_sigma}"
            )

    def updated(self, **overrides: Any) -> PipelineConfig:
        """Return a copy with non-None overrides applied (CLI options)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict suitable for YAML."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PipelineConfig:
        """Build a config from a plain dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        kwargs = dict(data)
        for key in ("nucleus_threshold", "matrix_threshold", "region_threshold"):
            value = kwargs.get(key)
            if isinstance(value, dict):
                kwargs[key] = _threshold_from_dict(key, value)
        for key in ("nucleus_channels", "matrix_channels", "region_channels"):
            value = kwargs.get(key)
            if isinstance(value, str):
                kwargs[key] = [value]
            elif value is not None:
                kwargs[key] = [str(v) for v in value]
        return cls(**kwargs)


def _threshold_from_dict(key: str, data: dict[str, Any]) -> ThresholdConfig:
    allowed = {"method", "lower", "upper"}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError(f"Unknown keys in {key}: {unknown}")
    lower = data.get("lower")
    upper = data.get("upper")
    return ThresholdConfig(
        method=str(data.get("method", "fixed")).lower(),
        lower=float(lower) if lower is not None else None,
        upper=float(upper) if upper is not None else None,
    )


def load_config(path: Path) -> PipelineConfig:
    """Read a PipelineConfig from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, not a mapping, or invalid.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config {path} must contain a mapping, got {type(data).__name__}"
        )
    return PipelineConfig.from_dict(data)


def save_config(config: PipelineConfig, path: Path) -> None:
    """Write a PipelineConfig to a YAML file."""
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
