"""Probability-map classifiers consumed as black boxes by the pipeline."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import numpy as np

from markerseg.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class BaseClassifier(ABC):
    """Abstract interface for pixel classifiers.

    Concrete implementations turn a normalized 2D image into a per-pixel
    class-probability map in [0, 1] with the same shape. Training is
    out of scope; ``model`` is an already-trained artifact or None.
    """

    @abstractmethod
    def classify(self, image: np.ndarray, model: Any = None) -> np.ndarray:
        """Return the foreground probability map for a 2D image."""


class IntensityClassifier(BaseClassifier):
    """Model-free fallback: percentile-rescale intensities into [0, 1].

    Args:
        low_percentile: Percentile mapped to 0.
        high_percentile: Percentile mapped to 1.
    """

    def __init__(self, low_percentile: float = 1.0, high_percentile: float = 99.8) -> None:
        if not 0 <= low_percentile < high_percentile <= 100:
            raise ValueError(
                "Percentiles must satisfy 0 <= low < high <= 100, got "
                f"{low_percentile}, {high_percentile}"
            )
        self.low_percentile = low_percentile
        self.high_percentile = high_percentile

    def classify(self, image: np.ndarray, model: Any = None) -> np.ndarray:
        image = np.asarray(image, dtype=np.float64)
        lo, hi = np.percentile(image, [self.low_percentile, self.high_percentile])
        if hi <= lo:
            return np.zeros(image.shape, dtype=np.float64)
        return np.clip((image - lo) / (hi - lo), 0.0, 1.0)


class SklearnPixelClassifier(BaseClassifier):
    """Apply a fitted scikit-learn estimator pixel-wise.

    Features come from ``skimage.feature.multiscale_basic_features`` and
    must match the features the estimator was trained on. The estimator
    must implement ``predict_proba``; the probability column of
    ``foreground_class`` is returned.

    Args:
        foreground_class: Class value treated as foreground.
        sigma_min: Smallest feature scale.
        sigma_max: Largest feature scale.
    """

    def __init__(
        self,
        foreground_class: int = 1,
        sigma_min: float = 1.0,
        sigma_max: float = 16.0,
    ) -> None:
        self.foreground_class = foreground_class
        self.sigma_min = sigma_min
        self.sigma_max = sigma_max

    def features(self, image: np.ndarray) -> np.ndarray:
        """(Y, X, F) feature stack for one image."""
        from skimage.feature import multiscale_basic_features

        return multiscale_basic_features(
            np.asarray(image, dtype=np.float64),
            intensity=True,
            edges=True,
            texture=True,
            sigma_min=self.sigma_min,
            sigma_max=self.sigma_max,
        )

    def classify(self, image: np.ndarray, model: Any = None) -> np.ndarray:
        if model is None:
            raise ConfigurationError("SklearnPixelClassifier requires a fitted model")
        if not hasattr(model, "predict_proba"):
            raise ConfigurationError(
                f"Model {type(model).__name__} does not implement predict_proba"
            )
        feats = self.features(image)
        n_features = feats.shape[-1]
        expected = getattr(model, "n_features_in_", n_features)
        if expected != n_features:
            raise ConfigurationError(
                f"Model expects {expected} features, image produced {n_features}"
            )
        proba = model.predict_proba(feats.reshape(-1, n_features))
        classes = list(getattr(model, "classes_", range(proba.shape[1])))
        if self.foreground_class not in classes:
            raise ConfigurationError(
                f"Foreground class {self.foreground_class!r} not in model classes {classes!r}"
            )
        column = classes.index(self.foreground_class)
        return proba[:, column].reshape(image.shape).astype(np.float64)


def load_classifier(path: str | Path | None) -> tuple[BaseClassifier, Any]:
    """Load a classifier and its model artifact.

    None selects the model-free IntensityClassifier. Otherwise the path
    must be a joblib-serialized scikit-learn estimator.

    Returns:
        (classifier, model) pair to pass to ``classifier.classify``.

    Raises:
        ConfigurationError: If the artifact is missing or unreadable.
    """
    if path is None:
        return IntensityClassifier(), None

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Classifier model not found: {path}")

    import joblib

    try:
        model = joblib.load(path)
    except Exception as exc:
        raise ConfigurationError(f"Could not load classifier model {path}: {exc}") from exc
    logger.info("Loaded classifier model %s (%s)", path, type(model).__name__)
    return SklearnPixelClassifier(), model
