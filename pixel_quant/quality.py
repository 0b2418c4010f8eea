"""Quality estimation: how well a palette represents a histogram."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from pixel_quant.color_utils import mse_to_quality, rgba_to_perceptual
from pixel_quant.colormap import Colormap
from pixel_quant.histogram import Histogram


@dataclass(frozen=True)
class QualityReport:
    """Weighted mean squared perceptual error and its 0-100 score."""

    mse: float
    quality: float

    @classmethod
    def from_mse(cls, mse: float) -> QualityReport:
        return cls(mse=mse, quality=mse_to_quality(mse))


def weighted_mse(dist_sq: np.ndarray, weights: np.ndarray) -> float:
    total = float(np.sum(weights))
    if total <= 0.0:
        return 0.0
    return float(np.dot(dist_sq, weights) / total)


def estimate_quality(colormap: Colormap, histogram: Histogram) -> QualityReport:
    """Score *colormap* against every entry of *histogram*.

    Each histogram colour is charged the squared distance to its nearest
    palette entry, weighted by its importance. Adding palette entries can
    only shrink those distances, so the score never drops as the palette
    grows.
    """
    vectors = rgba_to_perceptual(histogram.colors, colormap.lut)
    _, dist_sq = colormap.nearest_vectors(vectors)
    return QualityReport.from_mse(weighted_mse(dist_sq, histogram.weights))
