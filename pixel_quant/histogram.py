"""Colour histogram with importance weights.

Each distinct RGBA colour is stored once together with:

- ``counts``     - how many pixels had that colour,
- ``weights``    - ``counts * alpha_factor * mean contrast_factor``,
- ``first_seen`` - raster position of its first occurrence.

Fully transparent pixels are collapsed to ``(0, 0, 0, 0)`` before counting.
Every pixel is counted, so the set of distinct colours is always exact. On
large images the per-colour contrast factor is averaged over a fixed-stride
sample derived from the speed setting.
"""

from __future__ import annotations

import logging
import math
import time

import numpy as np
from skimage.color import rgb2gray
from skimage.filters import sobel

from pixel_quant.color_utils import clear_transparent, pack_rgba, unpack_rgba
from pixel_quant.config import QuantizeConfig
from pixel_quant.errors import OutOfMemoryError, UnsupportedError
from pixel_quant.handle import Handle, require_live
from pixel_quant.image import SourceImage

logger = logging.getLogger(__name__)

# Lowest contrast factor, reached on strong edges and noise.
CONTRAST_FLOOR = 0.5


def alpha_factor(alpha: np.ndarray) -> np.ndarray:
    """Importance of a sample by opacity: 1/256 when transparent, 1 when opaque."""
    return (np.asarray(alpha, dtype=np.float64) + 1.0) / 256.0


def contrast_factor(pixels: np.ndarray) -> np.ndarray:
    """Per-pixel importance in [CONTRAST_FLOOR, 1] from local luminance edges.

    Banding is most visible in flat regions while busy regions hide colour
    error, so flat pixels keep full weight and edges drop towards the floor.

    Args:
        pixels: (H, W, 4) uint8.

    Returns:
        (H, W) float64.
    """
    rgba = pixels.astype(np.float64) / 255.0
    premultiplied = rgba[..., :3] * rgba[..., 3:4]
    edges = sobel(rgb2gray(premultiplied))
    return 1.0 - (1.0 - CONTRAST_FLOOR) * np.clip(edges * 2.0, 0.0, 1.0)


def sample_stride(pixel_count: int, budget: int) -> int:
    """Raster stride that keeps at most *budget* samples."""
    return max(1, math.ceil(pixel_count / budget))


class Histogram(Handle):
    """Deduplicated multiset of colours, optionally spanning several images.

    Args:
        config: Supplies the speed-dependent sampling budget and contrast
            map policy. Defaults to :class:`QuantizeConfig()`.
    """

    def __init__(self, config: QuantizeConfig | None = None) -> None:
        self._config = config if config is not None else QuantizeConfig()
        self.gamma: float | None = None
        self._pixels_seen = 0
        self._keys = np.empty(0, dtype=np.uint32)
        self._counts = np.empty(0, dtype=np.int64)
        self._weights = np.empty(0, dtype=np.float64)
        self._first_seen = np.empty(0, dtype=np.int64)

    @classmethod
    def from_image(
        cls, image: SourceImage, config: QuantizeConfig | None = None,
    ) -> Histogram:
        hist = cls(config)
        hist.add_image(image)
        return hist

    # -- Accessors -----------------------------------------------------

    def __len__(self) -> int:
        self._check_alive()
        return len(self._keys)

    @property
    def colors(self) -> np.ndarray:
        """(N, 4) uint8 distinct colours, sorted by packed RGBA value."""
        self._check_alive()
        return unpack_rgba(self._keys)

    @property
    def keys(self) -> np.ndarray:
        """(N,) uint32 packed colours, see :func:`~pixel_quant.color_utils.pack_rgba`."""
        self._check_alive()
        return self._keys

    @property
    def counts(self) -> np.ndarray:
        self._check_alive()
        return self._counts

    @property
    def weights(self) -> np.ndarray:
        self._check_alive()
        return self._weights

    @property
    def first_seen(self) -> np.ndarray:
        self._check_alive()
        return self._first_seen

    @property
    def total_weight(self) -> float:
        self._check_alive()
        return float(self._weights.sum())

    # -- Building ------------------------------------------------------

    def add_image(self, image: SourceImage) -> None:
        """Count every pixel of *image* into this histogram.

        Raises:
            UnsupportedError: *image* has a different gamma than images
                added before.
            OutOfMemoryError: The histogram could not be allocated.
        """
        self._check_alive()
        require_live(image, SourceImage, "image")
        if self.gamma is not None and not math.isclose(self.gamma, image.gamma):
            msg = (
                f"Image gamma {image.gamma:g} differs from histogram gamma "
                f"{self.gamma:g}"
            )
            raise UnsupportedError(msg)

        t0 = time.perf_counter()
        try:
            self._merge(*self._count_image(image))
        except MemoryError as exc:
            msg = f"Out of memory while histogramming {image!r}"
            raise OutOfMemoryError(msg) from exc

        if self.gamma is None:
            self.gamma = image.gamma
        self._pixels_seen += image.pixel_count
        logger.debug(
            "Histogram: %s -> %d distinct colours  (%.3f s)",
            image, len(self._keys), time.perf_counter() - t0,
        )

    def _count_image(
        self, image: SourceImage,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        pixels = image.pixels
        keys, first, inverse, counts = np.unique(
            pack_rgba(clear_transparent(pixels.reshape(-1, 4))),
            return_index=True,
            return_inverse=True,
            return_counts=True,
        )
        inverse = inverse.reshape(-1)
        counts = counts.astype(np.int64)

        weights = counts * alpha_factor(unpack_rgba(keys)[:, 3])
        if self._config.use_contrast_map:
            weights *= self._mean_contrast(image, inverse, len(keys))
        first_seen = first.astype(np.int64) + self._pixels_seen
        return keys, counts, weights, first_seen

    def _mean_contrast(
        self, image: SourceImage, inverse: np.ndarray, n_colors: int,
    ) -> np.ndarray:
        """Average contrast factor per colour, estimated from a raster sample.

        Every pixel is counted exactly; only this estimate is sampled. Colours
        that no sample hits keep full weight.
        """
        n = image.pixel_count
        stride = sample_stride(n, self._config.sample_budget)
        positions = np.arange(0, n, stride, dtype=np.int64)
        if stride > 1:
            logger.info(
                "Estimating contrast from every %d-th pixel of %s (%d samples)",
                stride, image, len(positions),
            )

        factors = contrast_factor(image.pixels).reshape(-1)[positions]
        sampled = inverse[positions]
        hits = np.bincount(sampled, minlength=n_colors)
        sums = np.bincount(sampled, weights=factors, minlength=n_colors)
        return np.where(hits > 0, sums / np.maximum(hits, 1), 1.0)

    def _merge(
        self,
        keys: np.ndarray,
        counts: np.ndarray,
        weights: np.ndarray,
        first_seen: np.ndarray,
    ) -> None:
        if len(self._keys) == 0:
            self._keys, self._counts = keys, counts
            self._weights, self._first_seen = weights, first_seen
            return

        all_keys = np.concatenate([self._keys, keys])
        merged, inverse = np.unique(all_keys, return_inverse=True)
        inverse = inverse.reshape(-1)
        n = len(merged)

        self._counts = np.bincount(
            inverse, weights=np.concatenate([self._counts, counts]), minlength=n,
        ).astype(np.int64)
        self._weights = np.bincount(
            inverse, weights=np.concatenate([self._weights, weights]), minlength=n,
        )
        first = np.full(n, np.iinfo(np.int64).max, dtype=np.int64)
        np.minimum.at(first, inverse, np.concatenate([self._first_seen, first_seen]))
        self._first_seen = first
        self._keys = merged

    def _release(self) -> None:
        self._keys = self._counts = self._weights = self._first_seen = None

    def __repr__(self) -> str:
        if not self.alive:
            return "Histogram(destroyed)"
        return f"Histogram({len(self._keys)} colours, gamma={self.gamma})"
