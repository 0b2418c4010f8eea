"""Nearest-palette-entry search in the perceptual colour space."""

from __future__ import annotations

import numpy as np
from scipy.spatial import cKDTree

from pixel_quant.color_utils import (
    clear_transparent,
    gamma_lut,
    pack_rgba,
    rgba_to_perceptual,
    unpack_rgba,
)


class Colormap:
    """A fixed palette indexed by a k-d tree.

    Args:
        palette_rgba: (K, 4) uint8 palette colours; row *i* is index *i*.
        gamma: Gamma hint the perceptual vectors are computed with.
    """

    def __init__(self, palette_rgba: np.ndarray, gamma: float) -> None:
        self.rgba = np.asarray(palette_rgba, dtype=np.uint8).reshape(-1, 4)
        self.gamma = gamma
        self.lut = gamma_lut(gamma)
        self.vectors = rgba_to_perceptual(self.rgba, self.lut)
        self._tree = cKDTree(self.vectors)
        self._cache: dict[tuple[int, int, int, int], int] = {}

    def __len__(self) -> int:
        return len(self.rgba)

    def nearest_vectors(self, vectors: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Nearest palette index and squared distance for (N, 4) perceptual vectors."""
        dist, idx = self._tree.query(np.asarray(vectors).reshape(-1, 4), k=1)
        return np.asarray(idx, dtype=np.intp), np.asarray(dist) ** 2

    def nearest(self, rgba: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Nearest palette index and squared distance for (N, 4) uint8 RGBA.

        Each distinct colour is looked up once.
        """
        keys, inverse = np.unique(
            pack_rgba(clear_transparent(rgba)), return_inverse=True,
        )
        inverse = inverse.reshape(-1)
        idx, dist_sq = self.nearest_vectors(
            rgba_to_perceptual(unpack_rgba(keys), self.lut),
        )
        return idx[inverse], dist_sq[inverse]

    def nearest_one(self, r: int, g: int, b: int, a: int) -> int:
        """Cached lookup of a single 8-bit colour."""
        if a == 0:
            r = g = b = 0
        key = (r, g, b, a)
        hit = self._cache.get(key)
        if hit is None:
            vec = rgba_to_perceptual(np.array([key], dtype=np.uint8), self.lut)
            _, idx = self._tree.query(vec[0], k=1)
            hit = self._cache[key] = int(idx)
        return hit
