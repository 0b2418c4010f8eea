"""Weighted k-means refinement of palette entries.

Palette entries always sit on colours representable in 8 bits, so a
refinement step moves an entry to the weighted mean of the histogram
colours nearest to it and then snaps it back to RGBA8. A step is kept only
when it lowers the weighted error, which makes refinement safe to run after
every palette change.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
from scipy.spatial import cKDTree

from pixel_quant.color_utils import mse_to_quality, perceptual_to_rgba, rgba_to_perceptual
from pixel_quant.quality import weighted_mse

logger = logging.getLogger(__name__)


def snap_vectors(vectors: np.ndarray, gamma: float, lut: np.ndarray) -> np.ndarray:
    """Move perceptual vectors to the nearest colours representable in RGBA8."""
    return rgba_to_perceptual(perceptual_to_rgba(vectors, gamma), lut)


class Assignment:
    """Palette vectors plus the exact nearest entry of every histogram colour.

    Args:
        vectors: (N, 4) perceptual histogram colours.
        weights: (N,) importance weights.
        palette: (K, 4) perceptual palette entries.
    """

    def __init__(
        self,
        vectors: np.ndarray,
        weights: np.ndarray,
        palette: np.ndarray,
        nearest: tuple[np.ndarray, np.ndarray] | None = None,
    ) -> None:
        self.vectors = vectors
        self.weights = weights
        self.palette = np.asarray(palette, dtype=np.float64).reshape(-1, 4)
        if nearest is None:
            dist, idx = cKDTree(self.palette).query(vectors, k=1)
            nearest = np.asarray(idx, dtype=np.intp), np.asarray(dist) ** 2
        self.idx, self.dist = nearest
        self.mse = weighted_mse(self.dist, weights)

    def __len__(self) -> int:
        return len(self.palette)

    @property
    def quality(self) -> float:
        return mse_to_quality(self.mse)

    def members(self, entry: int) -> np.ndarray:
        return np.flatnonzero(self.idx == entry)

    def entry_errors(self) -> np.ndarray:
        """Weighted squared error charged to each palette entry."""
        return np.bincount(
            self.idx, weights=self.weights * self.dist, minlength=len(self.palette),
        )

    def moved(self, entries: Sequence[int], targets: np.ndarray) -> Assignment:
        """Copy with ``palette[entries] = targets``; ``len(self)`` appends.

        Only colours that were nearest to a moved entry are searched again;
        every other colour compares its current distance with the moved
        entries alone.
        """
        entries = np.asarray(entries, dtype=np.intp)
        targets = np.asarray(targets, dtype=np.float64).reshape(-1, 4)
        size = max(len(self.palette), int(entries.max()) + 1)
        palette = np.zeros((size, 4), dtype=np.float64)
        palette[: len(self.palette)] = self.palette
        palette[entries] = targets

        idx = self.idx.copy()
        dist = self.dist.copy()
        stale = np.isin(idx, entries)

        for entry, target in zip(entries, targets, strict=True):
            d = np.sum((self.vectors - target) ** 2, axis=1)
            closer = ~stale & (d < dist)
            idx[closer] = entry
            dist[closer] = d[closer]

        if stale.any():
            d_stale, i_stale = cKDTree(palette).query(self.vectors[stale], k=1)
            idx[stale] = i_stale
            dist[stale] = np.asarray(d_stale) ** 2

        return Assignment(self.vectors, self.weights, palette, nearest=(idx, dist))


def refine_entries(
    state: Assignment,
    entries: Sequence[int],
    iterations: int,
    gamma: float,
    lut: np.ndarray,
    plateau_epsilon: float = 0.0,
) -> Assignment:
    """Run up to *iterations* k-means passes over the given palette entries.

    Each pass moves every listed entry to the weighted mean of the colours
    currently nearest to it, snapped to RGBA8. A pass that does not lower
    the error is discarded and ends refinement, as does a quality gain below
    *plateau_epsilon* points. Entries that attract no colours stay put.

    Returns:
        An assignment whose error is never above that of *state*.
    """
    for it in range(iterations):
        targets = state.palette[list(entries)].copy()
        for row, entry in enumerate(entries):
            members = state.members(entry)
            if len(members) == 0:
                continue
            w = state.weights[members]
            targets[row] = (state.vectors[members] * w[:, np.newaxis]).sum(axis=0) / w.sum()
        targets = snap_vectors(targets, gamma, lut)
        if np.array_equal(targets, state.palette[list(entries)]):
            break

        candidate = state.moved(entries, targets)
        gain = candidate.quality - state.quality
        logger.debug("  k-means pass %d  entries=%s  gain=%.5f", it, list(entries), gain)
        if candidate.mse >= state.mse:
            break
        state = candidate
        if gain < plateau_epsilon:
            break
    return state
