"""Palette types and palette construction from a histogram."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass
from typing import NamedTuple, overload

import numpy as np

from pixel_quant.color_utils import (
    gamma_lut,
    pack_rgba,
    perceptual_to_rgba,
    quality_to_mse,
    rgba_to_perceptual,
)
from pixel_quant.colormap import Colormap
from pixel_quant.config import MAX_COLORS_LIMIT, QuantizeConfig
from pixel_quant.errors import QualityTooLowError, UnsupportedError
from pixel_quant.histogram import Histogram
from pixel_quant.quality import QualityReport, weighted_mse
from pixel_quant.solver_kmeans import Assignment, refine_entries, snap_vectors
from pixel_quant.solver_split import Cluster, split_cluster

logger = logging.getLogger(__name__)


class Color(NamedTuple):
    r: int
    g: int
    b: int
    a: int


@dataclass(frozen=True)
class Palette:
    """Ordered, immutable list of at most 256 colours.

    The position of a colour is its index in remapped output.
    """

    entries: tuple[Color, ...]

    def __post_init__(self) -> None:
        if len(self.entries) > MAX_COLORS_LIMIT:
            msg = f"Palettes hold at most {MAX_COLORS_LIMIT} colours"
            raise ValueError(msg)

    @classmethod
    def from_array(cls, rgba: np.ndarray) -> Palette:
        """Build from a (K, 4) uint8 array."""
        rows = np.asarray(rgba, dtype=np.uint8).reshape(-1, 4).tolist()
        return cls(tuple(Color(*row) for row in rows))

    def to_array(self) -> np.ndarray:
        """(K, 4) uint8 copy of the colours."""
        return np.array(self.entries, dtype=np.uint8).reshape(-1, 4)

    @property
    def count(self) -> int:
        return len(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @overload
    def __getitem__(self, index: int) -> Color: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Color, ...]: ...

    def __getitem__(self, index: int | slice) -> Color | tuple[Color, ...]:
        return self.entries[index]

    def __iter__(self) -> Iterator[Color]:
        return iter(self.entries)


@dataclass(frozen=True)
class PaletteBuild:
    """Outcome of :func:`build_palette`."""

    palette: Palette
    gamma: float
    report: QualityReport


def build_palette(histogram: Histogram, config: QuantizeConfig) -> PaletteBuild:
    """Choose at most ``config.max_colors`` colours representing *histogram*.

    Histograms with no more distinct colours than the budget are returned
    verbatim. Otherwise the palette is grown by :func:`_grow_palette` and
    rounded duplicates are merged. Colours no histogram entry maps to are
    dropped.

    Palette order follows the first raster appearance of the colours each
    entry represents.

    Raises:
        UnsupportedError: The histogram is empty.
        QualityTooLowError: The result scores below ``config.min_quality``.
    """
    if len(histogram) == 0:
        msg = "Cannot build a palette from an empty histogram"
        raise UnsupportedError(msg)

    gamma = histogram.gamma
    lut = gamma_lut(gamma)
    colors = histogram.colors
    weights = histogram.weights
    first_seen = histogram.first_seen

    if len(histogram) <= config.max_colors:
        order = np.argsort(first_seen, kind="stable")
        logger.info("Image has %d colours, palette is exact", len(order))
        return PaletteBuild(
            palette=Palette.from_array(colors[order]),
            gamma=gamma,
            report=QualityReport.from_mse(0.0),
        )

    t0 = time.perf_counter()
    vectors = rgba_to_perceptual(colors, lut)
    state = _grow_palette(vectors, weights, histogram.keys, config, gamma, lut)

    candidates = perceptual_to_rgba(state.palette, gamma)
    _, unique_idx = np.unique(pack_rgba(candidates), return_index=True)
    candidates = candidates[np.sort(unique_idx)]

    colormap = Colormap(candidates, gamma)
    idx, dist_sq = colormap.nearest_vectors(vectors)
    first = np.full(len(candidates), np.iinfo(np.int64).max, dtype=np.int64)
    np.minimum.at(first, idx, first_seen)
    used = np.flatnonzero(first != np.iinfo(np.int64).max)
    ordered = used[np.argsort(first[used], kind="stable")]

    report = QualityReport.from_mse(weighted_mse(dist_sq, weights))
    logger.info(
        "Palette: %d colours  quality=%.2f  mse=%.6f  (%.3f s)",
        len(ordered), report.quality, report.mse, time.perf_counter() - t0,
    )
    if report.quality < config.min_quality:
        raise QualityTooLowError(report.quality, config.min_quality)

    return PaletteBuild(
        palette=Palette.from_array(candidates[ordered]),
        gamma=gamma,
        report=report,
    )


def _grow_palette(
    vectors: np.ndarray,
    weights: np.ndarray,
    keys: np.ndarray,
    config: QuantizeConfig,
    gamma: float,
    lut: np.ndarray,
) -> Assignment:
    """Add palette entries one at a time until the budget or target is met.

    Starting from the weighted mean of all colours, each step splits the
    entry carrying the largest weighted error along its principal axis and
    refines the two resulting entries with k-means. No step raises the
    error, and the palette for a budget of K entries is the palette for
    K - 1 after one more step, so quality never drops as the budget grows.
    """
    root = Cluster.of(np.arange(len(vectors)), vectors, weights)
    state = Assignment(vectors, weights, snap_vectors(root.mean, gamma, lut))
    target_mse = quality_to_mse(config.max_quality)
    exhausted: set[int] = set()

    while len(state) < config.max_colors and state.mse > target_mse:
        errors = state.entry_errors()
        errors[sorted(exhausted)] = -1.0
        worst = int(np.argmax(errors))
        if errors[worst] <= 0.0:
            break

        grown = _split_entry(state, worst, keys, gamma, lut)
        if grown is None:
            exhausted.add(worst)
            continue
        state = refine_entries(
            grown,
            [worst, len(state)],
            config.refinement_iterations,
            gamma,
            lut,
            plateau_epsilon=config.plateau_epsilon,
        )
        config.report_progress(20 + 70 * len(state) / config.max_colors)

    logger.debug(
        "Grew %d entries  mse=%.6f  (%d could not be split)",
        len(state), state.mse, len(exhausted),
    )
    return state


def _split_entry(
    state: Assignment,
    entry: int,
    keys: np.ndarray,
    gamma: float,
    lut: np.ndarray,
) -> Assignment | None:
    """Best way of spending one more palette slot on *entry*'s colours.

    The colours nearest to *entry* are split in two; either both halves
    replace the entry, or one half is added next to it. Returns None when
    no option lowers the error.
    """
    members = state.members(entry)
    if len(members) < 2:
        return None
    left, right = split_cluster(
        Cluster.of(members, state.vectors, state.weights),
        state.vectors,
        state.weights,
        keys,
    )
    halves = snap_vectors(np.array([left.mean, right.mean]), gamma, lut)
    added = len(state)
    options = [
        state.moved([entry, added], halves),
        state.moved([added], halves[1:]),
        state.moved([added], halves[:1]),
    ]
    best = min(options, key=lambda s: s.mse)
    return best if best.mse < state.mse else None
