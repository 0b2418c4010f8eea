"""Perceptual colour space shared by clustering, quality scoring and remapping.

Colours are compared as premultiplied, gamma-adjusted and channel-weighted
4-vectors in ``(a, r, g, b)`` order::

    alpha = a / 255
    v = (alpha * 0.625,
         lut[r] * alpha * 0.5,
         lut[g] * alpha * 1.0,
         lut[b] * alpha * 0.45)

with ``lut[x] = (x / 255) ** (0.57 / gamma)``. Distance is squared
Euclidean. Premultiplication makes every fully transparent colour the zero
vector, so transparent pixels are interchangeable regardless of RGB.
"""

from __future__ import annotations

import math

import numpy as np

DEFAULT_GAMMA = 0.45455
INTERNAL_GAMMA = 0.57

CHANNEL_WEIGHTS = np.array([0.625, 0.5, 1.0, 0.45], dtype=np.float64)

# Largest possible squared distance: transparent vs. opaque white.
MAX_DIFF = float(np.sum(CHANNEL_WEIGHTS ** 2))


def gamma_lut(gamma: float) -> np.ndarray:
    """256-entry float64 table mapping an 8-bit sample into the working space."""
    return (np.arange(256, dtype=np.float64) / 255.0) ** (INTERNAL_GAMMA / gamma)


def rgba_to_perceptual(rgba: np.ndarray, lut: np.ndarray) -> np.ndarray:
    """Convert flat (N, 4) uint8 RGBA → (N, 4) float64 perceptual vectors."""
    rgba = np.asarray(rgba, dtype=np.uint8).reshape(-1, 4)
    alpha = rgba[:, 3].astype(np.float64) / 255.0
    out = np.empty((len(rgba), 4), dtype=np.float64)
    out[:, 0] = alpha * CHANNEL_WEIGHTS[0]
    out[:, 1:] = lut[rgba[:, :3]] * (alpha[:, np.newaxis] * CHANNEL_WEIGHTS[1:])
    return out


def perceptual_to_rgba(vectors: np.ndarray, gamma: float) -> np.ndarray:
    """Invert :func:`rgba_to_perceptual`, rounding to (N, 4) uint8 RGBA.

    Colours whose alpha rounds to zero come back as ``(0, 0, 0, 0)``.
    """
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 4)
    alpha = np.clip(vectors[:, 0] / CHANNEL_WEIGHTS[0], 0.0, 1.0)
    a8 = np.rint(alpha * 255.0)

    safe = np.where(a8 > 0, alpha, 1.0)[:, np.newaxis]
    linear = np.clip(vectors[:, 1:] / (safe * CHANNEL_WEIGHTS[1:]), 0.0, 1.0)
    rgb = np.rint(linear ** (gamma / INTERNAL_GAMMA) * 255.0)
    rgb[a8 == 0] = 0

    out = np.empty((len(vectors), 4), dtype=np.uint8)
    out[:, :3] = rgb
    out[:, 3] = a8
    return out


def clear_transparent(rgba: np.ndarray) -> np.ndarray:
    """Return a copy of (N, 4) RGBA where every alpha-0 pixel is (0, 0, 0, 0)."""
    out = np.array(rgba, dtype=np.uint8).reshape(-1, 4)
    out[out[:, 3] == 0] = 0
    return out


def pack_rgba(rgba: np.ndarray) -> np.ndarray:
    """Pack (N, 4) uint8 RGBA into (N,) uint32 keys ``r | g<<8 | b<<16 | a<<24``."""
    rgba = np.ascontiguousarray(rgba, dtype=np.uint8).reshape(-1, 4)
    return rgba.view("<u4").reshape(-1).astype(np.uint32)


def unpack_rgba(keys: np.ndarray) -> np.ndarray:
    """Inverse of :func:`pack_rgba`."""
    keys = np.ascontiguousarray(keys, dtype="<u4")
    return keys.view(np.uint8).reshape(-1, 4).copy()


def mse_to_quality(mse: float) -> float:
    """Map a weighted mean squared distance to a 0-100 quality score."""
    if mse <= 0.0:
        return 100.0
    return max(0.0, 100.0 * (1.0 - math.sqrt(mse / MAX_DIFF)))


def quality_to_mse(quality: float) -> float:
    """Largest mean squared distance that still scores *quality*."""
    return ((100.0 - quality) / 100.0) ** 2 * MAX_DIFF
