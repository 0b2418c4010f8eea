"""Mapping source pixels to palette indices."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import numpy as np

from pixel_quant.colormap import Colormap
from pixel_quant.dithering import dither_image
from pixel_quant.errors import BufferTooSmallError, InvalidPointerError

logger = logging.getLogger(__name__)

# Rows looked up per vectorized batch when not dithering.
_BAND_PIXELS = 1 << 16


def output_view(buffer: Any, required: int, capacity: int | None = None) -> np.ndarray:
    """Writable flat uint8 view of the first *required* bytes of *buffer*.

    Args:
        buffer:   A writable bytes-like object (``bytearray``, ``memoryview``,
            contiguous uint8 numpy array, ...).
        required: Number of indices that will be written.
        capacity: Usable size declared by the caller; defaults to the
            buffer length and may not exceed it.

    Raises:
        InvalidPointerError: *buffer* is None, not bytes-like or read-only.
        BufferTooSmallError: The usable size is below *required*.
    """
    if buffer is None:
        msg = "Output buffer is None"
        raise InvalidPointerError(msg)
    try:
        view = np.frombuffer(memoryview(buffer).cast("B"), dtype=np.uint8)
    except TypeError as exc:
        msg = f"Output buffer of type {type(buffer).__name__} is not bytes-like"
        raise InvalidPointerError(msg) from exc

    size = len(view) if capacity is None else min(int(capacity), len(view))
    if size < required:
        msg = f"Output buffer holds {size} bytes, {required} required"
        raise BufferTooSmallError(msg)
    if not view.flags.writeable:
        msg = "Output buffer is read-only"
        raise InvalidPointerError(msg)
    return view[:required]


def remap_pixels(
    colormap: Colormap,
    pixels: np.ndarray,
    out: np.ndarray,
    dithering_level: float = 0.0,
    on_progress: Callable[[float], None] | None = None,
) -> None:
    """Write one palette index per pixel of *pixels* into *out*.

    With ``dithering_level == 0`` every pixel gets its nearest palette
    entry independently; otherwise :func:`~pixel_quant.dithering.dither_image`
    is used.

    Args:
        colormap: Palette lookup.
        pixels:   (H, W, 4) uint8 source.
        out:      (H * W,) uint8 destination.
        dithering_level: 0 to 1.
        on_progress: Called with a percentage after each row or band of rows.
    """
    h, w = pixels.shape[:2]
    t0 = time.perf_counter()

    if dithering_level > 0.0:
        def _row_done(y: int) -> None:
            if on_progress is not None:
                on_progress(100.0 * (y + 1) / h)

        dither_image(colormap, pixels, out, dithering_level, on_row=_row_done)
    else:
        band = max(1, _BAND_PIXELS // w)
        for y0 in range(0, h, band):
            y1 = min(h, y0 + band)
            idx, _ = colormap.nearest(pixels[y0:y1].reshape(-1, 4))
            out[y0 * w : y1 * w] = idx
            if on_progress is not None:
                on_progress(100.0 * y1 / h)

    logger.debug(
        "Remapped %dx%d to %d colours  dither=%.2f  (%.3f s)",
        w, h, len(colormap), dithering_level, time.perf_counter() - t0,
    )
