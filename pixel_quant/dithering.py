"""Floyd-Steinberg error-diffusion remapping.

Pixels are visited in raster order (left to right, top to bottom). Each
pixel's effective colour is its source colour plus the error pushed onto
it by already visited neighbours, clamped to the 8-bit range. The nearest
palette entry for that effective colour is emitted and the residual,
scaled by the dithering level, is spread over the unvisited neighbours::

            *   7
        3   5   1     (/16)

The palette is never modified, only the choice of indices.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from pixel_quant.colormap import Colormap


def dither_image(
    colormap: Colormap,
    pixels: np.ndarray,
    out: np.ndarray,
    level: float,
    on_row: Callable[[int], None] | None = None,
) -> None:
    """Write dithered palette indices for *pixels* into *out*.

    Fully transparent source pixels map straight to the nearest transparent
    entry and neither receive nor emit error.

    Args:
        colormap: Palette lookup.
        pixels:   (H, W, 4) uint8 source.
        out:      (H * W,) uint8 destination, written row by row.
        level:    Fraction of the residual to diffuse (0 < level <= 1).
        on_row:   Called with the row number after every finished row.
    """
    h, w = pixels.shape[:2]
    palette = colormap.rgba.astype(np.float64)

    # One padding column on each side keeps the kernel in bounds.
    err_curr = np.zeros((w + 2, 4), dtype=np.float64)
    err_next = np.zeros((w + 2, 4), dtype=np.float64)

    for y in range(h):
        row = pixels[y].astype(np.float64)
        base = y * w
        for x in range(w):
            if row[x, 3] == 0:
                out[base + x] = colormap.nearest_one(0, 0, 0, 0)
                continue

            effective = np.clip(row[x] + err_curr[x + 1], 0.0, 255.0)
            r, g, b, a = (int(v) for v in np.rint(effective))
            idx = colormap.nearest_one(r, g, b, a)
            out[base + x] = idx

            residual = (effective - palette[idx]) * level
            err_curr[x + 2] += residual * (7 / 16)
            err_next[x] += residual * (3 / 16)
            err_next[x + 1] += residual * (5 / 16)
            err_next[x + 2] += residual * (1 / 16)

        err_curr, err_next = err_next, err_curr
        err_next.fill(0.0)
        if on_row is not None:
            on_row(y)
