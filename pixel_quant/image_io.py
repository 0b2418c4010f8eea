"""Image loading, indexed PNG saving, and comparison-grid generation.

Only the command-line front end uses this module; the engine itself works
on raw RGBA buffers.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from pixel_quant.palette import Palette

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
    {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp", ".gif"}
)


def load_rgba(path: str | Path) -> tuple[bytes, int, int]:
    """Decode an image file to raw RGBA.

    Returns:
        ``(buffer, width, height)`` with ``width * height * 4`` bytes.
    """
    with Image.open(path) as img:
        rgba = img.convert("RGBA")
        return rgba.tobytes(), rgba.width, rgba.height


def collect_images(folder: Path) -> list[Path]:
    if not folder.exists():
        return []
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in SUPPORTED_EXTENSIONS
    )


def to_indexed_image(
    palette: Palette,
    indices: bytes | bytearray,
    width: int,
    height: int,
) -> Image.Image:
    """Wrap palette + indices in a Pillow ``P`` image (alpha kept in ``info``)."""
    img = Image.frombytes("P", (width, height), bytes(indices[: width * height]))
    flat: list[int] = []
    for color in palette:
        flat.extend((color.r, color.g, color.b))
    img.putpalette(flat, rawmode="RGB")
    alphas = bytes(color.a for color in palette)
    if any(a < 255 for a in alphas):
        img.info["transparency"] = alphas
    return img


def save_indexed_png(
    path: str | Path,
    palette: Palette,
    indices: bytes | bytearray,
    width: int,
    height: int,
) -> None:
    """Write an 8-bit indexed PNG, with a tRNS chunk when any alpha < 255."""
    img = to_indexed_image(palette, indices, width, height)
    transparency = img.info.get("transparency")
    if transparency is not None:
        img.save(path, format="PNG", transparency=transparency)
    else:
        img.save(path, format="PNG")


def expand_indices(
    palette: Palette,
    indices: bytes | bytearray,
    width: int,
    height: int,
) -> np.ndarray:
    """Look indices up in *palette*, giving an (H, W, 4) uint8 image."""
    idx = np.frombuffer(bytes(indices[: width * height]), dtype=np.uint8)
    return palette.to_array()[idx].reshape(height, width, 4)


def make_comparison_grid(
    original: np.ndarray,
    quantized: np.ndarray,
    output_path: str | Path,
    labels: tuple[str, str] = ("Original", "Quantized"),
    pixel_upscale: int = 1,
) -> None:
    """Save *original* and *quantized* (both (H, W, 4) uint8) side by side."""
    h, w = original.shape[:2]
    panel_w = w * pixel_upscale
    panel_h = h * pixel_upscale
    label_height = 36
    gap = 8

    panels = [
        Image.fromarray(np.ascontiguousarray(arr)).resize(
            (panel_w, panel_h), Image.Resampling.NEAREST,
        )
        for arr in (original, quantized)
    ]

    total_w = len(panels) * panel_w + (len(panels) - 1) * gap
    canvas = Image.new("RGBA", (total_w, panel_h + label_height), (30, 30, 30, 255))
    draw = ImageDraw.Draw(canvas)

    try:
        font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", 18,
        )
    except OSError:
        font = ImageFont.load_default()

    for i, (panel, label) in enumerate(zip(panels, labels, strict=False)):
        x = i * (panel_w + gap)
        canvas.paste(panel, (x, label_height), panel)

        bbox = draw.textbbox((0, 0), label, font=font)
        text_w = bbox[2] - bbox[0]
        tx = x + (panel_w - text_w) // 2
        draw.text((tx, 6), label, fill=(220, 220, 220, 255), font=font)

    canvas.save(output_path)
