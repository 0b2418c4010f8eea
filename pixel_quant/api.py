"""Flat, handle-oriented interface.

Mirrors the create / set / quantize / remap / destroy call sequence of
C quantization libraries for callers porting encoder code. Every function
delegates to a method of the handle classes; failures raise the
exceptions in :mod:`pixel_quant.errors` instead of returning codes.

Example::

    opts = create_options()
    set_max_colors(opts, 64)
    img = create_image(rgba_bytes, width, height)
    res = quantize(img, opts)
    set_dithering_level(res, 1.0)
    indices = bytearray(width * height)
    remap(res, img, indices)
    palette = get_palette(res)
    for handle in (res, img, opts):
        destroy(handle)
"""

from __future__ import annotations

from typing import Any

from pixel_quant.color_utils import DEFAULT_GAMMA
from pixel_quant.config import ProgressCallback
from pixel_quant.errors import InvalidPointerError
from pixel_quant.handle import Handle, require_live
from pixel_quant.histogram import Histogram
from pixel_quant.image import SourceImage
from pixel_quant.options import Options
from pixel_quant.palette import Palette
from pixel_quant.quantize import QuantizeResult
from pixel_quant.quantize import quantize as _quantize_image
from pixel_quant.quantize import quantize_histogram as _quantize_histogram


def create_options() -> Options:
    """Options with max_colors=256, speed=4, quality 0-100, no dithering."""
    return Options()


def set_max_colors(options: Options, colors: int) -> None:
    require_live(options, Options, "options")
    options.set_max_colors(colors)


def set_speed(options: Options, speed: int) -> None:
    require_live(options, Options, "options")
    options.set_speed(speed)


def set_quality(options: Options, minimum: int, maximum: int) -> None:
    require_live(options, Options, "options")
    options.set_quality(minimum, maximum)


def set_progress_callback(options: Options, callback: ProgressCallback | None) -> None:
    require_live(options, Options, "options")
    options.set_progress_callback(callback)


def create_image(
    buffer: Any, width: int, height: int, gamma: float = DEFAULT_GAMMA,
) -> SourceImage:
    return SourceImage(buffer, width, height, gamma)


def create_histogram(options: Options | None = None) -> Histogram:
    if options is None:
        return Histogram()
    require_live(options, Options, "options")
    return Histogram(options.config)


def histogram_add_image(histogram: Histogram, image: SourceImage) -> None:
    require_live(histogram, Histogram, "histogram")
    histogram.add_image(image)


def quantize(image: SourceImage, options: Options) -> QuantizeResult:
    return _quantize_image(image, options)


def quantize_histogram(histogram: Histogram, options: Options) -> QuantizeResult:
    return _quantize_histogram(histogram, options)


def set_dithering_level(result: QuantizeResult, level: float) -> None:
    require_live(result, QuantizeResult, "result")
    result.set_dithering_level(level)


def get_palette(result: QuantizeResult) -> Palette:
    require_live(result, QuantizeResult, "result")
    return result.palette


def get_quantization_error(result: QuantizeResult) -> float:
    require_live(result, QuantizeResult, "result")
    return result.quantization_error


def get_quantization_quality(result: QuantizeResult) -> float:
    require_live(result, QuantizeResult, "result")
    return result.quantization_quality


def remap(
    result: QuantizeResult,
    image: SourceImage,
    buffer: Any,
    buffer_capacity: int | None = None,
) -> None:
    require_live(result, QuantizeResult, "result")
    result.remap(image, buffer, buffer_capacity)


def destroy(handle: Handle) -> None:
    """Release *handle*. Destroying the same handle twice raises."""
    if not isinstance(handle, Handle):
        msg = f"Cannot destroy {type(handle).__name__}"
        raise InvalidPointerError(msg)
    handle.destroy()
