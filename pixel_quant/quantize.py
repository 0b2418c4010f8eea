"""Quantization entry points and the result handle."""

from __future__ import annotations

import logging
import numbers
import time
from typing import Any

from pixel_quant.colormap import Colormap
from pixel_quant.config import QuantizeConfig
from pixel_quant.errors import OutOfMemoryError, ValueOutOfRangeError
from pixel_quant.handle import Handle, require_live
from pixel_quant.histogram import Histogram
from pixel_quant.image import SourceImage
from pixel_quant.options import Options
from pixel_quant.palette import Palette, PaletteBuild, build_palette
from pixel_quant.quality import QualityReport
from pixel_quant.remap import output_view, remap_pixels

logger = logging.getLogger(__name__)


class QuantizeResult(Handle):
    """A built palette that can remap images any number of times.

    The palette never changes after construction. Only the dithering level
    is mutable, so the same result can remap with different settings.
    """

    def __init__(
        self,
        build: PaletteBuild,
        dithering_level: float = 0.0,
        config: QuantizeConfig | None = None,
    ) -> None:
        self._palette = build.palette
        self._report = build.report
        self._config = config if config is not None else QuantizeConfig()
        self.gamma = build.gamma
        self._colormap: Colormap | None = Colormap(build.palette.to_array(), build.gamma)
        self._dithering_level = 0.0
        self.set_dithering_level(dithering_level)

    # -- Accessors -----------------------------------------------------

    @property
    def palette(self) -> Palette:
        self._check_alive()
        return self._palette

    @property
    def dithering_level(self) -> float:
        self._check_alive()
        return self._dithering_level

    def set_dithering_level(self, level: float) -> None:
        """Set the error-diffusion strength for later remaps (0.0-1.0)."""
        self._check_alive()
        if isinstance(level, bool) or not isinstance(level, numbers.Real) \
                or not 0.0 <= level <= 1.0:
            msg = f"dithering_level must be within 0.0..1.0, got {level!r}"
            raise ValueOutOfRangeError(msg)
        self._dithering_level = float(level)

    @property
    def quantization_error(self) -> float:
        """Weighted mean squared perceptual error of the palette."""
        self._check_alive()
        return self._report.mse

    @property
    def quantization_quality(self) -> float:
        """0-100 quality score of the palette against its histogram."""
        self._check_alive()
        return self._report.quality

    @property
    def report(self) -> QualityReport:
        self._check_alive()
        return self._report

    # -- Remapping -----------------------------------------------------

    def remap(
        self,
        image: SourceImage,
        buffer: Any,
        buffer_capacity: int | None = None,
    ) -> None:
        """Write one palette index per pixel of *image* into *buffer*.

        Args:
            image: Source to remap; its pixels are read again.
            buffer: Writable bytes-like destination.
            buffer_capacity: Usable bytes of *buffer*; defaults to its length.

        Raises:
            BufferTooSmallError: Capacity below ``image.width * image.height``.
                Nothing is written.
            InvalidPointerError: Destroyed result or image, or unusable buffer.
            AbortedError: The progress callback requested an abort.
        """
        self._check_alive()
        require_live(image, SourceImage, "image")
        out = output_view(buffer, image.pixel_count, buffer_capacity)
        remap_pixels(
            self._colormap,
            image.pixels,
            out,
            self._dithering_level,
            on_progress=self._config.report_progress,
        )

    def remapped(self, image: SourceImage) -> bytearray:
        """Remap *image* into a newly allocated ``bytearray``."""
        require_live(image, SourceImage, "image")
        buffer = bytearray(image.pixel_count)
        self.remap(image, buffer)
        return buffer

    def _release(self) -> None:
        self._colormap = None

    def __repr__(self) -> str:
        if not self.alive:
            return "QuantizeResult(destroyed)"
        return (
            f"QuantizeResult({len(self._palette)} colours, "
            f"quality={self._report.quality:.2f}, "
            f"dither={self._dithering_level:g})"
        )


def quantize(image: SourceImage, options: Options | QuantizeConfig) -> QuantizeResult:
    """Build a palette for *image*.

    Raises:
        QualityTooLowError: The best palette scores below the minimum quality.
        OutOfMemoryError: Allocation failed while histogramming or clustering.
        AbortedError: The progress callback requested an abort.
        InvalidPointerError: *image* or *options* is missing or destroyed.
    """
    require_live(image, SourceImage, "image")
    config = _config_of(options)
    t0 = time.perf_counter()

    hist = Histogram(config)
    try:
        hist.add_image(image)
        config.report_progress(20)
        return _quantize(hist, config, t0)
    finally:
        hist.destroy()


def quantize_histogram(
    histogram: Histogram, options: Options | QuantizeConfig,
) -> QuantizeResult:
    """Build one palette shared by every image added to *histogram*."""
    require_live(histogram, Histogram, "histogram")
    return _quantize(histogram, _config_of(options), time.perf_counter())


def _quantize(hist: Histogram, config: QuantizeConfig, t0: float) -> QuantizeResult:
    try:
        build = build_palette(hist, config)
    except MemoryError as exc:
        msg = "Out of memory while building the palette"
        raise OutOfMemoryError(msg) from exc
    config.report_progress(100)

    logger.info(
        "Quantized to %d colours  quality=%.2f  (%.2f s)",
        len(build.palette), build.report.quality, time.perf_counter() - t0,
    )
    return QuantizeResult(build, config.dithering_level, config)


def _config_of(options: Options | QuantizeConfig) -> QuantizeConfig:
    if isinstance(options, QuantizeConfig):
        return options
    require_live(options, Options, "options")
    return options.config
