"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

import math
import numbers
from collections.abc import Callable
from dataclasses import dataclass

from pixel_quant.errors import AbortedError, ValueOutOfRangeError

MAX_COLORS_LIMIT = 256

ProgressCallback = Callable[[float], bool]


@dataclass(frozen=True)
class QuantizeConfig:
    """All tuneable parameters for a quantization run.

    Values are validated on construction; out-of-range input raises
    :class:`~pixel_quant.errors.ValueOutOfRangeError` and is never clamped.
    Use :func:`dataclasses.replace` to derive a modified copy.

    Attributes:
        max_colors:        Palette size budget (1-256).
        speed:             1 (slowest, best) to 10 (fastest, roughest).
        min_quality:       Quality floor (0-100). Builds scoring below it fail.
        max_quality:       Quality target (0-100). Splitting stops once the
                           palette is good enough, possibly below *max_colors*.
        dithering_level:   Initial error-diffusion strength for results (0-1).
        progress_callback: Called with a percentage between phases; returning
                           ``False`` aborts the call.
    """

    max_colors: int = MAX_COLORS_LIMIT
    speed: int = 4
    min_quality: int = 0
    max_quality: int = 100
    dithering_level: float = 0.0
    progress_callback: ProgressCallback | None = None

    def __post_init__(self) -> None:
        for name, lo, hi in (
            ("max_colors", 1, MAX_COLORS_LIMIT),
            ("speed", 1, 10),
            ("min_quality", 0, 100),
            ("max_quality", 0, 100),
        ):
            object.__setattr__(self, name, _check_int(name, getattr(self, name), lo, hi))
        if self.min_quality > self.max_quality:
            msg = (
                f"min_quality ({self.min_quality}) must not exceed "
                f"max_quality ({self.max_quality})"
            )
            raise ValueOutOfRangeError(msg)
        level = self.dithering_level
        if isinstance(level, bool) or not isinstance(level, numbers.Real) \
                or math.isnan(level) or not 0.0 <= level <= 1.0:
            msg = f"dithering_level must be within 0.0..1.0, got {level!r}"
            raise ValueOutOfRangeError(msg)
        object.__setattr__(self, "dithering_level", float(level))
        if self.progress_callback is not None and not callable(self.progress_callback):
            msg = "progress_callback must be callable"
            raise ValueOutOfRangeError(msg)

    # -- Speed policy --------------------------------------------------

    @property
    def refinement_iterations(self) -> int:
        """K-means passes after splitting; speed 10 skips refinement."""
        return (10 - self.speed) * 2

    @property
    def sample_budget(self) -> int:
        """Max pixels sampled for the contrast estimate; halves with every speed step."""
        return (1 << 22) >> (self.speed - 1)

    @property
    def plateau_epsilon(self) -> float:
        """Minimum quality gain (in points) that keeps refinement going."""
        return 0.005 * self.speed

    @property
    def use_contrast_map(self) -> bool:
        return self.speed < 8

    def report_progress(self, percent: float) -> None:
        """Invoke the progress callback, raising if it requests an abort."""
        if self.progress_callback is None:
            return
        if not self.progress_callback(float(percent)):
            msg = f"Aborted by progress callback at {percent:.0f}%"
            raise AbortedError(msg)


def _check_int(name: str, value: object, lo: int, hi: int) -> int:
    """Validate an integral setting (numpy integers included) and return it as int."""
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) \
            or not lo <= value <= hi:
        msg = f"{name} must be an integer within {lo}..{hi}, got {value!r}"
        raise ValueOutOfRangeError(msg)
    return int(value)
