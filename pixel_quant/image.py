"""Read-only RGBA pixel source over caller-provided memory."""

from __future__ import annotations

import math
import numbers
from typing import Any

import numpy as np

from pixel_quant.color_utils import DEFAULT_GAMMA
from pixel_quant.errors import (
    InvalidPointerError,
    SizeMismatchError,
    ValueOutOfRangeError,
)
from pixel_quant.handle import Handle


class SourceImage(Handle):
    """Immutable ``width x height`` RGBA view with a gamma hint.

    The buffer is wrapped without copying. The caller must keep its
    contents stable for as long as results may still remap this image.

    Args:
        buffer: Any bytes-like object or uint8 numpy array holding
            ``width * height * 4`` samples in R, G, B, A order, row-major.
        width:  Image width in pixels (> 0).
        height: Image height in pixels (> 0).
        gamma:  Encoding gamma of the samples (> 0); 0.45455 is sRGB.
    """

    def __init__(
        self,
        buffer: Any,
        width: int,
        height: int,
        gamma: float = DEFAULT_GAMMA,
    ) -> None:
        if buffer is None:
            msg = "Pixel buffer is None"
            raise InvalidPointerError(msg)
        for name, value in (("width", width), ("height", height)):
            if isinstance(value, bool) or not isinstance(value, numbers.Integral) \
                    or value <= 0:
                msg = f"{name} must be a positive integer, got {value!r}"
                raise ValueOutOfRangeError(msg)
        if isinstance(gamma, bool) or not isinstance(gamma, numbers.Real) \
                or not math.isfinite(gamma) or gamma <= 0:
            msg = f"gamma must be a positive number, got {gamma!r}"
            raise ValueOutOfRangeError(msg)

        data = _as_flat_uint8(buffer)
        expected = width * height * 4
        if data.size != expected:
            msg = (
                f"Pixel buffer holds {data.size} bytes, expected "
                f"{expected} for a {width}x{height} RGBA image"
            )
            raise SizeMismatchError(msg)

        view = data.view()
        view.flags.writeable = False
        self._data: np.ndarray | None = view
        self.width = int(width)
        self.height = int(height)
        self.gamma = float(gamma)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def pixels(self) -> np.ndarray:
        """(H, W, 4) uint8 read-only view of the samples."""
        self._check_alive()
        return self._data.reshape(self.height, self.width, 4)

    def _release(self) -> None:
        self._data = None

    def __repr__(self) -> str:
        return f"SourceImage({self.width}x{self.height}, gamma={self.gamma:g})"


def _as_flat_uint8(buffer: Any) -> np.ndarray:
    if isinstance(buffer, np.ndarray):
        if buffer.dtype != np.uint8:
            msg = f"Pixel array must be uint8, got {buffer.dtype}"
            raise ValueOutOfRangeError(msg)
        return buffer.reshape(-1)
    try:
        return np.frombuffer(buffer, dtype=np.uint8)
    except TypeError as exc:
        msg = f"Pixel buffer of type {type(buffer).__name__} is not bytes-like"
        raise InvalidPointerError(msg) from exc
