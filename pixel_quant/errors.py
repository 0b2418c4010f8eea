"""Exception hierarchy and numeric error codes.

Every failure the engine reports is a :class:`QuantizeError` subclass.
Each carries an :class:`ErrorCode` numbered like the ``liq_error`` enum of
the libimagequant C header, so embedders that speak that convention can map
an exception straight to a status value.
"""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    OK = 0
    QUALITY_TOO_LOW = 99
    VALUE_OUT_OF_RANGE = 100
    OUT_OF_MEMORY = 101
    ABORTED = 102
    BITMAP_NOT_AVAILABLE = 103
    BUFFER_TOO_SMALL = 104
    INVALID_POINTER = 105
    UNSUPPORTED = 106


class QuantizeError(Exception):
    """Base class for all engine errors."""

    code: ErrorCode = ErrorCode.UNSUPPORTED


class ValueOutOfRangeError(QuantizeError, ValueError):
    """A configuration value or image dimension is outside its allowed range."""

    code = ErrorCode.VALUE_OUT_OF_RANGE


class SizeMismatchError(ValueOutOfRangeError):
    """The pixel buffer length does not equal ``width * height * 4``."""


class BufferTooSmallError(QuantizeError, ValueError):
    """The output buffer cannot hold one index per source pixel."""

    code = ErrorCode.BUFFER_TOO_SMALL


class QualityTooLowError(QuantizeError):
    """No palette within the colour budget reaches the minimum quality."""

    code = ErrorCode.QUALITY_TOO_LOW

    def __init__(self, quality: float, min_quality: int) -> None:
        self.quality = quality
        self.min_quality = min_quality
        super().__init__(
            f"Palette quality {quality:.2f} is below the minimum of {min_quality}",
        )


class OutOfMemoryError(QuantizeError, MemoryError):
    code = ErrorCode.OUT_OF_MEMORY


class AbortedError(QuantizeError):
    """The progress callback asked the engine to stop."""

    code = ErrorCode.ABORTED


class InvalidPointerError(QuantizeError, TypeError):
    """A missing or destroyed object was passed where a live one is required."""

    code = ErrorCode.INVALID_POINTER


class UnsupportedError(QuantizeError):
    code = ErrorCode.UNSUPPORTED
