"""
Pixel Quant
===========

Reduce an RGBA image to a palette of at most 256 colours and remap it to
palette indices, for encoders of indexed-colour formats.

- **Histogram** of the image colours, weighted by opacity and local contrast
- **Palette** from variance-minimizing splits refined by weighted k-means
- **Remap** by nearest colour or Floyd-Steinberg error diffusion
"""

__version__ = "0.3.0"

from pixel_quant.config import QuantizeConfig
from pixel_quant.errors import (
    AbortedError,
    BufferTooSmallError,
    ErrorCode,
    InvalidPointerError,
    OutOfMemoryError,
    QualityTooLowError,
    QuantizeError,
    SizeMismatchError,
    UnsupportedError,
    ValueOutOfRangeError,
)
from pixel_quant.histogram import Histogram
from pixel_quant.image import SourceImage
from pixel_quant.options import Options
from pixel_quant.palette import Color, Palette
from pixel_quant.quantize import QuantizeResult, quantize, quantize_histogram

__all__ = [
    "AbortedError",
    "BufferTooSmallError",
    "Color",
    "ErrorCode",
    "Histogram",
    "InvalidPointerError",
    "Options",
    "OutOfMemoryError",
    "Palette",
    "QualityTooLowError",
    "QuantizeConfig",
    "QuantizeError",
    "QuantizeResult",
    "SizeMismatchError",
    "SourceImage",
    "UnsupportedError",
    "ValueOutOfRangeError",
    "quantize",
    "quantize_histogram",
]
