#!/usr/bin/env python3
"""
main.py - Quick-start entry point.

Drop images into ``images/`` and run:

    python main.py batch

Or quantize one file:

    python -m pixel_quant.cli single my_photo.png --colors 64 --dither 1.0
"""

from pixel_quant.cli import app

if __name__ == "__main__":
    app()
