"""Utility functions for blockmosaic.

Modules:
- loader: Load/save Pillow <-> NumPy <-> PixelBuffer conversion utilities.
"""
from .loader import (
    default_output_path,
    load_buffer,
    load_image,
    save_buffer,
    save_image,
    to_pil,
)

__all__ = [
    "load_image",
    "load_buffer",
    "save_image",
    "save_buffer",
    "default_output_path",
    "to_pil",
]
