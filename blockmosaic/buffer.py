"""Mutable RGB pixel buffer shared between the engine, the display and IO.

The buffer wraps a single NumPy array of shape (H, W, 3), dtype=uint8, in RGB
order. It is mutated in place by the transform engine; nothing in this project
copies it behind the caller's back.
"""
from __future__ import annotations

from typing import Tuple

import numpy as np

Array = np.ndarray
RGB = Tuple[int, int, int]


class PixelBuffer:
    """Owned, mutable 2-D grid of RGB samples."""

    __slots__ = ("pixels",)

    def __init__(self, pixels: Array) -> None:
        if not isinstance(pixels, np.ndarray) or pixels.ndim != 3 or pixels.shape[2] != 3:
            raise ValueError("pixels must be an RGB array with shape (H, W, 3)")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError("buffer width and height must be > 0")
        if pixels.dtype != np.uint8:
            pixels = np.clip(pixels, 0, 255).astype(np.uint8)
        self.pixels = pixels

    @classmethod
    def solid(cls, width: int, height: int, color: RGB) -> "PixelBuffer":
        """Create a ``width x height`` buffer filled with one colour."""
        if width < 1 or height < 1:
            raise ValueError("width and height must be >= 1")
        arr = np.empty((height, width, 3), dtype=np.uint8)
        arr[...] = np.asarray(color, dtype=np.uint8)
        return cls(arr)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def sample(self, x: int, y: int) -> RGB:
        r, g, b = self.pixels[y, x]
        return int(r), int(g), int(b)

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy())

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def __repr__(self) -> str:
        return f"PixelBuffer(width={self.width}, height={self.height})"


__all__ = ["PixelBuffer", "RGB"]
