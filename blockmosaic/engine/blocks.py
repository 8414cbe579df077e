"""Block grid and per-block colour averaging.

A block is the rectangle ``[x_start, x_end) x [y_start, y_end)``. Blocks are
laid out on a regular grid with stride ``square_size``; blocks on the last row
or column are truncated to the image (or partition) edge, never padded.

Averaging uses 64-bit channel sums and integer truncation, so a red channel of
``{10, 11, 12, 13}`` averages to 11, not 12.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np

from ..buffer import PixelBuffer, RGB


@dataclass(frozen=True)
class Block:
    x_start: int
    x_end: int
    y_start: int
    y_end: int

    @property
    def width(self) -> int:
        return self.x_end - self.x_start

    @property
    def height(self) -> int:
        return self.y_end - self.y_start

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


def iter_blocks(width: int, row_start: int, row_end: int, square_size: int) -> Iterator[Block]:
    """Yield blocks covering ``[0, width) x [row_start, row_end)`` in row-major order.

    ``y_end`` is clamped to ``row_end`` rather than to the image height, so a
    caller restricted to a row range never touches rows outside it.
    """
    if square_size < 1:
        raise ValueError("square_size must be >= 1")
    for y in range(row_start, row_end, square_size):
        y_end = min(y + square_size, row_end)
        for x in range(0, width, square_size):
            yield Block(x, min(x + square_size, width), y, y_end)


def count_blocks(width: int, height: int, square_size: int) -> int:
    """Number of blocks in a ``width x height`` grid with the given stride."""
    if square_size < 1:
        raise ValueError("square_size must be >= 1")
    cols = -(-width // square_size)
    rows = -(-height // square_size)
    return cols * rows


def _check_bounds(buffer: PixelBuffer, block: Block) -> None:
    if not (0 <= block.x_start < block.x_end <= buffer.width):
        raise ValueError(f"block {block} outside buffer width {buffer.width}")
    if not (0 <= block.y_start < block.y_end <= buffer.height):
        raise ValueError(f"block {block} outside buffer height {buffer.height}")


def block_average(buffer: PixelBuffer, block: Block) -> RGB:
    """Return the per-channel truncated mean colour of ``block``."""
    _check_bounds(buffer, block)
    region = buffer.pixels[block.y_start:block.y_end, block.x_start:block.x_end]
    sums = region.reshape(-1, 3).sum(axis=0, dtype=np.int64)
    avg = sums // block.pixel_count
    return int(avg[0]), int(avg[1]), int(avg[2])


def average_block(buffer: PixelBuffer, block: Block) -> None:
    """Overwrite every pixel of ``block`` with the block's average colour.

    The whole region is read before any pixel is written.
    """
    color = block_average(buffer, block)
    buffer.pixels[block.y_start:block.y_end, block.x_start:block.x_end] = color


__all__ = ["Block", "iter_blocks", "count_blocks", "block_average", "average_block"]
