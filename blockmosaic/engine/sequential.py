"""Single-threaded driver: every block of the image in row-major order."""
from __future__ import annotations

from typing import Optional

from ..buffer import PixelBuffer
from .blocks import average_block, iter_blocks
from .progress import CancelToken, Pacer, ProgressSink


def run_sequential(
    buffer: PixelBuffer,
    square_size: int,
    sink: ProgressSink,
    cancel: Optional[CancelToken] = None,
    pace: Optional[Pacer] = None,
) -> int:
    """Average all blocks left-to-right, top-to-bottom.

    Calls ``sink.block_done()`` after each block and ``sink.finished()`` once
    at the end, also when stopped early by ``cancel``.

    Returns
    -------
    int
        Number of blocks averaged.
    """
    done = 0
    try:
        for block in iter_blocks(buffer.width, 0, buffer.height, square_size):
            if cancel is not None and cancel.cancelled:
                break
            average_block(buffer, block)
            done += 1
            sink.block_done()
            if pace is not None:
                pace()
    finally:
        sink.finished()
    return done


__all__ = ["run_sequential"]
