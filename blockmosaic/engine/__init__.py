"""Block-averaging transform engine and a unified entry-point for running it.

Exported API
------------
- BlockTransformEngine(square_size, delay=0.0, workers=None).run(buffer, mode, sink, cancel)

Supported modes
---------------
- Mode.SEQUENTIAL ("S") : one thread, blocks in row-major order
- Mode.PARALLEL   ("M") : one thread per row partition, blocks clamped to
  their partition

Implementation notes
--------------------
Both drivers mutate the caller's ``PixelBuffer`` in place and keep no
reference to it after ``run`` returns. ``run`` never raises for faults inside
a driver; it reports them through ``TransformResult``.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..buffer import PixelBuffer
from ..outcome import Status
from .blocks import Block, average_block, block_average, count_blocks, iter_blocks
from .parallel import (
    Partition,
    WorkerFaultError,
    partition_rows,
    planned_blocks,
    run_parallel,
    worker_count,
)
from .progress import (
    CallbackSink,
    CancelToken,
    CountingSink,
    NullSink,
    ProgressSink,
    make_pacer,
)
from .sequential import run_sequential


class Mode(Enum):
    SEQUENTIAL = "S"
    PARALLEL = "M"

    @classmethod
    def parse(cls, value: str) -> "Mode":
        """Case-insensitive lookup by selector letter."""
        key = value.strip().upper()
        for m in cls:
            if m.value == key:
                return m
        raise ValueError(
            f"Invalid processing mode {value!r}. Use 'S' for single-threaded or 'M' for multi-threaded."
        )


@dataclass
class TransformResult:
    status: Status
    blocks: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is Status.SUCCESS


class BlockTransformEngine:
    """Pixelate a buffer by averaging ``square_size`` blocks.

    Parameters
    ----------
    square_size : int
        Side length of the averaging square (>=1).
    delay : float
        Optional pause after each block, in seconds, so a human can watch the
        image change. Zero disables pacing.
    workers : int | None
        Worker count for parallel mode. Defaults to the CPU count.
    """

    def __init__(self, square_size: int, delay: float = 0.0, workers: Optional[int] = None) -> None:
        if square_size < 1:
            raise ValueError("square_size must be >= 1")
        if delay < 0:
            raise ValueError("delay must be >= 0")
        if workers is not None and workers < 1:
            raise ValueError("workers must be >= 1")
        self.square_size = square_size
        self.delay = delay
        self.workers = workers

    def run(
        self,
        buffer: PixelBuffer,
        mode: Mode = Mode.SEQUENTIAL,
        sink: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> TransformResult:
        sink = sink if sink is not None else NullSink()
        token = cancel if cancel is not None else CancelToken()
        pace = make_pacer(self.delay, token)

        try:
            if mode is Mode.SEQUENTIAL:
                planned = count_blocks(buffer.width, buffer.height, self.square_size)
                blocks = run_sequential(buffer, self.square_size, sink, token, pace)
            elif mode is Mode.PARALLEL:
                planned = planned_blocks(buffer.width, buffer.height, self.square_size, self.workers)
                blocks = run_parallel(buffer, self.square_size, sink, token, pace, self.workers)
            else:
                raise ValueError(f"Unknown mode: {mode}")
        except Exception as e:
            return TransformResult(Status.TRANSFORM_FAULT, error=e)

        # Cancelled only when a driver stopped before its last block.
        if blocks < planned:
            return TransformResult(Status.CANCELLED, blocks=blocks)
        return TransformResult(Status.SUCCESS, blocks=blocks)


def transform(
    buffer: PixelBuffer,
    square_size: int,
    mode: Mode = Mode.SEQUENTIAL,
    sink: Optional[ProgressSink] = None,
) -> TransformResult:
    """One-shot helper: run an engine with no pacing and no cancellation."""
    return BlockTransformEngine(square_size).run(buffer, mode, sink)


__all__ = [
    "Mode",
    "TransformResult",
    "BlockTransformEngine",
    "transform",
    "Block",
    "iter_blocks",
    "count_blocks",
    "block_average",
    "average_block",
    "Partition",
    "WorkerFaultError",
    "worker_count",
    "partition_rows",
    "planned_blocks",
    "run_sequential",
    "run_parallel",
    "ProgressSink",
    "NullSink",
    "CallbackSink",
    "CountingSink",
    "CancelToken",
    "make_pacer",
]
