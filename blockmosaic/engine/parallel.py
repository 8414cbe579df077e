"""Multi-threaded driver: one worker per contiguous row partition.

Rows are split into ``N`` partitions of ``H // N`` rows, the last absorbing the
remainder. Each worker walks its own partition in row-major order and clamps
every block to the partition's end row. When ``square_size`` does not divide
the segment height, the block straddling a seam is therefore cut in two: the
upper part belongs to one worker, the lower part starts the next partition.
No two workers ever read or write the same pixel, so the buffer is not locked.
"""
from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..buffer import PixelBuffer
from .blocks import average_block, count_blocks, iter_blocks
from .progress import CancelToken, Pacer, ProgressSink


@dataclass(frozen=True)
class Partition:
    index: int
    row_start: int
    row_end: int

    @property
    def rows(self) -> int:
        return self.row_end - self.row_start


class WorkerFaultError(RuntimeError):
    """One or more workers raised while averaging their partition."""

    def __init__(self, errors: Sequence[BaseException]) -> None:
        self.errors = list(errors)
        first = self.errors[0] if self.errors else None
        super().__init__(
            f"{len(self.errors)} worker(s) failed; first error: {first!r}"
        )


def worker_count(height: int, requested: Optional[int] = None) -> int:
    """Number of workers to use for an image ``height`` rows tall.

    Defaults to the CPU count. Never below 1 and never above ``height``.
    """
    n = requested if requested is not None else (os.cpu_count() or 1)
    return max(1, min(int(n), int(height)))


def partition_rows(height: int, workers: int) -> List[Partition]:
    """Split ``[0, height)`` into ``workers`` contiguous row ranges."""
    if height < 1:
        raise ValueError("height must be >= 1")
    if workers < 1:
        raise ValueError("workers must be >= 1")
    segment = height // workers
    parts = []
    for i in range(workers):
        start = i * segment
        end = height if i == workers - 1 else start + segment
        parts.append(Partition(i, start, end))
    return parts


def planned_blocks(width: int, height: int, square_size: int, workers: Optional[int] = None) -> int:
    """Blocks a full parallel run visits, seam-split blocks included."""
    parts = partition_rows(height, worker_count(height, workers))
    return sum(count_blocks(width, p.rows, square_size) for p in parts)


def _run_partition(
    buffer: PixelBuffer,
    part: Partition,
    square_size: int,
    sink: ProgressSink,
    cancel: Optional[CancelToken],
    pace: Optional[Pacer],
) -> int:
    done = 0
    for block in iter_blocks(buffer.width, part.row_start, part.row_end, square_size):
        if cancel is not None and cancel.cancelled:
            break
        average_block(buffer, block)
        done += 1
        sink.block_done()
        if pace is not None:
            pace()
    return done


def run_parallel(
    buffer: PixelBuffer,
    square_size: int,
    sink: ProgressSink,
    cancel: Optional[CancelToken] = None,
    pace: Optional[Pacer] = None,
    workers: Optional[int] = None,
) -> int:
    """Average all blocks using one thread per row partition.

    The thread pool is created for this call only and every worker is joined
    before returning. ``sink.finished()`` is called once, after the join.
    If any worker raised, the remaining workers still run to completion and a
    ``WorkerFaultError`` with all collected exceptions is raised afterwards.

    Returns
    -------
    int
        Number of blocks averaged across all workers.
    """
    n = worker_count(buffer.height, workers)
    parts = partition_rows(buffer.height, n)

    done = 0
    errors: List[BaseException] = []
    try:
        with ThreadPoolExecutor(max_workers=n, thread_name_prefix="mosaic") as pool:
            futures = [
                pool.submit(_run_partition, buffer, p, square_size, sink, cancel, pace)
                for p in parts
            ]
        # Leaving the with-block joined every worker.
        for fu in futures:
            exc = fu.exception()
            if exc is not None:
                errors.append(exc)
            else:
                done += fu.result()
    finally:
        sink.finished()

    if errors:
        raise WorkerFaultError(errors)
    return done


__all__ = [
    "Partition",
    "WorkerFaultError",
    "worker_count",
    "partition_rows",
    "planned_blocks",
    "run_parallel",
]
