"""blockmosaic: pixelate images by averaging square blocks, optionally in parallel."""
from __future__ import annotations

from .buffer import PixelBuffer
from .engine import (
    BlockTransformEngine,
    CallbackSink,
    CancelToken,
    CountingSink,
    Mode,
    NullSink,
    TransformResult,
    transform,
)
from .outcome import RunOutcome, Status
from .utils.loader import load_buffer, save_buffer

__all__ = [
    "PixelBuffer",
    "BlockTransformEngine",
    "Mode",
    "TransformResult",
    "transform",
    "NullSink",
    "CallbackSink",
    "CountingSink",
    "CancelToken",
    "RunOutcome",
    "Status",
    "load_buffer",
    "save_buffer",
]
