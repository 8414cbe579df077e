"""Run configuration built from the parsed command line."""
from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .engine import Mode
from .utils.loader import default_output_path

# Per-block pause while the live display is open, so progress is visible.
DISPLAY_DELAY_MS = 10


@dataclass
class RunConfig:
    image_path: Path
    square_size: int
    mode: Mode = Mode.SEQUENTIAL
    workers: Optional[int] = None
    delay_ms: int = 0
    output: Optional[Path] = None
    display: bool = False

    def __post_init__(self):
        self.image_path = Path(self.image_path)
        if self.square_size < 1:
            raise ValueError(f"Square size must be a positive integer, got {self.square_size}")
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"Workers must be >= 1, got {self.workers}")
        if self.delay_ms < 0:
            raise ValueError(f"Delay must be >= 0 ms, got {self.delay_ms}")
        self.output = Path(self.output) if self.output is not None else default_output_path(self.image_path)

    @property
    def delay(self) -> float:
        return self.delay_ms / 1000.0

    @classmethod
    def from_namespace(cls, ns: argparse.Namespace) -> "RunConfig":
        display = not ns.headless
        delay_ms = ns.delay_ms
        if delay_ms is None:
            delay_ms = DISPLAY_DELAY_MS if display else 0
        return cls(
            image_path=Path(ns.image),
            square_size=ns.square_size,
            mode=ns.mode,
            workers=ns.workers,
            delay_ms=delay_ms,
            output=ns.output,
            display=display,
        )


__all__ = ["RunConfig", "DISPLAY_DELAY_MS"]
