"""Typed outcomes returned up to the command-line entry point.

Nothing below ``blockmosaic.main`` exits the process; every failure is turned
into one of these statuses and the entry point picks the exit code.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class Status(Enum):
    SUCCESS = "success"
    USAGE_ERROR = "usage-error"
    LOAD_ERROR = "load-error"
    TRANSFORM_FAULT = "transform-fault"
    CANCELLED = "cancelled"
    SAVE_ERROR = "save-error"


EXIT_CODES = {
    Status.SUCCESS: 0,
    Status.USAGE_ERROR: 2,
    Status.LOAD_ERROR: 3,
    Status.TRANSFORM_FAULT: 4,
    Status.CANCELLED: 5,
    Status.SAVE_ERROR: 6,
}


class UsageError(ValueError):
    """Bad command-line arguments, detected before any image is loaded."""


@dataclass
class RunOutcome:
    """Result of one command-line run."""

    status: Status
    message: str = ""
    error: Optional[BaseException] = None
    blocks: int = 0
    output: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.status is Status.SUCCESS

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]


__all__ = ["Status", "EXIT_CODES", "UsageError", "RunOutcome"]
