"""Command-line entry point for blockmosaic.

This tool loads an image, replaces every ``square_size x square_size`` block
with the block's average colour, shows the image changing in a window, and
saves the result as ``result.<ext>``.

All processing occurs on a NumPy-backed ``PixelBuffer``; Pillow is used only
for loading and saving, Tkinter only for the live view.

Usage example:
    python -m blockmosaic.main monalisa.jpg 20 S
    python -m blockmosaic.main monalisa.jpg 20 m --workers 4 --headless
"""
from __future__ import annotations

import argparse
import sys
from typing import Optional

from .buffer import PixelBuffer
from .config import RunConfig
from .engine import BlockTransformEngine, CancelToken, CountingSink, Mode, ProgressSink
from .outcome import RunOutcome, Status, UsageError
from .utils.loader import load_buffer, save_buffer


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting."""

    def error(self, message: str):  # type: ignore[override]
        raise UsageError(message)


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError("Square size must be a positive integer.") from None
    if value <= 0:
        raise argparse.ArgumentTypeError("Square size must be a positive integer.")
    return value


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {text!r}")
    return value


def _mode(text: str) -> Mode:
    try:
        return Mode.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="blockmosaic",
        description=(
            "Pixelate an image by replacing each square block of pixels with its "
            "average colour, single- or multi-threaded."
        ),
    )
    parser.add_argument("image", help="Path to input image file")
    parser.add_argument(
        "square_size",
        type=_positive_int,
        help="Side length of the averaging square (positive integer)",
    )
    parser.add_argument(
        "mode",
        type=_mode,
        help="'S' for single-threaded or 'M' for multi-threaded (case-insensitive)",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output image path (default: result.<ext of input> in the current directory)",
    )
    parser.add_argument(
        "--workers",
        type=_positive_int,
        default=None,
        help="Worker threads for mode M (default: CPU count)",
    )
    parser.add_argument(
        "--delay-ms",
        type=_non_negative_int,
        default=None,
        help="Pause after each block, in milliseconds (default: 10 with display, 0 headless)",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Do not open the display window",
    )
    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Raises
    ------
    UsageError
        On a wrong argument count, a non-positive square size or an unknown mode.
    """
    return build_parser().parse_args(argv)


def transform_and_save(
    config: RunConfig,
    buffer: PixelBuffer,
    sink: ProgressSink,
    cancel: Optional[CancelToken] = None,
) -> RunOutcome:
    """Pixelate ``buffer`` in place and write it to ``config.output``.

    Cancelled and faulted runs write nothing.
    """
    engine = BlockTransformEngine(config.square_size, delay=config.delay, workers=config.workers)
    result = engine.run(buffer, config.mode, sink, cancel)

    if result.status is Status.CANCELLED:
        return RunOutcome(Status.CANCELLED, "Processing cancelled; nothing saved.", blocks=result.blocks)
    if not result.ok:
        return RunOutcome(
            Status.TRANSFORM_FAULT,
            f"Error: Processing failed: {result.error}",
            error=result.error,
            blocks=result.blocks,
        )

    try:
        save_buffer(buffer, config.output)
    except (OSError, ValueError) as e:
        return RunOutcome(
            Status.SAVE_ERROR,
            f"Error: Unable to save result image to '{config.output}': {e}",
            error=e,
            blocks=result.blocks,
        )
    return RunOutcome(
        Status.SUCCESS,
        f"Processing complete. Result saved as '{config.output}'.",
        blocks=result.blocks,
        output=config.output,
    )


def _run_with_display(config: RunConfig, buffer: PixelBuffer) -> Optional[RunOutcome]:
    """Run inside the live window; None if no display could be opened."""
    try:
        import tkinter as tk

        from .ui import MosaicViewer
    except ImportError as e:
        print(f"Display unavailable ({e}); continuing without window.", file=sys.stderr)
        return None

    try:
        viewer: MosaicViewer[RunOutcome] = MosaicViewer(buffer)
    except tk.TclError as e:
        print(f"Display unavailable ({e}); continuing without window.", file=sys.stderr)
        return None

    announced = []

    def _announce(outcome: RunOutcome) -> None:
        # The window stays open until closed by the user.
        viewer.root.title(f"Image Averager - {outcome.status.value}")
        print(outcome.message, file=sys.stdout if outcome.ok else sys.stderr)
        announced.append(outcome)

    outcome = viewer.run(lambda sink, cancel: transform_and_save(config, buffer, sink, cancel), _announce)
    if outcome is None:
        return RunOutcome(Status.TRANSFORM_FAULT, "Error: Processing thread stopped unexpectedly.")
    if announced:
        outcome.message = ""
    return outcome


def run(argv: Optional[list[str]] = None) -> RunOutcome:
    """Parse, load, transform and save; never exits the process."""
    try:
        config = RunConfig.from_namespace(parse_args(argv))
    except (UsageError, ValueError) as e:
        return RunOutcome(Status.USAGE_ERROR, f"Error: {e}", error=e)

    try:
        buffer = load_buffer(config.image_path)
    except (OSError, ValueError) as e:
        return RunOutcome(Status.LOAD_ERROR, f"Error: Unable to load image file '{config.image_path}': {e}", error=e)

    print(f"Image: {buffer.width}x{buffer.height}, square size {config.square_size}, mode {config.mode.value}")

    if config.display:
        outcome = _run_with_display(config, buffer)
        if outcome is not None:
            return outcome

    sink = CountingSink()
    outcome = transform_and_save(config, buffer, sink)
    print(f"Blocks averaged: {sink.blocks}")
    return outcome


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry function for the CLI.

    Returns
    -------
    int
        Exit status code (0 for success, non-zero for failure).
    """
    outcome = run(argv)
    if outcome.status is Status.USAGE_ERROR:
        print(outcome.message, file=sys.stderr)
        print("Usage: blockmosaic <filename> <square size> <mode>", file=sys.stderr)
        print("Mode: 'S' for single-threaded, 'M' for multi-threaded", file=sys.stderr)
    elif outcome.message:
        print(outcome.message, file=sys.stdout if outcome.ok else sys.stderr)
    return outcome.exit_code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
