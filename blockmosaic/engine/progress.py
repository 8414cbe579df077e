"""Progress sinks, cooperative cancellation and per-block pacing.

Sinks receive ``block_done()`` once per averaged block and ``finished()`` once
per transform. In parallel mode they are called from several worker threads at
once, so every sink here is thread-safe. A sink that drives a single-threaded
surface (see ``blockmosaic.ui``) is responsible for marshaling the call onto
that surface's thread.
"""
from __future__ import annotations

import threading
from typing import Callable, Optional, Protocol


class ProgressSink(Protocol):
    def block_done(self) -> None: ...

    def finished(self) -> None: ...


class NullSink:
    """Discard all notifications."""

    def block_done(self) -> None:
        pass

    def finished(self) -> None:
        pass


class CallbackSink:
    """Invoke one zero-argument callable for every event, e.g. a repaint."""

    def __init__(self, callback: Callable[[], None]) -> None:
        self._callback = callback

    def block_done(self) -> None:
        self._callback()

    def finished(self) -> None:
        self._callback()


class CountingSink:
    """Thread-safe sink that keeps running totals of each event kind."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blocks = 0
        self._finishes = 0

    def block_done(self) -> None:
        with self._lock:
            self._blocks += 1

    def finished(self) -> None:
        with self._lock:
            self._finishes += 1

    @property
    def blocks(self) -> int:
        with self._lock:
            return self._blocks

    @property
    def finishes(self) -> int:
        with self._lock:
            return self._finishes


class CancelToken:
    """Cooperative cancellation flag checked by the drivers between blocks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return early (True) if cancelled."""
        return self._event.wait(timeout)


Pacer = Callable[[], None]


def make_pacer(delay: float, token: Optional[CancelToken] = None) -> Optional[Pacer]:
    """Build a per-block pacing hook that waits ``delay`` seconds.

    Returns None for a zero delay. The wait is on the cancel token, so
    cancelling wakes a paced worker immediately instead of after the sleep.
    """
    if delay < 0:
        raise ValueError("delay must be >= 0")
    if delay == 0:
        return None
    waiter = token if token is not None else CancelToken()

    def _pace() -> None:
        waiter.wait(delay)

    return _pace


__all__ = [
    "ProgressSink",
    "NullSink",
    "CallbackSink",
    "CountingSink",
    "CancelToken",
    "Pacer",
    "make_pacer",
]
