"""Minimal Tkinter window that shows the buffer while it is being pixelated.

The engine runs on a background thread and mutates the same ``PixelBuffer``
this window paints. Repaint requests arrive from worker threads through
``DisplaySink``, which coalesces them and hands them to the Tk main loop with
``root.after``; Tk itself is only touched from the main thread.

Closing the window cancels the transform, waits for the worker thread to wind
down, then destroys the window.
"""
from __future__ import annotations

import threading
from typing import Callable, Generic, Optional, Tuple, TypeVar

import tkinter as tk
from PIL import Image, ImageTk

from .buffer import PixelBuffer
from .engine import CancelToken, ProgressSink
from .utils.loader import to_pil

T = TypeVar("T")

# Fraction of the screen the image may take up before it is scaled down.
SCREEN_FRACTION = 0.8
POLL_MS = 20


def fit_size(width: int, height: int, max_w: int, max_h: int) -> Tuple[int, int]:
    """Scale ``(width, height)`` to fit ``(max_w, max_h)``, never enlarging."""
    ratio = min(1.0, max_w / max(width, 1), max_h / max(height, 1))
    return max(1, int(width * ratio)), max(1, int(height * ratio))


class DisplaySink:
    """Progress sink that schedules at most one pending repaint at a time."""

    def __init__(self, viewer: "MosaicViewer") -> None:
        self._viewer = viewer
        self._lock = threading.Lock()
        self._pending = False

    def block_done(self) -> None:
        self._request()

    def finished(self) -> None:
        self._request()

    def _request(self) -> None:
        with self._lock:
            if self._pending or self._viewer.closing:
                return
            self._pending = True
        self._viewer.root.after(0, self._flush)

    def _flush(self) -> None:
        with self._lock:
            self._pending = False
        self._viewer.repaint()


class MosaicViewer(Generic[T]):
    def __init__(self, buffer: PixelBuffer, title: str = "Image Averager", root: Optional[tk.Tk] = None) -> None:
        # Raises tk.TclError when no display is available.
        self.root = root if root is not None else tk.Tk()
        self.root.title(title)
        self.buffer = buffer
        self.closing = False
        self.cancel = CancelToken()
        self.sink: ProgressSink = DisplaySink(self)

        max_w = int(self.root.winfo_screenwidth() * SCREEN_FRACTION)
        max_h = int(self.root.winfo_screenheight() * SCREEN_FRACTION)
        self.display_size = fit_size(buffer.width, buffer.height, max_w, max_h)

        self._imgtk: Optional[ImageTk.PhotoImage] = None
        self._build_canvas()
        self.root.protocol("WM_DELETE_WINDOW", self.on_close)

        self._worker: Optional[threading.Thread] = None
        self._result: Optional[T] = None
        self._on_done: Optional[Callable[[T], None]] = None
        self.repaint()

    def _build_canvas(self) -> None:
        self.canvas = tk.Canvas(
            self.root,
            width=self.display_size[0],
            height=self.display_size[1],
            highlightthickness=0,
        )
        self.canvas.pack()

    def repaint(self) -> None:
        if self.closing:
            return
        im = to_pil(self.buffer)
        if im.size != self.display_size:
            # Nearest keeps block edges crisp
            im = im.resize(self.display_size, resample=Image.NEAREST)
        self._imgtk = ImageTk.PhotoImage(im)  # keep reference to prevent GC
        self.canvas.delete("all")
        self.canvas.create_image(0, 0, anchor="nw", image=self._imgtk)

    def run(
        self,
        job: Callable[[ProgressSink, CancelToken], T],
        on_done: Optional[Callable[[T], None]] = None,
    ) -> Optional[T]:
        """Run ``job`` on a worker thread and block in the Tk main loop.

        Returns the job's result once the window has been closed.
        """
        self._on_done = on_done
        self._worker = threading.Thread(target=self._run_job, args=(job,), name="mosaic-driver")
        self._worker.start()
        self.root.mainloop()
        self._worker.join()
        return self._result

    def _run_job(self, job: Callable[[ProgressSink, CancelToken], T]) -> None:
        self._result = job(self.sink, self.cancel)
        if not self.closing:
            self.root.after(0, self._job_done)

    def _job_done(self) -> None:
        if self._on_done is not None and self._result is not None:
            self._on_done(self._result)

    def on_close(self) -> None:
        self.closing = True
        self.cancel.cancel()
        self._destroy_when_idle()

    def _destroy_when_idle(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            self.root.after(POLL_MS, self._destroy_when_idle)
            return
        self.root.destroy()


__all__ = ["MosaicViewer", "DisplaySink", "fit_size"]
