"""Image loading and saving using Pillow, with NumPy arrays.

The engine only ever sees a ``PixelBuffer``. These helpers convert between
image files, Pillow images and the buffer's ``uint8`` RGB array.
"""
from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from ..buffer import PixelBuffer

Array = np.ndarray
PathLike = Union[str, Path]

DEFAULT_SUFFIX = ".jpg"


def load_image(path: PathLike) -> Array:
    """Decode ``path`` into the (H, W, 3) uint8 RGB array a ``PixelBuffer`` wraps.

    Palette, greyscale and alpha images are converted to plain RGB.

    Raises
    ------
    OSError
        If the file is missing, unreadable, not a recognised image
        (``PIL.UnidentifiedImageError`` is an ``OSError``), or larger than
        Pillow's decompression-bomb limit (``Image.MAX_IMAGE_PIXELS``).
    """
    p = Path(path)
    try:
        with Image.open(p) as im:
            im = im.convert("RGB")
            arr = np.array(im, dtype=np.uint8)
    except Image.DecompressionBombError as e:
        raise OSError(f"image too large to load safely: {e}") from e
    return arr


def load_buffer(path: PathLike) -> PixelBuffer:
    return PixelBuffer(load_image(path))


def save_image(arr: Array, path: PathLike) -> None:
    """Encode a (H, W, 3) uint8 RGB array to ``path``.

    The output format follows the file extension, so ``result.jpg`` is written
    as JPEG and ``result.png`` as PNG.

    Raises
    ------
    TypeError
        If ``arr`` is not a uint8 NumPy array.
    ValueError
        If ``arr`` is not (H, W, 3), or Pillow has no writer for the extension.
    OSError
        If the file cannot be created or written.
    """
    if not isinstance(arr, np.ndarray):
        raise TypeError("arr must be a NumPy array")
    if arr.dtype != np.uint8:
        raise TypeError("arr must have dtype=uint8")
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError("arr must have shape (H, W, 3)")

    Image.fromarray(arr).save(Path(path))


def save_buffer(buffer: PixelBuffer, path: PathLike) -> None:
    save_image(buffer.pixels, path)


def default_output_path(source: PathLike, directory: PathLike = ".") -> Path:
    """``result<ext>`` inside ``directory``, reusing the source extension."""
    suffix = Path(source).suffix or DEFAULT_SUFFIX
    return Path(directory) / f"result{suffix}"


def to_pil(buffer: PixelBuffer) -> Image.Image:
    return Image.fromarray(buffer.pixels)
