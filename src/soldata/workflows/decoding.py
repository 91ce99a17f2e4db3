"""Default bytes -> image decoder."""

from __future__ import annotations

import io
from typing import Any, Callable

from PIL import Image, UnidentifiedImageError  # type: ignore

from .errors import DecodeError

Decoder = Callable[[bytes], Any]


def decode_image(data: bytes) -> Image.Image:
    """Decode and fully load an image with Pillow."""

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeError(str(exc)) from exc
    return image
