from __future__ import annotations

import io
from abc import ABC, abstractmethod

from PIL import Image


class ImageEncoder(ABC):
    """
    Encodes a rendered pixel buffer into the pyramid's file format.
    """

    suffix: str = ""

    @abstractmethod
    def encode(self, image: Image.Image, *, quality: int, lossless: bool) -> bytes:
        raise NotImplementedError


class WebpEncoder(ImageEncoder):
    suffix = ".webp"

    def encode(self, image: Image.Image, *, quality: int, lossless: bool) -> bytes:
        buf = io.BytesIO()
        image.save(buf, format="WEBP", quality=quality, lossless=lossless)
        return buf.getvalue()
