from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from PIL import Image


class RenderPage(ABC):
    """
    One opened page; rendered once per resolution tier, then closed.

    Not safe for concurrent renders.
    """

    @abstractmethod
    def render(self, *, scale: float) -> Image.Image:
        """
        Rasterize at `scale` pixels per PDF point (dpi / 72).
        """

        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> RenderPage:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class RenderDocument(ABC):
    @property
    @abstractmethod
    def page_count(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def page(self, page_num: int) -> RenderPage:
        """
        Open page `page_num` (1-indexed).
        """

        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> RenderDocument:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class PdfRenderEngine(ABC):
    """
    PDF page rendering capability.

    Engines must:
    - Render pages to pixel buffers only (no OCR, no text extraction)
    - Be deterministic for a given input + scale
    - Raise on unreadable/corrupt input; the caller maps failures to
      RasterizationError
    """

    @abstractmethod
    def backend_id(self) -> str:
        raise NotImplementedError

    def backend_version(self) -> str | None:
        return None

    @abstractmethod
    def open_document(self, *, pdf_file: Path) -> RenderDocument:
        raise NotImplementedError
