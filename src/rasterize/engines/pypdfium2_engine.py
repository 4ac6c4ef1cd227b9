from __future__ import annotations

from pathlib import Path

from PIL import Image

from staging.locks import PDFIUM_LOCK

from .base import PdfRenderEngine, RenderDocument, RenderPage


def _require_pdfium():
    try:
        import pypdfium2 as pdfium  # type: ignore

        return pdfium
    except ImportError as e:
        raise RuntimeError("Missing dependency: pypdfium2 is required for rasterization.") from e


class Pypdfium2Page(RenderPage):
    def __init__(self, page) -> None:
        self._page = page

    def render(self, *, scale: float) -> Image.Image:
        with PDFIUM_LOCK:
            bitmap = self._page.render(scale=scale)
            try:
                # convert() copies out of the bitmap's buffer before it is freed.
                return bitmap.to_pil().convert("RGB")
            finally:
                bitmap.close()

    def close(self) -> None:
        with PDFIUM_LOCK:
            self._page.close()


class Pypdfium2Document(RenderDocument):
    def __init__(self, pdf_file: Path) -> None:
        pdfium = _require_pdfium()
        with PDFIUM_LOCK:
            self._doc = pdfium.PdfDocument(str(pdf_file))
            self._page_count = len(self._doc)

    @property
    def page_count(self) -> int:
        return self._page_count

    def page(self, page_num: int) -> RenderPage:
        if page_num < 1 or page_num > self._page_count:
            raise ValueError(f"Page out of range: {page_num} (1..{self._page_count})")
        with PDFIUM_LOCK:
            return Pypdfium2Page(self._doc[page_num - 1])

    def close(self) -> None:
        with PDFIUM_LOCK:
            self._doc.close()


class Pypdfium2Engine(PdfRenderEngine):
    def backend_id(self) -> str:
        return "pypdfium2"

    def backend_version(self) -> str | None:
        try:
            import pypdfium2 as pdfium  # type: ignore

            return getattr(pdfium, "__version__", None)
        except ImportError:
            return None

    def open_document(self, *, pdf_file: Path) -> RenderDocument:
        return Pypdfium2Document(pdf_file)
