"""
Page contributions for the assembler.

Every part, PDF or image, is opened as a PDF document whose pages are its
contribution; the merged output is their concatenation in part order.
"""

from __future__ import annotations

import io
from pathlib import Path

import pypdfium2 as pdfium
from PIL import Image, UnidentifiedImageError

from contracts.documents import Part, PartKind
from staging.errors import AssemblyError
from staging.locks import PDFIUM_LOCK

# Image pixels map 1:1 to PDF points.
IMAGE_PAGE_RESOLUTION = 72.0


def _flatten(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if img.mode in ("RGB", "L", "CMYK"):
        return img.copy()
    return img.convert("RGB")


def image_to_pdf_bytes(image_file: Path) -> bytes:
    """
    One-page PDF whose page is exactly the image's pixel size in points.
    """

    try:
        with Image.open(image_file) as img:
            img.seek(0)
            page = _flatten(img)
    except (OSError, UnidentifiedImageError) as e:
        raise AssemblyError(f"Cannot read image part {image_file}: {e}") from e

    buf = io.BytesIO()
    page.save(buf, format="PDF", resolution=IMAGE_PAGE_RESOLUTION)
    return buf.getvalue()


def open_part(part: Part) -> pdfium.PdfDocument:
    try:
        if part.kind == PartKind.PDF:
            return pdfium.PdfDocument(str(part.path))
        if part.kind == PartKind.IMAGE:
            return pdfium.PdfDocument(image_to_pdf_bytes(part.path))
    except pdfium.PdfiumError as e:
        raise AssemblyError(f"Cannot open part {part.path}: {e}") from e
    raise AssemblyError(f"Unsupported part kind: {part.kind}")


def merge_parts_to_bytes(parts: list[Part]) -> bytes:
    """
    Concatenate every part's pages, in the given order, into one PDF.
    """

    with PDFIUM_LOCK:
        return _merge_locked(parts)


def _merge_locked(parts: list[Part]) -> bytes:
    merged = pdfium.PdfDocument.new()
    sources: list[pdfium.PdfDocument] = []
    try:
        for part in parts:
            src = open_part(part)
            sources.append(src)
            try:
                merged.import_pages(src)
            except pdfium.PdfiumError as e:
                raise AssemblyError(f"Cannot import pages from {part.path}: {e}") from e

        buf = io.BytesIO()
        merged.save(buf)
        return buf.getvalue()
    finally:
        merged.close()
        for src in sources:
            src.close()
