"""
Rasterize stage: assembled PDF -> per-page resolution pyramid + manifest.

It performs NO OCR or text extraction; it only renders pages at each
configured DPI and encodes them.
"""

from .encoders import ImageEncoder, WebpEncoder
from .engines import PdfRenderEngine, Pypdfium2Engine
from .module import is_rasterized, rasterize_document, rasterize_pdf_to_pyramid, run_rasterize_stage

__all__ = [
    "ImageEncoder",
    "PdfRenderEngine",
    "Pypdfium2Engine",
    "WebpEncoder",
    "is_rasterized",
    "rasterize_document",
    "rasterize_pdf_to_pyramid",
    "run_rasterize_stage",
]
