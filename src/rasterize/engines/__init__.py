from .base import PdfRenderEngine, RenderDocument, RenderPage
from .pypdfium2_engine import Pypdfium2Engine

__all__ = ["PdfRenderEngine", "Pypdfium2Engine", "RenderDocument", "RenderPage"]
