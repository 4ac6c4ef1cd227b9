from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pypdfium2 as pdfium
from PIL import Image

from contracts.resolution import ResolutionSpec
from rasterize.encoders import ImageEncoder
from rasterize.engines.base import PdfRenderEngine, RenderDocument, RenderPage
from staging.config import ClassifyConfig, PathsConfig, PipelineConfig, RasterizeConfig
from staging.context import PipelineContext

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


def make_pdf(path: Path, sizes: list[tuple[float, float]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    pdf = pdfium.PdfDocument.new()
    for width, height in sizes:
        page = pdf.new_page(width, height)
        page.close()
    pdf.save(str(path))
    pdf.close()
    return path


def pdf_page_sizes(path: Path) -> list[tuple[float, float]]:
    pdf = pdfium.PdfDocument(str(path))
    try:
        sizes = []
        for i in range(len(pdf)):
            page = pdf[i]
            sizes.append(tuple(round(v, 3) for v in page.get_size()))
            page.close()
        return sizes
    finally:
        pdf.close()


def make_image(path: Path, size: tuple[int, int], *, mode: str = "RGB", fmt: str | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    color: Any = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30) if mode == "RGB" else 128
    Image.new(mode, size, color).save(path, format=fmt)
    return path


def stage_document(staging_root: Path, doc_id: str, *, pdf_bytes: bytes = b"%PDF-FAKE%") -> Path:
    doc_dir = staging_root / doc_id
    (doc_dir / "input").mkdir(parents=True, exist_ok=True)
    (doc_dir / "input" / "document.pdf").write_bytes(pdf_bytes)
    return doc_dir


def read_manifest(doc_dir: Path) -> dict[str, Any]:
    return json.loads((doc_dir / "manifest.json").read_text(encoding="utf-8"))


def make_context(
    root: Path,
    *,
    resolutions: tuple[ResolutionSpec, ...] = (
        ResolutionSpec(dpi=36, folder="r36", quality=80),
        ResolutionSpec(dpi=72, folder="r72", quality=80),
    ),
    labels: tuple[str, ...] | None = ("invoice", "receipt"),
    concurrency: int = 2,
    **kwargs: Any,
) -> PipelineContext:
    config = PipelineConfig(
        paths=PathsConfig(input=root / "incoming", staging=root / "staging"),
        rasterize=RasterizeConfig(concurrency=concurrency, resolutions=resolutions),
        classify=ClassifyConfig(concurrency=1, resolution_folder="r72", labels=labels),
    )
    kwargs.setdefault("clock", fixed_clock)
    return PipelineContext(config=config, **kwargs)


class FakeRenderPage(RenderPage):
    def __init__(self, engine: FakeRenderEngine, pdf_file: Path, page_num: int) -> None:
        self.engine = engine
        self.pdf_file = pdf_file
        self.page_num = page_num

    def render(self, *, scale: float) -> Image.Image:
        if self.engine.fail_on is not None and self.engine.fail_on(self.pdf_file, self.page_num):
            raise RuntimeError(f"render failed on page {self.page_num}")
        self.engine.calls.append((self.pdf_file.parent.parent.name, self.page_num, scale))
        side = max(1, int(round(10 * scale)))
        return Image.new("RGB", (side, side * 2), (self.page_num * 20 % 256, 0, 0))


class FakeRenderDocument(RenderDocument):
    def __init__(self, engine: FakeRenderEngine, pdf_file: Path) -> None:
        self.engine = engine
        self.pdf_file = pdf_file

    @property
    def page_count(self) -> int:
        return self.engine.page_count

    def page(self, page_num: int) -> RenderPage:
        return FakeRenderPage(self.engine, self.pdf_file, page_num)


class FakeRenderEngine(PdfRenderEngine):
    """
    Deterministic renderer: page N at scale S is a (10S x 20S) solid image.
    """

    def __init__(self, *, page_count: int = 3, fail_on=None) -> None:
        self.page_count = page_count
        self.fail_on = fail_on
        self.opened: list[Path] = []
        self.calls: list[tuple[str, int, float]] = []

    def backend_id(self) -> str:
        return "fake_backend"

    def backend_version(self) -> str | None:
        return "0"

    def open_document(self, *, pdf_file: Path) -> RenderDocument:
        self.opened.append(pdf_file)
        return FakeRenderDocument(self, pdf_file)


class FakeEncoder(ImageEncoder):
    suffix = ".webp"

    def encode(self, image: Image.Image, *, quality: int, lossless: bool) -> bytes:
        return f"{image.size[0]}x{image.size[1]}:q{quality}:l{int(lossless)}".encode("ascii")
