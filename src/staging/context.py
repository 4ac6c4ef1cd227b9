from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from .config import PipelineConfig
from .scheduler import DocumentScheduler

if TYPE_CHECKING:
    from classify.clients.base import DocumentClassifier
    from rasterize.encoders import ImageEncoder
    from rasterize.engines.base import PdfRenderEngine


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class PipelineContext:
    """
    Everything a stage entry point needs, built once per process.

    Capability providers left as None are replaced by each stage's default
    implementation (pypdfium2 renderer, Pillow WebP encoder, OpenAI-compatible
    classifier). Tests inject fakes here.
    """

    config: PipelineConfig
    render_engine: PdfRenderEngine | None = None
    image_encoder: ImageEncoder | None = None
    classifier: DocumentClassifier | None = None
    clock: Callable[[], datetime] = utc_now
    scheduler_factory: Callable[..., DocumentScheduler] = field(default=DocumentScheduler)

    @property
    def input_root(self) -> Path:
        return self.config.paths.input

    @property
    def staging_root(self) -> Path:
        return self.config.paths.staging

    def make_scheduler(self, *, stage: str, concurrency: int) -> DocumentScheduler:
        return self.scheduler_factory(stage=stage, concurrency=concurrency)
