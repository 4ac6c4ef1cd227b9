from __future__ import annotations

import logging
import shutil
from functools import partial
from pathlib import Path
from typing import Any, Sequence

from contracts.documents import StagedDocument, StageReport, TaskStatus
from contracts.manifest import Manifest, PageEntry, page_index_errors
from contracts.resolution import ResolutionSpec
from staging import manifest_store
from staging.context import PipelineContext
from staging.data_access import relpath_posix, sha256_file, write_bytes_atomic
from staging.discovery import discover_staged_documents
from staging.errors import RasterizationError
from staging.layout import page_filename
from staging.scheduler import build_stage_report

from .encoders import ImageEncoder, WebpEncoder
from .engines import PdfRenderEngine, Pypdfium2Engine

logger = logging.getLogger(__name__)

STAGE = "rasterize"


def _get_engine(ctx: PipelineContext) -> PdfRenderEngine:
    return ctx.render_engine if ctx.render_engine is not None else Pypdfium2Engine()


def _get_encoder(ctx: PipelineContext) -> ImageEncoder:
    return ctx.image_encoder if ctx.image_encoder is not None else WebpEncoder()


def rasterize_pdf_to_pyramid(
    *,
    pdf_file: Path,
    doc_dir: Path,
    resolutions: Sequence[ResolutionSpec],
    engine: PdfRenderEngine,
    encoder: ImageEncoder,
) -> list[PageEntry]:
    """
    Write `<folder>/p<index><suffix>` under `doc_dir` for every page and every
    resolution.

    Pages are processed in increasing order; for each page the resolutions
    are written in configured order before the next page is opened.
    """

    for res in resolutions:
        (doc_dir / res.folder).mkdir(parents=True, exist_ok=True)

    pages: list[PageEntry] = []
    with engine.open_document(pdf_file=pdf_file) as document:
        for page_num in range(1, document.page_count + 1):
            files: dict[str, Any] = {}
            with document.page(page_num) as page:
                for res in resolutions:
                    image = page.render(scale=res.scale)
                    name = page_filename(page_num, suffix=encoder.suffix)
                    data = encoder.encode(image, quality=res.quality, lossless=res.lossless)
                    write_bytes_atomic(doc_dir / res.folder / name, data)
                    files[res.folder] = name
            pages.append(PageEntry(index=page_num, files=files))
    return pages


def validate_pyramid(*, doc_dir: Path, pages: list[PageEntry], resolutions: Sequence[ResolutionSpec]) -> list[str]:
    """
    Pages are exactly 1..N and every resolution folder holds a file per page.
    """

    errs = page_index_errors(pages)
    for page in pages:
        for res in resolutions:
            name = page.files.get(res.folder)
            if not isinstance(name, str) or name == "":
                errs.append(f"page {page.index} has no {res.folder!r} entry")
            elif not (doc_dir / res.folder / name).is_file():
                errs.append(f"missing file {res.folder}/{name}")
    return errs


def is_rasterized(
    manifest: Manifest,
    *,
    doc_dir: Path,
    resolutions: Sequence[ResolutionSpec],
    source_sha256: str,
) -> bool:
    """
    True when a previous run finished for the same input PDF and configuration
    and its pyramid is still complete on disk.
    """

    stage = manifest.stage(STAGE)
    if not stage.get("finishedAt"):
        return False
    if stage.get("sourceSha256") != source_sha256:
        return False
    if stage.get("resolutions") != [r.to_manifest() for r in resolutions]:
        return False
    if stage.get("pageCount") != len(manifest.pages):
        return False
    return not validate_pyramid(doc_dir=doc_dir, pages=manifest.pages, resolutions=resolutions)


def _clear_pyramid(doc_dir: Path, resolutions: Sequence[ResolutionSpec]) -> None:
    for res in resolutions:
        folder = doc_dir / res.folder
        if folder.is_dir():
            shutil.rmtree(folder)


def rasterize_document(
    staged: StagedDocument,
    *,
    ctx: PipelineContext,
    force: bool = False,
) -> TaskStatus:
    """
    Build the resolution pyramid for one staged document and record it in the
    manifest.

    Restart granularity is the whole document: an unfinished or outdated
    pyramid is removed and rendered again from page 1. On failure the
    manifest keeps `stages.rasterize` without `finishedAt`.
    """

    resolutions = ctx.config.rasterize.resolutions
    engine = _get_engine(ctx)
    encoder = _get_encoder(ctx)
    doc_dir = staged.doc_dir

    manifest = manifest_store.load_or_create(doc_dir, staged.doc_id, now=ctx.clock())
    source_sha256 = sha256_file(staged.input_pdf)

    if not force and is_rasterized(manifest, doc_dir=doc_dir, resolutions=resolutions, source_sha256=source_sha256):
        logger.info("[%s] [%s] Already rasterized, skipped", STAGE, staged.doc_id)
        return TaskStatus.SKIPPED

    logger.info("[%s] [%s] Start", STAGE, staged.doc_id)
    manifest.input["assembledPdf"] = relpath_posix(staged.input_pdf, start=doc_dir)
    manifest.pages = []
    manifest.stages[STAGE] = {
        "startedAt": manifest_store.format_timestamp(ctx.clock()),
        "resolutions": [r.to_manifest() for r in resolutions],
        "sourceSha256": source_sha256,
        "backend": engine.backend_id(),
        "backendVersion": engine.backend_version(),
    }
    manifest_store.save(doc_dir, manifest, now=ctx.clock())

    _clear_pyramid(doc_dir, resolutions)
    try:
        pages = rasterize_pdf_to_pyramid(
            pdf_file=staged.input_pdf,
            doc_dir=doc_dir,
            resolutions=resolutions,
            engine=engine,
            encoder=encoder,
        )
    except RasterizationError:
        raise
    except Exception as e:
        raise RasterizationError(f"Rendering {staged.input_pdf} failed: {e!r}") from e

    errors = validate_pyramid(doc_dir=doc_dir, pages=pages, resolutions=resolutions)
    if errors:
        raise RasterizationError(f"Incomplete pyramid: {'; '.join(errors[:3])}")

    manifest.pages = pages
    manifest.stages[STAGE]["finishedAt"] = manifest_store.format_timestamp(ctx.clock())
    manifest.stages[STAGE]["pageCount"] = len(pages)
    manifest_store.save(doc_dir, manifest, now=ctx.clock())

    logger.info("[%s] [%s] Done. Pages: %d", STAGE, staged.doc_id, len(pages))
    return TaskStatus.SUCCEEDED


def run_rasterize_stage(ctx: PipelineContext, *, force: bool = False) -> StageReport:
    """
    Rasterize every staged document that has no complete pyramid yet.

    Raises `DiscoveryError` when the staging root cannot be listed.
    """

    staging_root = ctx.staging_root
    staging_root.mkdir(parents=True, exist_ok=True)

    docs = discover_staged_documents(staging_root)
    if not docs:
        logger.info("[%s] No docs found. Expected: %s/<docId>/input/document.pdf", STAGE, staging_root)
        return StageReport(stage=STAGE, succeeded=[], skipped=[], failed=[])

    concurrency = ctx.config.rasterize.concurrency
    logger.info("[%s] Found %d docs in staging. Concurrency=%d", STAGE, len(docs), concurrency)

    with ctx.make_scheduler(stage=STAGE, concurrency=concurrency) as scheduler:
        for doc in docs:
            scheduler.submit(doc.doc_id, partial(rasterize_document, doc, ctx=ctx, force=force))
        outcomes = scheduler.drain()

    report = build_stage_report(STAGE, outcomes)
    logger.info(
        "[%s] Done: %d rasterized, %d skipped, %d failed",
        STAGE,
        len(report.succeeded),
        len(report.skipped),
        len(report.failed),
    )
    return report
