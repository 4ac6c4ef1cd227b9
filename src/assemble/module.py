from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from functools import partial
from pathlib import Path

from contracts.documents import (
    AssembledDocument,
    Document,
    DocumentKind,
    Part,
    PartKind,
    StageReport,
    TaskStatus,
)
from staging.context import PipelineContext
from staging.data_access import (
    HIDDEN_PREFIX,
    copy_file_atomic,
    relpath_posix,
    sha256_file,
    write_bytes_atomic,
    write_text_atomic,
)
from staging.discovery import discover_input_documents
from staging.errors import AssemblyError, DiscoveryError
from staging.layout import (
    IMAGE_EXTENSIONS,
    PDF_EXTENSIONS,
    SOURCES_RECORD_NAME,
    assembled_pdf_path,
)
from staging.natural_sort import natural_sorted
from staging.scheduler import build_stage_report

from .artifacts import write_assemble_index
from .merge import merge_parts_to_bytes

logger = logging.getLogger(__name__)

STAGE = "assemble"


def _part_kind(extension: str) -> PartKind | None:
    if extension in PDF_EXTENSIONS:
        return PartKind.PDF
    if extension in IMAGE_EXTENSIONS:
        return PartKind.IMAGE
    return None


def list_folder_parts(folder: Path) -> list[Part]:
    """
    Supported files directly inside `folder`, in natural-sort order.
    """

    try:
        with os.scandir(folder) as it:
            entries = list(it)
    except OSError as e:
        raise AssemblyError(f"Cannot list folder {folder}: {e}") from e

    parts: list[Part] = []
    for entry in entries:
        if entry.name.startswith(HIDDEN_PREFIX):
            continue
        try:
            if not entry.is_file():
                continue
        except OSError as e:
            logger.warning("Skipping unreadable part %s: %s", entry.path, e)
            continue
        ext = Path(entry.name).suffix.lower()
        kind = _part_kind(ext)
        if kind is None:
            continue
        parts.append(Part(name=entry.name, path=Path(entry.path), extension=ext, kind=kind))

    return natural_sorted(parts, key=lambda p: p.name)


def sources_fingerprint(*, input_root: Path, files: list[Path]) -> str:
    """
    Stable digest of the ordered source list and each source's content.
    """

    payload = [[relpath_posix(f, start=input_root), sha256_file(f)] for f in files]
    s = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _read_sources_record(path: Path) -> dict:
    try:
        record = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return record if isinstance(record, dict) else {}


def assemble_document(
    doc: Document,
    *,
    input_root: Path,
    staging_root: Path,
    force: bool = False,
) -> AssembledDocument:
    """
    Produce `staging/<docKey>/input/document.pdf` for one document.

    Single-file documents are copied verbatim. Folder documents merge every
    supported part (PDF pages as-is, one page per image sized to its pixel
    dimensions) in natural-sort order. Output is left untouched when the
    source fingerprint matches the previous run, unless `force` is set.
    """

    out_pdf = assembled_pdf_path(staging_root, doc.doc_key)
    record_file = out_pdf.parent / SOURCES_RECORD_NAME

    if doc.kind == DocumentKind.SINGLE_FILE:
        parts: list[Part] = []
        files = [doc.source_path]
    else:
        parts = list_folder_parts(doc.source_path)
        if not parts:
            raise AssemblyError(f"No supported files in folder: {doc.source_path}")
        files = [p.path for p in parts]

    sources = [relpath_posix(f, start=input_root) for f in files]
    try:
        fingerprint = sources_fingerprint(input_root=input_root, files=files)
    except OSError as e:
        raise AssemblyError(f"Cannot read sources of {doc.name!r}: {e}") from e

    output_relpath = relpath_posix(out_pdf, start=staging_root)
    if not force and out_pdf.is_file() and _read_sources_record(record_file).get("fingerprint") == fingerprint:
        return AssembledDocument(
            doc_key=doc.doc_key,
            output_pdf_relpath=output_relpath,
            sources=sources,
            fingerprint=fingerprint,
            unchanged=True,
        )

    try:
        if doc.kind == DocumentKind.SINGLE_FILE:
            copy_file_atomic(doc.source_path, out_pdf)
        else:
            write_bytes_atomic(out_pdf, merge_parts_to_bytes(parts))
    except OSError as e:
        raise AssemblyError(f"Cannot write {out_pdf}: {e}") from e

    write_text_atomic(
        record_file,
        json.dumps({"fingerprint": fingerprint, "sources": sources}, ensure_ascii=False, indent=2) + "\n",
    )
    return AssembledDocument(
        doc_key=doc.doc_key,
        output_pdf_relpath=output_relpath,
        sources=sources,
        fingerprint=fingerprint,
    )


def run_assemble_stage(ctx: PipelineContext, *, force: bool = False) -> StageReport:
    """
    Assemble every document under the input root into the staging root and
    write the run-level index.

    Raises `DiscoveryError` when the input root cannot be listed.
    """

    input_root = ctx.input_root
    staging_root = ctx.staging_root
    if not input_root.is_dir():
        raise DiscoveryError(f"Input directory does not exist: {input_root}")
    staging_root.mkdir(parents=True, exist_ok=True)

    docs = discover_input_documents(input_root)
    if not docs:
        logger.info("[%s] No documents found in %s", STAGE, input_root)
        write_assemble_index(
            staging_root=staging_root,
            input_root=input_root,
            documents=[],
            failures=[],
            created_at=ctx.clock(),
        )
        return StageReport(stage=STAGE, succeeded=[], skipped=[], failed=[])

    logger.info("[%s] Found %d incoming documents", STAGE, len(docs))

    results: dict[str, AssembledDocument] = {}
    lock = threading.Lock()

    def task(doc: Document) -> TaskStatus:
        logger.info("[%s] [%s] Start", STAGE, doc.doc_key)
        assembled = assemble_document(doc, input_root=input_root, staging_root=staging_root, force=force)
        with lock:
            results[doc.doc_key] = assembled
        if assembled.unchanged:
            logger.info("[%s] [%s] Unchanged, skipped", STAGE, doc.doc_key)
            return TaskStatus.SKIPPED
        logger.info("[%s] [%s] OK: %s", STAGE, doc.doc_key, assembled.output_pdf_relpath)
        return TaskStatus.SUCCEEDED

    with ctx.make_scheduler(stage=STAGE, concurrency=ctx.config.assemble.concurrency) as scheduler:
        for doc in docs:
            scheduler.submit(doc.doc_key, partial(task, doc))
        outcomes = scheduler.drain()

    report = build_stage_report(STAGE, outcomes)
    names = {d.doc_key: d.name for d in docs}
    index_file = write_assemble_index(
        staging_root=staging_root,
        input_root=input_root,
        documents=[results[d.doc_key] for d in docs if d.doc_key in results],
        failures=[(names[f.doc_key], f) for f in report.failed],
        created_at=ctx.clock(),
    )
    logger.info(
        "[%s] Done: %d assembled, %d unchanged, %d failed. Index: %s",
        STAGE,
        len(report.succeeded),
        len(report.skipped),
        len(report.failed),
        index_file,
    )
    return report
