from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import Sequence

from contracts.documents import StagedDocument, StageReport, TaskStatus
from contracts.manifest import UNKNOWN_DOC_TYPE, Manifest
from staging import manifest_store
from staging.context import PipelineContext
from staging.data_access import resolve_under_root
from staging.discovery import discover_staged_documents
from staging.errors import ClassificationError, ConfigurationError
from staging.layout import page_filename
from staging.scheduler import build_stage_report

from .clients import DocumentClassifier, OpenAIVisionClassifier
from .labels import load_allowed_labels, normalize_label

logger = logging.getLogger(__name__)

STAGE = "classify"

_MIME_TYPES = {
    ".webp": "image/webp",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def _get_classifier(ctx: PipelineContext) -> DocumentClassifier:
    if ctx.classifier is not None:
        return ctx.classifier
    vlm = ctx.config.vlm
    if not vlm.base_url or not vlm.model:
        raise ConfigurationError("vlm.baseUrl and vlm.model are required for the classify stage")
    return OpenAIVisionClassifier(
        base_url=vlm.base_url.rstrip("/"),
        model=vlm.model,
        api_key=vlm.api_key,
        temperature=vlm.temperature,
        timeout_s=vlm.timeout_s,
    )


def prepare_classification(ctx: PipelineContext) -> tuple[DocumentClassifier, tuple[str, ...]]:
    """
    Resolve the allowed labels and the classifier without touching staging.

    Raises `ConfigurationError` when no labels or no VLM endpoint are
    configured, so a pipeline run can fail before any stage writes.
    """

    allowed_labels = load_allowed_labels(ctx.config.classify)
    return _get_classifier(ctx), allowed_labels


def representative_image(manifest: Manifest, *, doc_dir: Path, folder: str) -> Path | None:
    """
    First page of the configured low-resolution folder, or None when the
    document has not been rasterized into that folder.
    """

    name = manifest.pages[0].files.get(folder) if manifest.pages else None
    if not isinstance(name, str) or name == "":
        name = page_filename(1)
    # Page entries come from the manifest file and must stay inside their folder.
    image = resolve_under_root(root=doc_dir / folder, relpath=name)
    return image if image.is_file() else None


def _mime_type(image: Path) -> str:
    return _MIME_TYPES.get(image.suffix.lower(), "application/octet-stream")


def check_endpoint(ctx: PipelineContext) -> str:
    """
    Send the first staged page image to the classifier and return its raw
    answer. Nothing is written to any manifest.

    Raises `ClassificationError` when no staged document has an image in the
    configured folder or the request fails.
    """

    classifier, allowed_labels = prepare_classification(ctx)
    folder = ctx.config.classify.resolution_folder

    for doc in discover_staged_documents(ctx.staging_root):
        manifest = manifest_store.load_or_create(doc.doc_dir, doc.doc_id, now=ctx.clock())
        image = representative_image(manifest, doc_dir=doc.doc_dir, folder=folder)
        if image is None:
            continue

        logger.info("[%s] [%s] Sending %s to %s", STAGE, doc.doc_id, image.name, classifier.model_id())
        try:
            return classifier.classify(
                image_bytes=image.read_bytes(),
                mime_type=_mime_type(image),
                allowed_labels=allowed_labels,
            )
        except ClassificationError:
            raise
        except Exception as e:
            raise ClassificationError(f"Endpoint check with {doc.doc_id!r} failed: {e!r}") from e

    raise ClassificationError(f"No staged page image found in any {folder!r} folder under {ctx.staging_root}")


def accept_label(raw: str, allowed_labels: Sequence[str]) -> str:
    label = normalize_label(raw)
    return label if label in allowed_labels else UNKNOWN_DOC_TYPE


def classify_document(
    staged: StagedDocument,
    *,
    ctx: PipelineContext,
    classifier: DocumentClassifier,
    allowed_labels: Sequence[str],
) -> TaskStatus:
    """
    Label one document unless it already carries a label other than "unknown".

    Inference failures raise `ClassificationError` before anything is
    written, so `docType` stays as it was and the next run retries.
    """

    doc_dir = staged.doc_dir
    manifest = manifest_store.load_or_create(doc_dir, staged.doc_id, now=ctx.clock())

    if manifest.is_classified:
        logger.info("[%s] [%s] Already classified as: %s", STAGE, staged.doc_id, manifest.doc_type)
        return TaskStatus.SKIPPED

    image = representative_image(manifest, doc_dir=doc_dir, folder=ctx.config.classify.resolution_folder)
    if image is None:
        logger.info("[%s] [%s] No page image yet, skipped", STAGE, staged.doc_id)
        return TaskStatus.SKIPPED

    logger.info("[%s] [%s] Classifying...", STAGE, staged.doc_id)
    started_at = manifest_store.format_timestamp(ctx.clock())
    try:
        image_bytes = image.read_bytes()
        raw = classifier.classify(
            image_bytes=image_bytes,
            mime_type=_mime_type(image),
            allowed_labels=allowed_labels,
        )
    except ClassificationError:
        raise
    except Exception as e:
        raise ClassificationError(f"Classification of {staged.doc_id!r} failed: {e!r}") from e

    label = accept_label(raw, allowed_labels)
    if label == UNKNOWN_DOC_TYPE:
        logger.warning("[%s] [%s] Model returned unknown type: %r", STAGE, staged.doc_id, raw)

    manifest.doc_type = label
    manifest.classifier_model = classifier.model_id()
    manifest.stages[STAGE] = {
        "startedAt": started_at,
        "finishedAt": manifest_store.format_timestamp(ctx.clock()),
        "model": classifier.model_id(),
        "rawLabel": raw,
    }
    manifest_store.save(doc_dir, manifest, now=ctx.clock())

    logger.info("[%s] [%s] Result: %s", STAGE, staged.doc_id, label)
    return TaskStatus.SUCCEEDED


def run_classify_stage(ctx: PipelineContext) -> StageReport:
    """
    Classify every staged document that has no accepted label yet.

    Raises `ConfigurationError` when no labels or no VLM endpoint are
    configured, `DiscoveryError` when the staging root cannot be listed.
    """

    classifier, allowed_labels = prepare_classification(ctx)
    logger.info("[%s] Allowed types: %s", STAGE, ", ".join(allowed_labels))

    docs = discover_staged_documents(ctx.staging_root)
    if not docs:
        logger.info("[%s] No docs found in %s", STAGE, ctx.staging_root)
        return StageReport(stage=STAGE, succeeded=[], skipped=[], failed=[])

    concurrency = ctx.config.classify.concurrency
    with ctx.make_scheduler(stage=STAGE, concurrency=concurrency) as scheduler:
        for doc in docs:
            scheduler.submit(
                doc.doc_id,
                partial(classify_document, doc, ctx=ctx, classifier=classifier, allowed_labels=allowed_labels),
            )
        outcomes = scheduler.drain()

    report = build_stage_report(STAGE, outcomes)
    logger.info(
        "[%s] Done: %d classified, %d skipped, %d failed",
        STAGE,
        len(report.succeeded),
        len(report.skipped),
        len(report.failed),
    )
    return report
