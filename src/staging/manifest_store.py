"""
Load, normalize and persist per-document manifests.

`normalize_manifest` is the single place where a raw JSON payload is turned
into a schema-correct `Manifest`; stage code never fills defaults itself.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from contracts.manifest import KNOWN_KEYS, MANIFEST_SCHEMA_VERSION, Manifest, PageEntry

from .data_access import write_text_atomic
from .errors import ManifestError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
INVALID_PAGES_KEY = "invalidPages"


def format_timestamp(now: datetime | None = None) -> str:
    """
    ISO-8601 UTC with millisecond precision and a trailing "Z".
    """

    ts = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def manifest_path(doc_dir: Path) -> Path:
    return doc_dir / MANIFEST_FILENAME


def _page_entry(raw: Any, *, position: int) -> PageEntry:
    if not isinstance(raw, dict):
        raise ManifestError(f"pages[{position}] must be an object, got {type(raw).__name__}")
    index = raw.get("index")
    if isinstance(index, bool) or not isinstance(index, int) or index < 1:
        raise ManifestError(f"pages[{position}].index must be an int >= 1, got {index!r}")
    files = {k: v for k, v in raw.items() if k != "index"}
    return PageEntry(index=index, files=files)


def _pages(raw: Any, *, doc_id: str, extra: dict[str, Any]) -> list[PageEntry]:
    """
    Parse `pages`; a malformed value is moved to `extra["invalidPages"]` and
    replaced with an empty list so the next rasterize run rebuilds it.
    """

    if raw is None:
        return []
    try:
        if not isinstance(raw, list):
            raise ManifestError(f"pages must be a list, got {type(raw).__name__}")
        return [_page_entry(p, position=i) for i, p in enumerate(raw)]
    except ManifestError as e:
        logger.warning("[%s] Discarding invalid manifest pages: %s", doc_id, e)
        extra[INVALID_PAGES_KEY] = raw
        return []


def normalize_manifest(payload: Any, *, doc_id: str, now: datetime | None = None) -> Manifest:
    """
    Build a `Manifest` from a decoded payload, filling every missing section
    with its empty default and keeping unknown keys verbatim.

    `payload=None` yields a fresh manifest. A malformed `pages` value is kept
    under `invalidPages` and treated as not yet rasterized. Raises
    `ManifestError` only when the payload is not a JSON object.
    """

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ManifestError(f"manifest must be a JSON object, got {type(payload).__name__}")

    stamp = format_timestamp(now)

    raw_input = payload.get("input")
    raw_pages = payload.get("pages")
    raw_stages = payload.get("stages")
    raw_doc_type = payload.get("docType")
    raw_model = payload.get("classifierModel")
    raw_doc_id = payload.get("docId")
    raw_version = payload.get("schemaVersion")

    extra = {k: v for k, v in payload.items() if k not in KNOWN_KEYS}
    pages = _pages(raw_pages, doc_id=doc_id, extra=extra)

    return Manifest(
        doc_id=raw_doc_id if isinstance(raw_doc_id, str) and raw_doc_id else doc_id,
        created_at=payload["createdAt"] if isinstance(payload.get("createdAt"), str) else stamp,
        updated_at=payload["updatedAt"] if isinstance(payload.get("updatedAt"), str) else stamp,
        input=dict(raw_input) if isinstance(raw_input, dict) else {},
        pages=pages,
        stages=dict(raw_stages) if isinstance(raw_stages, dict) else {},
        doc_type=raw_doc_type if isinstance(raw_doc_type, str) else None,
        classifier_model=raw_model if isinstance(raw_model, str) else None,
        schema_version=raw_version
        if isinstance(raw_version, int) and not isinstance(raw_version, bool)
        else MANIFEST_SCHEMA_VERSION,
        extra=extra,
    )


def load_or_create(doc_dir: Path, doc_id: str, *, now: datetime | None = None) -> Manifest:
    path = manifest_path(doc_dir)
    if not path.exists():
        return normalize_manifest(None, doc_id=doc_id, now=now)

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestError(f"{path} is not valid JSON: {e}") from e

    manifest = normalize_manifest(payload, doc_id=doc_id, now=now)
    if manifest.doc_id != doc_id:
        logger.warning("Manifest %s records docId=%r, staging key is %r", path, manifest.doc_id, doc_id)
    return manifest


def serialize_manifest(manifest: Manifest) -> str:
    return json.dumps(manifest.to_dict(), ensure_ascii=False, sort_keys=True, indent=2) + "\n"


def save(doc_dir: Path, manifest: Manifest, *, now: datetime | None = None) -> Path:
    """
    Stamp `updatedAt` and replace the manifest file atomically.
    """

    manifest.updated_at = format_timestamp(now)
    path = manifest_path(doc_dir)
    write_text_atomic(path, serialize_manifest(manifest))
    return path
