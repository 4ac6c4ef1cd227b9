from __future__ import annotations

import logging
import os
from collections import defaultdict
from pathlib import Path

from contracts.documents import Document, DocumentKind, StagedDocument

from .data_access import HIDDEN_PREFIX, RESERVED_PREFIX, is_usable_doc_key, safe_doc_key
from .errors import DiscoveryError, DocKeyCollisionError
from .layout import DOCUMENT_EXTENSIONS, assembled_pdf_path, doc_dir
from .natural_sort import natural_sorted

logger = logging.getLogger(__name__)


def _scan(root: Path) -> list[os.DirEntry[str]]:
    try:
        with os.scandir(root) as it:
            return list(it)
    except OSError as e:
        raise DiscoveryError(f"Cannot list directory {root}: {e}") from e


def discover_input_documents(input_root: Path) -> list[Document]:
    """
    Classify the entries of the input root into documents.

    Directories are folder-of-parts documents, files with a document extension
    are single-file documents; hidden entries and other files are ignored.
    Entries whose doc key is empty or reserved are skipped with a warning.

    Raises `DiscoveryError` if the root cannot be listed and
    `DocKeyCollisionError` if two names sanitize to the same doc key.
    """

    docs: list[Document] = []
    for entry in _scan(input_root):
        if entry.name.startswith(HIDDEN_PREFIX):
            continue
        try:
            is_dir = entry.is_dir()
            is_file = not is_dir and entry.is_file()
        except OSError as e:
            logger.warning("Skipping unreadable entry %s: %s", entry.path, e)
            continue

        if is_dir:
            kind = DocumentKind.FOLDER_OF_PARTS
        elif is_file and Path(entry.name).suffix.lower() in DOCUMENT_EXTENSIONS:
            kind = DocumentKind.SINGLE_FILE
        else:
            logger.debug("Ignoring unsupported entry %s", entry.path)
            continue

        key = safe_doc_key(entry.name)
        if not is_usable_doc_key(key):
            logger.warning("Skipping %r: doc key %r is empty or reserved", entry.name, key)
            continue
        docs.append(Document(name=entry.name, kind=kind, source_path=Path(entry.path), doc_key=key))

    by_key: dict[str, list[str]] = defaultdict(list)
    for d in docs:
        by_key[d.doc_key].append(d.name)
    collisions = {k: natural_sorted(v) for k, v in by_key.items() if len(v) > 1}
    if collisions:
        raise DocKeyCollisionError(collisions)

    return natural_sorted(docs, key=lambda d: d.name)


def discover_staged_documents(staging_root: Path) -> list[StagedDocument]:
    """
    List staging subdirectories that hold an assembled input PDF.

    Reserved (`_`-prefixed) and hidden entries are skipped.
    """

    staged: list[StagedDocument] = []
    for entry in _scan(staging_root):
        if entry.name.startswith((RESERVED_PREFIX, HIDDEN_PREFIX)):
            continue
        try:
            if not entry.is_dir():
                continue
            pdf = assembled_pdf_path(staging_root, entry.name)
            if not pdf.is_file():
                logger.debug("Skipping %s: no assembled input PDF", entry.path)
                continue
        except OSError as e:
            logger.warning("Skipping unreadable entry %s: %s", entry.path, e)
            continue
        staged.append(StagedDocument(doc_id=entry.name, doc_dir=doc_dir(staging_root, entry.name), input_pdf=pdf))

    return natural_sorted(staged, key=lambda d: d.doc_id)
