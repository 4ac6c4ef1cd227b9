"""
Staging directory layout:

    incoming/<name>                         file or folder, one per document
    staging/<docKey>/input/document.pdf     assembled output
    staging/<docKey>/input/sources.json     assembler change-detection record
    staging/<docKey>/manifest.json          per-document state
    staging/<docKey>/<resFolder>/p<idx>.webp
    staging/_assemble_index.json            run-level index
"""

from __future__ import annotations

from pathlib import Path

INPUT_DIRNAME = "input"
ASSEMBLED_PDF_NAME = "document.pdf"
SOURCES_RECORD_NAME = "sources.json"
ASSEMBLE_INDEX_NAME = "_assemble_index.json"

PDF_EXTENSIONS = frozenset({".pdf"})
IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})
# Files accepted directly under the input root as single-file documents.
DOCUMENT_EXTENSIONS = PDF_EXTENSIONS


def doc_dir(staging_root: Path, doc_key: str) -> Path:
    return staging_root / doc_key


def assembled_pdf_path(staging_root: Path, doc_key: str) -> Path:
    return staging_root / doc_key / INPUT_DIRNAME / ASSEMBLED_PDF_NAME


def page_filename(page_index: int, *, suffix: str = ".webp") -> str:
    return f"p{page_index}{suffix}"
