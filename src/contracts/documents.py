from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any


class DocumentKind(str, Enum):
    SINGLE_FILE = "single_file"
    FOLDER_OF_PARTS = "folder_of_parts"


class PartKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"


@dataclass(frozen=True, slots=True)
class Document:
    """
    One discovered unit of work under the input root.

    Created fresh on every discovery scan and consumed once by the assembler.
    """

    name: str  # original filesystem name (file or folder)
    kind: DocumentKind
    source_path: Path
    doc_key: str  # sanitized staging subdirectory name


@dataclass(frozen=True, slots=True)
class Part:
    """
    One file contributing pages to a folder-of-parts document.
    """

    name: str
    path: Path
    extension: str  # lowercase, with leading dot
    kind: PartKind


@dataclass(frozen=True, slots=True)
class StagedDocument:
    """
    A staging subdirectory holding an assembled input PDF.
    """

    doc_id: str
    doc_dir: Path
    input_pdf: Path


@dataclass(frozen=True, slots=True)
class AssembledDocument:
    doc_key: str
    output_pdf_relpath: str  # relative to the staging root, posix separators
    sources: list[str]  # relative to the input root, natural-sort order
    fingerprint: str
    unchanged: bool = False

    def to_index_entry(self) -> dict[str, Any]:
        return {
            "docKey": self.doc_key,
            "outputPdfPath": self.output_pdf_relpath,
            "sources": list(self.sources),
            "status": "unchanged" if self.unchanged else "assembled",
        }


@dataclass(frozen=True, slots=True)
class DocumentFailure:
    doc_key: str
    error_type: str
    message: str


@dataclass(frozen=True, slots=True)
class StageReport:
    """
    Outcome of one stage run over the staging directory.

    Documents are listed by doc key; failures carry the exception type and
    message that were logged at the task boundary.
    """

    stage: str
    succeeded: list[str]
    skipped: list[str]
    failed: list[DocumentFailure]

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.skipped) + len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TaskStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"
