from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MANIFEST_SCHEMA_VERSION = 1
UNKNOWN_DOC_TYPE = "unknown"

# Top-level keys owned by the schema; anything else is carried through verbatim.
KNOWN_KEYS = frozenset(
    {
        "schemaVersion",
        "docId",
        "createdAt",
        "updatedAt",
        "input",
        "pages",
        "stages",
        "docType",
        "classifierModel",
    }
)


@dataclass(frozen=True, slots=True)
class PageEntry:
    """
    One page of the assembled document.

    `files` maps a resolution folder name to the page's filename inside it
    (e.g. {"r100": "p1.webp"}).
    """

    index: int  # 1-indexed, equals position in Manifest.pages
    files: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"index": self.index}
        out.update(self.files)
        return out


@dataclass(slots=True)
class Manifest:
    """
    Persistent per-document state, one `manifest.json` per doc key.

    Stages mutate only their own sections: rasterize owns `input`, `pages`
    and `stages.rasterize`; classify owns `docType`, `classifierModel` and
    `stages.classify`.
    """

    doc_id: str
    created_at: str
    updated_at: str
    input: dict[str, Any] = field(default_factory=dict)
    pages: list[PageEntry] = field(default_factory=list)
    stages: dict[str, Any] = field(default_factory=dict)
    doc_type: str | None = None
    classifier_model: str | None = None
    schema_version: int = MANIFEST_SCHEMA_VERSION
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_classified(self) -> bool:
        return bool(self.doc_type) and self.doc_type != UNKNOWN_DOC_TYPE

    def stage(self, name: str) -> dict[str, Any]:
        value = self.stages.get(name)
        return value if isinstance(value, dict) else {}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out.update(
            {
                "schemaVersion": self.schema_version,
                "docId": self.doc_id,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
                "input": dict(self.input),
                "pages": [p.to_dict() for p in self.pages],
                "stages": dict(self.stages),
            }
        )
        if self.doc_type is not None:
            out["docType"] = self.doc_type
        if self.classifier_model is not None:
            out["classifierModel"] = self.classifier_model
        return out


def page_index_errors(pages: list[PageEntry]) -> list[str]:
    """
    Check that page indices are exactly 1..N in order.
    """

    errs: list[str] = []
    for pos, page in enumerate(pages, start=1):
        if page.index != pos:
            errs.append(f"page at position {pos} has index {page.index}")
    return errs
