"""
Shared contracts for the staging pipeline.

These models are the schema boundary between stages (assemble, rasterize,
classify). Stage code should consume/produce these objects rather than
ad-hoc dicts; only the manifest store converts to and from JSON.
"""

from .documents import (
    AssembledDocument,
    Document,
    DocumentFailure,
    DocumentKind,
    Part,
    PartKind,
    StagedDocument,
    StageReport,
    TaskStatus,
)
from .manifest import (
    MANIFEST_SCHEMA_VERSION,
    UNKNOWN_DOC_TYPE,
    Manifest,
    PageEntry,
    page_index_errors,
)
from .resolution import DEFAULT_RESOLUTIONS, ResolutionSpec

__all__ = [
    "AssembledDocument",
    "DEFAULT_RESOLUTIONS",
    "Document",
    "DocumentFailure",
    "DocumentKind",
    "MANIFEST_SCHEMA_VERSION",
    "Manifest",
    "PageEntry",
    "Part",
    "PartKind",
    "ResolutionSpec",
    "StagedDocument",
    "StageReport",
    "TaskStatus",
    "UNKNOWN_DOC_TYPE",
    "page_index_errors",
]
