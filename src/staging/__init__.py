"""
Shared core of the document staging pipeline.

Stages (assemble, rasterize, classify) are independent re-runnable processes
over the staging directory; the per-document manifest is the only state
carried between them. This package holds what they share:
- natural sort and doc-key sanitization
- data access helpers (atomic writes, sha256, relative paths)
- the manifest store and document discovery
- the bounded-concurrency scheduler
- configuration, the pipeline context and the error taxonomy
"""

from .config import PipelineConfig, load_pipeline_config
from .context import PipelineContext
from .discovery import discover_input_documents, discover_staged_documents
from .errors import (
    AssemblyError,
    ClassificationError,
    ConfigurationError,
    DiscoveryError,
    DocKeyCollisionError,
    ManifestError,
    RasterizationError,
    StagingError,
)
from .natural_sort import natural_key, natural_sorted
from .scheduler import DocumentScheduler, TaskOutcome

__all__ = [
    "AssemblyError",
    "ClassificationError",
    "ConfigurationError",
    "DiscoveryError",
    "DocKeyCollisionError",
    "DocumentScheduler",
    "ManifestError",
    "PipelineConfig",
    "PipelineContext",
    "RasterizationError",
    "StagingError",
    "TaskOutcome",
    "discover_input_documents",
    "discover_staged_documents",
    "load_pipeline_config",
    "natural_key",
    "natural_sorted",
]
