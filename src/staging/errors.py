"""Exception hierarchy for the staging pipeline.

    StagingError (base)
    ├── ConfigurationError      fatal: aborts the run before any work starts
    ├── DiscoveryError          fatal: input/staging root unreadable
    │   └── DocKeyCollisionError
    ├── ManifestError           per-document: manifest file is not a JSON object
    ├── AssemblyError           per-document
    ├── RasterizationError      per-document
    └── ClassificationError     per-document

Per-document errors are caught at the scheduler task boundary and never
affect sibling documents.
"""

from __future__ import annotations


class StagingError(Exception):
    """Base exception for all staging pipeline errors."""


class ConfigurationError(StagingError):
    """Missing or invalid configuration."""


class DiscoveryError(StagingError):
    """An input or staging root could not be listed."""


class DocKeyCollisionError(DiscoveryError):
    """Two or more source names sanitize to the same doc key."""

    def __init__(self, collisions: dict[str, list[str]]) -> None:
        self.collisions = collisions
        detail = "; ".join(
            f"{key!r} <- {', '.join(repr(n) for n in names)}" for key, names in sorted(collisions.items())
        )
        super().__init__(f"Doc key collision: {detail}")


class ManifestError(StagingError):
    """A manifest file exists but is not a parseable manifest."""


class AssemblyError(StagingError):
    """A document could not be assembled into a single PDF."""


class RasterizationError(StagingError):
    """Rendering or encoding failed for a document."""


class ClassificationError(StagingError):
    """The inference call failed or returned a malformed response."""
