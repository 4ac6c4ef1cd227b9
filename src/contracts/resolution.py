from __future__ import annotations

from dataclasses import dataclass
from typing import Any

RESERVED_FOLDER_NAMES = frozenset({"input"})
DEFAULT_QUALITY = 85


@dataclass(frozen=True, slots=True)
class ResolutionSpec:
    """
    One tier of the resolution pyramid.

    Supplied by configuration and recorded into `stages.rasterize.resolutions`
    for traceability.
    """

    dpi: int
    folder: str
    quality: int = DEFAULT_QUALITY
    lossless: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.dpi, bool) or not isinstance(self.dpi, int) or self.dpi <= 0:
            raise ValueError(f"dpi must be a positive integer, got {self.dpi!r}")
        if isinstance(self.quality, bool) or not isinstance(self.quality, int):
            raise TypeError(f"quality must be an integer, got {self.quality!r}")
        if not (0 <= self.quality <= 100):
            raise ValueError(f"quality must be within [0, 100], got {self.quality}")
        if not isinstance(self.folder, str) or self.folder.strip() == "":
            raise ValueError("folder must be a non-empty string")
        if "/" in self.folder or "\\" in self.folder:
            raise ValueError(f"folder must be a single path component: {self.folder!r}")
        if self.folder.startswith(("_", ".")) or self.folder in RESERVED_FOLDER_NAMES:
            raise ValueError(f"folder name is reserved: {self.folder!r}")

    @property
    def scale(self) -> float:
        # PDF user space is 72 points per inch.
        return self.dpi / 72.0

    def to_manifest(self) -> dict[str, Any]:
        return {"dpi": self.dpi, "folder": self.folder, "quality": self.quality, "lossless": self.lossless}


DEFAULT_RESOLUTIONS: tuple[ResolutionSpec, ...] = (
    ResolutionSpec(dpi=75, folder="r75", quality=80),
    ResolutionSpec(dpi=100, folder="r100", quality=80),
    ResolutionSpec(dpi=150, folder="r150", quality=82),
    ResolutionSpec(dpi=200, folder="r200", quality=84),
    ResolutionSpec(dpi=250, folder="r250", quality=86),
    ResolutionSpec(dpi=300, folder="r300", quality=90),
)
