"""
Pipeline configuration, loaded once from `config/root.json`.

All relative paths resolve against an explicit project root passed by the
caller; nothing here reads environment variables.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from contracts.resolution import DEFAULT_QUALITY, DEFAULT_RESOLUTIONS, ResolutionSpec

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_RELPATH = Path("config") / "root.json"
DEFAULT_LABELS_RELPATH = Path("config") / "docTypes"
# Local OpenAI-compatible servers accept any key, the client requires one.
PLACEHOLDER_API_KEY = "not-needed"


@dataclass(frozen=True, slots=True)
class PathsConfig:
    input: Path
    staging: Path

    def __post_init__(self) -> None:
        if not isinstance(self.input, Path) or not isinstance(self.staging, Path):
            raise TypeError("paths.input and paths.staging must be pathlib.Path")


@dataclass(frozen=True, slots=True)
class AssembleConfig:
    concurrency: int = 1

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("assemble.concurrency must be >= 1")


@dataclass(frozen=True, slots=True)
class RasterizeConfig:
    concurrency: int = 2
    resolutions: tuple[ResolutionSpec, ...] = DEFAULT_RESOLUTIONS

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("rasterize.concurrency must be >= 1")
        if not self.resolutions:
            raise ValueError("rasterize.resolutions must not be empty")
        folders = [r.folder for r in self.resolutions]
        if len(set(folders)) != len(folders):
            raise ValueError(f"rasterize.resolutions folders must be unique, got {folders}")


@dataclass(frozen=True, slots=True)
class VlmConfig:
    base_url: str | None = None
    model: str | None = None
    api_key: str = PLACEHOLDER_API_KEY
    temperature: float = 0.1
    timeout_s: float = 120.0

    def __post_init__(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError("vlm.timeoutS must be > 0")


@dataclass(frozen=True, slots=True)
class ClassifyConfig:
    concurrency: int = 1
    resolution_folder: str = "r100"
    labels_dir: Path | None = None
    labels: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("classify.concurrency must be >= 1")
        if not self.resolution_folder:
            raise ValueError("classify.resolutionFolder must be non-empty")


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    paths: PathsConfig
    assemble: AssembleConfig = field(default_factory=AssembleConfig)
    rasterize: RasterizeConfig = field(default_factory=RasterizeConfig)
    classify: ClassifyConfig = field(default_factory=ClassifyConfig)
    vlm: VlmConfig = field(default_factory=VlmConfig)


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{name} must be an object")
    return value


def _resolve(project_root: Path, value: Any, *, key: str) -> Path:
    if not isinstance(value, str) or value.strip() == "":
        raise ConfigurationError(f"{key} is required")
    p = Path(value).expanduser()
    return p if p.is_absolute() else (project_root / p).resolve()


def _resolution(raw: Any, *, position: int) -> ResolutionSpec:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"rasterize.resolutions[{position}] must be an object")
    dpi = raw.get("dpi")
    quality = raw.get("quality")
    lossless = raw.get("lossless")
    if lossless is not None and not isinstance(lossless, bool):
        raise ConfigurationError(
            f"rasterize.resolutions[{position}].lossless must be true or false, got {lossless!r}"
        )
    try:
        return ResolutionSpec(
            dpi=dpi,
            folder=raw.get("folder") or f"r{dpi}",
            quality=DEFAULT_QUALITY if quality is None else quality,
            lossless=bool(lossless),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"rasterize.resolutions[{position}]: {e}") from e


def parse_pipeline_config(raw: Any, *, project_root: Path) -> PipelineConfig:
    if not isinstance(raw, dict):
        raise ConfigurationError("configuration root must be an object")

    paths = _section(raw, "paths")
    assemble = _section(raw, "assemble")
    rasterize = _section(raw, "rasterize")
    classify = _section(raw, "classify")
    vlm = _section(raw, "vlm")

    raw_resolutions = rasterize.get("resolutions")
    if raw_resolutions is None or raw_resolutions == []:
        resolutions = DEFAULT_RESOLUTIONS
    elif isinstance(raw_resolutions, list):
        resolutions = tuple(_resolution(r, position=i) for i, r in enumerate(raw_resolutions))
    else:
        raise ConfigurationError("rasterize.resolutions must be a list")

    raw_labels = classify.get("labels")
    if raw_labels is not None and not (
        isinstance(raw_labels, list) and all(isinstance(x, str) for x in raw_labels)
    ):
        raise ConfigurationError("classify.labels must be a list of strings")

    try:
        return PipelineConfig(
            paths=PathsConfig(
                input=_resolve(project_root, paths.get("input"), key="paths.input"),
                staging=_resolve(project_root, paths.get("staging"), key="paths.staging"),
            ),
            assemble=AssembleConfig(concurrency=int(assemble.get("concurrency", 1))),
            rasterize=RasterizeConfig(
                concurrency=int(rasterize.get("concurrency", 2)),
                resolutions=resolutions,
            ),
            classify=ClassifyConfig(
                concurrency=int(classify.get("concurrency", 1)),
                resolution_folder=str(classify.get("resolutionFolder", "r100")),
                labels_dir=_resolve(
                    project_root,
                    classify.get("labelsDir", str(DEFAULT_LABELS_RELPATH)),
                    key="classify.labelsDir",
                ),
                labels=tuple(raw_labels) if raw_labels is not None else None,
            ),
            vlm=VlmConfig(
                base_url=vlm.get("baseUrl"),
                model=vlm.get("model"),
                api_key=vlm.get("apiKey") or PLACEHOLDER_API_KEY,
                temperature=float(vlm.get("temperature", 0.1)),
                timeout_s=float(vlm.get("timeoutS", 120.0)),
            ),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(str(e)) from e


def load_pipeline_config(config_file: Path, *, project_root: Path) -> PipelineConfig:
    if not config_file.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_file}")
    try:
        raw = json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read configuration {config_file}: {e}") from e

    config = parse_pipeline_config(raw, project_root=project_root.expanduser().resolve())
    logger.debug("Loaded configuration from %s", config_file)
    return config
