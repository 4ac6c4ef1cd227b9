from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, Sequence

from contracts.documents import StageReport

from .config import DEFAULT_CONFIG_RELPATH, load_pipeline_config
from .context import PipelineContext
from .errors import ConfigurationError, DiscoveryError
from .logging_setup import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_DOCUMENT_FAILURES = 2


def add_common_args(p: argparse.ArgumentParser) -> argparse.ArgumentParser:
    p.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Directory relative config paths resolve against (default: current directory).",
    )
    p.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Pipeline configuration JSON (default: <project-root>/{DEFAULT_CONFIG_RELPATH.as_posix()}).",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--log-file", type=Path, default=None, help="Also write detailed logs to this file.")
    return p


def build_context(args: argparse.Namespace) -> PipelineContext:
    project_root = args.project_root.expanduser().resolve()
    config_file = args.config if args.config is not None else project_root / DEFAULT_CONFIG_RELPATH
    config = load_pipeline_config(config_file, project_root=project_root)
    return PipelineContext(config=config)


def exit_code_for(reports: list[StageReport]) -> int:
    return EXIT_OK if all(r.ok for r in reports) else EXIT_DOCUMENT_FAILURES


def _log_summary(reports: list[StageReport]) -> None:
    for report in reports:
        logger.info(
            "[%s] Processed %d documents (%d ok, %d skipped, %d failed)",
            report.stage,
            report.processed,
            len(report.succeeded),
            len(report.skipped),
            len(report.failed),
        )
        for failure in report.failed:
            logger.error("[%s] [%s] %s: %s", report.stage, failure.doc_key, failure.error_type, failure.message)


def run_stages(
    args: argparse.Namespace,
    stages: list[Callable[[PipelineContext], StageReport]],
    *,
    preflight: Sequence[Callable[[PipelineContext], object]] = (),
) -> int:
    """
    Configure logging, build the context and run `stages` in order.

    Every `preflight` check runs before the first stage, so a configuration
    error there leaves staging untouched. Configuration and discovery errors
    abort the run with EXIT_FATAL after summarizing the stages that finished;
    document failures yield EXIT_DOCUMENT_FAILURES.
    """

    setup_logging(verbose=args.verbose, log_file=args.log_file)
    try:
        ctx = build_context(args)
        for check in preflight:
            check(ctx)
    except (ConfigurationError, DiscoveryError) as e:
        logger.error("Fatal: %s", e)
        return EXIT_FATAL

    reports: list[StageReport] = []
    try:
        for stage in stages:
            reports.append(stage(ctx))
    except (ConfigurationError, DiscoveryError) as e:
        _log_summary(reports)
        logger.error("Fatal: %s", e)
        return EXIT_FATAL

    _log_summary(reports)
    return exit_code_for(reports)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="staging-pipeline",
        description="Run assemble -> rasterize -> classify over the configured input and staging directories.",
    )
    p.add_argument("--force", action="store_true", help="Redo assembly and rasterization even when up to date.")
    p.add_argument("--skip-classify", action="store_true", help="Stop after rasterization.")
    return add_common_args(p)


def main(argv: list[str] | None = None) -> int:
    from assemble.module import run_assemble_stage
    from classify.module import prepare_classification, run_classify_stage
    from rasterize.module import run_rasterize_stage

    args = build_arg_parser().parse_args(argv)

    stages: list[Callable[[PipelineContext], StageReport]] = [
        lambda ctx: run_assemble_stage(ctx, force=args.force),
        lambda ctx: run_rasterize_stage(ctx, force=args.force),
    ]
    preflight: list[Callable[[PipelineContext], object]] = []
    if not args.skip_classify:
        stages.append(run_classify_stage)
        preflight.append(prepare_classification)
    return run_stages(args, stages, preflight=preflight)


if __name__ == "__main__":
    raise SystemExit(main())
