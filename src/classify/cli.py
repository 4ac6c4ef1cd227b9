from __future__ import annotations

import argparse
import logging

from staging.cli import EXIT_FATAL, EXIT_OK, add_common_args, build_context, run_stages
from staging.errors import StagingError
from staging.logging_setup import setup_logging

from .module import check_endpoint, run_classify_stage

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="staging-classify",
        description="Label each staged document's type from its first low-resolution page via a VLM endpoint.",
    )
    p.add_argument(
        "--check-endpoint",
        action="store_true",
        help="Send the first staged page to the VLM endpoint, print the raw answer and exit without writing.",
    )
    return add_common_args(p)


def run_check_endpoint(args: argparse.Namespace) -> int:
    setup_logging(verbose=args.verbose, log_file=args.log_file)
    try:
        raw = check_endpoint(build_context(args))
    except StagingError as e:
        logger.error("Endpoint check failed: %s", e)
        return EXIT_FATAL
    print(raw)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    if args.check_endpoint:
        return run_check_endpoint(args)
    return run_stages(args, [run_classify_stage])


if __name__ == "__main__":
    raise SystemExit(main())
