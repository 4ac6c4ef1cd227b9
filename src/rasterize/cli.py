from __future__ import annotations

import argparse

from staging.cli import add_common_args, run_stages

from .module import run_rasterize_stage


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="staging-rasterize",
        description="Render every staged document.pdf into the configured resolution pyramid + manifest.",
    )
    p.add_argument("--force", action="store_true", help="Re-render documents that are already complete.")
    return add_common_args(p)


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    return run_stages(args, [lambda ctx: run_rasterize_stage(ctx, force=args.force)])


if __name__ == "__main__":
    raise SystemExit(main())
