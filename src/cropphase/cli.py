"""
Command-line entry point for cropphase.

Usage:
    cropphase --config config/cropphase.ini --mode snapshots
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from .config import load_config, parse_optional_int


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cropphase",
        description="Classify cropland NDVI growth phases over an administrative region",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to INI config (default: search CROPPHASE_CONFIG, ./config, ~/.cropphase)")
    parser.add_argument("--mode", choices=["animation", "snapshots"], default=None, help="Override the configured output mode")
    parser.add_argument("--seed", type=str, default=None, help="Random seed for cropland scattering ('none' for fresh entropy)")
    parser.add_argument("--n-jobs", type=int, default=None, help="Parallel jobs for scene processing")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    from .pipeline.run import run

    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.seed is not None:
        config.mask.seed = parse_optional_int(args.seed)
    if args.n_jobs is not None:
        config.params.n_jobs = args.n_jobs

    output = run(config, mode=args.mode, progress=not args.quiet)

    if not args.quiet:
        print(f"Done: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
