from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path

from .batch import run_all
from .errors import ConfigError
from .presets import PRESETS, apply_preset
from .report import build_report, save_report_csv, save_report_json
from .settings import RunConfig, load_config


# The site lives one level above the installed package (sab/..).
DEFAULT_ROOT = Path(__file__).resolve().parent.parent

# Without --root, only run against a directory that has one of these.
SITE_DIRS = ("static", "src")


def _mb(n: int) -> str:
    return f"{n / 1024 / 1024:.2f}MB"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sab",
        description="Site Asset Budget: prune, delete and transcode images until a static site fits its budget",
    )
    p.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=("run", "cleanup", "optimize"),
        help="run = everything (default), cleanup = directory + size-threshold removal only, "
        "optimize = directory removal + image optimization only",
    )

    # Input
    p.add_argument("--root", default=None, help=f"Project root (default: {DEFAULT_ROOT}, used only if it has a static/ or src/ directory)")
    p.add_argument("--preset", default="full", choices=PRESETS, help="Built-in path/threshold table (default: full)")
    p.add_argument("--config", default=None, help="JSON config file, replaces --preset")

    # Execution
    p.add_argument("--workers", type=int, default=None, help="Parallel image workers (default: from config, 1)")

    # Output
    p.add_argument("--report", default=None, help="Write report.json and report.csv into this directory")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    return p


def _load(args: argparse.Namespace) -> RunConfig:
    root = Path(args.root) if args.root else DEFAULT_ROOT

    if args.config:
        config = load_config(Path(args.config), root)
    else:
        config = apply_preset(args.preset, RunConfig(project_root=root))

    if args.workers is not None:
        if args.workers < 1:
            raise ConfigError(f"--workers must be >= 1, got {args.workers}")
        if config.optimize is not None:
            config = replace(config, optimize=replace(config.optimize, workers=args.workers))

    return config


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    try:
        config = _load(args)
    except ConfigError as e:
        parser.error(str(e))  # exits with status 2

    if not config.project_root.is_dir():
        print(f"Project root not found: {config.project_root}")
        return 2

    if args.root is None and not any((config.project_root / d).is_dir() for d in SITE_DIRS):
        print(f"{config.project_root} does not look like a site (no static/ or src/), pass --root")
        return 2

    results, summary = run_all(
        config,
        cleanup=args.command in ("run", "cleanup"),
        optimize=args.command in ("run", "optimize"),
    )

    # Print summary
    print("\n=== Run Summary ===")
    for phase in summary.phases:
        line = f"{phase.name:<12}: removed {phase.files_removed}, freed {_mb(phase.bytes_freed)}"
        if phase.reencoded or phase.converted or phase.rejected:
            line += f" (re-encoded {phase.reencoded}, converted {phase.converted}, kept {phase.rejected})"
        if phase.failed:
            line += f", {phase.failed} failed"
        print(line)
    print(f"Total       : removed {summary.files_removed}, freed {_mb(summary.bytes_freed)}")

    # Skip reasons breakdown
    reasons: dict[str, int] = {}
    for r in results:
        if r.reason:
            reasons[r.reason] = reasons.get(r.reason, 0) + 1

    if reasons:
        print("\nSkip reasons:")
        for k, v in sorted(reasons.items(), key=lambda x: (-x[1], x[0])):
            print(f"  {k}: {v}")

    # Reports
    if args.report:
        out_dir = Path(args.report)
        report = build_report(results, summary)

        json_path = out_dir / "report.json"
        save_report_json(report, json_path)

        csv_path = out_dir / "report.csv"
        save_report_csv(report, csv_path)

        print("\nReport written:", json_path)
        print("CSV written   :", csv_path)

    return 0
