"""CLI entry point: python -m jsongrade.run

Usage:
    python -m jsongrade.run cases.jsonl                 # Grade (resumes automatically)
    python -m jsongrade.run cases.jsonl --rows 10       # First 10 cases only
    python -m jsongrade.run cases.jsonl -p prompt.md    # Override system prompt
    python -m jsongrade.run cases.jsonl --fresh         # Clear checkpoints, start fresh
    python -m jsongrade.run --report-only               # Regenerate report from checkpoints

Defaults come from JSONGRADE_* environment variables; flags override them.
"""

from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from jsongrade.checkpoint import Checkpoint
from jsongrade.config import GradingSettings
from jsongrade.exceptions import GradingError
from jsongrade.report import format_summary
from jsongrade.runner import run_grading, run_report_only


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Grade structured model outputs against expected JSON",
    )
    parser.add_argument(
        "cases_path",
        nargs="?",
        default=None,
        help="Path to test JSONL file (default: JSONGRADE_CASES_PATH or test.jsonl)",
    )
    parser.add_argument(
        "--rows", "-r",
        type=int,
        default=None,
        help="Number of rows to process, 0 for all",
    )
    parser.add_argument(
        "--prompt", "-p",
        default=None,
        help="Prompt file (.json, .md, .txt, or no extension) overriding JSONL system messages",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of cases evaluated in parallel",
    )
    parser.add_argument(
        "--results-dir",
        default=None,
        help="Override results directory (default: results)",
    )
    parser.add_argument(
        "--skip-validation",
        action="store_true",
        help="Skip JSONL format validation (faster but less safe)",
    )
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Clear checkpoints before running (start fresh)",
    )
    parser.add_argument(
        "--report-only",
        action="store_true",
        help="Regenerate report from existing checkpoint data",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    overrides: dict[str, object] = {}
    if args.cases_path:
        overrides["cases_path"] = args.cases_path
    if args.rows is not None:
        overrides["rows"] = args.rows
    if args.prompt:
        overrides["prompt_path"] = args.prompt
    if args.workers is not None:
        overrides["workers"] = args.workers
    if args.results_dir:
        overrides["results_dir"] = args.results_dir
    if args.skip_validation:
        overrides["skip_validation"] = True
    try:
        # Flags take precedence over JSONGRADE_* variables and .env
        settings = GradingSettings(**overrides)
    except ValidationError as exc:
        logging.error("Invalid settings: %s", exc)
        return 1

    if args.fresh:
        removed = Checkpoint(settings.results_dir, settings.dataset).clear()
        if removed:
            logging.info("Cleared %d checkpoints for %s", removed, settings.dataset)

    try:
        if args.report_only:
            run = run_report_only(settings)
        else:
            run = run_grading(settings)
    except GradingError as exc:
        logging.error("%s", exc)
        return 1

    if run is None or not run.results:
        logging.warning("No grading results produced")
        return 1

    print("\n" + format_summary(run.metrics))
    print(f"Report: {run.report_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
