"""Cron entry point for collecting unreferenced media."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass

from src.housekeeper.config import load_config
from src.housekeeper.dependencies import build_orphan_collector
from src.housekeeper.logging import configure_logging


@dataclass(slots=True)
class CleanupSummary:
    success: bool
    scanned: int
    unused: int
    deleted: int
    skipped: int
    errors: list[str]
    dry_run: bool
    temp_only: bool = False


def perform_cleanup(*, dry_run: bool, temp_only: bool = False) -> CleanupSummary:
    """Run one collection pass and return its counters."""
    collector = build_orphan_collector(load_config())
    result = collector.collect(dry_run=dry_run, temp_only=temp_only)
    summary = result.summary
    return CleanupSummary(
        success=result.success,
        scanned=summary.total_images,
        unused=summary.unused_images,
        deleted=summary.deleted_images,
        skipped=summary.skipped_images,
        errors=list(summary.errors),
        dry_run=result.dry_run,
        temp_only=result.temp_only,
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete stored media that no content refers to.")
    parser.add_argument("--dry-run", action="store_true", help="Only report counts without deleting files.")
    parser.add_argument(
        "--temp-only",
        action="store_true",
        help="Only consider uploads still in the temporary scope.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or [])
    configure_logging()
    try:
        summary = perform_cleanup(dry_run=args.dry_run, temp_only=args.temp_only)
    except Exception as exc:
        print(f"cleanup failed: {exc}", file=sys.stderr)
        return 2

    for error in summary.errors:
        print(f"error: {error}", file=sys.stderr)
    if not summary.success:
        return 1

    if summary.dry_run:
        scope = " temp-only" if summary.temp_only else ""
        print(f"cleanup{scope} dry-run, scanned={summary.scanned}, unused={summary.unused}", file=sys.stdout)
    else:
        print(
            f"cleanup done, scanned={summary.scanned}, deleted={summary.deleted}, skipped={summary.skipped}",
            file=sys.stdout,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
