"""Command-line helpers for ticketvault administration."""
from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from typing import Sequence

from flask import current_app

from .app import create_app
from .config import AppConfig
from .extensions import db
from .orphans import remove_orphaned_blobs, scan_orphans
from .views.helpers import blob_store


def _handle_orphans(delete: bool, min_age_minutes: int | None) -> int:
    config: AppConfig = current_app.config["APP_CONFIG"]
    store = blob_store()
    report = scan_orphans(db.session, store)

    for reference in report.orphaned_blobs:
        print(f"unreferenced file: {reference}")
    for attachment_id, path in sorted(report.missing_blobs.items()):
        print(f"attachment {attachment_id} has no file: {path}")

    if report.is_clean:
        print("No orphans found.")
        return 0

    if not delete:
        return 1

    minutes = config.orphan_min_age_minutes if min_age_minutes is None else min_age_minutes
    deletions = remove_orphaned_blobs(report, store, min_age=timedelta(minutes=minutes))
    removed = sum(1 for deletion in deletions if deletion.succeeded)
    failed = [deletion for deletion in deletions if deletion.left_orphan]
    print(f"Removed {removed} unreferenced file(s).")
    for deletion in failed:
        print(f"Error: unable to remove {deletion.path}: {deletion.error}", file=sys.stderr)
    return 1 if failed else 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="ticketvault", description="ticketvault utilities")
    subparsers = parser.add_subparsers(dest="command")

    orphans_parser = subparsers.add_parser(
        "orphans", help="Report files and attachment rows that no longer match"
    )
    orphans_parser.add_argument(
        "--delete",
        action="store_true",
        help="Remove unreferenced files older than the minimum age",
    )
    orphans_parser.add_argument(
        "--min-age-minutes",
        dest="min_age_minutes",
        type=int,
        default=None,
        help="Only remove files at least this old (defaults to the configured value)",
    )
    orphans_parser.add_argument(
        "--config",
        dest="config_path",
        help="Path to configuration file (defaults to standard lookup)",
    )

    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.command == "orphans":
        if args.min_age_minutes is not None and args.min_age_minutes < 0:
            parser.error("--min-age-minutes must not be negative")
        app = create_app(args.config_path)
        with app.app_context():
            return _handle_orphans(args.delete, args.min_age_minutes)

    parser.print_help()
    return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
