from __future__ import annotations

import argparse
from collections.abc import Sequence

from tasktracker.core.config import get_settings
from tasktracker.db.bootstrap import initialize_database
from tasktracker.db.engine import create_engine_from_url
from tasktracker.db.migrations import current_revision, upgrade_to_head
from tasktracker.db.session import session_scope
from tasktracker.services.archive_sweep import ArchiveSweep


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tasktracker-db",
        description="Task tracker database management commands.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Create database directory and apply migrations.",
    )
    init_parser.add_argument("--database-url", default=None)

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Apply database migrations to latest revision.",
    )
    migrate_parser.add_argument("--database-url", default=None)

    sweep_parser = subparsers.add_parser(
        "sweep",
        help="Archive tasks that have been done for longer than the retention window.",
    )
    sweep_parser.add_argument("--database-url", default=None)
    sweep_parser.add_argument("--retention-days", type=int, default=None)

    return parser


def _run_sweep(database_url: str | None, retention_days: int | None) -> int:
    settings = get_settings()
    sweep = ArchiveSweep(retention_days=retention_days or settings.archive_retention_days)
    engine = create_engine_from_url(database_url or settings.database_url)
    try:
        with session_scope(engine) as session:
            return sweep.run_once(session=session)
    finally:
        engine.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        initialize_database(database_url=args.database_url)
        print("Database initialized.")
        return 0

    if args.command == "migrate":
        upgrade_to_head(args.database_url)
        print(f"Database migrations applied (revision {current_revision(args.database_url)}).")
        return 0

    if args.command == "sweep":
        if args.retention_days is not None and args.retention_days <= 0:
            parser.error("--retention-days must be greater than 0")
        archived_count = _run_sweep(args.database_url, args.retention_days)
        print(f"Archived {archived_count} task(s).")
        return 0

    parser.error(f"Unsupported command: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
