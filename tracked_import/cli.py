"""Command line entry points for running and cleaning up imports.

Usage:
    tracked-import import organizations data/organizations.json
    tracked-import import users data/users.csv --batch-size 500
    tracked-import list-sessions organizations
    tracked-import clear-imported organizations users --type bulk --dry-run
    tracked-import counts
"""

import argparse
import asyncio
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

import aiosqlite

from tracked_import.config import Settings, settings
from tracked_import.database import connect
from tracked_import.entities.models import EntityKind
from tracked_import.entities.repository import count_all
from tracked_import.exceptions import AppError
from tracked_import.imports.report import format_summary
from tracked_import.imports.schemas import ImportConfig, ImportFormat
from tracked_import.imports.service import BulkImporter
from tracked_import.logging_config import setup_logging
from tracked_import.sessions.models import ImportType
from tracked_import.sessions.service import ImportSessionService

ENTITY_CHOICES = [kind.value for kind in EntityKind]
TYPE_CHOICES = [t.value for t in ImportType]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tracked-import", description="Bulk record import with tracked cleanup"
    )
    parser.add_argument("--db-path", help="Override TI_DB_PATH for this command")
    parser.add_argument("--log-level", help="Override TI_LOG_LEVEL for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Import records from a file")
    import_parser.add_argument("entity_kind", choices=ENTITY_CHOICES)
    import_parser.add_argument("file_path")
    import_parser.add_argument("--format", choices=[f.value for f in ImportFormat])
    import_parser.add_argument("--batch-size", type=int)
    import_parser.add_argument("--clear-existing", action="store_true")
    import_parser.add_argument("--type", dest="import_type", choices=TYPE_CHOICES, default="bulk")
    import_parser.add_argument("--description")

    list_parser = subparsers.add_parser("list-sessions", help="List import sessions")
    list_parser.add_argument("entity_kind", nargs="?", choices=ENTITY_CHOICES)

    clear_parser = subparsers.add_parser(
        "clear-imported", help="Delete only the records earlier imports created"
    )
    clear_parser.add_argument("entity_kinds", nargs="+", choices=ENTITY_CHOICES)
    clear_parser.add_argument("--type", dest="import_type", choices=TYPE_CHOICES)
    clear_parser.add_argument("--dry-run", action="store_true")
    clear_parser.add_argument("--force", action="store_true", help="Skip confirmation")

    subparsers.add_parser("counts", help="Show document counts per collection")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {}
    if args.db_path:
        overrides["db_path"] = args.db_path
    if args.log_level:
        overrides["log_level"] = args.log_level
    run_settings = settings.model_copy(update=overrides)
    setup_logging(level=run_settings.log_level)

    try:
        return asyncio.run(_dispatch(args, run_settings))
    except AppError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1


async def _dispatch(args: argparse.Namespace, run_settings: Settings) -> int:
    db = await connect(run_settings.db_path)
    try:
        if args.command == "import":
            return await _run_import_command(db, run_settings, args)
        if args.command == "list-sessions":
            return await _run_list_sessions_command(db, args)
        if args.command == "clear-imported":
            return await _run_clear_imported_command(db, args)
        if args.command == "counts":
            return await _run_counts_command(db)
    finally:
        await db.close()
    return 2


async def _run_import_command(
    db: aiosqlite.Connection, run_settings: Settings, args: argparse.Namespace
) -> int:
    config = ImportConfig(
        entity_kind=args.entity_kind,
        file_path=str(Path(args.file_path).expanduser().resolve()),
        format=args.format,
        batch_size=args.batch_size,
        clear_existing=args.clear_existing,
        import_type=args.import_type,
        description=args.description,
    )

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        loop.add_signal_handler(signal.SIGTERM, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        pass  # Windows event loops have no signal handlers

    importer = BulkImporter(db, run_settings)
    try:
        stats = await importer.run(config, cancel_event=cancel_event)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass

    print(format_summary(stats, error_limit=run_settings.error_report_limit))
    if stats.failed_inserts or stats.skipped_records or stats.interrupted:
        print("\nImport completed with issues; see the errors above.")
        return 1
    return 0


async def _run_list_sessions_command(db: aiosqlite.Connection, args: argparse.Namespace) -> int:
    sessions = await ImportSessionService(db).list_sessions(args.entity_kind)
    if not sessions:
        suffix = f" for {args.entity_kind}" if args.entity_kind else ""
        print(f"No import sessions found{suffix}")
        return 0

    for session in sessions:
        print(
            f"{session.session_id}\t"
            f"{session.entity_kind}\t"
            f"{session.import_type}\t"
            f"{session.status}\t"
            f"{session.records_imported}\t"
            f"{session.import_date[:10]}\t"
            f"{session.file_name or '-'}"
        )
    return 0


async def _run_clear_imported_command(
    db: aiosqlite.Connection,
    args: argparse.Namespace,
) -> int:
    service = ImportSessionService(db)
    total_deleted = 0
    total_sessions = 0

    for entity_kind in args.entity_kinds:
        preview = await service.preview_clear(entity_kind, args.import_type)
        if preview.deleted_count == 0:
            print(f"No imported data found for {entity_kind}")
            continue

        if args.dry_run:
            print(
                f"DRY RUN: would delete {preview.deleted_count} records from {entity_kind} "
                f"({preview.sessions_cleaned} sessions)"
            )
            continue

        if not args.force and not _confirm(
            f"Delete {preview.deleted_count} imported records from {entity_kind}?"
        ):
            print(f"Skipping {entity_kind}")
            continue

        result = await service.clear_imported_data(entity_kind, args.import_type)
        print(
            f"Deleted {result.deleted_count} records from {entity_kind}, "
            f"cleaned {result.sessions_cleaned} sessions"
        )
        total_deleted += result.deleted_count
        total_sessions += result.sessions_cleaned

    if not args.dry_run:
        print(f"Total records deleted: {total_deleted}; sessions cleaned: {total_sessions}")
    return 0


async def _run_counts_command(db: aiosqlite.Connection) -> int:
    counts = await count_all(db)
    for kind, count in counts.items():
        print(f"{kind}\t{count}")
    print(f"total\t{sum(counts.values())}")
    return 0


def _confirm(message: str) -> bool:
    answer = input(f"{message} (y/N): ")
    return answer.strip().lower() in ("y", "yes")
