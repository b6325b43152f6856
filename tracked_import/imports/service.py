import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from tracked_import.config import Settings
from tracked_import.entities.models import EntityKind
from tracked_import.entities.repository import DocumentRepository
from tracked_import.exceptions import PersistenceError, SourceError, ValidationError
from tracked_import.imports.schemas import ImportConfig, ImportPhase, ImportStats
from tracked_import.imports.source_reader import load_records, resolve_format
from tracked_import.imports.validators import to_document, validate_record
from tracked_import.sessions.models import SessionStatus
from tracked_import.sessions.repository import ImportSessionRepository
from tracked_import.sessions.service import resolve_entity_kind
from tracked_import.sessions.tracker import ImportTracker

logger = structlog.get_logger()

ProgressCallback = Callable[[float], None]


class BulkImporter:
    """Batch executor for one or more import runs.

    Every run gets its own ImportTracker and ImportStats; the importer itself
    only holds the database handle and engine settings.
    """

    def __init__(self, db: aiosqlite.Connection, settings: Settings) -> None:
        self._db = db
        self._settings = settings
        self._sessions = ImportSessionRepository(db)

    async def run(
        self,
        config: ImportConfig,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ImportStats:
        """Import one file and persist its session.

        Raises:
            ConfigurationError: Unknown entity kind or format, before any I/O.
            SourceError: Missing or malformed input; the session is saved as failed.
        """
        kind = resolve_entity_kind(config.entity_kind)
        import_format = resolve_format(config.file_path, config.format)
        batch_size = config.batch_size or self._settings.batch_size
        log = logger.bind(entity_kind=str(kind), file_path=config.file_path)

        if not config.validate_data:
            log.warning("import_validate_data_ignored")

        file_name = Path(config.file_path).name
        tracker = ImportTracker(
            kind,
            import_type=config.import_type,
            file_name=file_name,
            description=config.description or f"Bulk import from {file_name}",
        )
        stats = ImportStats(session_id=tracker.session_id)
        log = log.bind(session_id=tracker.session_id)
        log.info(
            "import_started",
            phase=ImportPhase.initializing,
            format=str(import_format),
            batch_size=batch_size,
            clear_existing=config.clear_existing,
        )

        repo = DocumentRepository(self._db, kind)
        try:
            if config.clear_existing:
                await repo.delete_all()

            log.info("import_phase", phase=ImportPhase.loading)
            records = load_records(config.file_path, import_format)
            stats.total_records = len(records)

            await self._process_batches(
                records, kind, repo, tracker, stats, batch_size, on_progress, cancel_event, log
            )
        except SourceError as exc:
            log.error("import_source_failed", error=exc.message)
            await self._abort(tracker, stats, log)
            raise
        except Exception as exc:
            log.error("import_aborted", error=str(exc), exc_info=True)
            await self._abort(tracker, stats, log)
            raise

        log.info("import_phase", phase=ImportPhase.finalizing)
        stats.finish()
        status = stats.status
        await tracker.save_session(self._sessions, status)

        log.info(
            "import_completed",
            status=str(status),
            total=stats.total_records,
            successful=stats.successful_inserts,
            failed=stats.failed_inserts,
            skipped=stats.skipped_records,
            interrupted=stats.interrupted,
            duration=stats.duration,
        )
        return stats

    async def _process_batches(
        self,
        records: list[Any],
        kind: EntityKind,
        repo: DocumentRepository,
        tracker: ImportTracker,
        stats: ImportStats,
        batch_size: int,
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
        log,
    ) -> None:
        total = len(records)
        total_batches = (total + batch_size - 1) // batch_size
        last_progress = 0.0

        for batch_number, start in enumerate(range(0, total, batch_size), start=1):
            if cancel_event is not None and cancel_event.is_set():
                stats.interrupted = True
                log.warning(
                    "import_interrupted",
                    batch=batch_number,
                    total_batches=total_batches,
                    processed=start,
                    total=total,
                )
                return

            batch = records[start : start + batch_size]
            log.info(
                "import_batch_started",
                batch=batch_number,
                total_batches=total_batches,
                size=len(batch),
            )
            await self._process_batch(batch, start, kind, repo, tracker, stats, log)

            processed = start + len(batch)
            progress = max(last_progress, round(processed / total * 100, 1))
            last_progress = progress
            log.info("import_progress", progress=progress, processed=processed, total=total)
            if on_progress is not None:
                on_progress(progress)

    async def _process_batch(
        self,
        batch: list[Any],
        start_index: int,
        kind: EntityKind,
        repo: DocumentRepository,
        tracker: ImportTracker,
        stats: ImportStats,
        log,
    ) -> None:
        log.debug("import_phase", phase=ImportPhase.validating, size=len(batch))
        # (1-based record index, raw record, stored document)
        valid: list[tuple[int, Any, dict]] = []
        for offset, raw in enumerate(batch):
            record_index = start_index + offset + 1
            try:
                canonical = validate_record(kind, raw)
            except ValidationError as exc:
                stats.skipped_records += 1
                stats.add_error(record_index, exc.message, raw, self._settings.max_recorded_errors)
                log.debug("import_record_skipped", record=record_index, reason=exc.message)
                continue
            valid.append((record_index, raw, to_document(canonical)))

        if not valid:
            log.warning("import_batch_empty", first_record=start_index + 1)
            return

        log.debug("import_phase", phase=ImportPhase.inserting, size=len(valid))
        try:
            result = await repo.insert_many(
                [document for _, _, document in valid],
                timeout=self._settings.bulk_insert_timeout_seconds,
            )
        except PersistenceError as exc:
            log.warning("import_batch_insert_failed", error=exc.message, size=len(valid))
            await self._fallback_individual_insert(valid, repo, tracker, stats, log)
            return

        for position, message in result.rejected:
            record_index, raw, _ = valid[position]
            stats.failed_inserts += 1
            stats.add_error(record_index, message, raw, self._settings.max_recorded_errors)
            log.debug("import_record_rejected", record=record_index, error=message)

        log.debug("import_phase", phase=ImportPhase.tracking, ids=len(result.inserted_ids))
        tracker.track_records(result.inserted_ids)
        stats.successful_inserts += len(result.inserted_ids)
        log.info(
            "import_batch_inserted",
            inserted=len(result.inserted_ids),
            rejected=len(result.rejected),
        )

    async def _fallback_individual_insert(
        self,
        valid: list[tuple[int, Any, dict]],
        repo: DocumentRepository,
        tracker: ImportTracker,
        stats: ImportStats,
        log,
    ) -> None:
        log.info("import_phase", phase=ImportPhase.fallback, size=len(valid))
        succeeded = 0
        for record_index, raw, document in valid:
            try:
                record_id = await repo.insert_one(document)
            except PersistenceError as exc:
                stats.failed_inserts += 1
                stats.add_error(record_index, exc.message, raw, self._settings.max_recorded_errors)
                log.debug("import_record_failed", record=record_index, error=exc.message)
                continue
            tracker.track_record(record_id)
            stats.successful_inserts += 1
            succeeded += 1

        log.info(
            "import_fallback_completed",
            inserted=succeeded,
            failed=len(valid) - succeeded,
        )

    async def _abort(self, tracker: ImportTracker, stats: ImportStats, log) -> None:
        stats.finish()
        if tracker.is_saved:
            return
        try:
            await tracker.save_session(self._sessions, SessionStatus.failed)
        except Exception as exc:
            # Keep the import failure as the raised error.
            log.error("import_session_save_failed", error=str(exc))
