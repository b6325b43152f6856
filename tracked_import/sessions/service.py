import aiosqlite
import structlog

from tracked_import.entities.models import EntityKind
from tracked_import.entities.repository import DocumentRepository
from tracked_import.exceptions import ConfigurationError
from tracked_import.sessions.models import ImportSession, ImportType
from tracked_import.sessions.repository import ImportSessionRepository
from tracked_import.sessions.schemas import (
    ClearResult,
    ImportedIdsResponse,
    ImportSessionResponse,
)

logger = structlog.get_logger()


def resolve_entity_kind(value: str) -> EntityKind:
    try:
        return EntityKind(value)
    except ValueError:
        supported = ", ".join(kind.value for kind in EntityKind)
        raise ConfigurationError(
            f"Unknown entity kind: '{value}'. Supported kinds: {supported}"
        ) from None


def resolve_import_type(value: str | None) -> ImportType | None:
    if value is None:
        return None
    try:
        return ImportType(value)
    except ValueError:
        supported = ", ".join(t.value for t in ImportType)
        raise ConfigurationError(
            f"Unknown import type: '{value}'. Supported types: {supported}"
        ) from None


def _union_ids(sessions: list[ImportSession]) -> list[str]:
    ids: dict[str, None] = {}
    for session in sessions:
        for record_id in session.imported_ids:
            ids[record_id] = None
    return list(ids)


class ImportSessionService:
    """Run-independent queries over persisted import sessions."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._sessions = ImportSessionRepository(db)

    async def list_sessions(self, entity_kind: str | None = None) -> list[ImportSessionResponse]:
        kind = resolve_entity_kind(entity_kind) if entity_kind is not None else None
        sessions = await self._sessions.list_sessions(entity_kind=kind)
        return [self._to_response(session) for session in sessions]

    async def get_imported_ids(
        self, entity_kind: str, import_type: str | None = None
    ) -> ImportedIdsResponse:
        kind = resolve_entity_kind(entity_kind)
        type_filter = resolve_import_type(import_type)
        sessions = await self._sessions.list_sessions(entity_kind=kind, import_type=type_filter)
        ids = _union_ids(sessions)
        return ImportedIdsResponse(
            entity_kind=kind,
            import_type=type_filter,
            count=len(ids),
            ids=ids,
        )

    async def preview_clear(self, entity_kind: str, import_type: str | None = None) -> ClearResult:
        kind = resolve_entity_kind(entity_kind)
        type_filter = resolve_import_type(import_type)
        sessions = await self._sessions.list_sessions(entity_kind=kind, import_type=type_filter)
        return ClearResult(
            entity_kind=kind,
            import_type=type_filter,
            deleted_count=len(_union_ids(sessions)),
            sessions_cleaned=len(sessions),
            dry_run=True,
        )

    async def clear_imported_data(
        self, entity_kind: str, import_type: str | None = None
    ) -> ClearResult:
        """Delete exactly the documents the matching sessions recorded, then those sessions."""
        kind = resolve_entity_kind(entity_kind)
        type_filter = resolve_import_type(import_type)
        sessions = await self._sessions.list_sessions(entity_kind=kind, import_type=type_filter)
        ids = _union_ids(sessions)

        if not ids:
            logger.info("scoped_clear_nothing_tracked", entity_kind=kind, import_type=type_filter)
            return ClearResult(
                entity_kind=kind, import_type=type_filter, deleted_count=0, sessions_cleaned=0
            )

        deleted = await DocumentRepository(self._db, kind).delete_by_ids(ids)
        sessions_cleaned = await self._sessions.delete_by_ids(
            [session.session_id for session in sessions]
        )

        logger.info(
            "scoped_clear_completed",
            entity_kind=kind,
            import_type=type_filter,
            tracked_ids=len(ids),
            deleted=deleted,
            sessions_cleaned=sessions_cleaned,
        )
        return ClearResult(
            entity_kind=kind,
            import_type=type_filter,
            deleted_count=deleted,
            sessions_cleaned=sessions_cleaned,
        )

    @staticmethod
    def _to_response(session: ImportSession) -> ImportSessionResponse:
        return ImportSessionResponse(
            session_id=session.session_id,
            import_type=session.import_type,
            entity_kind=session.entity_kind,
            file_name=session.file_name,
            description=session.description,
            records_imported=session.records_imported,
            import_date=session.import_date,
            status=session.status,
        )
