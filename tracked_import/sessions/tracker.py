import time
from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import uuid4

import structlog

from tracked_import.sessions.models import ImportSession, ImportType, SessionStatus
from tracked_import.sessions.repository import ImportSessionRepository

logger = structlog.get_logger()


def generate_session_id(entity_kind: str, import_type: str) -> str:
    """Build a session id unique even for concurrent runs started in the same millisecond."""
    timestamp_ms = int(time.time() * 1000)
    return f"{entity_kind}_{import_type}_{timestamp_ms}_{uuid4().hex[:9]}"


class ImportTracker:
    """Provenance record for one import run.

    Ids are accumulated in memory and written once by ``save_session``.
    """

    def __init__(
        self,
        entity_kind: str,
        import_type: ImportType = ImportType.bulk,
        file_name: str | None = None,
        description: str | None = None,
    ) -> None:
        self._entity_kind = str(entity_kind)
        self._import_type = ImportType(import_type)
        self._file_name = file_name
        self._description = description
        self._session_id = generate_session_id(self._entity_kind, self._import_type)
        self._imported_ids: dict[str, None] = {}
        self._saved: ImportSession | None = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def records_imported(self) -> int:
        return len(self._imported_ids)

    @property
    def imported_ids(self) -> list[str]:
        return list(self._imported_ids)

    @property
    def is_saved(self) -> bool:
        return self._saved is not None

    @property
    def session_info(self) -> dict:
        return {
            "session_id": self._session_id,
            "import_type": str(self._import_type),
            "entity_kind": self._entity_kind,
            "file_name": self._file_name,
            "records_imported": self.records_imported,
            "description": self._description,
        }

    def track_record(self, record_id: str) -> None:
        if record_id not in self._imported_ids:
            self._imported_ids[record_id] = None

    def track_records(self, record_ids: Iterable[str]) -> None:
        for record_id in record_ids:
            self.track_record(record_id)

    async def save_session(
        self,
        repo: ImportSessionRepository,
        status: SessionStatus = SessionStatus.completed,
    ) -> ImportSession:
        if self._saved is not None:
            raise RuntimeError(f"Import session '{self._session_id}' was already saved")

        session = ImportSession(
            session_id=self._session_id,
            import_type=str(self._import_type),
            entity_kind=self._entity_kind,
            file_name=self._file_name,
            description=self._description,
            records_imported=self.records_imported,
            imported_ids=tuple(self._imported_ids),
            import_date=datetime.now(UTC).isoformat(),
            status=str(SessionStatus(status)),
        )
        await repo.insert(session)
        self._saved = session
        return session
