import json
from collections.abc import Sequence

import aiosqlite
import structlog

from tracked_import.database import write_lock
from tracked_import.sessions.models import ImportSession

logger = structlog.get_logger()

SESSION_COLUMNS = """
    session_id, import_type, entity_kind, file_name, description,
    records_imported, imported_ids, import_date, status
"""


class ImportSessionRepository:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def insert(self, session: ImportSession) -> None:
        async with write_lock(self._db):
            await self._db.execute(
                f"""
                INSERT INTO import_sessions ({SESSION_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.session_id,
                    session.import_type,
                    session.entity_kind,
                    session.file_name,
                    session.description,
                    session.records_imported,
                    json.dumps(list(session.imported_ids)),
                    session.import_date,
                    session.status,
                ),
            )
            await self._db.commit()

        logger.info(
            "import_session_saved",
            session_id=session.session_id,
            entity_kind=session.entity_kind,
            records_imported=session.records_imported,
            status=session.status,
        )

    async def get_by_id(self, session_id: str) -> ImportSession | None:
        cursor = await self._db.execute(
            f"SELECT {SESSION_COLUMNS} FROM import_sessions WHERE session_id = ?",
            (session_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._to_session(row)

    async def list_sessions(
        self, entity_kind: str | None = None, import_type: str | None = None
    ) -> list[ImportSession]:
        conditions: list[str] = []
        params: list = []

        if entity_kind is not None:
            conditions.append("entity_kind = ?")
            params.append(entity_kind)
        if import_type is not None:
            conditions.append("import_type = ?")
            params.append(import_type)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        cursor = await self._db.execute(
            f"""
            SELECT {SESSION_COLUMNS}
            FROM import_sessions
            {where_clause}
            ORDER BY import_date DESC, session_id DESC
            """,
            params,
        )
        rows = await cursor.fetchall()
        return [self._to_session(row) for row in rows]

    async def delete_by_ids(self, session_ids: Sequence[str]) -> int:
        if not session_ids:
            return 0
        placeholders = ", ".join("?" for _ in session_ids)
        async with write_lock(self._db):
            cursor = await self._db.execute(
                f"DELETE FROM import_sessions WHERE session_id IN ({placeholders})",
                tuple(session_ids),
            )
            await self._db.commit()
        return cursor.rowcount

    @staticmethod
    def _to_session(row) -> ImportSession:
        return ImportSession(
            session_id=row["session_id"],
            import_type=row["import_type"],
            entity_kind=row["entity_kind"],
            file_name=row["file_name"],
            description=row["description"],
            records_imported=row["records_imported"],
            imported_ids=tuple(json.loads(row["imported_ids"])),
            import_date=row["import_date"],
            status=row["status"],
        )
