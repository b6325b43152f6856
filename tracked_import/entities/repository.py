import asyncio
import json
import sqlite3
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

import aiosqlite
import structlog

from tracked_import.database import write_lock
from tracked_import.entities.models import COLLECTIONS, EntityKind
from tracked_import.exceptions import PersistenceError

logger = structlog.get_logger()

# Stays well below SQLITE_MAX_VARIABLE_NUMBER on older builds.
DELETE_CHUNK_SIZE = 500


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass
class BulkInsertResult:
    inserted_ids: list[str] = field(default_factory=list)
    # (position in the submitted list, storage rejection message)
    rejected: list[tuple[int, str]] = field(default_factory=list)


class DocumentRepository:
    """JSON document collection for a single entity kind."""

    def __init__(self, db: aiosqlite.Connection, kind: EntityKind) -> None:
        self._db = db
        self._kind = kind
        self._table = COLLECTIONS[kind]
        self._insert_sql = (
            f"INSERT INTO {self._table} (id, document, created_at, updated_at) "
            "VALUES (?, ?, ?, ?)"
        )

    async def insert_many(
        self, documents: list[dict], timeout: float | None = None
    ) -> BulkInsertResult:
        """Insert documents in one unordered call.

        A document the store rejects (unique key, check constraint) is reported
        in ``rejected`` and the remaining documents are still written. Only a
        call-level failure (timeout, driver error) rolls the whole call back and
        raises PersistenceError.
        """
        if not documents:
            return BulkInsertResult()

        now = datetime.now(UTC).isoformat()
        rows = [(str(uuid4()), json.dumps(document), now, now) for document in documents]

        async with write_lock(self._db):
            try:
                result = await asyncio.wait_for(self._insert_rows(rows), timeout=timeout)
                await self._db.commit()
            except (sqlite3.Error, TimeoutError) as exc:
                await self._db.rollback()
                reason = "timed out" if isinstance(exc, TimeoutError) else str(exc)
                raise PersistenceError(
                    f"Bulk insert of {len(documents)} {self._kind} documents failed: {reason}"
                ) from exc

        logger.debug(
            "documents_inserted",
            collection=self._table,
            inserted=len(result.inserted_ids),
            rejected=len(result.rejected),
        )
        return result

    async def _insert_rows(self, rows: list[tuple]) -> BulkInsertResult:
        result = BulkInsertResult()
        if not self._db.in_transaction:
            await self._db.execute("BEGIN")
        for position, row in enumerate(rows):
            await self._db.execute("SAVEPOINT insert_row")
            try:
                await self._db.execute(self._insert_sql, row)
            except sqlite3.IntegrityError as exc:
                await self._db.execute("ROLLBACK TO insert_row")
                result.rejected.append((position, f"Insert into {self._table} rejected: {exc}"))
            else:
                result.inserted_ids.append(row[0])
            await self._db.execute("RELEASE insert_row")
        return result

    async def insert_one(self, document: dict) -> str:
        now = datetime.now(UTC).isoformat()
        doc_id = str(uuid4())
        async with write_lock(self._db):
            try:
                await self._db.execute(self._insert_sql, (doc_id, json.dumps(document), now, now))
                await self._db.commit()
            except sqlite3.Error as exc:
                await self._db.rollback()
                raise PersistenceError(f"Insert into {self._table} failed: {exc}") from exc
        return doc_id

    async def get_by_id(self, doc_id: str) -> dict | None:
        cursor = await self._db.execute(
            f"SELECT id, document, created_at, updated_at FROM {self._table} WHERE id = ?",
            (doc_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._to_document(row)

    async def find(self, limit: int = 50, offset: int = 0) -> list[dict]:
        cursor = await self._db.execute(
            f"""
            SELECT id, document, created_at, updated_at
            FROM {self._table}
            ORDER BY created_at ASC, id ASC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._to_document(row) for row in rows]

    async def count(self) -> int:
        cursor = await self._db.execute(f"SELECT COUNT(*) AS cnt FROM {self._table}")
        row = await cursor.fetchone()
        return row["cnt"] if row else 0

    async def delete_by_ids(self, ids: Iterable[str]) -> int:
        """Delete exactly the given ids; unknown ids are ignored."""
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return 0

        deleted = 0
        async with write_lock(self._db):
            try:
                for chunk in _chunks(unique_ids, DELETE_CHUNK_SIZE):
                    placeholders = ", ".join("?" for _ in chunk)
                    cursor = await self._db.execute(
                        f"DELETE FROM {self._table} WHERE id IN ({placeholders})",
                        tuple(chunk),
                    )
                    deleted += cursor.rowcount
                await self._db.commit()
            except sqlite3.Error as exc:
                await self._db.rollback()
                raise PersistenceError(f"Delete from {self._table} failed: {exc}") from exc

        logger.info("documents_deleted_by_id", collection=self._table, deleted=deleted)
        return deleted

    async def delete_all(self) -> int:
        """Unscoped delete of the whole collection."""
        async with write_lock(self._db):
            cursor = await self._db.execute(f"DELETE FROM {self._table}")
            deleted = cursor.rowcount
            await self._db.commit()
        logger.warning("collection_cleared", collection=self._table, deleted=deleted)
        return deleted

    @staticmethod
    def _to_document(row) -> dict:
        document = json.loads(row["document"])
        document["id"] = row["id"]
        document["created_at"] = row["created_at"]
        document["updated_at"] = row["updated_at"]
        return document


async def count_all(db: aiosqlite.Connection) -> dict[str, int]:
    return {str(kind): await DocumentRepository(db, kind).count() for kind in EntityKind}
