import asyncio
import weakref

import aiosqlite
import structlog

from tracked_import.config import settings
from tracked_import.entities.models import COLLECTIONS, UNIQUE_KEYS, EntityKind

logger = structlog.get_logger()

_db: aiosqlite.Connection | None = None

# Writers on one connection share its transaction, so write+commit/rollback is serialized.
_write_locks: "weakref.WeakKeyDictionary[aiosqlite.Connection, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)

COLLECTION_DDL = """
    CREATE TABLE IF NOT EXISTS {table} (
        id TEXT PRIMARY KEY,
        document TEXT NOT NULL CHECK (json_valid(document)),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL{checks}
    )
"""

# Storage-level constraints; a violation rejects the write rather than the record.
COLLECTION_CHECKS: dict[EntityKind, list[str]] = {
    EntityKind.organizations: [
        "json_extract(document, '$.health_score') BETWEEN 0 AND 100",
        "json_extract(document, '$.mrr') >= 0",
    ],
}

SESSION_DDL_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS import_sessions (
        session_id TEXT PRIMARY KEY,
        import_type TEXT NOT NULL,
        entity_kind TEXT NOT NULL,
        file_name TEXT,
        description TEXT,
        records_imported INTEGER NOT NULL DEFAULT 0,
        imported_ids TEXT NOT NULL DEFAULT '[]',
        import_date TEXT NOT NULL,
        status TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_import_sessions_entity
    ON import_sessions (entity_kind, import_type)
    """,
]


def _collection_statements(kind: EntityKind) -> list[str]:
    table = COLLECTIONS[kind]
    checks = "".join(f",\n        CHECK ({check})" for check in COLLECTION_CHECKS.get(kind, []))
    statements = [COLLECTION_DDL.format(table=table, checks=checks)]
    unique_key = UNIQUE_KEYS[kind]
    if unique_key is not None:
        statements.append(
            f"CREATE UNIQUE INDEX IF NOT EXISTS uq_{table}_key "
            f"ON {table} (json_extract(document, '{unique_key}'))"
        )
    return statements


async def create_schema(db: aiosqlite.Connection) -> None:
    for kind in EntityKind:
        for ddl in _collection_statements(kind):
            await db.execute(ddl)
    for ddl in SESSION_DDL_STATEMENTS:
        await db.execute(ddl)
    await db.commit()


async def connect(db_path: str) -> aiosqlite.Connection:
    db = await aiosqlite.connect(db_path)
    db.row_factory = aiosqlite.Row
    if db_path != ":memory:":
        await db.execute("PRAGMA journal_mode=WAL")
    await create_schema(db)
    return db


async def init_database(db_path: str | None = None) -> None:
    global _db
    path = db_path or settings.db_path
    _db = await connect(path)
    logger.info("database_initialized", path=path)


async def close_database() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None
        logger.info("database_closed")


def get_db() -> aiosqlite.Connection:
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _db


async def check_health() -> None:
    db = get_db()
    cursor = await db.execute("SELECT 1")
    await cursor.close()


def write_lock(db: aiosqlite.Connection) -> asyncio.Lock:
    lock = _write_locks.get(db)
    if lock is None:
        lock = _write_locks[db] = asyncio.Lock()
    return lock
