from typing import Annotated

import aiosqlite
from fastapi import Depends

from tracked_import.auth import CLEAR_SCOPE, READ_SCOPE, RUN_SCOPE, Principal, require_scope
from tracked_import.config import settings
from tracked_import.database import get_db
from tracked_import.imports.service import BulkImporter
from tracked_import.sessions.service import ImportSessionService

DBConn = Annotated[aiosqlite.Connection, Depends(get_db)]

Reader = Annotated[Principal, Depends(require_scope(READ_SCOPE))]
Runner = Annotated[Principal, Depends(require_scope(RUN_SCOPE))]
Clearer = Annotated[Principal, Depends(require_scope(CLEAR_SCOPE))]


def get_bulk_importer() -> BulkImporter:
    return BulkImporter(get_db(), settings)


def get_session_service() -> ImportSessionService:
    return ImportSessionService(get_db())


BulkImporterDep = Annotated[BulkImporter, Depends(get_bulk_importer)]
SessionServiceDep = Annotated[ImportSessionService, Depends(get_session_service)]
