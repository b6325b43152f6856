from pathlib import Path

from fastapi import APIRouter, Query

from tracked_import.auth import CLEAR_SCOPE
from tracked_import.config import settings
from tracked_import.dependencies import BulkImporterDep, Clearer, Reader, Runner, SessionServiceDep
from tracked_import.exceptions import ForbiddenError
from tracked_import.imports.schemas import ImportConfig, ImportSummary
from tracked_import.sessions.schemas import (
    ClearResult,
    ImportedIdsResponse,
    ImportSessionResponse,
)

router = APIRouter()


def resolve_import_path(file_path: str, import_dir: str) -> str:
    """Resolve ``file_path`` against ``import_dir``, refusing anything outside it."""
    root = Path(import_dir).expanduser().resolve()
    candidate = Path(file_path).expanduser()
    if not candidate.is_absolute():
        candidate = root / candidate
    candidate = candidate.resolve()
    if not candidate.is_relative_to(root):
        raise ForbiddenError(f"Import files must be inside {root}")
    return str(candidate)


@router.post("/", status_code=201, response_model=ImportSummary)
async def run_import(
    config: ImportConfig,
    importer: BulkImporterDep,
    principal: Runner,
) -> ImportSummary:
    if config.clear_existing:
        principal.require(CLEAR_SCOPE)
    config = config.model_copy(
        update={"file_path": resolve_import_path(config.file_path, settings.import_dir)}
    )
    stats = await importer.run(config)
    return ImportSummary.from_stats(stats, error_limit=settings.error_report_limit)


@router.get("/sessions", response_model=list[ImportSessionResponse])
async def list_sessions(
    service: SessionServiceDep,
    _principal: Reader,
    entity_kind: str | None = Query(default=None),
) -> list[ImportSessionResponse]:
    return await service.list_sessions(entity_kind)


@router.get("/{entity_kind}/ids", response_model=ImportedIdsResponse)
async def get_imported_ids(
    entity_kind: str,
    service: SessionServiceDep,
    _principal: Reader,
    import_type: str | None = Query(default=None),
) -> ImportedIdsResponse:
    return await service.get_imported_ids(entity_kind, import_type)


@router.delete("/{entity_kind}", response_model=ClearResult)
async def clear_imported_data(
    entity_kind: str,
    service: SessionServiceDep,
    _principal: Clearer,
    import_type: str | None = Query(default=None),
    dry_run: bool = Query(default=False),
) -> ClearResult:
    if dry_run:
        return await service.preview_clear(entity_kind, import_type)
    return await service.clear_imported_data(entity_kind, import_type)
