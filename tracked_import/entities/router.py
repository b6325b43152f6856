from fastapi import APIRouter, Query

from tracked_import.dependencies import DBConn, Reader
from tracked_import.entities.repository import DocumentRepository, count_all
from tracked_import.entities.schemas import DocumentPage, EntityCounts
from tracked_import.sessions.service import resolve_entity_kind

router = APIRouter()


@router.get("/counts", response_model=EntityCounts)
async def get_counts(db: DBConn, _principal: Reader) -> EntityCounts:
    counts = await count_all(db)
    return EntityCounts(counts=counts, total=sum(counts.values()))


@router.get("/{entity_kind}", response_model=DocumentPage)
async def list_documents(
    entity_kind: str,
    db: DBConn,
    _principal: Reader,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> DocumentPage:
    kind = resolve_entity_kind(entity_kind)
    repo = DocumentRepository(db, kind)
    return DocumentPage(
        entity_kind=kind,
        total=await repo.count(),
        limit=limit,
        offset=offset,
        items=await repo.find(limit=limit, offset=offset),
    )
