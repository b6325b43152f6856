from pydantic import BaseModel


class ImportSessionResponse(BaseModel):
    session_id: str
    import_type: str
    entity_kind: str
    file_name: str | None
    description: str | None
    records_imported: int
    import_date: str
    status: str


class ImportedIdsResponse(BaseModel):
    entity_kind: str
    import_type: str | None
    count: int
    ids: list[str]


class ClearResult(BaseModel):
    entity_kind: str
    import_type: str | None
    deleted_count: int
    sessions_cleaned: int
    dry_run: bool = False
