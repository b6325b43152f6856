from dataclasses import dataclass
from enum import StrEnum


class ImportType(StrEnum):
    bulk = "bulk"
    manual = "manual"
    seed = "seed"


class SessionStatus(StrEnum):
    completed = "completed"
    failed = "failed"
    partial = "partial"


@dataclass(frozen=True)
class ImportSession:
    session_id: str
    import_type: str
    entity_kind: str
    file_name: str | None
    description: str | None
    records_imported: int
    imported_ids: tuple[str, ...]
    import_date: str
    status: str
