from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from tracked_import.sessions.models import ImportType, SessionStatus


class ImportFormat(StrEnum):
    json = "json"
    csv = "csv"


class ImportPhase(StrEnum):
    initializing = "initializing"
    loading = "loading"
    validating = "validating"
    inserting = "inserting"
    fallback = "fallback"
    tracking = "tracking"
    finalizing = "finalizing"


class ImportConfig(BaseModel):
    entity_kind: str
    file_path: str
    format: str | None = None
    batch_size: int | None = Field(default=None, ge=1)
    clear_existing: bool = False
    # Accepted for compatibility; validation always runs.
    validate_data: bool = True
    import_type: ImportType = ImportType.bulk
    description: str | None = None


class RecordError(BaseModel):
    record_index: int
    message: str
    raw_data: Any = None


class ImportStats(BaseModel):
    session_id: str | None = None
    total_records: int = 0
    successful_inserts: int = 0
    failed_inserts: int = 0
    skipped_records: int = 0
    errors: list[RecordError] = Field(default_factory=list)
    dropped_errors: int = 0
    interrupted: bool = False
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    @property
    def processed_records(self) -> int:
        return self.successful_inserts + self.failed_inserts + self.skipped_records

    @property
    def error_count(self) -> int:
        return len(self.errors) + self.dropped_errors

    @property
    def duration_seconds(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def duration(self) -> str:
        seconds = self.duration_seconds
        if seconds is None:
            return "Unknown"
        minutes, remainder = divmod(int(seconds), 60)
        return f"{minutes}m {remainder}s"

    @property
    def success_rate(self) -> float:
        if self.total_records == 0:
            return 0.0
        return round(self.successful_inserts / self.total_records * 100, 1)

    @property
    def status(self) -> SessionStatus:
        if self.failed_inserts == 0 and not self.interrupted:
            return SessionStatus.completed
        if self.successful_inserts > 0:
            return SessionStatus.partial
        return SessionStatus.failed

    def add_error(
        self, record_index: int, message: str, raw_data: Any, max_errors: int | None = None
    ) -> None:
        if max_errors is not None and len(self.errors) >= max_errors:
            self.dropped_errors += 1
            return
        self.errors.append(
            RecordError(record_index=record_index, message=message, raw_data=raw_data)
        )

    def finish(self) -> None:
        self.end_time = datetime.now(UTC)


class ImportSummary(BaseModel):
    """Serializable view of a finished run."""

    session_id: str | None
    status: SessionStatus
    total_records: int
    successful_inserts: int
    failed_inserts: int
    skipped_records: int
    success_rate: float
    duration_seconds: float | None
    interrupted: bool
    error_count: int
    errors: list[RecordError]

    @classmethod
    def from_stats(cls, stats: ImportStats, error_limit: int | None = None) -> "ImportSummary":
        errors = stats.errors if error_limit is None else stats.errors[:error_limit]
        return cls(
            session_id=stats.session_id,
            status=stats.status,
            total_records=stats.total_records,
            successful_inserts=stats.successful_inserts,
            failed_inserts=stats.failed_inserts,
            skipped_records=stats.skipped_records,
            success_rate=stats.success_rate,
            duration_seconds=stats.duration_seconds,
            interrupted=stats.interrupted,
            error_count=stats.error_count,
            errors=errors,
        )
