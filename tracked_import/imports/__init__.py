from tracked_import.imports.report import format_summary
from tracked_import.imports.schemas import ImportConfig, ImportStats
from tracked_import.imports.service import BulkImporter
from tracked_import.imports.source_reader import load_records, split_csv_line

__all__ = [
    "BulkImporter",
    "ImportConfig",
    "ImportStats",
    "format_summary",
    "load_records",
    "split_csv_line",
]
