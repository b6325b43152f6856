from tracked_import.imports.report import format_summary
from tracked_import.imports.schemas import ImportStats


def _stats_with_errors(count: int) -> ImportStats:
    stats = ImportStats(session_id="users_bulk_1_abc", total_records=count + 3)
    stats.successful_inserts = 3
    stats.skipped_records = count
    for index in range(count):
        stats.add_error(index + 1, "User must have email and full_name", {})
    stats.finish()
    return stats


def test_summary_lists_counts() -> None:
    summary = format_summary(_stats_with_errors(2))

    assert "IMPORT COMPLETED" in summary
    assert "Session:       users_bulk_1_abc" in summary
    assert "Successful:    3" in summary
    assert "Skipped:       2" in summary
    assert "Success rate:  60.0%" in summary
    assert "Record 2: User must have email and full_name" in summary
    assert "more errors" not in summary


def test_summary_truncates_error_list() -> None:
    summary = format_summary(_stats_with_errors(15), error_limit=10)

    assert "Record 10:" in summary
    assert "Record 11:" not in summary
    assert "... and 5 more errors" in summary


def test_summary_counts_dropped_errors() -> None:
    stats = _stats_with_errors(3)
    stats.dropped_errors = 4

    assert "... and 4 more errors" in format_summary(stats, error_limit=10)


def test_interrupted_run_is_labelled() -> None:
    stats = ImportStats(interrupted=True)

    summary = format_summary(stats)

    assert summary.startswith("IMPORT INTERRUPTED")
    assert "Duration:      Unknown" in summary
    assert "ERRORS:" not in summary
