from tracked_import.imports.schemas import ImportStats


def format_summary(stats: ImportStats, error_limit: int = 10) -> str:
    """Render a human-readable run summary with a capped error sample."""
    lines = [
        "IMPORT COMPLETED" if not stats.interrupted else "IMPORT INTERRUPTED",
        "=" * 32,
        f"Session:       {stats.session_id or '-'}",
        f"Status:        {stats.status}",
        f"Duration:      {stats.duration}",
        f"Total records: {stats.total_records}",
        f"Successful:    {stats.successful_inserts}",
        f"Failed:        {stats.failed_inserts}",
        f"Skipped:       {stats.skipped_records}",
        f"Success rate:  {stats.success_rate:.1f}%",
    ]

    if stats.error_count:
        lines.append("")
        lines.append("ERRORS:")
        for error in stats.errors[:error_limit]:
            lines.append(f"  Record {error.record_index}: {error.message}")
        hidden = stats.error_count - min(len(stats.errors), error_limit)
        if hidden > 0:
            lines.append(f"  ... and {hidden} more errors")

    return "\n".join(lines)
