"""Flat-file record sources for the import engine.

JSON files are parsed eagerly in one piece. CSV files are streamed one
physical line at a time and split with a small quote-aware splitter.
"""

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import structlog

from tracked_import.exceptions import ConfigurationError, SourceError
from tracked_import.imports.schemas import ImportFormat

logger = structlog.get_logger()

JSON_WRAPPER_KEY = "data"

FORMAT_SUFFIXES = {
    ".json": ImportFormat.json,
    ".csv": ImportFormat.csv,
}


def resolve_format(path: str | Path, fmt: str | None = None) -> ImportFormat:
    """Return the explicit format, or infer it from the file suffix."""
    if fmt:
        try:
            return ImportFormat(fmt.strip().lower())
        except ValueError:
            supported = ", ".join(f.value for f in ImportFormat)
            raise ConfigurationError(
                f"Unsupported format: '{fmt}'. Supported formats: {supported}"
            ) from None

    inferred = FORMAT_SUFFIXES.get(Path(path).suffix.lower())
    if inferred is None:
        raise ConfigurationError(
            f"Cannot infer format from '{path}'. Pass the format explicitly (json or csv)."
        )
    return inferred


def load_records(path: str | Path, fmt: str | None = None) -> list[dict[str, Any]]:
    """Load every generic record from ``path`` in file order.

    Raises:
        ConfigurationError: If the format is unsupported.
        SourceError: If the file is missing or its top-level shape is unusable.
    """
    import_format = resolve_format(path, fmt)
    source_path = Path(path).expanduser()
    if not source_path.is_file():
        raise SourceError(f"File not found: {source_path}")

    if import_format is ImportFormat.json:
        records = _load_json_records(source_path)
    else:
        records = list(iter_csv_records(source_path))

    logger.info(
        "source_loaded",
        path=str(source_path),
        format=str(import_format),
        records=len(records),
    )
    return records


def _load_json_records(source_path: Path) -> list[dict[str, Any]]:
    try:
        payload = json.loads(source_path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as exc:
        raise SourceError(
            f"Invalid JSON in {source_path}: {exc.msg} (line {exc.lineno}, column {exc.colno})"
        ) from exc
    except UnicodeDecodeError as exc:
        raise SourceError(f"{source_path} is not valid UTF-8 text") from exc
    except OSError as exc:
        raise SourceError(f"Cannot read {source_path}: {exc.strerror or exc}") from exc

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(JSON_WRAPPER_KEY), list):
        return payload[JSON_WRAPPER_KEY]
    raise SourceError(
        f"JSON file must contain an array or an object with a \"{JSON_WRAPPER_KEY}\" "
        "array property"
    )


def iter_csv_records(source_path: Path) -> Iterator[dict[str, str]]:
    """Yield one record per data line, keyed by the trimmed header names."""
    headers: list[str] | None = None
    try:
        with source_path.open(encoding="utf-8-sig", newline="") as handle:
            for raw_line in handle:
                line = raw_line.rstrip("\r\n")
                values = split_csv_line(line)
                if headers is None:
                    headers = [header.strip() for header in values]
                    continue
                yield {
                    header: values[index].strip() if index < len(values) else ""
                    for index, header in enumerate(headers)
                }
    except UnicodeDecodeError as exc:
        raise SourceError(f"{source_path} is not valid UTF-8 text") from exc
    except OSError as exc:
        raise SourceError(f"Cannot read {source_path}: {exc.strerror or exc}") from exc


def split_csv_line(line: str) -> list[str]:
    """Split one CSV line on commas that are outside double quotes.

    A quote toggles the quoted state and is dropped. A doubled quote inside a
    quoted field is not an escaped quote: it toggles the state twice, so the
    field keeps neither quote character.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)

    fields.append("".join(current))
    return fields
