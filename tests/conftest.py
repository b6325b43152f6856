"""Shared fixtures for tracked-import tests."""

import json
import os
from pathlib import Path

os.environ.setdefault("TI_JWT_SECRET", "test-jwt-secret-that-is-long-enough-for-hs256")
os.environ.setdefault("TI_AUTH_USERNAME", "admin")
os.environ.setdefault("TI_AUTH_PASSWORD", "test-password")
os.environ.setdefault("TI_VIEWER_USERNAME", "viewer")
os.environ.setdefault("TI_VIEWER_PASSWORD", "viewer-password")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
import structlog  # noqa: E402

from tracked_import.config import Settings  # noqa: E402
from tracked_import.database import connect  # noqa: E402


@pytest_asyncio.fixture
async def db():
    connection = await connect(":memory:")
    yield connection
    await connection.close()


@pytest.fixture
def engine_settings() -> Settings:
    return Settings(batch_size=1000, bulk_insert_timeout_seconds=30.0, max_recorded_errors=1000)


@pytest.fixture
def write_json(tmp_path: Path):
    def _write(payload, name: str = "records.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_csv(tmp_path: Path):
    def _write(text: str, name: str = "records.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def _reset_structlog():
    # CLI tests configure structlog against a captured stderr that is closed afterwards.
    yield
    structlog.reset_defaults()
