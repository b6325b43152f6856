"""Tests for the admin HTTP API."""

import jwt
import pytest
from fastapi.testclient import TestClient

from tracked_import.config import settings
from tracked_import.main import app
from tests.factories import make_users


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "db_path", str(tmp_path / "api.db"))
    monkeypatch.setattr(settings, "import_dir", str(tmp_path))
    with TestClient(app) as test_client:
        yield test_client


def _login(client, username: str, password: str) -> dict[str, str]:
    response = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def auth_headers(client) -> dict[str, str]:
    return _login(client, settings.auth_username, settings.auth_password)


@pytest.fixture
def viewer_headers(client) -> dict[str, str]:
    return _login(client, settings.viewer_username, settings.viewer_password)


def test_health(client) -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_login_returns_operator_scopes(client) -> None:
    response = client.post(
        "/api/v1/auth/login",
        json={"username": settings.auth_username, "password": settings.auth_password},
    )

    body = response.json()
    assert body["scopes"] == ["imports:read", "imports:run", "imports:clear"]
    assert body["expires_in"] == settings.jwt_expire_minutes * 60
    claims = jwt.decode(
        body["access_token"], settings.jwt_secret, algorithms=["HS256"], issuer="tracked-import"
    )
    assert claims["sub"] == settings.auth_username


def test_login_rejects_bad_password(client) -> None:
    response = client.post(
        "/api/v1/auth/login", json={"username": settings.auth_username, "password": "wrong"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHORIZED"


def test_endpoints_require_token(client) -> None:
    assert client.get("/api/v1/imports/sessions").status_code in (401, 403)

    response = client.get(
        "/api/v1/entities/counts", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


def test_token_from_another_issuer_is_rejected(client) -> None:
    forged = jwt.encode(
        {"sub": "admin", "scopes": ["imports:clear"], "iss": "elsewhere", "exp": 9999999999},
        settings.jwt_secret,
        algorithm="HS256",
    )

    response = client.delete(
        "/api/v1/imports/users", headers={"Authorization": f"Bearer {forged}"}
    )

    assert response.status_code == 401


def test_import_list_and_clear(client, auth_headers, write_json) -> None:
    path = write_json([*make_users(2), {"email": "broken@x.io"}])

    response = client.post(
        "/api/v1/imports/",
        json={"entity_kind": "users", "file_path": str(path), "import_type": "seed"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    summary = response.json()
    assert summary["successful_inserts"] == 2
    assert summary["skipped_records"] == 1
    assert summary["status"] == "completed"
    assert summary["errors"][0]["raw_data"] == {"email": "broken@x.io"}

    sessions = client.get("/api/v1/imports/sessions", headers=auth_headers).json()
    assert [s["session_id"] for s in sessions] == [summary["session_id"]]
    assert sessions[0]["import_type"] == "seed"

    ids = client.get(
        "/api/v1/imports/users/ids", params={"import_type": "seed"}, headers=auth_headers
    ).json()
    assert ids["count"] == 2

    counts = client.get("/api/v1/entities/counts", headers=auth_headers).json()
    assert counts["counts"]["users"] == 2
    assert counts["total"] == 2

    preview = client.delete(
        "/api/v1/imports/users", params={"dry_run": True}, headers=auth_headers
    ).json()
    assert preview == {
        "entity_kind": "users",
        "import_type": None,
        "deleted_count": 2,
        "sessions_cleaned": 1,
        "dry_run": True,
    }

    cleared = client.delete(
        "/api/v1/imports/users", params={"import_type": "seed"}, headers=auth_headers
    ).json()
    assert cleared["deleted_count"] == 2
    assert cleared["sessions_cleaned"] == 1
    assert client.get("/api/v1/entities/counts", headers=auth_headers).json()["total"] == 0


def test_relative_path_resolves_inside_import_dir(client, auth_headers, write_json) -> None:
    write_json(make_users(3), name="batch.json")

    response = client.post(
        "/api/v1/imports/",
        json={"entity_kind": "users", "file_path": "batch.json"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert response.json()["successful_inserts"] == 3


def test_paths_outside_import_dir_are_refused(client, auth_headers, tmp_path) -> None:
    for file_path in ["../escape.json", "/etc/passwd"]:
        response = client.post(
            "/api/v1/imports/",
            json={"entity_kind": "users", "file_path": file_path, "format": "json"},
            headers=auth_headers,
        )

        assert response.status_code == 403
        assert response.json()["error"] == "FORBIDDEN"

    sessions = client.get("/api/v1/imports/sessions", headers=auth_headers).json()
    assert sessions == []


def test_viewer_can_read_but_not_write(client, auth_headers, viewer_headers, write_json) -> None:
    path = write_json(make_users(2))
    client.post(
        "/api/v1/imports/",
        json={"entity_kind": "users", "file_path": str(path)},
        headers=auth_headers,
    )

    listed = client.get("/api/v1/imports/sessions", headers=viewer_headers)
    assert listed.status_code == 200
    assert len(listed.json()) == 1

    denied_run = client.post(
        "/api/v1/imports/",
        json={"entity_kind": "users", "file_path": str(path)},
        headers=viewer_headers,
    )
    assert denied_run.status_code == 403

    denied_clear = client.delete("/api/v1/imports/users", headers=viewer_headers)
    assert denied_clear.status_code == 403
    assert client.get("/api/v1/entities/counts", headers=viewer_headers).json()["total"] == 2


def test_list_documents_pages_a_collection(client, auth_headers, viewer_headers, write_json):
    path = write_json(make_users(3))
    client.post(
        "/api/v1/imports/",
        json={"entity_kind": "users", "file_path": str(path)},
        headers=auth_headers,
    )

    page = client.get(
        "/api/v1/entities/users", params={"limit": 2, "offset": 1}, headers=viewer_headers
    ).json()

    assert page["entity_kind"] == "users"
    assert page["total"] == 3
    assert len(page["items"]) == 2
    assert all("id" in item and "email" in item for item in page["items"])

    unknown = client.get("/api/v1/entities/invoices", headers=viewer_headers)
    assert unknown.status_code == 422


def test_import_errors_map_to_status_codes(client, auth_headers, tmp_path) -> None:
    missing = client.post(
        "/api/v1/imports/",
        json={"entity_kind": "users", "file_path": str(tmp_path / "missing.json")},
        headers=auth_headers,
    )
    assert missing.status_code == 422
    assert missing.json()["error"] == "SOURCE_ERROR"

    unknown = client.get("/api/v1/imports/invoices/ids", headers=auth_headers)
    assert unknown.status_code == 422
    assert unknown.json()["error"] == "CONFIGURATION_ERROR"
