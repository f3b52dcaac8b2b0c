"""
Integration tests for the HTTP shell.

Tests cover:
- Registry endpoints and error mapping
- NDJSON run streaming
- Saved playground CRUD
"""

import json

import pytest
from fastapi.testclient import TestClient

from playground.app import create_app
from sqlplay.config import Settings


@pytest.fixture
def client(tmp_path):
    settings = Settings(data_dir=tmp_path, environment="test", toolkit_seed=3)
    with TestClient(create_app(settings)) as client:
        yield client


def _events(response):
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


class TestRegistryEndpoints:
    """Tests for the dialect and preset endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "sqlplay"}

    def test_list_dialects(self, client):
        response = client.get("/api/v1/dialects")

        assert response.status_code == 200
        dialects = {d["id"]: d for d in response.json()["dialects"]}
        assert set(dialects) == {"postgresql", "sqlite"}
        assert "rls" in [p["id"] for p in dialects["postgresql"]["presets"]]

    def test_unknown_dialect_is_404(self, client):
        response = client.get("/api/v1/dialects/oracle/presets")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "DIALECT_NOT_FOUND"

    def test_core_files(self, client):
        response = client.get("/api/v1/dialects/sqlite/files")

        body = response.json()
        assert response.status_code == 200
        assert body["preset"] is None
        assert {"schema", "index", "__internal__"} <= set(body["files"])

    def test_unknown_preset_is_404(self, client):
        response = client.get("/api/v1/dialects/sqlite/files", params={"preset": "missing"})

        assert response.status_code == 404

    def test_unknown_preset_with_fallback(self, client):
        response = client.get("/api/v1/dialects/sqlite/files", params={"preset": "missing", "fallback": "true"})

        assert response.status_code == 200
        assert "index" in response.json()["files"]


class TestRunEndpoint:
    """Tests for POST /run."""

    def test_streams_events_in_order(self, client):
        files = {
            "schema": (
                "from sqlplay.schema import column, table\n"
                "users = table('users', column('id', 'integer', primary_key=True), column('name', 'text'))\n"
            ),
            "index": "await db.insert(users, {'id': 1, 'name': 'Ada'})\nprint('done')\n",
        }

        response = client.post("/api/v1/run", json={"dialect": "sqlite", "files": files})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        events = _events(response)
        assert [e["type"] for e in events] == ["query-log", "console"]
        assert events[0]["params"] == [1, "Ada"]
        assert events[0]["file_name"] == "index"
        assert events[1]["text"] == "done"

    def test_failed_run_ends_with_one_error(self, client):
        files = {"schema": "", "index": "x = 1\nraise RuntimeError('nope')\n"}

        events = _events(client.post("/api/v1/run", json={"dialect": "postgresql", "files": files}))

        assert events[-1]["type"] == "error"
        assert events[-1]["line"] == 2
        assert events[-1]["message"] == "RuntimeError: nope"
        assert len([e for e in events if e["type"] == "error"]) == 1

    def test_preset_run(self, client):
        response = client.post("/api/v1/run", json={"dialect": "sqlite", "preset": "starter-01"})

        events = _events(response)
        assert events
        assert not [e for e in events if e["type"] == "error"]

    def test_unknown_preset_is_404(self, client):
        response = client.post("/api/v1/run", json={"dialect": "sqlite", "preset": "missing"})

        assert response.status_code == 404

    def test_identity(self, client):
        files = {"schema": "", "index": "print(db.setting('request.jwt.claim.role'))"}
        body = {"dialect": "sqlite", "files": files, "identity": {"subject": "u1", "role": "authenticated"}}

        events = _events(client.post("/api/v1/run", json=body))

        assert [e["text"] for e in events if e["type"] == "console"] == ["authenticated"]


class TestPlaygroundEndpoints:
    """Tests for the saved playground endpoints."""

    def test_crud(self, client):
        body = {"name": "demo", "dialect": "sqlite", "files": {"schema": "", "index": "x = 1"}}

        created = client.put("/api/v1/playgrounds/p1", json=body)
        assert created.status_code == 200
        assert created.json()["id"] == "p1"

        assert client.get("/api/v1/playgrounds/p1").json()["files"]["index"] == "x = 1"
        assert [p["id"] for p in client.get("/api/v1/playgrounds").json()["playgrounds"]] == ["p1"]

        updated = client.put("/api/v1/playgrounds/p1", json={**body, "name": "renamed"})
        assert updated.json()["created_at"] == created.json()["created_at"]
        assert updated.json()["name"] == "renamed"

        assert client.delete("/api/v1/playgrounds/p1").json() == {"deleted": "p1"}
        assert client.get("/api/v1/playgrounds/p1").status_code == 404
        assert client.delete("/api/v1/playgrounds/p1").status_code == 404

    def test_empty_name_is_rejected(self, client):
        body = {"name": "", "dialect": "sqlite", "files": {}}

        assert client.put("/api/v1/playgrounds/p1", json=body).status_code == 422

    def test_migration_is_reported_on_state(self, client):
        assert client.app.state.migration.migrated is False
