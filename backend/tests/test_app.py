"""
backend/tests/test_app.py

Purpose:
    Application wiring without a database: health degrades cleanly, request
    ids are echoed, trigger routes are guarded, and scheduled jobs register.
"""

import pytest
from fastapi.testclient import TestClient

import app.database as _db
from app.config import settings
from app.main import _build_job_specs, app
from app.workers import game_status_sync


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(_db, "db", None)
    return TestClient(app)


def test_health_reports_disconnected_db(client):
    resp = client.get("/api/health", headers={"x-request-id": "abc123"})

    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["workers"] == []
    assert resp.headers["X-Request-ID"] == "abc123"


def test_trigger_without_secret_is_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    resp = client.post("/api/grading/run?week=1")

    assert resp.status_code == 401


def test_standings_week_below_one_is_validation_error(client):
    resp = client.get("/api/standings/weekly", params={"season_id": "s1", "week": 0})

    assert resp.status_code == 422
    assert resp.json()["errors"][0]["field"] == "week"


def test_job_specs_cover_grading_and_status_sync():
    assert {spec["id"] for spec in _build_job_specs()} == {"grading_pass", "game_status_sync"}


@pytest.mark.asyncio
async def test_status_sync_worker_skips_when_recently_synced(monkeypatch):
    called = []

    async def _recent(_key, _max_age):
        return True

    async def _sync(*_args):
        called.append(True)

    monkeypatch.setattr(game_status_sync, "recently_synced", _recent)
    monkeypatch.setattr(game_status_sync, "sync_game_statuses", _sync)

    await game_status_sync.sync_game_status()

    assert called == []


@pytest.mark.asyncio
async def test_status_sync_worker_records_summary(monkeypatch):
    state = {}

    async def _recent(_key, _max_age):
        return False

    async def _sync(_repo, _feed):
        return {"processed": 3, "status_changes": 1, "updates": [{"game_id": "g1"}]}

    async def _set_synced(key, summary=None):
        state[key] = summary

    monkeypatch.setattr(game_status_sync, "recently_synced", _recent)
    monkeypatch.setattr(game_status_sync, "sync_game_statuses", _sync)
    monkeypatch.setattr(game_status_sync, "set_synced", _set_synced)

    await game_status_sync.sync_game_status()

    assert state == {"game_status_sync": {"processed": 3, "status_changes": 1}}
