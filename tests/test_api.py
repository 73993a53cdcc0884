"""Tests for the HTTP shell."""

import json

import pytest
from fastapi.testclient import TestClient

from malatally.main import create_app


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine=engine))


def test_status(client):
    response = client.get("/status")

    assert response.status_code == 200
    assert response.json()["active_profile"] == "OM"
    assert response.json()["remote_configured"] is False


def test_increment_returns_state(client):
    response = client.post("/api/increment")

    body = response.json()
    assert response.status_code == 200
    assert body["counts"]["beadCount"] == 1
    assert body["progress_label"] == "0/1"
    assert body["crossed_goal"] is False


def test_activate_profile(client):
    response = client.post("/api/profiles/HK/activate")

    assert response.status_code == 200
    assert response.json()["settings"]["dailyGoal"] == {"type": "rounds", "value": 16}
    assert client.get("/api/profiles").json()["active"] == "HK"


def test_activate_unknown_profile(client):
    assert client.post("/api/profiles/NOPE/activate").status_code == 404


def test_reset_needs_confirmation(client):
    client.post("/api/increment")

    assert client.post("/api/reset").status_code == 409
    response = client.post("/api/reset", params={"confirm": True})
    assert response.json()["counts"]["beadCount"] == 0


def test_settings_update(client):
    response = client.put("/api/settings", json={"beadsPerRound": 27})

    assert response.status_code == 200
    assert response.json()["settings"]["beadsPerRound"] == 27


def test_import_rejects_invalid_backup(client):
    response = client.post("/api/import", params={"confirm": True}, content=b"[1,2,3]")

    assert response.status_code == 400
    assert client.get("/api/state").json()["counts"]["beadCount"] == 0


def test_export_import_round_trip(client):
    for _ in range(3):
        client.post("/api/increment")
    exported = client.get("/api/export").content
    client.post("/api/reset", params={"confirm": True})

    assert client.post("/api/import", content=exported).status_code == 409
    response = client.post("/api/import", params={"confirm": True}, content=exported)

    assert response.status_code == 200
    assert response.json()["counts"]["beadCount"] == 3
    assert json.loads(exported)["profile"] == "OM"


def test_history_edit_conflict(client, engine):
    engine.store.blobs.set(
        "om_history",
        json.dumps([{"date": "2024-01-02", "rounds": 1}, {"date": "2024-01-01", "rounds": 2}]),
    )
    client.post("/api/profiles/OM/activate")

    response = client.put("/api/history/2024-01-02", json={"date": "2024-01-01", "rounds": 5})
    assert response.status_code == 409

    response = client.delete("/api/history/2024-01-01")
    assert response.json() == [{"date": "2024-01-02", "rounds": 1}]


def test_remote_sync_not_configured(client):
    assert client.post("/api/sync/backup").status_code == 503
