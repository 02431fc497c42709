import pytest


@pytest.fixture
def character_id(client, create_user, login) -> int:
    create_user("mira")
    login("mira")
    response = client.post("/characters", json={"name": "Wanderer"})
    return response.json()["id"]


def test_session_lifecycle(client, character_id) -> None:
    started = client.post("/sessions", json={"character_id": character_id, "session_name": "Night 1"})
    assert started.status_code == 200
    session_id = started.json()["session_id"]

    active = client.get("/sessions", params={"character_id": character_id, "active": "true"}).json()
    assert active["id"] == session_id
    assert active["session_name"] == "Night 1"
    assert [snapshot["snapshot_type"] for snapshot in active["snapshots"]] == ["session_start"]

    ended = client.put("/sessions", json={"session_id": session_id, "notes": "Rested at the inn"})
    assert ended.json() == {"success": True}

    assert client.get("/sessions", params={"character_id": character_id, "active": "true"}).json() is None
    listing = client.get("/sessions", params={"character_id": character_id}).json()
    assert listing[0]["id"] == session_id
    assert listing[0]["ended_at"] is not None
    assert listing[0]["notes"] == "Rested at the inn"
    assert listing[0]["snapshot_count"] == 2

    detail = client.get("/sessions", params={"session_id": session_id}).json()
    assert [snapshot["snapshot_type"] for snapshot in detail["snapshots"]] == [
        "session_start",
        "session_end",
    ]


def test_second_start_conflicts(client, character_id) -> None:
    client.post("/sessions", params={"character_id": character_id})
    response = client.post("/sessions", params={"character_id": character_id})

    assert response.status_code == 409
    assert "error" in response.json()
    assert len(client.get("/sessions", params={"character_id": character_id}).json()) == 1


def test_ending_twice_is_404(client, character_id) -> None:
    session_id = client.post("/sessions", json={"character_id": character_id}).json()["session_id"]
    client.put("/sessions", params={"id": session_id})

    response = client.put("/sessions", params={"id": session_id})
    assert response.status_code == 404


def test_manual_snapshot_and_latest(client, character_id) -> None:
    from_db = client.post(
        "/sessions", params={"action": "snapshot"}, json={"character_id": character_id}
    )
    live = client.post(
        "/sessions",
        params={"action": "snapshot"},
        json={"character_id": character_id, "character_data": {"name": "Unsaved", "id": 0}},
    )
    assert from_db.status_code == 200
    assert live.status_code == 200

    latest = client.get(
        "/sessions", params={"character_id": character_id, "latest_snapshot": "true"}
    ).json()
    assert latest["id"] == live.json()["snapshot_id"]
    assert latest["character_data"] == {"name": "Unsaved", "id": character_id}
    assert latest["session_id"] is None

    by_id = client.get("/sessions", params={"snapshot_id": from_db.json()["snapshot_id"]}).json()
    assert by_id["character_data"]["name"] == "Wanderer"
    assert by_id["snapshot_type"] == "manual"


def test_missing_parameters(client, character_id) -> None:
    assert client.get("/sessions").status_code == 400
    assert client.post("/sessions", json={}).status_code == 400
    assert client.put("/sessions", json={}).status_code == 400


def test_latest_snapshot_missing_is_404(client, character_id) -> None:
    response = client.get("/sessions", params={"character_id": character_id, "latest_snapshot": "true"})
    assert response.status_code == 404


def test_sessions_are_owner_scoped(client, character_id, create_user, login) -> None:
    session_id = client.post("/sessions", json={"character_id": character_id}).json()["session_id"]
    snapshot_id = client.post(
        "/sessions", params={"action": "snapshot"}, json={"character_id": character_id}
    ).json()["snapshot_id"]
    create_user("tom")
    login("tom")

    assert client.get("/sessions", params={"character_id": character_id}).status_code == 403
    assert client.get("/sessions", params={"snapshot_id": snapshot_id}).status_code == 403
    assert client.get("/sessions", params={"session_id": session_id}).status_code == 403
    assert client.post("/sessions", json={"character_id": character_id}).status_code == 403
    assert client.put("/sessions", json={"session_id": session_id}).status_code == 403
    assert client.get("/sessions", params={"snapshot_id": 9999}).status_code == 404


def test_sessions_require_login(client) -> None:
    assert client.get("/sessions", params={"character_id": 1}).status_code == 401
    assert client.post("/sessions", json={"character_id": 1}).status_code == 401
