import pytest


@pytest.fixture
def owner(create_user, login) -> int:
    user_id = create_user("mira")
    login("mira")
    return user_id


def _create(client, payload: dict | None = None) -> int:
    response = client.post("/characters", json=payload or {})
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    return body["id"]


def test_requires_login(client) -> None:
    assert client.get("/characters").status_code == 401
    assert client.get("/characters", params={"id": 1}).status_code == 401
    assert client.post("/characters", json={}).status_code == 401
    response = client.delete("/characters", params={"id": 1})
    assert response.status_code == 401
    assert response.json() == {"error": "Not logged in"}


def test_create_and_load(client, owner) -> None:
    character_id = _create(
        client,
        {
            "name": "Bar-iton",
            "class": "Bard",
            "stats": {"cha": 16},
            "inventory": [{"name": "Lute", "type": "tools", "light": "false"}],
        },
    )

    response = client.get("/characters", params={"id": character_id})

    assert response.status_code == 200
    sheet = response.json()
    assert sheet["user_id"] == owner
    assert sheet["stats"]["cha"] == 16
    assert sheet["inventory"][0]["type"] == "tool"
    assert sheet["inventory"][0]["category"] == "tools"
    assert sheet["inventory"][0]["light"] is False
    assert sheet["equipment"] == {"armor": None, "mainhand": None, "offhand": None}


def test_listing_for_user(client, owner) -> None:
    _create(client, {"name": "Bee", "race": "Gnome"})
    _create(client, {"name": "Ace"})

    rows = client.get("/characters").json()

    assert [row["name"] for row in rows] == ["Ace", "Bee"]
    assert set(rows[1]) == {"id", "name", "level", "class", "race"}


def test_partial_update(client, owner) -> None:
    character_id = _create(client, {"name": "Keeper", "money": {"gold": 9}})

    response = client.put("/characters", params={"id": character_id}, json={"level": 5})
    sheet = client.get("/characters", params={"id": character_id}).json()

    assert response.json() == {"success": True}
    assert sheet["level"] == 5
    assert sheet["name"] == "Keeper"
    assert sheet["money"]["gold"] == 9


def test_update_with_bad_item_is_400_and_changes_nothing(client, owner) -> None:
    character_id = _create(client, {"name": "Keeper"})

    response = client.put(
        "/characters",
        params={"id": character_id},
        json={"name": "Other", "inventory": [{"type": "weapon"}]},
    )

    assert response.status_code == 400
    assert "Item name is missing" in response.json()["error"]
    assert client.get("/characters", params={"id": character_id}).json()["name"] == "Keeper"


def test_missing_character_is_404(client, owner) -> None:
    assert client.get("/characters", params={"id": 404}).status_code == 404
    assert client.put("/characters", params={"id": 404}, json={"level": 2}).status_code == 404
    assert client.delete("/characters", params={"id": 404}).status_code == 404


def test_missing_id_is_400(client, owner) -> None:
    response = client.put("/characters", json={"level": 2})
    assert response.status_code == 400
    assert "error" in response.json()


def test_other_users_character_is_forbidden_but_admin_may(client, create_user, login) -> None:
    create_user("mira")
    create_user("tom")
    create_user("root", role="admin")
    login("mira")
    character_id = _create(client, {"name": "Private"})

    login("tom")
    forbidden = client.get("/characters", params={"id": character_id})
    forbidden_delete = client.delete("/characters", params={"id": character_id})
    login("root")
    allowed = client.get("/characters", params={"id": character_id})
    listing = client.get("/characters").json()

    assert forbidden.status_code == 403
    assert forbidden_delete.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["name"] == "Private"
    assert listing[0]["user_id"] is not None


def test_only_admin_changes_owner(client, create_user, login) -> None:
    mira_id = create_user("mira")
    tom_id = create_user("tom")
    create_user("root", role="admin")
    login("mira")
    character_id = _create(client, {"name": "Heirloom"})

    self_transfer = client.put("/characters", params={"id": character_id}, json={"user_id": tom_id})
    login("root")
    admin_transfer = client.put("/characters", params={"id": character_id}, json={"user_id": tom_id})
    login("tom")
    sheet = client.get("/characters", params={"id": character_id}).json()

    assert self_transfer.status_code == 403
    assert admin_transfer.status_code == 200
    assert sheet["user_id"] == tom_id
    assert sheet["user_id"] != mira_id


def test_delete(client, owner) -> None:
    character_id = _create(client)

    assert client.delete("/characters", params={"id": character_id}).json() == {"success": True}
    assert client.get("/characters", params={"id": character_id}).status_code == 404


def test_request_id_is_echoed(client, owner) -> None:
    response = client.get("/characters", headers={"X-Request-Id": "abc123"})
    assert response.headers["X-Request-Id"] == "abc123"
    assert client.get("/characters").headers["X-Request-Id"]


def test_overflowing_numbers_are_treated_as_missing(client, owner) -> None:
    character_id = _create(client, {"level": "1e999", "stats": {"str": "Infinity"}})

    response = client.put(
        "/characters",
        params={"id": character_id},
        json={"level": "1e999", "money": {"gold": "-inf"}},
    )
    sheet = client.get("/characters", params={"id": character_id}).json()

    assert response.status_code == 200
    assert sheet["level"] == 1
    assert sheet["stats"]["str"] == 8
    assert sheet["money"]["gold"] == 0


def test_non_numeric_owner_is_rejected(client, create_user, login) -> None:
    create_user("root", role="admin")
    login("root")
    character_id = _create(client, {"name": "Anchored"})

    garbage = client.put("/characters", params={"id": character_id}, json={"user_id": "abc"})
    unknown = client.put("/characters", params={"id": character_id}, json={"user_id": 4242})
    sheet = client.get("/characters", params={"id": character_id}).json()

    assert garbage.status_code == 400
    assert unknown.status_code == 400
    assert sheet["user_id"] is not None


def test_unhandled_error_keeps_request_id(client, owner) -> None:
    from app.main import app
    from db import get_db

    def broken_db():
        raise RuntimeError("database exploded")
        yield

    app.dependency_overrides[get_db] = broken_db
    response = client.get("/characters", headers={"X-Request-Id": "req-500"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert response.headers["X-Request-Id"] == "req-500"
