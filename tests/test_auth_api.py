import datetime as dt

import sqlalchemy as sa

from gamehub.models import db, Player, PlayerProgression, Session, utcnow
from conftest import auth_headers, make_player


def _register(client, username="hero", email="hero@example.com", password="hunter2hunter2"):
    return client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )


def test_register_login_and_profile(app, client):
    r = _register(client)
    assert r.status_code == 201
    data = r.get_json()
    assert data["username"] == "hero"
    assert data["access_token"] and data["refresh_token"]

    db.session.expire_all()
    assert db.session.get(PlayerProgression, data["player_id"]) is not None

    r = client.post("/api/auth/login", json={"username": "hero@example.com", "password": "hunter2hunter2"})
    assert r.status_code == 200
    token = r.get_json()["access_token"]

    r = client.get("/api/account/profile", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.get_json()["email"] == "hero@example.com"


def test_register_validation_and_duplicates(app, client):
    assert _register(client, username="x").status_code == 400
    assert _register(client, email="nope").status_code == 400
    assert _register(client, password="short").status_code == 400

    assert _register(client).status_code == 201
    r = _register(client, email="other@example.com")
    assert r.status_code == 409
    assert r.get_json()["code"] == "duplicate_username"
    r = _register(client, username="other")
    assert r.status_code == 409
    assert r.get_json()["code"] == "duplicate_email"


def test_login_failures(app, client):
    _register(client)
    r = client.post("/api/auth/login", json={"username": "hero", "password": "wrong-password"})
    assert r.status_code == 401
    r = client.post("/api/auth/login", json={"username": "ghost", "password": "whatever123"})
    assert r.status_code == 401

    player = db.session.scalars(sa.select(Player).where(Player.username == "hero")).one()
    player.is_banned = True
    player.banned_reason = "cheating"
    db.session.commit()
    r = client.post("/api/auth/login", json={"username": "hero", "password": "hunter2hunter2"})
    assert r.status_code == 403
    assert r.get_json()["reason"] == "cheating"


def test_expired_ban_allows_login(app, client):
    _register(client)
    player = db.session.scalars(sa.select(Player).where(Player.username == "hero")).one()
    player.is_banned = True
    player.banned_until = utcnow() - dt.timedelta(days=1)
    db.session.commit()
    r = client.post("/api/auth/login", json={"username": "hero", "password": "hunter2hunter2"})
    assert r.status_code == 200


def test_refresh_rotates_and_logout(app, client):
    refresh = _register(client).get_json()["refresh_token"]

    r = client.post("/api/auth/refresh", json={"refresh_token": refresh})
    assert r.status_code == 200
    rotated = r.get_json()["refresh_token"]
    assert rotated != refresh

    # the old token is single-use
    assert client.post("/api/auth/refresh", json={"refresh_token": refresh}).status_code == 401

    assert client.post("/api/auth/logout", json={"refresh_token": rotated}).status_code == 200
    assert client.post("/api/auth/refresh", json={"refresh_token": rotated}).status_code == 401


def test_expired_refresh_token_is_rejected_and_deleted(app, client):
    refresh = _register(client).get_json()["refresh_token"]
    row = db.session.scalars(sa.select(Session).where(Session.token == refresh)).one()
    row.expires_at = utcnow() - dt.timedelta(seconds=1)
    db.session.commit()

    assert client.post("/api/auth/refresh", json={"refresh_token": refresh}).status_code == 401
    db.session.expire_all()
    assert db.session.scalars(sa.select(Session).where(Session.token == refresh)).first() is None


def test_protected_routes_need_valid_token(app, client):
    assert client.get("/api/account/profile").status_code == 401
    r = client.get("/api/account/profile", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.get_json() == {"error": "unauthorized"}


def test_update_profile_and_settings(app, client):
    player_id = _register(client).get_json()["player_id"]
    _register(client, username="taken", email="taken@example.com")
    headers = auth_headers(player_id)

    r = client.put("/api/account/profile", json={"username": "taken"}, headers=headers)
    assert r.status_code == 409
    r = client.put("/api/account/profile", json={"username": "renamed"}, headers=headers)
    assert r.status_code == 200
    assert r.get_json()["username"] == "renamed"

    r = client.get("/api/account/settings", headers=headers)
    assert r.get_json()["color_blind_mode"] is False

    r = client.put(
        "/api/account/settings",
        json={"mouse_sensitivity": 1.5, "key_bindings": {"jump": "space"}, "subtitles_enabled": True},
        headers=headers,
    )
    assert r.status_code == 200
    body = r.get_json()
    assert body["mouse_sensitivity"] == 1.5
    assert body["key_bindings"] == {"jump": "space"}
    assert body["subtitles_enabled"] is True

    r = client.put("/api/account/settings", json={"ui_scale": 0}, headers=headers)
    assert r.status_code == 400


def test_each_request_authenticates_its_own_player(app, client):
    alice = make_player("alice")
    bob = make_player("bob")

    r = client.get("/api/account/profile", headers=auth_headers(alice.player_id))
    assert r.get_json()["username"] == "alice"
    r = client.get("/api/account/profile", headers=auth_headers(bob.player_id))
    assert r.get_json()["username"] == "bob"
    assert client.get("/api/account/profile").status_code == 401


def test_array_bodies_are_treated_as_empty(app, client):
    assert client.post("/api/auth/login", json=[1, 2]).status_code == 401
    assert client.post("/api/auth/register", json=[1, 2]).status_code == 400
    assert client.post("/api/auth/logout", json=[1, 2]).status_code == 400
