import datetime as dt

from gamehub.models import db, JoinToken, Server
from conftest import auth_headers, make_player, make_server, server_headers


def _register_server(client, **overrides):
    body = {"ip_address": "10.1.1.1", "port": 7777, "name": "Alpha", "max_players": 8, "region": "eu"}
    body.update(overrides)
    return client.post("/api/servers/register", json=body)


def test_register_heartbeat_and_list(app, client):
    r = _register_server(client)
    assert r.status_code == 201
    data = r.get_json()
    server_id, token = data["server_id"], data["auth_token"]
    assert len(token) == 64

    # freshly registered servers are offline until their first heartbeat
    assert client.get("/api/servers").get_json() == []

    r = client.put(
        f"/api/servers/{server_id}/heartbeat",
        json={"current_players": 3, "map_rotation": "docks"},
        headers={"X-Server-Token": token},
    )
    assert r.status_code == 200
    assert r.get_json()["is_online"] is True

    listed = client.get("/api/servers?region=eu").get_json()
    assert [s["server_id"] for s in listed] == [server_id]
    assert "auth_token" not in listed[0]
    assert client.get("/api/servers?region=us").get_json() == []
    assert client.get("/api/servers?min_players=4").get_json() == []
    assert len(client.get("/api/servers?map=docks&max_players=3").get_json()) == 1


def test_register_validation(app, client):
    assert _register_server(client, name="").status_code == 400
    assert _register_server(client, port="abc").status_code == 400
    assert _register_server(client, max_players=0).status_code == 400


def test_server_auth_errors(app, client):
    a = make_server("a")
    b = make_server("b")
    url = f"/api/servers/{a.server_id}/heartbeat"

    assert client.put(url, json={"current_players": 1}).status_code == 401
    r = client.put(url, json={"current_players": 1}, headers={"X-Server-Token": "bogus"})
    assert r.status_code == 401
    r = client.put(url, json={"current_players": 1}, headers=server_headers(b))
    assert r.status_code == 403
    r = client.put(url, json={"current_players": -1}, headers=server_headers(a))
    assert r.status_code == 400


def test_join_flow(app, client):
    player = make_player("seven", player_id=7)
    server = make_server("three", server_id=3)
    other = make_server("four", server_id=4)

    r = client.post("/api/servers/3/join", headers=auth_headers(player.player_id))
    assert r.status_code == 201
    body = r.get_json()
    token = body["token"]
    assert body["server_id"] == 3
    expires_at = dt.datetime.fromisoformat(body["expires_at"])
    row = db.session.query(JoinToken).filter_by(token=token).one()
    assert expires_at == row.expires_at
    assert (row.expires_at - row.created_at).total_seconds() <= 31

    validate = f"/api/servers/3/join-tokens/{token}/validate"
    r = client.post(f"/api/servers/4/join-tokens/{token}/validate", headers=server_headers(other))
    assert r.status_code == 403
    assert r.get_json()["code"] == "wrong_server"

    r = client.post(validate, headers=server_headers(server))
    assert r.status_code == 200
    assert r.get_json() == {"player_id": 7, "server_id": 3, "valid": True}

    r = client.post(validate, headers=server_headers(server))
    assert r.status_code == 409
    assert r.get_json()["code"] == "already_used"

    r = client.post("/api/servers/3/join-tokens/missing/validate", headers=server_headers(server))
    assert r.status_code == 404


def test_join_rejects_offline_and_unknown_servers(app, client):
    player = make_player()
    make_server("down", is_online=False, server_id=5)
    headers = auth_headers(player.player_id)
    assert client.post("/api/servers/5/join", headers=headers).status_code == 409
    assert client.post("/api/servers/999/join", headers=headers).status_code == 404
    assert client.post("/api/servers/5/join").status_code == 401


def test_expired_join_token(app, client):
    player = make_player("seven", player_id=7)
    server = make_server("three", server_id=3)
    db.session.add(
        JoinToken(
            token="stale",
            player_id=player.player_id,
            server_id=server.server_id,
            expires_at=dt.datetime(2000, 1, 1),
        )
    )
    db.session.commit()
    r = client.post("/api/servers/3/join-tokens/stale/validate", headers=server_headers(server))
    assert r.status_code == 410
    assert r.get_json()["code"] == "expired"


def test_favorites(app, client):
    player = make_player()
    server = make_server("fav")
    headers = auth_headers(player.player_id)

    r = client.post("/api/favorites", json={"server_id": server.server_id, "note": "EU night"}, headers=headers)
    assert r.status_code == 201
    r = client.post("/api/favorites", json={"server_id": server.server_id}, headers=headers)
    assert r.status_code == 409
    assert client.post("/api/favorites", json={"server_id": 999}, headers=headers).status_code == 404

    favs = client.get("/api/favorites", headers=headers).get_json()
    assert [f["server_id"] for f in favs] == [server.server_id]
    assert favs[0]["note"] == "EU night"

    assert client.delete(f"/api/favorites/{server.server_id}", headers=headers).status_code == 200
    assert client.delete(f"/api/favorites/{server.server_id}", headers=headers).status_code == 404
    assert db.session.get(Server, server.server_id) is not None


def test_validate_from_another_server_does_not_consume_token(app, client):
    player = make_player("seven", player_id=7)
    bound = make_server("one", server_id=1)
    other = make_server("two", server_id=2)

    token = client.post("/api/servers/1/join", headers=auth_headers(player.player_id)).get_json()["token"]

    r = client.post(f"/api/servers/2/join-tokens/{token}/validate", headers=server_headers(other))
    assert r.status_code == 403
    assert r.get_json()["code"] == "wrong_server"
    db.session.expire_all()
    assert db.session.query(JoinToken).filter_by(token=token).one().used_at is None

    r = client.post(f"/api/servers/1/join-tokens/{token}/validate", headers=server_headers(bound))
    assert r.status_code == 200
    assert r.get_json()["player_id"] == 7


def test_non_object_json_bodies_are_rejected(app, client):
    player = make_player()
    headers = auth_headers(player.player_id)

    assert client.post("/api/servers/register", json=[1, 2]).status_code == 400
    assert client.post("/api/favorites", json=[1, 2], headers=headers).status_code == 400
