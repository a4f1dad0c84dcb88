import random
from types import SimpleNamespace

from gamehub.models import db, LootTable, LootTableEntry, PlayerCosmetic
from gamehub.services.loot import LootEngine
from gamehub.services.store import SqlStore
from conftest import auth_headers, make_cosmetic, make_loot_table, make_player


def _seed_engine(app, seed=0):
    app.extensions["loot_engine"] = LootEngine(rng=random.Random(seed))


def test_drop_route_grants(app, client):
    _seed_engine(app)
    make_player("seven", player_id=7)
    make_cosmetic("Crimson", cosmetic_id=42, rarity="epic")
    make_loot_table([(42, 10)], loot_table_id=1, drop_chance=1.0)

    r = client.post("/api/loot/drop", headers=auth_headers(7))
    assert r.status_code == 200
    body = r.get_json()
    assert body["dropped"] is True
    assert body["cosmetic"]["cosmetic_id"] == 42
    assert body["cosmetic"]["rarity"] == "epic"
    db.session.expire_all()
    assert db.session.get(PlayerCosmetic, (7, 42)).unlocked_via == "loot_drop"


def test_drop_route_benign_outcomes(app, client):
    _seed_engine(app)
    player = make_player()
    headers = auth_headers(player.player_id)

    r = client.post("/api/loot/drop", headers=headers)
    assert r.status_code == 200
    assert r.get_json() == {"dropped": False, "reason": "no_active_tables"}

    make_loot_table([], drop_chance=0.0)
    assert client.post("/api/loot/drop", headers=headers).get_json()["reason"] == "no_drop"


class ZeroWeightStore(SqlStore):
    def get_loot_table_entries(self, loot_table_id):
        return [SimpleNamespace(loot_entry_id=1, cosmetic_id=42, weight=0)]


class MissingCosmeticStore(SqlStore):
    def get_cosmetic_item(self, cosmetic_id):
        return None


def test_drop_route_reports_integrity_faults_as_server_errors(app, client):
    player = make_player()
    make_cosmetic("Crimson", cosmetic_id=42)
    make_loot_table([(42, 10)], drop_chance=1.0)
    headers = auth_headers(player.player_id)

    app.extensions["loot_engine"] = LootEngine(store=ZeroWeightStore(), rng=random.Random(0))
    r = client.post("/api/loot/drop", headers=headers)
    assert r.status_code == 500
    assert r.get_json()["code"] == "invalid_weights"
    assert "dropped" not in r.get_json()

    app.extensions["loot_engine"] = LootEngine(store=MissingCosmeticStore(), rng=random.Random(0))
    r = client.post("/api/loot/drop", headers=headers)
    assert r.status_code == 500
    assert r.get_json()["code"] == "cosmetic_not_found"
    assert "dropped" not in r.get_json()


def test_drop_route_requires_login(app, client):
    assert client.post("/api/loot/drop").status_code == 401


def test_admin_routes_need_admin(app, client):
    player = make_player()
    headers = auth_headers(player.player_id)
    assert client.get("/api/admin/loot-tables").status_code == 401
    assert client.get("/api/admin/loot-tables", headers=headers).status_code == 403


def test_admin_loot_table_crud(app, client):
    admin = make_player("boss", is_admin=True)
    skin = make_cosmetic("Skin")
    headers = auth_headers(admin.player_id)

    r = client.post("/api/admin/loot-tables", json={"name": "Weekly", "drop_chance": 0.25}, headers=headers)
    assert r.status_code == 201
    table_id = r.get_json()["loot_table_id"]

    r = client.post("/api/admin/loot-tables", json={"name": "Bad", "drop_chance": 1.5}, headers=headers)
    assert r.status_code == 400
    assert r.get_json()["code"] == "invalid_loot_config"

    r = client.post(
        f"/api/admin/loot-tables/{table_id}/entries",
        json={"cosmetic_id": skin.cosmetic_id, "weight": 5},
        headers=headers,
    )
    assert r.status_code == 201
    entry_id = r.get_json()["loot_entry_id"]

    for bad in ({"cosmetic_id": skin.cosmetic_id, "weight": 0},
                {"cosmetic_id": skin.cosmetic_id, "weight": 1, "min_quantity": 3, "max_quantity": 2},
                {"cosmetic_id": 999, "weight": 1}):
        r = client.post(f"/api/admin/loot-tables/{table_id}/entries", json=bad, headers=headers)
        assert r.status_code == 400

    body = client.get(f"/api/admin/loot-tables/{table_id}", headers=headers).get_json()
    assert body["name"] == "Weekly"
    assert [e["loot_entry_id"] for e in body["entries"]] == [entry_id]
    assert body["entries"][0]["cosmetic"]["name"] == "Skin"

    r = client.put(f"/api/admin/loot-tables/{table_id}", json={"is_active": False, "drop_chance": 0.5}, headers=headers)
    assert r.status_code == 200
    assert r.get_json()["is_active"] is False

    r = client.put(f"/api/admin/loot-tables/entries/{entry_id}", json={"weight": 9}, headers=headers)
    assert r.get_json()["weight"] == 9
    r = client.put(f"/api/admin/loot-tables/entries/{entry_id}", json={"weight": -1}, headers=headers)
    assert r.status_code == 400

    assert client.delete(f"/api/admin/loot-tables/entries/{entry_id}", headers=headers).status_code == 200
    assert client.get(f"/api/admin/loot-tables/entries/{entry_id}", headers=headers).status_code == 404
    assert client.delete(f"/api/admin/loot-tables/{table_id}", headers=headers).status_code == 200
    assert client.get(f"/api/admin/loot-tables/{table_id}", headers=headers).status_code == 404

    db.session.expire_all()
    assert db.session.get(LootTable, table_id) is None
    assert db.session.get(LootTableEntry, entry_id) is None


def test_admin_rejects_non_boolean_is_active(app, client):
    admin = make_player("boss", is_admin=True)
    headers = auth_headers(admin.player_id)
    table = make_loot_table([], is_active=False)

    r = client.put(f"/api/admin/loot-tables/{table.loot_table_id}", json={"is_active": "false"}, headers=headers)
    assert r.status_code == 400
    assert r.get_json()["code"] == "invalid_loot_config"
    r = client.post("/api/admin/loot-tables", json={"name": "T", "drop_chance": 0.1, "is_active": 1}, headers=headers)
    assert r.status_code == 400

    db.session.expire_all()
    assert db.session.get(LootTable, table.loot_table_id).is_active is False


def test_admin_entry_needs_cosmetic_id(app, client):
    admin = make_player("boss", is_admin=True)
    headers = auth_headers(admin.player_id)
    table = make_loot_table([])
    url = f"/api/admin/loot-tables/{table.loot_table_id}/entries"

    for bad in ({"weight": 1}, {"cosmetic_id": "7", "weight": 1}, {"cosmetic_id": 0, "weight": 1}):
        r = client.post(url, json=bad, headers=headers)
        assert r.status_code == 400
        assert r.get_json()["error"] == "cosmetic_id must be a positive integer"
