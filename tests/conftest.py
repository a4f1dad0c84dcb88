import pytest
from flask import g

from gamehub import create_app
from gamehub.models import (
    db,
    CosmeticItem,
    LootTable,
    LootTableEntry,
    Player,
    PlayerProgression,
    Server,
)
from gamehub.security import issue_access_token

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "AUTO_CREATE_TABLES": True,
    "SECRET_KEY": "test-secret",
    "LOG_LEVEL": "DEBUG",
}


def make_app(**overrides):
    config = dict(TEST_CONFIG)
    config.update(overrides)
    app = create_app(config)

    # one app context spans the whole test; drop per-request identity from g
    @app.teardown_request
    def _forget_request_identity(_exc):
        g.pop("_login_user", None)
        g.pop("server", None)

    return app


@pytest.fixture
def app():
    app = make_app()
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# -------- factories ----------
def make_player(username="player1", email=None, is_admin=False, player_id=None, **kw):
    player = Player(
        player_id=player_id,
        username=username,
        email=email or f"{username}@example.com",
        password_hash="x",
        is_admin=is_admin,
        **kw,
    )
    db.session.add(player)
    db.session.flush()
    db.session.add(PlayerProgression(player_id=player.player_id))
    db.session.commit()
    return player


def make_cosmetic(name="Skin", cosmetic_id=None, **kw):
    kw.setdefault("slot", "character_skin")
    kw.setdefault("rarity", "common")
    item = CosmeticItem(cosmetic_id=cosmetic_id, name=name, **kw)
    db.session.add(item)
    db.session.commit()
    return item


def make_loot_table(entries=(), name="Table", drop_chance=1.0, is_active=True, loot_table_id=None):
    """``entries`` is a sequence of ``(cosmetic_id, weight)`` pairs."""
    table = LootTable(
        loot_table_id=loot_table_id, name=name, drop_chance=drop_chance, is_active=is_active
    )
    db.session.add(table)
    db.session.flush()
    for cosmetic_id, weight in entries:
        db.session.add(
            LootTableEntry(loot_table_id=table.loot_table_id, cosmetic_id=cosmetic_id, weight=weight)
        )
    db.session.commit()
    return table


def make_server(name="srv", is_online=True, auth_token=None, server_id=None, **kw):
    server = Server(
        server_id=server_id,
        name=name,
        ip_address=kw.pop("ip_address", "10.0.0.1"),
        port=kw.pop("port", 7777),
        max_players=kw.pop("max_players", 16),
        is_online=is_online,
        auth_token=auth_token or f"token-{name}",
        **kw,
    )
    db.session.add(server)
    db.session.commit()
    return server


def auth_headers(player_id):
    return {"Authorization": f"Bearer {issue_access_token(player_id)}"}


def server_headers(server):
    return {"X-Server-Token": server.auth_token}
